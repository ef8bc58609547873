import duckdb
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class ConnectionHandler:
    """
    Owns the single DuckDB connection behind a KardDatabase.

    The connection is opened lazily and can be closed and reopened. Multi-
    statement writes go through `transaction()`.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Parameters:
            db_path (Union[str, Path]): DuckDB file, or ":memory:" (any case) for a transient database.
            read_only (bool): Open the database read-only.
        """
        if isinstance(db_path, str) and db_path.lower() == MEMORY_PATH:
            self.db_path_resolved = Path(MEMORY_PATH)
            logger.info("Using in-memory DuckDB database.")
        else:
            self.db_path_resolved = Path(db_path).resolve()
            logger.info(f"ConnectionHandler initialized for DB at: {self.db_path_resolved}")

        self.read_only: bool = read_only
        self.is_new_db: bool = False
        self._connection: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_PATH

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def _open(self) -> duckdb.DuckDBPyConnection:
        if self.is_memory:
            self.is_new_db = True
        else:
            self.is_new_db = not self.db_path_resolved.exists()
            if not self.read_only:
                self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = duckdb.connect(
                database=str(self.db_path_resolved), read_only=self.read_only
            )
        except duckdb.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to database: {e}", original_exception=e
            ) from e
        logger.info(
            f"Connected to {self.db_path_resolved} "
            f"(new={self.is_new_db}, read_only={self.read_only})."
        )
        return conn

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the open connection, opening it first if needed.

        Raises:
            DatabaseConnectionError: If DuckDB cannot open the database.
        """
        if self._connection is None:
            self._connection = self._open()
        return self._connection

    @contextmanager
    def transaction(self, context: str) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Run a block of statements on a cursor inside one transaction.

        Commits when the block finishes. Any exception rolls the transaction
        back and is re-raised unchanged; a failed rollback is only logged.
        """
        with self.get_connection().cursor() as cursor:
            cursor.begin()
            try:
                yield cursor
            except BaseException:
                try:
                    cursor.rollback()
                    logger.info(f"Transaction rolled back due to error in {context}.")
                except duckdb.Error as rb_err:
                    logger.error(f"Failed to roll back {context}: {rb_err}")
                raise
            cursor.commit()

    def close_connection(self) -> None:
        """Close the connection if open. A later call to get_connection reopens it."""
        if self._connection is None:
            return
        try:
            self._connection.close()
            logger.info(f"Database connection to {self.db_path_resolved} closed.")
        except duckdb.Error as e:
            logger.error(f"Error closing the database connection: {e}")
        finally:
            self._connection = None
