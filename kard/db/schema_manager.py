import duckdb
import logging

from . import schema
from .connection import ConnectionHandler
from ..exceptions import DatabaseConnectionError, SchemaInitializationError
from .. import config as kard_config

logger = logging.getLogger(__name__)

# Tables whose rows are user content; a forced rebuild refuses to drop them
# while they hold data.
GUARDED_TABLES = ("decks", "flashcards")


class SchemaManager:
    """Creates the Kard tables, and rebuilds them on request."""

    def __init__(self, handler: ConnectionHandler):
        self._handler = handler

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Apply the schema DDL in one transaction. The DDL is idempotent, so
        calling this on an existing database is harmless.

        A read-only file database is left alone. `force_recreate_tables`
        drops every table first, which is refused for a file database whose
        decks or flashcards are not empty (unless running in testing mode).

        Raises:
            DatabaseConnectionError: A rebuild was requested in read-only mode.
            SchemaInitializationError: The DDL failed.
            ValueError: A rebuild would have destroyed stored decks or cards.
        """
        handler = self._handler
        if handler.read_only:
            if force_recreate_tables:
                raise DatabaseConnectionError(
                    "Cannot force_recreate_tables in read-only mode."
                )
            if not handler.is_memory:
                logger.warning("Read-only database; schema initialization skipped.")
                return

        try:
            with handler.transaction("schema initialization") as cursor:
                if force_recreate_tables:
                    self._drop_all(cursor)
                cursor.execute(schema.DB_SCHEMA_SQL)
        except duckdb.Error as e:
            logger.error(f"Schema initialization failed for {handler.db_path_resolved}: {e}")
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e
        logger.info(f"Schema ready at {handler.db_path_resolved}.")

    def _stored_rows(self, cursor) -> dict:
        existing = {
            row[0]
            for row in cursor.execute(
                "SELECT table_name FROM information_schema.tables"
            ).fetchall()
        }
        counts = {}
        for table in GUARDED_TABLES:
            if table not in existing:
                counts[table] = 0
                continue
            row = cursor.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            counts[table] = row[0] if row else 0
        return counts

    def _drop_all(self, cursor) -> None:
        guarded = not (self._handler.is_memory or kard_config.settings.testing_mode)
        if guarded:
            counts = self._stored_rows(cursor)
            if any(counts.values()):
                summary = ", ".join(f"{t}={n}" for t, n in counts.items())
                msg = f"Refusing to drop tables with existing data ({summary})."
                logger.error(msg)
                raise ValueError(msg)

        logger.warning(
            f"Dropping all tables in {self._handler.db_path_resolved}; stored data will be lost."
        )
        for table in schema.ALL_TABLES:
            cursor.execute(f"DROP TABLE IF EXISTS {table};")
