"""
DuckDB database interactions for kard.
Implements the KardDatabase facade: decks, flashcards, auth users and sessions,
and the mirrored user records.
"""

import duckdb
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from datetime import datetime, timezone
import logging

from ..exceptions import (
    DeckNotFoundError,
    DeckOperationError,
    FlashcardNotFoundError,
    FlashcardOperationError,
    MarshallingError,
    SessionOperationError,
    UserNotFoundError,
    UserOperationError,
)
from . import db_utils
from ..models import AuthSession, AuthUser, Deck, Flashcard, UserRecord
from .connection import ConnectionHandler
from .schema_manager import SchemaManager

# --- Logging Setup ---
logger = logging.getLogger(__name__)

# --- Helper Functions ---


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows:
        return []
    description = cursor.description
    if description is None:
        return []
    columns = [desc[0] for desc in description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class KardDatabase:
    """
    Single entry point for Kard's stored data: decks and flashcards, auth users
    and sessions, and the mirrored user records with their profiles.

    Usable as a context manager, which opens the connection and creates the
    tables for a brand new database file.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Create a KardDatabase backed by the given DuckDB path.

        Args:
            db_path (str | Path): Path to the database file. Use ':memory:' for an in-memory database.
            read_only (bool): If True, open the database in read-only mode.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)
        logger.info(
            f"KardDatabase initialized for DB at: {self._handler.db_path_resolved}"  # noqa: E501
        )

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    @property
    def read_only(self) -> bool:
        return self._handler.read_only

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self._handler.get_connection()

    def close_connection(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "KardDatabase":
        """
        Open the database connection and initialize the schema if a new writable database was created.
        """
        self.get_connection()
        if self._handler.is_new_db and not self._handler.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Ensures the connection is closed on exiting the context."""
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Ensure the database schema exists; optionally drop and recreate all tables.
        """
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    def _ensure_writable(self, error_cls: type, action: str) -> None:
        if self.read_only:
            raise error_cls(f"Cannot {action} in read-only mode.")

    # --- Deck Operations ---
    # fmt: off
    _LIST_DECKS_SQL = """
        SELECT
            d.id AS deck_id,
            d.user_id AS deck_user_id,
            d.name AS deck_name,
            d.description AS deck_description,
            d.created_at AS deck_created_at,
            f.id AS card_id,
            f.front AS card_front,
            f.back AS card_back,
            f.created_at AS card_created_at
        FROM decks d
        LEFT JOIN flashcards f ON f.deck_id = d.id
        WHERE d.user_id = $1
        ORDER BY d.created_at DESC, d.id, f.created_at ASC NULLS LAST;
        """
    # fmt: on

    def list_decks(self, user_id: uuid.UUID) -> List[Deck]:
        """
        Fetch every deck owned by a user with its flashcards nested.

        Decks are ordered newest first; each deck's flashcards are in creation
        order. Runs as a single query.

        Raises:
            DeckOperationError: If the query fails or rows cannot be parsed.
        """
        conn = self.get_connection()
        try:
            cursor = conn.execute(self._LIST_DECKS_SQL, (user_id,))
            rows = _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error loading decks for user {user_id}: {e}")
            raise DeckOperationError(
                f"Failed to load decks: {e}", original_exception=e
            ) from e
        try:
            decks = db_utils.split_deck_join_rows(rows)
        except MarshallingError as e:
            raise DeckOperationError(
                "Failed to parse decks from database.", original_exception=e
            ) from e
        logger.debug(f"Loaded {len(decks)} decks for user {user_id}")
        return decks

    def get_deck(
        self, deck_id: uuid.UUID, user_id: Optional[uuid.UUID] = None
    ) -> Deck:
        """
        Fetch one deck with its flashcards.

        Parameters:
            deck_id (uuid.UUID): Deck to fetch.
            user_id (Optional[uuid.UUID]): When given, the deck must belong to this user.

        Raises:
            DeckNotFoundError: If no matching deck exists (or it belongs to another user).
            DeckOperationError: On database or parsing failures.
        """
        conn = self.get_connection()
        sql = "SELECT * FROM decks WHERE id = $1"
        params: List[Any] = [deck_id]
        if user_id is not None:
            sql += " AND user_id = $2"
            params.append(user_id)
        try:
            deck_rows = _rows_to_dicts(conn.execute(sql, params))
            if not deck_rows:
                raise DeckNotFoundError(f"Deck '{deck_id}' not found.")
            card_rows = _rows_to_dicts(
                conn.execute(
                    "SELECT * FROM flashcards WHERE deck_id = $1 "
                    "ORDER BY created_at ASC;",
                    (deck_id,),
                )
            )
        except duckdb.Error as e:
            logger.error(f"Error fetching deck {deck_id}: {e}")
            raise DeckOperationError(
                f"Failed to fetch deck: {e}", original_exception=e
            ) from e
        try:
            cards = [db_utils.db_row_to_flashcard(row) for row in card_rows]
            return db_utils.db_row_to_deck(deck_rows[0], cards)
        except MarshallingError as e:
            raise DeckOperationError(
                f"Failed to parse deck {deck_id} from database.",
                original_exception=e,
            ) from e

    def create_deck(
        self,
        user_id: uuid.UUID,
        name: str,
        description: Optional[str] = None,
    ) -> Deck:
        """
        Insert a new, empty deck for a user.

        Returns:
            Deck: The stored deck with its generated id.

        Raises:
            DeckOperationError: If the deck is invalid or the insert fails.
        """
        self._ensure_writable(DeckOperationError, "create decks")
        try:
            deck = Deck(user_id=user_id, name=name, description=description)
        except ValueError as e:
            raise DeckOperationError(
                f"Invalid deck data: {e}", original_exception=e
            ) from e

        conn = self.get_connection()
        try:
            conn.execute(
                "INSERT INTO decks (id, user_id, name, description, created_at) "
                "VALUES ($1, $2, $3, $4, $5);",
                db_utils.deck_to_db_params_tuple(deck),
            )
        except duckdb.Error as e:
            logger.error(f"Error creating deck '{name}': {e}")
            raise DeckOperationError(
                f"Failed to create deck: {e}", original_exception=e
            ) from e
        logger.info(f"Created deck {deck.id} ('{deck.name}') for user {user_id}")
        return deck

    def delete_deck(self, deck_id: uuid.UUID) -> int:
        """
        Delete a deck and all of its flashcards.

        Flashcards are deleted first, then the deck, as two separate
        statements. A failure between them leaves an empty deck behind.

        Returns:
            int: Number of flashcards deleted with the deck.

        Raises:
            DeckNotFoundError: If the deck does not exist.
            DeckOperationError: If either delete fails.
        """
        self._ensure_writable(DeckOperationError, "delete decks")
        conn = self.get_connection()
        try:
            card_rows = _rows_to_dicts(
                conn.execute(
                    "DELETE FROM flashcards WHERE deck_id = $1 RETURNING id;",
                    (deck_id,),
                )
            )
            deck_rows = _rows_to_dicts(
                conn.execute(
                    "DELETE FROM decks WHERE id = $1 RETURNING id;",
                    (deck_id,),
                )
            )
        except duckdb.Error as e:
            logger.error(f"Failed to delete deck {deck_id}: {e}")
            raise DeckOperationError(
                f"Failed to delete deck: {e}", original_exception=e
            ) from e
        if not deck_rows:
            raise DeckNotFoundError(f"Deck '{deck_id}' not found.")
        logger.info(
            f"Deleted deck {deck_id} and {len(card_rows)} flashcard(s)."
        )
        return len(card_rows)

    # --- Flashcard Operations ---

    def create_flashcards(
        self,
        user_id: uuid.UUID,
        deck_id: uuid.UUID,
        cards: Sequence[Flashcard],
    ) -> List[Flashcard]:
        """
        Bulk-insert flashcards into a deck in a single transaction.

        The batch is all-or-nothing. Cards are re-stamped so their
        `created_at` values increase in batch order, and re-parented onto
        `deck_id`.

        Returns:
            List[Flashcard]: The stored cards in creation order.

        Raises:
            DeckNotFoundError: If the deck does not exist for this user.
            FlashcardOperationError: If the insert fails.
        """
        self._ensure_writable(FlashcardOperationError, "create flashcards")
        if not cards:
            return []

        # Validates ownership before writing.
        self.get_deck(deck_id, user_id=user_id)

        base = datetime.now(timezone.utc)
        stamped = db_utils.stagger_creation_times(
            [card.model_copy(update={"deck_id": deck_id}) for card in cards],
            base,
        )
        params = db_utils.flashcards_to_db_params_list(stamped, user_id)

        try:
            with self._handler.transaction("batch flashcard insert") as cursor:
                cursor.executemany(
                    "INSERT INTO flashcards (id, deck_id, user_id, front, back, created_at) "  # noqa: E501
                    "VALUES ($1, $2, $3, $4, $5, $6);",
                    params,
                )
        except duckdb.Error as e:
            logger.error(f"Error during batch flashcard insert: {e}")
            raise FlashcardOperationError(
                f"Batch flashcard insert failed: {e}", original_exception=e
            ) from e
        logger.info(
            f"Inserted {len(stamped)} flashcard(s) into deck {deck_id}."
        )
        return stamped

    def get_flashcard(self, flashcard_id: uuid.UUID) -> Optional[Flashcard]:
        """
        Fetch a flashcard by id, or `None` if it does not exist.
        """
        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(
                conn.execute(
                    "SELECT * FROM flashcards WHERE id = $1;", (flashcard_id,)
                )
            )
        except duckdb.Error as e:
            logger.error(f"Error fetching flashcard {flashcard_id}: {e}")
            raise FlashcardOperationError(
                f"Failed to fetch flashcard: {e}", original_exception=e
            ) from e
        if not rows:
            return None
        try:
            return db_utils.db_row_to_flashcard(rows[0])
        except MarshallingError as e:
            raise FlashcardOperationError(
                f"Failed to parse flashcard {flashcard_id} from database.",
                original_exception=e,
            ) from e

    def update_flashcard(
        self, flashcard_id: uuid.UUID, front: str, back: str
    ) -> Flashcard:
        """
        Replace a flashcard's front and back text. `created_at` is untouched.

        Returns:
            Flashcard: The updated card.

        Raises:
            FlashcardNotFoundError: If no card has this id.
            FlashcardOperationError: If the update fails.
        """
        self._ensure_writable(FlashcardOperationError, "update flashcards")
        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(
                conn.execute(
                    "UPDATE flashcards SET front = $1, back = $2 "
                    "WHERE id = $3 RETURNING *;",
                    (front, back, flashcard_id),
                )
            )
        except duckdb.Error as e:
            logger.error(f"Error updating flashcard {flashcard_id}: {e}")
            raise FlashcardOperationError(
                f"Failed to update flashcard: {e}", original_exception=e
            ) from e
        if not rows:
            raise FlashcardNotFoundError(
                f"Flashcard '{flashcard_id}' not found."
            )
        logger.debug(f"Updated flashcard {flashcard_id}")
        try:
            return db_utils.db_row_to_flashcard(rows[0])
        except MarshallingError as e:
            raise FlashcardOperationError(
                f"Failed to parse flashcard {flashcard_id} from database.",
                original_exception=e,
            ) from e

    def delete_flashcard(self, flashcard_id: uuid.UUID) -> None:
        """
        Delete a single flashcard.

        Raises:
            FlashcardNotFoundError: If no card has this id.
            FlashcardOperationError: If the delete fails.
        """
        self._ensure_writable(FlashcardOperationError, "delete flashcards")
        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(
                conn.execute(
                    "DELETE FROM flashcards WHERE id = $1 RETURNING id;",
                    (flashcard_id,),
                )
            )
        except duckdb.Error as e:
            logger.error(f"Failed to delete flashcard {flashcard_id}: {e}")
            raise FlashcardOperationError(
                f"Failed to delete flashcard: {e}", original_exception=e
            ) from e
        if not rows:
            raise FlashcardNotFoundError(
                f"Flashcard '{flashcard_id}' not found."
            )
        logger.info(f"Deleted flashcard {flashcard_id}")

    # --- Auth User Operations ---

    def create_auth_user(self, user: AuthUser) -> AuthUser:
        """
        Insert an authentication user.

        Raises:
            UserOperationError: If the insert fails (including a duplicate email).
        """
        self._ensure_writable(UserOperationError, "create users")
        conn = self.get_connection()
        try:
            conn.execute(
                "INSERT INTO auth_users (id, email, password_hash, created_at) "
                "VALUES ($1, $2, $3, $4);",
                db_utils.auth_user_to_db_params_tuple(user),
            )
        except duckdb.Error as e:
            logger.error(f"Error creating auth user {user.email}: {e}")
            raise UserOperationError(
                f"Failed to create user: {e}", original_exception=e
            ) from e
        logger.info(f"Created auth user {user.id}")
        return user

    def _get_auth_user_where(self, column: str, value: Any) -> Optional[AuthUser]:
        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(
                conn.execute(
                    f"SELECT * FROM auth_users WHERE {column} = $1;", (value,)
                )
            )
        except duckdb.Error as e:
            logger.error(f"Error fetching auth user by {column}: {e}")
            raise UserOperationError(
                f"Failed to fetch user: {e}", original_exception=e
            ) from e
        if not rows:
            return None
        return db_utils.db_row_to_auth_user(rows[0])

    def get_auth_user(self, user_id: uuid.UUID) -> Optional[AuthUser]:
        return self._get_auth_user_where("id", user_id)

    def get_auth_user_by_email(self, email: str) -> Optional[AuthUser]:
        return self._get_auth_user_where("email", email)

    # --- Auth Session Operations ---

    def create_auth_session(self, session: AuthSession) -> AuthSession:
        self._ensure_writable(SessionOperationError, "create sessions")
        conn = self.get_connection()
        try:
            conn.execute(
                "INSERT INTO auth_sessions (token, user_id, email, created_at, expires_at) "  # noqa: E501
                "VALUES ($1, $2, $3, $4, $5);",
                db_utils.auth_session_to_db_params_tuple(session),
            )
        except duckdb.Error as e:
            logger.error(f"Error creating session for user {session.user_id}: {e}")
            raise SessionOperationError(
                f"Failed to create session: {e}", original_exception=e
            ) from e
        logger.debug(f"Created session for user {session.user_id}")
        return session

    def get_auth_session(self, token: str) -> Optional[AuthSession]:
        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(
                conn.execute(
                    "SELECT * FROM auth_sessions WHERE token = $1;", (token,)
                )
            )
        except duckdb.Error as e:
            logger.error(f"Error fetching session: {e}")
            raise SessionOperationError(
                f"Failed to fetch session: {e}", original_exception=e
            ) from e
        if not rows:
            return None
        try:
            return db_utils.db_row_to_auth_session(rows[0])
        except MarshallingError as e:
            raise SessionOperationError(
                "Failed to parse session from database.", original_exception=e
            ) from e

    def delete_auth_session(self, token: str) -> None:
        self._ensure_writable(SessionOperationError, "delete sessions")
        conn = self.get_connection()
        try:
            conn.execute("DELETE FROM auth_sessions WHERE token = $1;", (token,))
        except duckdb.Error as e:
            logger.error(f"Error deleting session: {e}")
            raise SessionOperationError(
                f"Failed to delete session: {e}", original_exception=e
            ) from e

    # --- User Record Operations ---
    # fmt: off
    _GET_USER_RECORD_SQL = """
        SELECT
            u.id, u.email, u.created_at, u.last_login,
            p.user_id AS profile_user_id,
            p.display_name AS profile_display_name,
            p.bio AS profile_bio,
            p.created_at AS profile_created_at
        FROM user_records u
        LEFT JOIN profiles p ON p.user_id = u.id
        WHERE u.id = $1;
        """
    # fmt: on

    def create_user_record(self, user_id: uuid.UUID, email: str) -> UserRecord:
        """
        Create the mirrored user record together with an empty profile.

        Both rows are written in one transaction.

        Raises:
            UserOperationError: If either insert fails (e.g. duplicate id).
        """
        self._ensure_writable(UserOperationError, "create user records")
        now = db_utils.to_db_timestamp(datetime.now(timezone.utc))
        try:
            with self._handler.transaction("user record creation") as cursor:
                cursor.execute(
                    "INSERT INTO user_records (id, email, created_at, last_login) "
                    "VALUES ($1, $2, $3, NULL);",
                    (user_id, email, now),
                )
                cursor.execute(
                    "INSERT INTO profiles (user_id, display_name, bio, created_at) "
                    "VALUES ($1, NULL, NULL, $2);",
                    (user_id, now),
                )
        except duckdb.Error as e:
            logger.error(f"Error creating user record {user_id}: {e}")
            raise UserOperationError(
                f"Failed to create user record: {e}", original_exception=e
            ) from e
        logger.info(f"Created user record {user_id}")
        return self._require_user_record(user_id)

    def get_user_record(self, user_id: uuid.UUID) -> Optional[UserRecord]:
        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(
                conn.execute(self._GET_USER_RECORD_SQL, (user_id,))
            )
        except duckdb.Error as e:
            logger.error(f"Error fetching user record {user_id}: {e}")
            raise UserOperationError(
                f"Failed to fetch user record: {e}", original_exception=e
            ) from e
        if not rows:
            return None
        return db_utils.db_row_to_user_record(rows[0])

    def _require_user_record(self, user_id: uuid.UUID) -> UserRecord:
        record = self.get_user_record(user_id)
        if record is None:
            raise UserNotFoundError(f"User record '{user_id}' not found.")
        return record

    def update_last_login(
        self, user_id: uuid.UUID, at: Optional[datetime] = None
    ) -> UserRecord:
        """
        Stamp the user's last-login time.

        Raises:
            UserNotFoundError: If no record exists for the user.
            UserOperationError: If the update fails.
        """
        self._ensure_writable(UserOperationError, "update user records")
        stamp = db_utils.to_db_timestamp(at or datetime.now(timezone.utc))
        conn = self.get_connection()
        try:
            rows = _rows_to_dicts(
                conn.execute(
                    "UPDATE user_records SET last_login = $1 "
                    "WHERE id = $2 RETURNING id;",
                    (stamp, user_id),
                )
            )
        except duckdb.Error as e:
            logger.error(f"Error updating last login for {user_id}: {e}")
            raise UserOperationError(
                f"Failed to update user: {e}", original_exception=e
            ) from e
        if not rows:
            raise UserNotFoundError(f"User record '{user_id}' not found.")
        return self._require_user_record(user_id)
