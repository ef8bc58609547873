"""Exception types raised across kard."""

from typing import Optional


class DatabaseError(Exception):
    """
    Root of every storage failure raised by KardDatabase.

    The DuckDB (or marshalling) error that caused it, if any, is kept on
    `original_exception`.
    """

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseConnectionError(DatabaseError):
    """The database file could not be opened, or the mode forbids the request."""


class SchemaInitializationError(DatabaseError):
    """Creating or rebuilding tables failed."""


class DeckOperationError(DatabaseError):
    """A deck query or write failed."""


class FlashcardOperationError(DatabaseError):
    """A flashcard query or write failed."""


class UserOperationError(DatabaseError):
    """Reading or writing auth users or mirrored user records failed."""


class SessionOperationError(DatabaseError):
    """Reading or writing auth sessions failed."""


class MarshallingError(DatabaseError):
    """A row could not be turned into a model, or a model into row values."""


class RecordNotFoundError(DatabaseError):
    """A lookup or targeted write matched no row."""


class DeckNotFoundError(RecordNotFoundError):
    pass


class FlashcardNotFoundError(RecordNotFoundError):
    pass


class UserNotFoundError(RecordNotFoundError):
    pass


class InputValidationError(ValueError):
    """User input was rejected before reaching the database."""


class AuthenticationError(Exception):
    """Sign-up or sign-in was refused."""


class StudySessionClosedError(RuntimeError):
    """A study session was used after exit()."""
