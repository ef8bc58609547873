"""
Password authentication and session handling.

AuthService issues opaque session tokens backed by the `auth_sessions` table
and keeps the current device's token in LocalStorage. Listeners registered
with `on_auth_state_change` hear about sign-in and sign-out.
"""

import logging
import secrets
from datetime import timedelta
from enum import Enum
from typing import Callable, List, Optional

import bcrypt

from . import config as kard_config
from .constants import AUTH_TOKEN_KEY
from .db import KardDatabase
from .exceptions import AuthenticationError, DatabaseError
from .models import AuthSession, AuthUser, utc_now
from .storage import LocalStorage
from .validation import (
    check_password_confirmation,
    check_password_length,
    clean_email,
    password_too_long,
)

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


AuthListener = Callable[[AuthEvent, Optional[AuthSession]], None]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if password_too_long(password):
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class Subscription:
    """Handle returned by `on_auth_state_change`."""

    def __init__(self, service: "AuthService", callback: AuthListener):
        self._service = service
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._service._remove_listener(self.callback)
            self.active = False


class AuthService:
    def __init__(
        self,
        db: KardDatabase,
        storage: LocalStorage,
        session_ttl: Optional[timedelta] = None,
    ):
        self.db = db
        self.storage = storage
        self.session_ttl = session_ttl or timedelta(
            hours=kard_config.settings.session_ttl_hours
        )
        self._listeners: List[AuthListener] = []

    # --- Listeners ---

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self, callback)

    def _remove_listener(self, callback: AuthListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    # --- Operations ---

    def sign_up(
        self, email: str, password: str, confirm_password: Optional[str] = None
    ) -> AuthUser:
        """
        Register a new user account.

        Raises:
            InputValidationError: On a malformed email, mismatched confirmation or over-long password.
            AuthenticationError: If the email is taken or the password is empty.
        """
        email = clean_email(email)
        if confirm_password is not None:
            check_password_confirmation(password, confirm_password)
        if not password:
            raise AuthenticationError("Password is required.")
        check_password_length(password)
        if self.db.get_auth_user_by_email(email) is not None:
            raise AuthenticationError(f"An account for {email} already exists.")

        user = AuthUser(email=email, password_hash=hash_password(password))
        self.db.create_auth_user(user)
        logger.info(f"Signed up user {user.id}")
        return user

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """
        Verify credentials, open a session and remember it on this device.

        Raises:
            AuthenticationError: If the credentials do not match.
        """
        email = (email or "").strip()
        user = self.db.get_auth_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info(f"Failed sign-in attempt for {email}")
            raise AuthenticationError("Invalid email or password.")

        now = utc_now()
        session = AuthSession(
            token=secrets.token_urlsafe(32),
            user_id=user.id,
            email=user.email,
            created_at=now,
            expires_at=now + self.session_ttl,
        )
        self.db.create_auth_session(session)
        self.storage.set_item(AUTH_TOKEN_KEY, session.token)
        logger.info(f"User {user.id} signed in")
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    def sign_out(self) -> None:
        """Drop the device's session. Signing out while signed out is a no-op."""
        token = self.storage.get_item(AUTH_TOKEN_KEY)
        if token is None:
            return
        try:
            self.db.delete_auth_session(token)
        finally:
            self.storage.remove_item(AUTH_TOKEN_KEY)
        logger.info("Signed out")
        self._emit(AuthEvent.SIGNED_OUT, None)

    def validate_token(self, token: Optional[str]) -> Optional[AuthSession]:
        """
        Resolve a token to a live session; expired sessions are deleted.
        """
        if not token:
            return None
        session = self.db.get_auth_session(token)
        if session is None:
            return None
        if session.is_expired():
            logger.info(f"Discarding expired session for user {session.user_id}")
            try:
                self.db.delete_auth_session(token)
            except DatabaseError as e:
                logger.warning(f"Could not delete expired session: {e}")
            return None
        return session

    def get_session(self) -> Optional[AuthSession]:
        """Current device's live session, or None."""
        token = self.storage.get_item(AUTH_TOKEN_KEY)
        session = self.validate_token(token)
        if session is None and token is not None:
            self.storage.remove_item(AUTH_TOKEN_KEY)
        return session
