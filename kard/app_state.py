"""
Process-wide UI state: the signed-in session, the active dashboard view and
whether the sidebar is open. View fields are mirrored to device storage.
"""

import logging
from typing import Callable, List, Optional

from .auth import AuthEvent, AuthService, Subscription
from .constants import ACTIVE_VIEW_KEY, DEFAULT_VIEW, SIDEBAR_OPEN_KEY, VIEWS
from .models import AuthSession
from .storage import LocalStorage

logger = logging.getLogger(__name__)

StateListener = Callable[["AppState"], None]


class AppState:
    def __init__(self, auth: AuthService, storage: LocalStorage):
        self.auth = auth
        self.storage = storage
        self.session: Optional[AuthSession] = None
        self.active_view: str = DEFAULT_VIEW
        self.sidebar_open: bool = False
        self._listeners: List[StateListener] = []
        self._subscription: Optional[Subscription] = None

    def start(self) -> "AppState":
        """Load mirrored fields and the current session, then follow auth changes."""
        saved_view = self.storage.get_item(ACTIVE_VIEW_KEY)
        if saved_view in VIEWS:
            self.active_view = saved_view
        self.sidebar_open = self.storage.get_item(SIDEBAR_OPEN_KEY) == "true"
        self.session = self.auth.get_session()
        if self._subscription is None:
            self._subscription = self.auth.on_auth_state_change(self._on_auth_change)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _on_auth_change(
        self, event: AuthEvent, session: Optional[AuthSession]
    ) -> None:
        logger.debug(f"Auth state changed: {event.value}")
        self.session = session if event is AuthEvent.SIGNED_IN else None
        self._notify()

    def set_active_view(self, view: str) -> None:
        if view not in VIEWS:
            raise ValueError(f"Unknown view '{view}'. Expected one of {VIEWS}.")
        self.active_view = view
        self.storage.set_item(ACTIVE_VIEW_KEY, view)
        self._notify()

    def set_sidebar_open(self, is_open: bool) -> None:
        self.sidebar_open = is_open
        self.storage.set_item(SIDEBAR_OPEN_KEY, "true" if is_open else "false")
        self._notify()

    def toggle_sidebar(self) -> None:
        self.set_sidebar_open(not self.sidebar_open)
