"""
Keyboard dispatch for the study view.

KeyDispatcher maps discrete key names to StudySession operations while it is
attached. It suspends itself entirely while an EditingGuard reports an open
card editor, so keys typed into an editor never move or flip the session.
"""

import logging
from typing import Callable, Dict, Hashable, Optional, Set

from .study_session import StudySession

logger = logging.getLogger(__name__)

# Key name -> StudySession method name.
KEY_BINDINGS: Dict[str, str] = {
    "ArrowLeft": "prev",
    "ArrowRight": "next",
    " ": "flip",
    "Space": "flip",
    "Enter": "flip",
    "Escape": "exit",
}


class EditingGuard:
    """
    Collects edit-in-progress reports from card editors.

    Any component that can edit inline reports through one callback,
    `report(source_id, is_editing)`. The guard is raised while at least one
    source is editing.
    """

    def __init__(self) -> None:
        self._editing: Set[Hashable] = set()

    def report(self, source_id: Hashable, is_editing: bool) -> None:
        if is_editing:
            self._editing.add(source_id)
        else:
            self._editing.discard(source_id)

    @property
    def is_editing(self) -> bool:
        return bool(self._editing)

    def reset(self) -> None:
        self._editing.clear()


class KeyDispatcher:
    """
    Routes key events to a StudySession.

    Usable as a context manager: entering attaches the dispatcher, leaving
    detaches it. Keys received while detached are ignored.
    """

    def __init__(
        self,
        session: StudySession,
        guard: Optional[EditingGuard] = None,
        on_exit: Optional[Callable[[], None]] = None,
    ):
        self.session = session
        self.guard = guard or EditingGuard()
        self.on_exit = on_exit
        self.attached = False

    def attach(self) -> None:
        self.attached = True
        logger.debug(f"Key dispatcher attached for deck {self.session.deck_id}")

    def detach(self) -> None:
        self.attached = False
        logger.debug(f"Key dispatcher detached for deck {self.session.deck_id}")

    def __enter__(self) -> "KeyDispatcher":
        self.attach()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.detach()

    def handle_key(self, key: str) -> Optional[str]:
        """
        Run the operation bound to `key`.

        Returns:
            The name of the operation run, or None when the key was ignored
            (unbound key, dispatcher detached, or an editor is open).
        """
        if not self.attached or self.guard.is_editing:
            return None
        action = KEY_BINDINGS.get(key)
        if action is None:
            return None

        getattr(self.session, action)()
        if action == "exit":
            self.detach()
            if self.on_exit is not None:
                self.on_exit()
        return action
