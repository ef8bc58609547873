"""
Card list shown beside the study view.

Each CardListItem lets the user jump to, edit or delete one card. Edits and
deletes go through the database first and are then fed back into the
StudySession so the view and the persisted session state stay in step.
"""

import logging
from typing import Callable, List, Optional

from .db import KardDatabase
from .keyboard import EditingGuard
from .models import Flashcard
from .study_session import StudySession
from .validation import clean_card_edit

logger = logging.getLogger(__name__)


class CardListItem:
    def __init__(
        self,
        session: StudySession,
        db: KardDatabase,
        card: Flashcard,
        index: int,
        guard: Optional[EditingGuard] = None,
    ):
        self.session = session
        self.db = db
        self.card = card
        self.index = index
        self.guard = guard or EditingGuard()
        self.is_editing = False

    @property
    def is_current(self) -> bool:
        return self.index == self.session.current_index

    def select(self) -> None:
        self.session.go_to(self.index)

    def start_edit(self) -> None:
        self.is_editing = True
        self.guard.report(self.card.id, True)

    def cancel_edit(self) -> None:
        self.is_editing = False
        self.guard.report(self.card.id, False)

    def save(self, front: str, back: str) -> Flashcard:
        """
        Persist edited text and push the result into the session.

        Raises:
            InputValidationError: If either side is blank. Nothing is written.
            DatabaseError: If the update fails. The editor stays open.
        """
        front, back = clean_card_edit(front, back)
        updated = self.db.update_flashcard(self.card.id, front, back)
        self.session.update_card(updated)
        self.card = updated
        self.cancel_edit()
        logger.info(f"Saved edits to flashcard {updated.id}")
        return updated

    def delete(self, confirm: Callable[[Flashcard], bool]) -> bool:
        """
        Delete the card if `confirm` approves.

        Returns:
            bool: True if the card was deleted.
        """
        if not confirm(self.card):
            return False
        self.db.delete_flashcard(self.card.id)
        self.session.delete_card(self.card.id)
        # A deleted card can no longer hold the editing guard up.
        self.cancel_edit()
        logger.info(f"Deleted flashcard {self.card.id}")
        return True


def build_card_list(
    session: StudySession,
    db: KardDatabase,
    guard: Optional[EditingGuard] = None,
) -> List[CardListItem]:
    return [
        CardListItem(session, db, card, index, guard)
        for index, card in enumerate(session.flashcards)
    ]
