"""
Study-session controller.

A StudySession tracks position and orientation within one deck's cards,
mirrors that state to device storage after every change so a restart resumes
at the same card, and absorbs edits and deletes made from the card list.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from .constants import (
    STUDY_CARDS_KEY_TEMPLATE,
    STUDY_FLIPPED_KEY_TEMPLATE,
    STUDY_INDEX_KEY_TEMPLATE,
)
from .exceptions import StudySessionClosedError
from .models import Deck, Flashcard, sort_by_creation
from .storage import LocalStorage

logger = logging.getLogger(__name__)

_FLASHCARD_LIST = TypeAdapter(List[Flashcard])


class ResumePolicy(str, Enum):
    """
    How persisted session state is reconciled with a freshly loaded deck.
    """

    # Persisted snapshot wins over the passed-in deck.
    TRUST_LOCAL = "trust_local"
    # Cards come from the passed-in deck; index and flip state are restored.
    REFRESH = "refresh"


@dataclass(frozen=True)
class StudyStorageKeys:
    index: str
    flipped: str
    flashcards: str

    @classmethod
    def for_deck(cls, deck_id: UUID) -> "StudyStorageKeys":
        return cls(
            index=STUDY_INDEX_KEY_TEMPLATE.format(deck_id=deck_id),
            flipped=STUDY_FLIPPED_KEY_TEMPLATE.format(deck_id=deck_id),
            flashcards=STUDY_CARDS_KEY_TEMPLATE.format(deck_id=deck_id),
        )

    def all(self) -> List[str]:
        return [self.index, self.flipped, self.flashcards]


@dataclass(frozen=True)
class StudySessionState:
    """Point-in-time copy of a session's state."""

    flashcards: List[Flashcard]
    current_index: int
    is_flipped: bool


def clamp_index(index: int, length: int) -> int:
    """Clamp an index into [0, length - 1], or 0 for an empty list."""
    if length <= 0:
        return 0
    return max(0, min(index, length - 1))


class StudySession:
    """
    Controller for studying one deck on one device.

    Invariant: `0 <= current_index < len(flashcards)` whenever the list is
    non-empty, and `current_index == 0` when it is empty.
    """

    def __init__(
        self,
        deck: Deck,
        storage: LocalStorage,
        resume_policy: ResumePolicy = ResumePolicy.TRUST_LOCAL,
    ):
        """
        Open a study session for `deck`, resuming persisted state if present.

        Parameters:
            deck (Deck): Deck whose cards are studied; cards are sorted by `created_at`.
            storage (LocalStorage): Device storage used to persist the session.
            resume_policy (ResumePolicy): Reconciliation rule for persisted state.
        """
        self.deck_id: UUID = deck.id
        self.deck_name: str = deck.name
        self.storage = storage
        self.resume_policy = resume_policy
        self.keys = StudyStorageKeys.for_deck(deck.id)

        self.flashcards: List[Flashcard] = sort_by_creation(deck.flashcards)
        self.current_index: int = 0
        self.is_flipped: bool = False
        self.closed: bool = False

        self.resumed = self._restore()
        self._persist()
        logger.info(
            f"Study session opened for deck {self.deck_id} "
            f"({len(self.flashcards)} cards, resumed={self.resumed})"
        )

    # --- Persistence ---

    def _restore(self) -> bool:
        """Load whichever of the three persisted keys exist. Returns True if any did."""
        restored = False

        saved_index = self.storage.get_item(self.keys.index)
        if saved_index is not None:
            try:
                self.current_index = int(saved_index)
                restored = True
            except ValueError:
                logger.warning(
                    f"Ignoring unreadable saved index {saved_index!r} for deck {self.deck_id}"
                )

        saved_flipped = self.storage.get_item(self.keys.flipped)
        if saved_flipped is not None:
            self.is_flipped = saved_flipped == "true"
            restored = True

        saved_cards = self.storage.get_item(self.keys.flashcards)
        if saved_cards:
            try:
                cards = _FLASHCARD_LIST.validate_json(saved_cards)
            except ValidationError as e:
                logger.warning(
                    f"Ignoring unreadable saved flashcards for deck {self.deck_id}: {e}"
                )
            else:
                if not cards and self.flashcards:
                    # Left over from a visit while the deck was still empty.
                    logger.info(
                        f"Ignoring empty saved snapshot for deck {self.deck_id}"
                    )
                else:
                    restored = True
                    if self.resume_policy is ResumePolicy.TRUST_LOCAL:
                        self.flashcards = sort_by_creation(cards)

        self.current_index = clamp_index(self.current_index, len(self.flashcards))
        return restored

    def _persist(self) -> None:
        self.storage.set_item(self.keys.index, str(self.current_index))
        self.storage.set_item(
            self.keys.flipped, "true" if self.is_flipped else "false"
        )
        self.storage.set_item(
            self.keys.flashcards,
            _FLASHCARD_LIST.dump_json(self.flashcards).decode("utf-8"),
        )

    def _check_open(self) -> None:
        if self.closed:
            raise StudySessionClosedError(
                f"Study session for deck {self.deck_id} has been exited."
            )

    # --- Read-only views ---

    @property
    def is_empty(self) -> bool:
        return not self.flashcards

    @property
    def current_card(self) -> Optional[Flashcard]:
        if self.is_empty:
            return None
        return self.flashcards[self.current_index]

    @property
    def is_first(self) -> bool:
        return self.current_index == 0

    @property
    def is_last(self) -> bool:
        return self.current_index >= len(self.flashcards) - 1

    @property
    def progress(self) -> float:
        """Fraction of the deck reached, counting the current card."""
        if self.is_empty:
            return 0.0
        return (self.current_index + 1) / len(self.flashcards)

    def snapshot(self) -> StudySessionState:
        return StudySessionState(
            flashcards=list(self.flashcards),
            current_index=self.current_index,
            is_flipped=self.is_flipped,
        )

    # --- Operations ---

    def next(self) -> None:
        """Advance one card and show its front. No-op on the last card."""
        self._check_open()
        if self.current_index < len(self.flashcards) - 1:
            self.current_index += 1
            self.is_flipped = False
            self._persist()

    def prev(self) -> None:
        """Go back one card and show its front. No-op on the first card."""
        self._check_open()
        if self.current_index > 0:
            self.current_index -= 1
            self.is_flipped = False
            self._persist()

    def flip(self) -> None:
        self._check_open()
        self.is_flipped = not self.is_flipped
        self._persist()

    def go_to(self, index: int) -> None:
        """
        Jump straight to a card and show its front.

        Raises:
            ValueError: If `index` is outside the current card list.
        """
        self._check_open()
        if not 0 <= index < len(self.flashcards):
            raise ValueError(
                f"Card index {index} out of range for {len(self.flashcards)} cards."
            )
        self.current_index = index
        self.is_flipped = False
        self._persist()

    def update_card(self, updated_card: Flashcard) -> None:
        """
        Replace the card with the same id and keep creation order.

        A card id not present in the session is ignored.
        """
        self._check_open()
        self.flashcards = sort_by_creation(
            [
                updated_card if card.id == updated_card.id else card
                for card in self.flashcards
            ]
        )
        self._persist()

    def delete_card(self, card_id: UUID) -> None:
        """
        Remove a card; the index is clamped if it fell off the end.
        """
        self._check_open()
        self.flashcards = sort_by_creation(
            [card for card in self.flashcards if card.id != card_id]
        )
        if self.current_index >= len(self.flashcards):
            self.current_index = max(0, len(self.flashcards) - 1)
        self._persist()

    def exit(self) -> None:
        """Remove this deck's persisted session keys and close the session."""
        if self.closed:
            return
        self.storage.remove_items(self.keys.all())
        self.closed = True
        logger.info(f"Study session for deck {self.deck_id} exited.")
