from typing import Optional

from kard.cli.study_ui import show_empty_deck, start_study_flow
from kard.db import KardDatabase
from kard.models import Deck
from kard.storage import LocalStorage
from kard.study_session import ResumePolicy, StudySession, StudyStorageKeys


def study_logic(
    db: KardDatabase,
    storage: LocalStorage,
    deck: Deck,
    refresh: bool = False,
) -> Optional[StudySession]:
    """
    Open a study session for `deck` and run the interactive study loop.

    A deck without flashcards never gets a session: the empty-state message is
    shown and any state saved for the deck is dropped.

    Parameters:
        db (KardDatabase): Open database used for card edits and deletes.
        storage (LocalStorage): Device storage holding the resumable session.
        deck (Deck): Deck to study, with its flashcards loaded.
        refresh (bool): Take cards from `deck` instead of the saved snapshot.

    Returns:
        Optional[StudySession]: The session after the loop ends, or None for an empty deck.
    """
    if not deck.flashcards:
        storage.remove_items(StudyStorageKeys.for_deck(deck.id).all())
        show_empty_deck()
        return None

    policy = ResumePolicy.REFRESH if refresh else ResumePolicy.TRUST_LOCAL
    session = StudySession(deck, storage, resume_policy=policy)
    start_study_flow(session, db)
    return session
