import uuid
import pytest
from pathlib import Path
from typing import Generator, List
from datetime import datetime, timezone

from kard.models import Deck, Flashcard
from kard.db import KardDatabase
from kard.storage import LocalStorage


USER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
OTHER_USER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
DECK_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")


@pytest.fixture(autouse=True)
def go_to_tmpdir(tmp_path: Path, monkeypatch):
    """Run every test from its own temp dir so a stray `.env` never leaks in."""
    monkeypatch.chdir(tmp_path)


# --- Database Fixtures ---
@pytest.fixture
def db_path_memory() -> str:
    return ":memory:"


@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    return tmp_path / "test_kard.db"


@pytest.fixture(params=["memory", "file"])
def db_manager(
    request, db_path_memory: str, db_path_file: Path
) -> Generator[KardDatabase, None, None]:
    """Each test using this runs twice: against :memory: and against a file."""
    target = db_path_memory if request.param == "memory" else db_path_file
    db = KardDatabase(target)
    yield db
    db.close_connection()


@pytest.fixture
def initialized_db_manager(db_manager: KardDatabase) -> KardDatabase:
    db_manager.initialize_schema()
    return db_manager


@pytest.fixture
def memory_db() -> Generator[KardDatabase, None, None]:
    """A single in-memory database with the schema created."""
    db = KardDatabase(":memory:")
    db.initialize_schema()
    try:
        yield db
    finally:
        db.close_connection()


# --- Storage Fixtures ---
@pytest.fixture
def storage() -> LocalStorage:
    return LocalStorage.in_memory()


@pytest.fixture
def storage_file(tmp_path: Path) -> Path:
    return tmp_path / "device" / "local_storage.json"


# --- Model Fixtures ---
def make_card(
    front: str, back: str, minute: int, deck_id: uuid.UUID = DECK_ID
) -> Flashcard:
    return Flashcard(
        deck_id=deck_id,
        front=front,
        back=back,
        created_at=datetime(2024, 1, 1, 10, minute, tzinfo=timezone.utc),
    )


@pytest.fixture
def spanish_cards() -> List[Flashcard]:
    """Three cards, created a minute apart, in creation order."""
    return [
        make_card("Hola", "Hello", 0),
        make_card("Adiós", "Goodbye", 1),
        make_card("Gracias", "Thank you", 2),
    ]


@pytest.fixture
def spanish_deck(spanish_cards: List[Flashcard]) -> Deck:
    """
    The "Spanish" deck with its cards supplied out of creation order.
    """
    return Deck(
        id=DECK_ID,
        user_id=USER_ID,
        name="Spanish",
        description="Basic phrases",
        created_at=datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc),
        flashcards=[spanish_cards[2], spanish_cards[0], spanish_cards[1]],
    )


@pytest.fixture
def empty_deck() -> Deck:
    return Deck(id=uuid.uuid4(), user_id=USER_ID, name="Empty")


@pytest.fixture
def stored_deck(memory_db: KardDatabase) -> Deck:
    """A "Spanish" deck persisted in `memory_db` with three cards."""
    deck = memory_db.create_deck(USER_ID, "Spanish", "Basic phrases")
    memory_db.create_flashcards(
        USER_ID,
        deck.id,
        [
            Flashcard(deck_id=deck.id, front="Hola", back="Hello"),
            Flashcard(deck_id=deck.id, front="Adiós", back="Goodbye"),
            Flashcard(deck_id=deck.id, front="Gracias", back="Thank you"),
        ],
    )
    return memory_db.get_deck(deck.id)


@pytest.fixture
def user_id() -> uuid.UUID:
    return USER_ID


@pytest.fixture
def other_user_id() -> uuid.UUID:
    return OTHER_USER_ID


@pytest.fixture
def card_factory():
    """Build flashcards for the default deck, created `minute` minutes past 10:00."""
    return make_card
