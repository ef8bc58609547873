"""
Tests for kard.study_session (StudySession), covering navigation, flipping,
edits and deletes from the card list, and persistence to device storage.
"""

import json
import random
from datetime import datetime, timezone

import pytest

from kard.exceptions import StudySessionClosedError
from kard.models import Deck, Flashcard
from kard.storage import LocalStorage
from kard.study_session import (
    ResumePolicy,
    StudySession,
    StudyStorageKeys,
    clamp_index,
)


def _fronts(session: StudySession):
    return [card.front for card in session.flashcards]


class TestInitialization:
    def test_cards_sorted_by_creation(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        assert _fronts(session) == ["Hola", "Adiós", "Gracias"]
        assert session.current_index == 0
        assert session.is_flipped is False
        assert session.resumed is False

    def test_initial_state_is_persisted(self, spanish_deck, storage):
        StudySession(spanish_deck, storage)
        keys = StudyStorageKeys.for_deck(spanish_deck.id)
        assert storage.get_item(keys.index) == "0"
        assert storage.get_item(keys.flipped) == "false"
        saved = json.loads(storage.get_item(keys.flashcards))
        assert [c["front"] for c in saved] == ["Hola", "Adiós", "Gracias"]

    def test_storage_key_layout(self, spanish_deck):
        deck_id = spanish_deck.id
        keys = StudyStorageKeys.for_deck(spanish_deck.id)
        assert keys.index == f"study-{deck_id}-currentIndex"
        assert keys.flipped == f"study-{deck_id}-isFlipped"
        assert keys.flashcards == f"study-{deck_id}-flashcards"
        assert keys.all() == [keys.index, keys.flipped, keys.flashcards]

    def test_empty_deck(self, empty_deck, storage):
        session = StudySession(empty_deck, storage)
        assert session.is_empty
        assert session.current_card is None
        assert session.current_index == 0
        assert session.progress == 0.0


class TestNavigation:
    def test_next_advances_and_unflips(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.flip()
        session.next()
        assert session.current_index == 1
        assert session.is_flipped is False
        assert session.current_card.front == "Adiós"

    def test_next_at_last_is_noop(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.go_to(2)
        session.flip()
        session.next()
        assert session.current_index == 2
        # No wraparound and no state change at the end.
        assert session.is_flipped is True
        assert session.is_last

    def test_prev_at_first_is_noop(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.prev()
        assert session.current_index == 0
        assert session.is_first

    def test_prev_goes_back_and_unflips(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.go_to(2)
        session.flip()
        session.prev()
        assert session.current_index == 1
        assert session.is_flipped is False

    def test_flip_twice_restores_state(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.flip()
        assert session.is_flipped is True
        session.flip()
        assert session.is_flipped is False

    def test_go_to_sets_index_and_unflips(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.flip()
        session.go_to(1)
        assert session.current_index == 1
        assert session.is_flipped is False

    @pytest.mark.parametrize("index", [-1, 3, 10])
    def test_go_to_out_of_range_raises(self, spanish_deck, storage, index):
        session = StudySession(spanish_deck, storage)
        with pytest.raises(ValueError, match="out of range"):
            session.go_to(index)
        assert session.current_index == 0

    def test_progress(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.next()
        assert session.progress == pytest.approx(2 / 3)

    def test_index_invariant_under_random_operations(
        self, storage, card_factory, user_id
    ):
        rng = random.Random(1234)
        cards = [card_factory(f"Q{i}", f"A{i}", i) for i in range(8)]
        deck = Deck(user_id=user_id, name="Big", flashcards=cards)
        session = StudySession(deck, storage)

        for _ in range(300):
            if session.is_empty:
                break
            op = rng.choice(["next", "prev", "go_to", "delete", "flip"])
            if op == "next":
                session.next()
            elif op == "prev":
                session.prev()
            elif op == "flip":
                session.flip()
            elif op == "go_to":
                session.go_to(rng.randrange(len(session.flashcards)))
            elif rng.random() < 0.1:
                session.delete_card(rng.choice(session.flashcards).id)
            if session.flashcards:
                assert 0 <= session.current_index < len(session.flashcards)


class TestCardListChanges:
    def test_update_card_keeps_creation_order(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        original = session.flashcards[0]
        edited = original.model_copy(update={"front": "Buenos días"})
        session.update_card(edited)
        assert _fronts(session) == ["Buenos días", "Adiós", "Gracias"]
        created = [c.created_at for c in session.flashcards]
        assert created == sorted(created)

    def test_update_unknown_card_is_ignored(
        self, spanish_deck, storage, card_factory
    ):
        session = StudySession(spanish_deck, storage)
        stranger = card_factory("X", "Y", 30)
        session.update_card(stranger)
        assert _fronts(session) == ["Hola", "Adiós", "Gracias"]

    def test_update_card_allows_empty_text(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        edited = session.flashcards[1].model_copy(update={"back": ""})
        session.update_card(edited)
        assert session.flashcards[1].back == ""

    def test_delete_current_last_card_clamps(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.go_to(2)
        session.delete_card(session.current_card.id)
        # max(0, N - 2) where N was 3
        assert session.current_index == 1
        assert _fronts(session) == ["Hola", "Adiós"]

    def test_delete_earlier_card_keeps_index_in_range(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.go_to(1)
        session.delete_card(session.flashcards[0].id)
        assert session.current_index == 1
        assert session.current_card.front == "Gracias"

    def test_delete_only_card_leaves_empty_session(
        self, storage, card_factory, user_id
    ):
        card = card_factory("Solo", "Alone", 0)
        deck = Deck(id=card.deck_id, user_id=user_id, name="One", flashcards=[card])
        session = StudySession(deck, storage)
        session.delete_card(card.id)
        assert session.is_empty
        assert session.current_index == 0
        assert session.current_card is None


class TestPersistence:
    def test_round_trip_restores_exact_state(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.go_to(2)
        session.flip()
        expected = session.snapshot()

        restored = StudySession(spanish_deck, storage)
        assert restored.resumed is True
        assert restored.snapshot() == expected

    def test_round_trip_through_file(self, spanish_deck, storage_file):
        session = StudySession(spanish_deck, LocalStorage(storage_file))
        session.next()
        session.flip()

        restored = StudySession(spanish_deck, LocalStorage(storage_file))
        assert restored.current_index == 1
        assert restored.is_flipped is True
        assert _fronts(restored) == ["Hola", "Adiós", "Gracias"]

    def test_trust_local_prefers_saved_cards(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.delete_card(session.flashcards[0].id)

        # Fresh deck still has all three cards; the saved snapshot wins.
        restored = StudySession(spanish_deck, storage)
        assert _fronts(restored) == ["Adiós", "Gracias"]

    def test_empty_saved_snapshot_does_not_hide_new_cards(
        self, spanish_deck, empty_deck, storage
    ):
        StudySession(empty_deck.model_copy(update={"id": spanish_deck.id}), storage)

        session = StudySession(spanish_deck, storage)
        assert _fronts(session) == ["Hola", "Adiós", "Gracias"]
        assert session.current_index == 0

    def test_refresh_policy_takes_cards_from_deck(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.go_to(2)
        session.flip()

        fewer = spanish_deck.model_copy(
            update={"flashcards": spanish_deck.flashcards[:2]}
        )
        restored = StudySession(fewer, storage, resume_policy=ResumePolicy.REFRESH)
        assert len(restored.flashcards) == 2
        assert restored.current_index == 1
        assert restored.is_flipped is True

    def test_unreadable_saved_values_are_ignored(self, spanish_deck, storage, caplog):
        keys = StudyStorageKeys.for_deck(spanish_deck.id)
        storage.set_item(keys.index, "not-a-number")
        storage.set_item(keys.flashcards, "{broken")
        session = StudySession(spanish_deck, storage)
        assert session.current_index == 0
        assert _fronts(session) == ["Hola", "Adiós", "Gracias"]
        assert "Ignoring unreadable saved index" in caplog.text

    def test_saved_index_is_clamped(self, spanish_deck, storage):
        storage.set_item(StudyStorageKeys.for_deck(spanish_deck.id).index, "99")
        session = StudySession(spanish_deck, storage)
        assert session.current_index == 2

    def test_every_mutation_is_persisted(self, spanish_deck, storage):
        keys = StudyStorageKeys.for_deck(spanish_deck.id)
        session = StudySession(spanish_deck, storage)
        session.next()
        assert storage.get_item(keys.index) == "1"
        session.flip()
        assert storage.get_item(keys.flipped) == "true"
        session.delete_card(session.flashcards[0].id)
        saved = json.loads(storage.get_item(keys.flashcards))
        assert [c["front"] for c in saved] == ["Adiós", "Gracias"]

    def test_sessions_for_other_decks_are_untouched(self, spanish_deck, storage):
        other = Deck(user_id=spanish_deck.user_id, name="Other", flashcards=[])
        StudySession(other, storage)
        session = StudySession(spanish_deck, storage)
        session.exit()
        assert StudyStorageKeys.for_deck(other.id).index in storage


class TestExit:
    def test_exit_removes_all_keys(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.go_to(1)
        session.exit()
        for key in StudyStorageKeys.for_deck(spanish_deck.id).all():
            assert key not in storage
        assert session.closed

    def test_fresh_load_after_exit_starts_over(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.go_to(2)
        session.flip()
        session.delete_card(session.flashcards[0].id)
        session.exit()

        fresh = StudySession(spanish_deck, storage)
        assert fresh.resumed is False
        assert _fronts(fresh) == ["Hola", "Adiós", "Gracias"]
        assert fresh.current_index == 0
        assert fresh.is_flipped is False

    def test_exit_is_idempotent(self, spanish_deck, storage):
        session = StudySession(spanish_deck, storage)
        session.exit()
        session.exit()
        assert session.closed

    @pytest.mark.parametrize("operation", ["next", "prev", "flip"])
    def test_mutations_after_exit_raise(self, spanish_deck, storage, operation):
        session = StudySession(spanish_deck, storage)
        session.exit()
        with pytest.raises(StudySessionClosedError):
            getattr(session, operation)()
        # A closed session never writes its keys back.
        assert StudyStorageKeys.for_deck(spanish_deck.id).index not in storage


def test_clamp_index():
    assert clamp_index(5, 3) == 2
    assert clamp_index(-2, 3) == 0
    assert clamp_index(1, 3) == 1
    assert clamp_index(4, 0) == 0


def test_flashcards_compare_by_value(spanish_deck):
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    a = Flashcard(deck_id=spanish_deck.id, front="a", back="b", created_at=stamp)
    assert a == a.model_copy()
