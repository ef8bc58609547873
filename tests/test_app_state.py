from unittest.mock import MagicMock

import pytest

from kard.app_state import AppState
from kard.auth import AuthService
from kard.constants import ACTIVE_VIEW_KEY, SIDEBAR_OPEN_KEY

EMAIL = "learner@example.com"
PASSWORD = "Abcdef1!"


@pytest.fixture
def auth(memory_db, storage) -> AuthService:
    service = AuthService(memory_db, storage)
    service.sign_up(EMAIL, PASSWORD)
    return service


@pytest.fixture
def state(auth, storage):
    app_state = AppState(auth, storage).start()
    yield app_state
    app_state.close()


def test_defaults(state):
    assert state.active_view == "home"
    assert state.sidebar_open is False
    assert state.is_authenticated is False


def test_start_reads_mirrored_fields(auth, storage):
    storage.set_item(ACTIVE_VIEW_KEY, "decks")
    storage.set_item(SIDEBAR_OPEN_KEY, "true")
    state = AppState(auth, storage).start()
    assert state.active_view == "decks"
    assert state.sidebar_open is True


def test_start_ignores_unknown_view(auth, storage):
    storage.set_item(ACTIVE_VIEW_KEY, "settings")
    assert AppState(auth, storage).start().active_view == "home"


def test_start_picks_up_existing_session(auth, storage):
    auth.sign_in_with_password(EMAIL, PASSWORD)
    assert AppState(auth, storage).start().is_authenticated


def test_follows_auth_changes(state, auth):
    listener = MagicMock()
    state.subscribe(listener)

    auth.sign_in_with_password(EMAIL, PASSWORD)
    assert state.is_authenticated
    assert state.session.email == EMAIL

    auth.sign_out()
    assert not state.is_authenticated
    assert listener.call_count == 2
    listener.assert_called_with(state)


def test_close_stops_following_auth(state, auth):
    state.close()
    auth.sign_in_with_password(EMAIL, PASSWORD)
    assert state.is_authenticated is False


def test_view_and_sidebar_are_mirrored(state, storage):
    state.set_active_view("create")
    state.toggle_sidebar()
    assert storage.get_item(ACTIVE_VIEW_KEY) == "create"
    assert storage.get_item(SIDEBAR_OPEN_KEY) == "true"


def test_unknown_view_rejected(state):
    with pytest.raises(ValueError, match="Unknown view"):
        state.set_active_view("settings")


def test_unsubscribe_listener(state):
    listener = MagicMock()
    unsubscribe = state.subscribe(listener)
    unsubscribe()
    unsubscribe()
    state.set_active_view("profile")
    listener.assert_not_called()
