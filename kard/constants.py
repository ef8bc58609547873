"""
Static constants for Kard.

Storage key layouts and validation thresholds. No runtime configuration here;
see kard.config for settings.
"""
from typing import Tuple

# Per-device study session keys, namespaced by deck id.
STUDY_INDEX_KEY_TEMPLATE: str = "study-{deck_id}-currentIndex"
STUDY_FLIPPED_KEY_TEMPLATE: str = "study-{deck_id}-isFlipped"
STUDY_CARDS_KEY_TEMPLATE: str = "study-{deck_id}-flashcards"

# Device storage keys for auth and mirrored UI state.
AUTH_TOKEN_KEY: str = "kard-auth-token"
ACTIVE_VIEW_KEY: str = "kard-active-view"
SIDEBAR_OPEN_KEY: str = "kard-sidebar-open"

STORAGE_FILENAME: str = "local_storage.json"

# Views selectable in the application shell.
VIEWS: Tuple[str, ...] = ("home", "decks", "create", "profile")
DEFAULT_VIEW: str = "home"

# bcrypt only hashes the first 72 bytes and refuses longer input.
MAX_PASSWORD_BYTES: int = 72

# Password strength scoring (one point per satisfied rule).
MIN_STRONG_PASSWORD_LENGTH: int = 8
MAX_PASSWORD_STRENGTH: int = 5

# Cookie carrying the session token for the web routes.
SESSION_COOKIE_NAME: str = "kard-session"
