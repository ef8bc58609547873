"""Kard - flashcard decks with resumable study sessions."""

from .models import AuthSession, AuthUser, Deck, Flashcard, Profile, UserRecord
from .db import KardDatabase
from .storage import LocalStorage
from .study_session import ResumePolicy, StudySession
from .keyboard import EditingGuard, KeyDispatcher
from .auth import AuthEvent, AuthService

__all__ = [
    "AuthSession",
    "AuthUser",
    "Deck",
    "Flashcard",
    "Profile",
    "UserRecord",
    "KardDatabase",
    "LocalStorage",
    "ResumePolicy",
    "StudySession",
    "EditingGuard",
    "KeyDispatcher",
    "AuthEvent",
    "AuthService",
]
