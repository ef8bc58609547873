"""Database package for kard.

This package provides the persistence adapter for decks, flashcards, users
and auth sessions. Only KardDatabase is exported as the public API.
"""

from .database import KardDatabase

__all__ = ["KardDatabase"]
