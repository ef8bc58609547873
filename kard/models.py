"""
Pydantic models for decks, flashcards, users and auth sessions.
"""

from __future__ import annotations

import uuid
from uuid import UUID
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Flashcard(BaseModel):
    """
    A front/back text pair belonging to exactly one deck.

    `created_at` is immutable after creation and is the display sort key.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique UUIDv4 for the card. Auto-generated.",
    )
    deck_id: UUID = Field(
        ...,
        description="Owning deck. Fixed at creation.",
    )
    front: str = Field(
        ...,
        description="Term shown on the front face.",
    )
    back: str = Field(
        ...,
        description="Definition shown on the back face.",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="UTC timestamp when the card was created.",
    )

    def sort_key(self) -> datetime:
        return self.created_at


def sort_by_creation(cards: List[Flashcard]) -> List[Flashcard]:
    """Return a new list ordered ascending by `created_at` (stable)."""
    return sorted(cards, key=Flashcard.sort_key)


class Deck(BaseModel):
    """
    A named collection of flashcards owned by one user.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: UUID = Field(
        default_factory=uuid.uuid4,
        description="Unique UUIDv4 for the deck. Auto-generated.",
    )
    user_id: UUID = Field(
        ...,
        description="Owning user.",
    )
    name: str = Field(
        ...,
        min_length=1,
        description="Display name of the deck.",
    )
    description: Optional[str] = Field(
        default=None,
        description="Optional free-text description.",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="UTC timestamp when the deck was created.",
    )
    flashcards: List[Flashcard] = Field(
        default_factory=list,
        description="Cards in creation order.",
    )

    @property
    def card_count(self) -> int:
        return len(self.flashcards)


class Profile(BaseModel):
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    user_id: UUID
    display_name: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class UserRecord(BaseModel):
    """
    Mirrored user record kept alongside the auth provider's own user table.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: UUID = Field(
        ...,
        description="Same id as the authenticated user.",
    )
    email: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utc_now)
    last_login: Optional[datetime] = Field(
        default=None,
        description="UTC timestamp of the most recent sign-in.",
    )
    profile: Optional[Profile] = None


class AuthUser(BaseModel):
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: UUID = Field(default_factory=uuid.uuid4)
    email: str = Field(..., min_length=1)
    password_hash: str = Field(..., repr=False)
    created_at: datetime = Field(default_factory=utc_now)


class AuthSession(BaseModel):
    """
    An authenticated session issued by sign-in.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    token: str = Field(..., min_length=1, repr=False)
    user_id: UUID
    email: str
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the session has passed its expiry time."""
        now = now or utc_now()
        return now >= self.expires_at
