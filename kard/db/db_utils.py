"""
Utility functions for data marshalling between Pydantic models and database formats.
This module keeps the facade in database.py free of conversion details.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from pydantic import ValidationError

from ..models import (
    AuthSession,
    AuthUser,
    Deck,
    Flashcard,
    Profile,
    UserRecord,
)
from ..exceptions import MarshallingError


def to_db_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """
    Convert an aware datetime to the naive UTC value stored in TIMESTAMP columns.

    Naive inputs are assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Attach the UTC timezone to a naive TIMESTAMP value read from the DB."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _normalize_timestamps(data: Dict[str, Any], *fields: str) -> Dict[str, Any]:
    for field in fields:
        if field in data:
            data[field] = from_db_timestamp(data[field])
    return data


def stagger_creation_times(
    cards: Sequence[Flashcard], base: datetime
) -> List[Flashcard]:
    """
    Give each card in a batch a strictly increasing `created_at`.

    Cards inserted in one request would otherwise share a timestamp and have
    no defined display order; offsetting by one microsecond per position
    makes creation order equal batch order.
    """
    return [
        card.model_copy(
            update={"created_at": base + timedelta(microseconds=position)}
        )
        for position, card in enumerate(cards)
    ]


def flashcards_to_db_params_list(
    cards: Sequence[Flashcard], user_id: UUID
) -> List[Tuple]:
    """
    Convert flashcards into tuples for bulk insertion.

    Returns:
        List[Tuple]: (id, deck_id, user_id, front, back, created_at) per card.
    """
    return [
        (
            card.id,
            card.deck_id,
            user_id,
            card.front,
            card.back,
            to_db_timestamp(card.created_at),
        )
        for card in cards
    ]


def db_row_to_flashcard(row_dict: Dict[str, Any]) -> Flashcard:
    """
    Create a Flashcard model from a database row dictionary.

    The `user_id` column is dropped: ownership is carried by the deck.

    Raises:
        MarshallingError: If the row cannot be validated into a Flashcard.
    """
    data = row_dict.copy()
    data.pop("user_id", None)
    _normalize_timestamps(data, "created_at")
    try:
        return Flashcard(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse flashcard from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def deck_to_db_params_tuple(deck: Deck) -> Tuple:
    """(id, user_id, name, description, created_at)"""
    return (
        deck.id,
        deck.user_id,
        deck.name,
        deck.description,
        to_db_timestamp(deck.created_at),
    )


def db_row_to_deck(
    row_dict: Dict[str, Any], flashcards: Optional[List[Flashcard]] = None
) -> Deck:
    """
    Create a Deck model from a database row dictionary and its cards.

    Raises:
        MarshallingError: If the row cannot be validated into a Deck.
    """
    data = _normalize_timestamps(row_dict.copy(), "created_at")
    data["flashcards"] = flashcards or []
    try:
        return Deck(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse deck from DB row: {row_dict}. Error: {e}",
            original_exception=e,
        ) from e


def split_deck_join_rows(
    rows: List[Dict[str, Any]],
) -> List[Deck]:
    """
    Fold rows of a decks LEFT JOIN flashcards query into nested Deck models.

    Rows carry deck columns prefixed `deck_` and card columns prefixed
    `card_`; a deck without cards yields one row with NULL card columns.
    Deck order and card order follow the row order.
    """
    decks: Dict[UUID, Dict[str, Any]] = {}
    for row in rows:
        deck_id = row["deck_id"]
        entry = decks.get(deck_id)
        if entry is None:
            entry = {
                "row": {
                    "id": deck_id,
                    "user_id": row["deck_user_id"],
                    "name": row["deck_name"],
                    "description": row["deck_description"],
                    "created_at": row["deck_created_at"],
                },
                "cards": [],
            }
            decks[deck_id] = entry
        if row.get("card_id") is not None:
            entry["cards"].append(
                db_row_to_flashcard(
                    {
                        "id": row["card_id"],
                        "deck_id": deck_id,
                        "front": row["card_front"],
                        "back": row["card_back"],
                        "created_at": row["card_created_at"],
                    }
                )
            )
    return [db_row_to_deck(e["row"], e["cards"]) for e in decks.values()]


def auth_user_to_db_params_tuple(user: AuthUser) -> Tuple:
    return (
        user.id,
        user.email,
        user.password_hash,
        to_db_timestamp(user.created_at),
    )


def db_row_to_auth_user(row_dict: Dict[str, Any]) -> AuthUser:
    data = _normalize_timestamps(row_dict.copy(), "created_at")
    try:
        return AuthUser(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Data validation failed for auth user: {e}", original_exception=e
        ) from e


def auth_session_to_db_params_tuple(session: AuthSession) -> Tuple:
    return (
        session.token,
        session.user_id,
        session.email,
        to_db_timestamp(session.created_at),
        to_db_timestamp(session.expires_at),
    )


def db_row_to_auth_session(row_dict: Dict[str, Any]) -> AuthSession:
    data = _normalize_timestamps(row_dict.copy(), "created_at", "expires_at")
    try:
        return AuthSession(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Data validation failed for auth session: {e}",
            original_exception=e,
        ) from e


def db_row_to_user_record(row_dict: Dict[str, Any]) -> UserRecord:
    """
    Build a UserRecord from a user_records LEFT JOIN profiles row.

    Profile columns are prefixed `profile_`; a NULL `profile_user_id` means
    the user has no profile row.
    """
    data = {
        key: value
        for key, value in row_dict.items()
        if not key.startswith("profile_")
    }
    _normalize_timestamps(data, "created_at", "last_login")
    try:
        if row_dict.get("profile_user_id") is not None:
            data["profile"] = Profile(
                user_id=row_dict["profile_user_id"],
                display_name=row_dict.get("profile_display_name"),
                bio=row_dict.get("profile_bio"),
                created_at=from_db_timestamp(row_dict["profile_created_at"]),
            )
        return UserRecord(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Data validation failed for user record: {e}",
            original_exception=e,
        ) from e
