"""
Input validation run before any backend call.

Each check trims its input and raises InputValidationError with a message
fit for showing to the user.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .constants import (
    MAX_PASSWORD_BYTES,
    MAX_PASSWORD_STRENGTH,
    MIN_STRONG_PASSWORD_LENGTH,
)
from .exceptions import InputValidationError


@dataclass
class CardDraft:
    """Unsaved front/back text typed into the create form."""

    front: str
    back: str


def clean_deck_input(
    name: str, description: Optional[str] = None
) -> Tuple[str, Optional[str]]:
    """Trim a deck name (required) and description (blank becomes None)."""
    name = (name or "").strip()
    if not name:
        raise InputValidationError("Deck name is required.")
    description = (description or "").strip() or None
    return name, description


def clean_card_drafts(drafts: Iterable[CardDraft]) -> List[CardDraft]:
    """
    Keep only drafts whose trimmed front and back are both non-empty.

    Raises:
        InputValidationError: If no draft survives.
    """
    cleaned = [
        CardDraft(front=d.front.strip(), back=d.back.strip())
        for d in drafts
        if d.front.strip() and d.back.strip()
    ]
    if not cleaned:
        raise InputValidationError(
            "Add at least one flashcard with both a term and a definition."
        )
    return cleaned


def clean_card_edit(front: str, back: str) -> Tuple[str, str]:
    front, back = (front or "").strip(), (back or "").strip()
    if not front or not back:
        raise InputValidationError("Both term and definition are required.")
    return front, back


def clean_email(email: str) -> str:
    email = (email or "").strip()
    if not email or "@" not in email:
        raise InputValidationError("A valid email address is required.")
    return email


def check_password_confirmation(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise InputValidationError("Passwords do not match.")


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def check_password_length(password: str) -> None:
    if password_too_long(password):
        raise InputValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long."
        )


def password_strength(password: str) -> int:
    """Score a password 0-5: one point each for length, lower, upper, digit, symbol."""
    score = 0
    if len(password) >= MIN_STRONG_PASSWORD_LENGTH:
        score += 1
    if re.search(r"[a-z]", password):
        score += 1
    if re.search(r"[A-Z]", password):
        score += 1
    if re.search(r"[0-9]", password):
        score += 1
    if re.search(r"[^a-zA-Z0-9]", password):
        score += 1
    return min(score, MAX_PASSWORD_STRENGTH)


def strength_label(score: int) -> str:
    if score == 0:
        return "Very Weak"
    if score <= 2:
        return "Weak"
    if score <= 3:
        return "Medium"
    if score <= 4:
        return "Strong"
    return "Very Strong"
