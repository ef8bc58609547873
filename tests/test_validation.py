import pytest

from kard.exceptions import InputValidationError
from kard.validation import (
    CardDraft,
    check_password_confirmation,
    check_password_length,
    clean_card_drafts,
    clean_card_edit,
    clean_deck_input,
    clean_email,
    password_strength,
    strength_label,
)


class TestDeckInput:
    def test_trims_name_and_description(self):
        assert clean_deck_input("  Spanish ", "  Phrases ") == ("Spanish", "Phrases")

    def test_blank_description_becomes_none(self):
        assert clean_deck_input("Spanish", "   ") == ("Spanish", None)
        assert clean_deck_input("Spanish") == ("Spanish", None)

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_name_required(self, name):
        with pytest.raises(InputValidationError, match="Deck name is required"):
            clean_deck_input(name)


class TestCardDrafts:
    def test_keeps_only_complete_drafts(self):
        drafts = [
            CardDraft(" Hola ", " Hello "),
            CardDraft("Adiós", "  "),
            CardDraft("", "Orphan"),
            CardDraft("Gracias", "Thank you"),
        ]
        cleaned = clean_card_drafts(drafts)
        assert cleaned == [CardDraft("Hola", "Hello"), CardDraft("Gracias", "Thank you")]

    def test_no_complete_drafts_raises(self):
        with pytest.raises(InputValidationError):
            clean_card_drafts([CardDraft("Only front", "")])

    def test_card_edit_requires_both_sides(self):
        assert clean_card_edit(" a ", " b ") == ("a", "b")
        with pytest.raises(InputValidationError):
            clean_card_edit("a", "   ")


class TestAccountInput:
    def test_email(self):
        assert clean_email("  me@example.com ") == "me@example.com"
        with pytest.raises(InputValidationError):
            clean_email("not-an-email")

    def test_password_confirmation(self):
        check_password_confirmation("secret", "secret")
        with pytest.raises(InputValidationError, match="do not match"):
            check_password_confirmation("secret", "Secret")

    def test_password_length_counts_utf8_bytes(self):
        check_password_length("x" * 72)
        with pytest.raises(InputValidationError, match="at most 72 bytes"):
            check_password_length("x" * 73)
        # 36 two-byte characters fill the limit exactly.
        check_password_length("é" * 36)
        with pytest.raises(InputValidationError):
            check_password_length("é" * 37)


@pytest.mark.parametrize(
    "password, score, label",
    [
        ("", 0, "Very Weak"),
        ("abc", 1, "Weak"),
        ("abcdefgh", 2, "Weak"),
        ("Abcdefgh", 3, "Medium"),
        ("Abcdefg1", 4, "Strong"),
        ("Abcdef1!", 5, "Very Strong"),
    ],
)
def test_password_strength(password, score, label):
    assert password_strength(password) == score
    assert strength_label(score) == label
