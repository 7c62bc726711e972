"""
Tests for card number validation (Luhn checksum).

These tests verify:
  - Known-valid card numbers pass and come back as bare digits
  - A single wrong check digit fails the checksum
  - Anything other than digits is rejected as non-numeric
  - Whitespace separators are stripped before validation
"""

import pytest

from app.domain import luhn
from app.domain.luhn import CardNumberError, CardNumberFailure


class TestValidCardNumbers:
    """Numbers that pass the checksum."""

    @pytest.mark.parametrize(
        "number",
        [
            "4532015112830366",
            "4242424242424242",
            "4111111111111111",
            "4000000000000119",
            "79927398713",
            "0",
        ],
    )
    def test_valid_numbers_pass(self, number):
        """Known-valid numbers should validate and be returned unchanged."""
        assert luhn.validate(number) == number

    def test_spaces_are_stripped(self):
        """Card numbers are accepted with the usual 4-digit grouping."""
        assert luhn.validate("4532 0151 1283 0366") == "4532015112830366"

    def test_surrounding_whitespace_is_stripped(self):
        assert luhn.validate("  4532015112830366\n") == "4532015112830366"


class TestInvalidCardNumbers:
    """Numbers that must be rejected, and why."""

    def test_wrong_check_digit_fails_checksum(self):
        """Changing the last digit of a valid number breaks the checksum."""
        with pytest.raises(CardNumberError) as exc_info:
            luhn.validate("4532015112830367")
        assert exc_info.value.failure == CardNumberFailure.CHECKSUM_FAILED
        assert "checksum" in str(exc_info.value)

    def test_letters_are_non_numeric(self):
        with pytest.raises(CardNumberError) as exc_info:
            luhn.validate("abcd")
        assert exc_info.value.failure == CardNumberFailure.NON_NUMERIC

    def test_dashes_are_non_numeric(self):
        """Only whitespace is accepted as a separator."""
        with pytest.raises(CardNumberError) as exc_info:
            luhn.validate("4532-0151-1283-0366")
        assert exc_info.value.failure == CardNumberFailure.NON_NUMERIC

    def test_empty_string_is_non_numeric(self):
        with pytest.raises(CardNumberError) as exc_info:
            luhn.validate("   ")
        assert exc_info.value.failure == CardNumberFailure.NON_NUMERIC

    def test_non_ascii_digits_are_non_numeric(self):
        """Unicode digits such as Arabic-Indic numerals are not card digits."""
        with pytest.raises(CardNumberError) as exc_info:
            luhn.validate("٤٥٣٢")
        assert exc_info.value.failure == CardNumberFailure.NON_NUMERIC
