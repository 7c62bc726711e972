"""
Card number validation using the Luhn (mod 10) checksum.

Every card number issued by the major networks carries a Luhn check digit,
so this catches single-digit typos and most transpositions before a card
is ever stored. It says nothing about whether the card exists.
"""

import enum


class CardNumberFailure(str, enum.Enum):
    NON_NUMERIC = "non_numeric"
    CHECKSUM_FAILED = "checksum_failed"


class CardNumberError(ValueError):
    """Raised when a card number fails validation."""

    def __init__(self, failure: CardNumberFailure):
        self.failure = failure
        messages = {
            CardNumberFailure.NON_NUMERIC: "card number must contain only digits",
            CardNumberFailure.CHECKSUM_FAILED: "card number checksum failed",
        }
        super().__init__(messages[failure])


def normalize(card_number: str) -> str:
    """Strip whitespace separators ("4242 4242 ..." -> "4242...")."""
    return "".join(card_number.split())


def validate(card_number: str) -> str:
    """
    Validate a card number and return it normalised to bare digits.

    Raises:
        CardNumberError: NON_NUMERIC if anything other than digits remains
            after stripping whitespace (including an empty string),
            CHECKSUM_FAILED if the Luhn sum is not a multiple of 10.
    """
    digits = normalize(card_number)
    if not digits or not digits.isascii() or not digits.isdigit():
        raise CardNumberError(CardNumberFailure.NON_NUMERIC)

    total = 0
    # Position 1 is the check digit; every second position from there is doubled
    for position, char in enumerate(reversed(digits), start=1):
        digit = int(char)
        if position % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    if total % 10 != 0:
        raise CardNumberError(CardNumberFailure.CHECKSUM_FAILED)
    return digits
