"""
Logging setup for the gateway.

Every module logs through the standard library (logging.getLogger(__name__)).
This module wires the root logger once at startup:

  - JSON lines via python-json-logger, so `extra={...}` fields such as
    authorization_id and request_id become queryable keys
  - A filter that masks card numbers before any handler sees the record

Card numbers must never reach a log sink. The filter masks any run of
12-19 digits (optionally separated by single spaces) that passes the Luhn
check down to its last four digits, both in the rendered message and in
string extras. Other long numbers, such as large amounts, are left as is.
"""

import logging
import re
import sys

from pythonjsonlogger.json import JsonFormatter

from app.domain import luhn

PAN_PATTERN = re.compile(r"(?<![\w-])(?:\d ?){11,18}\d(?![\w-])")

# Attributes present on every LogRecord; anything else came in via `extra`
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


def mask_pan(text: str) -> str:
    """Replace every card number in text with a masked form."""

    def _mask(match: re.Match) -> str:
        digits = re.sub(r"\D", "", match.group(0))
        try:
            luhn.validate(digits)
        except luhn.CardNumberError:
            return match.group(0)
        return "*" * (len(digits) - 4) + digits[-4:]

    return PAN_PATTERN.sub(_mask, text)


class CardNumberScrubFilter(logging.Filter):
    """Mask card numbers in the message and in string `extra` fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = mask_pan(record.msg)
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and isinstance(value, str):
                setattr(record, key, mask_pan(value))
        return True


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure the root logger. Safe to call more than once; handlers
    installed by a previous call are replaced rather than duplicated.
    """
    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(
            JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s",
                rename_fields={"levelname": "level", "name": "logger"},
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
    handler.addFilter(CardNumberScrubFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_gateway_handler", False):
            root.removeHandler(existing)
    handler._gateway_handler = True
    root.addHandler(handler)
    root.setLevel(level.upper())
