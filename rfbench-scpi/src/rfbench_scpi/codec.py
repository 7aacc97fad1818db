"""SCPI value formatting and parsing.

Converts typed values to and from their textual SCPI representation.
Numbers follow the NR1 (integer), NR2 (fixed-point) and NR3 (scientific
notation) formats, plus the special values ``NAN``, ``INF`` and ``NINF``.
Sequences are comma separated on the wire.

Parsers take the raw reply text and raise :class:`ValueError` when the
text has the wrong shape; the checked query layer turns that into a
:class:`~rfbench_scpi.errors.ScpiResponseError`.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Callable, Iterable, TypeVar

T = TypeVar("T")

SEQUENCE_DELIMITER = ","

_SPECIAL_FLOAT_MAP: dict[str, float] = {
    "NAN": float("nan"),
    "INF": float("inf"),
    "NINF": float("-inf"),
    "-INF": float("-inf"),
}


# -- Parsing -------------------------------------------------------------------


def parse_number(text: str) -> float:
    """Parse a SCPI numeric response into a float.

    Accepts NR1 (``"42"``), NR2 (``"1.23"``), NR3 (``"1.23E+4"``),
    and the special tokens ``NAN``, ``INF``, ``NINF``, and ``-INF``.

    Args:
        text: The raw response string (leading/trailing whitespace is stripped).

    Returns:
        The parsed float value.

    Raises:
        ValueError: If *text* cannot be parsed as a SCPI number.
    """
    token = text.strip().upper()
    special = _SPECIAL_FLOAT_MAP.get(token)
    if special is not None:
        return special
    try:
        return float(token)
    except ValueError:
        raise ValueError(f"Invalid SCPI number: {text!r}") from None


def parse_int(text: str) -> int:
    """Parse a SCPI NR1 (integer) response.

    Raises:
        ValueError: If *text* is not a valid integer.
    """
    token = text.strip()
    try:
        return int(token)
    except ValueError:
        raise ValueError(f"Invalid SCPI integer: {text!r}") from None


def parse_bool(text: str) -> bool:
    """Parse a SCPI boolean response.

    Accepts ``"1"`` / ``"0"`` and ``"ON"`` / ``"OFF"`` (case-insensitive).

    Raises:
        ValueError: If *text* is not a recognized boolean token.
    """
    token = text.strip().upper()
    if token in ("1", "ON"):
        return True
    if token in ("0", "OFF"):
        return False
    raise ValueError(f"Invalid SCPI boolean: {text!r}")


def parse_text(text: str) -> str:
    """Parse a character or string response.

    Strips surrounding whitespace and one pair of enclosing double quotes.

    Raises:
        ValueError: If *text* is empty.
    """
    token = text.strip()
    if len(token) >= 2 and token[0] == token[-1] == '"':
        token = token[1:-1]
    if not token:
        raise ValueError("Empty SCPI string response")
    return token


def split_sequence(text: str) -> list[str]:
    """Split a comma-separated SCPI reply into its elements.

    Args:
        text: Reply text such as ``"1.0,2.0,3.0"``.

    Returns:
        The raw element strings, in order.

    Raises:
        ValueError: If *text* is empty.
    """
    if not text.strip():
        raise ValueError("Empty SCPI sequence response")
    return [part.strip() for part in text.split(SEQUENCE_DELIMITER)]


def parse_sequence(parser: Callable[[str], T]) -> Callable[[str], tuple[T, ...]]:
    """Lift a single-value parser into a comma-separated sequence parser.

    Example:
        >>> parse_sequence(parse_number)("1,2,3")
        (1.0, 2.0, 3.0)
    """

    def parse(text: str) -> tuple[T, ...]:
        return tuple(parser(part) for part in split_sequence(text))

    return parse


parse_numbers = parse_sequence(parse_number)


# -- Formatting ----------------------------------------------------------------


def format_number(value: float) -> str:
    """Format a float for use in a SCPI command.

    ``nan``, ``inf``, and ``-inf`` are rendered as ``NAN``, ``INF``, and
    ``NINF`` respectively.  Finite values use Python's default ``str()``
    representation.
    """
    if math.isnan(value):
        return "NAN"
    if math.isinf(value):
        return "NINF" if value < 0 else "INF"
    return str(value)


def format_bool(value: bool) -> str:
    """Format a boolean for use in a SCPI command (``"1"`` or ``"0"``)."""
    return "1" if value else "0"


def format_value(value: Any) -> str:
    """Format a typed value as SCPI text.

    ``bool`` becomes ``1``/``0``, ``int`` and ``float`` go through
    :func:`format_number`, :class:`~enum.Enum` members send their value, and
    anything else (strings, domain types such as ``Amplitude``) is sent as
    ``str(value)``.
    """
    if isinstance(value, bool):
        return format_bool(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, Enum):
        return format_value(value.value)
    return str(value)


def join_sequence(values: Iterable[Any]) -> str:
    """Format every value and join them with commas.

    Raises:
        ValueError: If *values* is empty.
    """
    parts = [format_value(v) for v in values]
    if not parts:
        raise ValueError("Cannot send an empty SCPI sequence")
    return SEQUENCE_DELIMITER.join(parts)
