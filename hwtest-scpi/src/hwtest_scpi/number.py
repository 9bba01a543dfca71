"""SCPI number parsing and formatting utilities.

Replies are parsed as plain decimal numbers (NR1 integer, NR2 fixed-point,
NR3 scientific notation). Command arguments are rendered with at most three
fractional digits and no trailing zeros. Both directions always use ``.`` as
the decimal separator, independent of the host locale.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, localcontext

from hwtest_scpi.errors import ScpiResponseError

_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_INT_RE = re.compile(r"[+-]?[0-9]+")
_FIELD_SEPARATOR_RE = re.compile(r"[ \t,]+")

_TRUE_TOKENS: frozenset[str] = frozenset({"1", "ON", "TRUE"})

_QUANTUM = Decimal("0.001")


def parse_number(text: str) -> float:
    """Parse a SCPI numeric response into a float.

    Accepts NR1 (``"42"``), NR2 (``"1.23"``) and NR3 (``"1.23E+4"``) forms
    with an optional leading sign.

    Args:
        text: The raw response string (leading/trailing whitespace is stripped).

    Returns:
        The parsed float value.

    Raises:
        ScpiResponseError: If *text* is not a decimal number.
    """
    token = text.strip()
    if _NUMBER_RE.fullmatch(token) is None:
        raise ScpiResponseError("Invalid SCPI number", text)
    return float(token)


def parse_int(text: str) -> int:
    """Parse a SCPI NR1 (integer) response.

    Only ASCII digits with an optional sign are accepted; digit grouping and
    fractional parts are rejected.

    Args:
        text: The raw response string.

    Returns:
        The parsed integer.

    Raises:
        ScpiResponseError: If *text* is not a valid integer.
    """
    token = text.strip()
    if _INT_RE.fullmatch(token) is None:
        raise ScpiResponseError("Invalid SCPI integer", text)
    return int(token)


def normalize_bool(text: str) -> bool:
    """Normalize an instrument boolean reply.

    The reply is trimmed and upper-cased, then compared against ``"1"``,
    ``"ON"`` and ``"TRUE"``. Anything else, including an empty reply, is
    ``False``. Firmware differs in how it spells booleans, so this never
    raises.

    Args:
        text: The raw response string.

    Returns:
        True for a recognized "on" token, False otherwise.
    """
    return text.strip().upper() in _TRUE_TOKENS


def split_fields(text: str) -> list[str]:
    """Split a multi-field reply on runs of spaces, tabs and commas.

    Args:
        text: The raw response string.

    Returns:
        The non-empty fields in order.
    """
    return [field for field in _FIELD_SEPARATOR_RE.split(text.strip()) if field]


def format_number(value: float) -> str:
    """Format a float for use in a SCPI command.

    The shortest decimal representation of *value* is rounded half away from
    zero to three fractional digits, then trailing zeros and a dangling
    decimal point are removed::

        >>> format_number(12.0)
        '12'
        >>> format_number(7.25)
        '7.25'
        >>> format_number(1.2345)
        '1.235'

    Args:
        value: The numeric value to format.

    Returns:
        A locale-independent decimal string.

    Raises:
        ValueError: If *value* is NaN or infinite.
    """
    if math.isnan(value) or math.isinf(value):
        raise ValueError(f"Cannot format non-finite value for SCPI: {value!r}")
    exact = Decimal(repr(float(value)))
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, exact.adjusted() + 4)
        rounded = exact.quantize(_QUANTUM, rounding=ROUND_HALF_UP)
    text = f"{rounded:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text == "-0":
        return "0"
    return text
