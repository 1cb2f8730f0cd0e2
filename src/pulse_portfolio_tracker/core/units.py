"""Conversions between smallest-unit amounts, human amounts and provider strings."""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

DEFAULT_DECIMALS = 18
DISPLAY_DECIMALS = 6


def parse_decimals(value: Any, default: int = DEFAULT_DECIMALS) -> int:
    """
    Parse a token's decimals from any provider representation.

    Providers report decimals as ints, numeric strings, empty strings or not at
    all. Every code path goes through this function so cached values are
    always ``int``.

    Parameters
    ----------
    value : Any
        Raw decimals value
    default : int
        Value used when the input is missing or unparseable

    Returns
    -------
    int
        Decimals in the range 0-77

    """
    if value is None or isinstance(value, bool):
        return default
    try:
        decimals = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if decimals < 0 or decimals > 77:
        return default
    return decimals


def parse_raw_amount(value: Any) -> int:
    """
    Parse a smallest-unit amount (decimal string, hex string or int).

    Parameters
    ----------
    value : Any
        Raw amount

    Returns
    -------
    int
        Amount as an integer, 0 when missing

    Raises
    ------
    ValueError
        If the value is present but not an integer amount

    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        msg = f"Invalid raw amount: {value!r}"
        raise ValueError(msg)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16) if len(text) > 2 else 0
    return int(text)


def to_human_amount(raw: int, decimals: int) -> Decimal:
    """
    Scale a smallest-unit amount by ``10**decimals`` without rounding.

    Parameters
    ----------
    raw : int
        Smallest-unit amount
    decimals : int
        Token decimals

    Returns
    -------
    Decimal
        Exact human amount

    """
    with localcontext() as ctx:
        ctx.prec = max(28, len(str(abs(raw))) + 2)
        return Decimal(raw).scaleb(-decimals)


def format_units(raw: int, decimals: int, precision: int = DISPLAY_DECIMALS) -> str:
    """
    Format a smallest-unit amount as a decimal string using integer arithmetic.

    The fractional part is truncated (or zero padded) to ``precision`` digits.

    Parameters
    ----------
    raw : int
        Smallest-unit amount
    decimals : int
        Token decimals
    precision : int
        Number of fractional digits in the output

    Returns
    -------
    str
        Human-readable amount, e.g. ``format_units(1500000, 6) == "1.500000"``

    """
    sign = "-" if raw < 0 else ""
    whole, fraction = divmod(abs(raw), 10**decimals)
    fraction_digits = str(fraction).zfill(decimals) if decimals else ""
    fraction_digits = fraction_digits[:precision].ljust(precision, "0")
    if precision == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{fraction_digits}"


def parse_percent_change(value: Any) -> Decimal | None:
    """
    Parse a 24h percent change that may arrive as a signed string.

    A leading ``-`` flips the sign of the parsed absolute magnitude.

    Parameters
    ----------
    value : Any
        Percent change as number or string (e.g. ``"-3.25"``)

    Returns
    -------
    Decimal | None
        Signed percent change, None if missing or unparseable

    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    text = str(value).strip().rstrip("%")
    if not text:
        return None
    negative = text.startswith("-")
    try:
        magnitude = abs(Decimal(text.lstrip("+-")))
    except InvalidOperation:
        return None
    if not magnitude.is_finite():
        return None
    return -magnitude if negative else magnitude


def to_decimal(value: Any) -> Decimal | None:
    """Convert a provider price field to Decimal, None if absent or invalid."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None
