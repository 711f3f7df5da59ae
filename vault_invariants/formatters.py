"""Formatting and conversion utilities."""

from decimal import Decimal

from vault_invariants.constants import UNITS_PER_TOKEN


def as_int(value, *, default: int = 0) -> int:
    """Coerce an RPC or ABI return value (int, bool, decimal or 0x-hex string) to int."""
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip()
        return int(text, 16) if text[:2].lower() == "0x" else int(text)
    return int(value)


def format_units_sci(value: int, *, sig: int = 3) -> str:
    """Raw units as `<mantissa>e<exponent>` with at most `sig` significant digits."""
    if value == 0:
        return "0"
    digits = str(abs(value))
    exponent = len(digits) - 1
    # Round half up on the digit after the last kept one.
    head = int(digits[:sig].ljust(sig, "0"))
    if len(digits) > sig and int(digits[sig]) >= 5:
        head += 1
    if head >= 10**sig:
        head //= 10
        exponent += 1
    mantissa = str(head)
    mantissa = (mantissa[0] + "." + mantissa[1:]).rstrip("0").rstrip(".")
    return f"{'-' if value < 0 else ''}{mantissa}e{exponent}"


def format_tokens(value: int, *, symbol: str = "OETH", decimals: int = 6) -> str:
    """Format a raw 18-decimal amount as whole tokens."""
    tokens = Decimal(value) / UNITS_PER_TOKEN
    s = f"{tokens:.{decimals}f}".rstrip("0").rstrip(".")
    return f"{s} {symbol}"


def format_amount(value: int) -> str:
    """Raw units, with a token hint once the amount is large enough to read as tokens."""
    if abs(value) < 10**9:
        return f"{value}"
    return f"{format_units_sci(value)} (~{format_tokens(value)})"


def delta_indicator(before: int, after: int) -> str:
    """Trend emoji for a before/after pair."""
    return {1: "📈", -1: "📉"}.get((after > before) - (after < before), "➡️")


def format_detail_value(value) -> str:
    """Amounts in invariant details; anything that is not a plain int is shown as-is."""
    if isinstance(value, bool) or not isinstance(value, int):
        return str(value)
    return format_amount(value)
