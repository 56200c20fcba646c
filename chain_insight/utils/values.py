"""
Helpers for chain quantities kept as decimal strings.

Values read from the store stay strings end to end; arithmetic goes through
int or Decimal and never float. Only percentage ratios (presentation values)
are returned as floats.
"""

import re
from dataclasses import asdict, is_dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Optional, Union

TX_HASH_PATTERN = re.compile(r'^0x[0-9a-fA-F]{64}$')
ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')

Numeric = Union[str, int, Decimal, None]


def is_valid_tx_hash(value: Any) -> bool:
    """Check for a 0x-prefixed, 64 hex digit transaction hash."""
    return isinstance(value, str) and bool(TX_HASH_PATTERN.match(value))


def is_valid_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ADDRESS_PATTERN.match(value))


def to_int(value: Numeric, default: int = 0) -> int:
    """
    Parse an integer quantity.

    Accepts ints, decimal strings, hex strings (0x...) and Decimals. Anything
    unparseable yields ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        return int(value)
    text = str(value).strip()
    if not text:
        return default
    try:
        if text.lower().startswith('0x'):
            return int(text, 16)
        return int(text)
    except ValueError:
        try:
            return int(Decimal(text))
        except (InvalidOperation, ValueError):
            return default


def to_decimal(value: Numeric, default: Decimal = Decimal(0)) -> Decimal:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal(to_int(value))


def to_units(raw: Numeric, decimals: int) -> Decimal:
    """Convert a raw integer quantity into display units."""
    return Decimal(to_int(raw)) / (Decimal(10) ** decimals)


def format_units(raw: Numeric, decimals: int, places: int) -> str:
    """Render a raw quantity in display units with fixed decimal places."""
    quantum = Decimal(1).scaleb(-places)
    return str(to_units(raw, decimals).quantize(quantum, rounding=ROUND_HALF_UP))


def to_gwei(raw_wei: Numeric) -> Decimal:
    return to_units(raw_wei, 9)


def format_gwei(raw_wei: Numeric) -> str:
    return format_units(raw_wei, 9, 2)


def format_native_cost(gas_used: Numeric, gas_price: Numeric) -> str:
    """Total fee (used * price) scaled by 1e18, 8 places."""
    return format_units(to_int(gas_used) * to_int(gas_price), 18, 8)


def ratio_percent(numerator: Numeric, denominator: Numeric) -> float:
    """numerator / denominator * 100, or 0.0 for a zero denominator."""
    den = to_int(denominator)
    if den == 0:
        return 0.0
    return float(Decimal(to_int(numerator)) * 100 / Decimal(den))


def round_float(value: float, places: int = 2) -> float:
    return float(Decimal(str(value)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def ends_with_round_gwei(gas_price: Numeric) -> bool:
    """Whether a wei price is a whole number of gwei."""
    text = str(to_int(gas_price))
    return text.endswith('000000000')


def serialize_big_ints(obj: Any) -> Any:
    """
    Recursively convert integer-like values to strings.

    Dataclasses become dicts, tuples become lists, Decimals and ints become
    strings, datetimes become ISO strings and enums their values. Booleans
    and floats are left alone.
    """
    if isinstance(obj, bool) or obj is None or isinstance(obj, float):
        return obj
    if isinstance(obj, (int, Decimal)):
        return str(obj)
    if isinstance(obj, Enum):
        return serialize_big_ints(obj.value)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return serialize_big_ints(asdict(obj))
    if isinstance(obj, dict):
        return {str(key): serialize_big_ints(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [serialize_big_ints(item) for item in obj]
    return obj


def short_hash(value: Optional[str], head: int = 10) -> str:
    if not value:
        return ''
    return value if len(value) <= head else f"{value[:head]}..."
