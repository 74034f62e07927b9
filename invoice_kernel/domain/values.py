"""
Values -- Decimal helpers shared by the engines, parser and services.

Responsibility:
    The single place where monetary precision, rounding and numeric
    coercion are defined.  Every currency-valued figure in the system is
    rounded through ``round_money``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    May be imported by engines, services and the request parser.

Invariants enforced:
    - Monetary amounts are quantized to ``CENT`` (2 decimal places).
    - Rounding is ROUND_HALF_UP, which for Decimal rounds halves away
      from zero (-0.005 -> -0.01, 0.005 -> 0.01).
    - Floats never reach arithmetic: ``to_decimal`` routes them through
      ``str()`` so 0.1 becomes Decimal("0.1"), not its binary expansion.
    - Amounts, quantities and rates are bounded by ``MAX_MAGNITUDE`` (the
      integer range of a Numeric(38, 9) column).  Permissive coercion turns
      anything larger into zero; the strict parser rejects it.
    - Money arithmetic runs under ``money_context()``, whose precision
      covers products and sums of bounded inputs, so quantizing to cents
      cannot overflow the context.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext

CENT = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

MONEY_ROUNDING = ROUND_HALF_UP

# Numeric(38, 9) leaves 29 integer digits
MAX_MAGNITUDE = Decimal("1e29")

# Enough digits for rate x amount products and long sums of bounded values
MONEY_PRECISION = 120


@contextmanager
def money_context() -> Iterator[Context]:
    """Decimal context for engine arithmetic.  Also usable as a decorator."""
    with localcontext(prec=MONEY_PRECISION) as ctx:
        yield ctx


def round_money(value: Decimal) -> Decimal:
    """Round a Decimal to currency precision (2 dp, half away from zero)."""
    with money_context():
        return value.quantize(CENT, rounding=MONEY_ROUNDING)


def within_range(value: Decimal) -> bool:
    """True when |value| fits the storable range."""
    return value.copy_abs() < MAX_MAGNITUDE


def parse_decimal(value: object) -> Decimal | None:
    """
    Convert a raw request value to a finite Decimal.

    Returns None when the value is missing, boolean, non-numeric, NaN or
    infinite.  Strings are stripped before parsing.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def to_decimal(value: object) -> Decimal:
    """Permissive coercion: anything unusable or out of range becomes zero."""
    result = parse_decimal(value)
    if result is None or not within_range(result):
        return ZERO
    return result


def to_quantity(value: object) -> Decimal:
    """Permissive quantity coercion: unusable or negative becomes zero."""
    result = to_decimal(value)
    return result if result > ZERO else ZERO


def to_bool(value: object, default: bool = False) -> bool:
    """Interpret settings-style booleans ("true"/"false", case-insensitive)."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"
