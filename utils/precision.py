"""Decimal helpers shared by the projection engine and economics modules.

The engine keeps every intermediate value as a :class:`decimal.Decimal` so the
25-year compounding chain does not pick up binary floating-point drift. Values
are only converted back to ``float`` once a figure is complete and about to be
emitted in a result object.
"""
from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from typing import Any

ENGINE_PRECISION = 28
OUTPUT_SIGNIFICANT_DIGITS = 12

_OUTPUT_CONTEXT = Context(prec=OUTPUT_SIGNIFICANT_DIGITS, rounding=ROUND_HALF_UP)

ZERO = Decimal(0)
ONE = Decimal(1)
HUNDRED = Decimal(100)


def coerce_finite(value: Any) -> float:
    """Return ``value`` as a finite float, or ``0.0`` when it cannot be one.

    ``None``, NaN, infinities, integers too large for a float and anything
    ``float()`` rejects all collapse to zero so malformed inputs never reach
    the arithmetic.
    """

    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def to_decimal(value: Any) -> Decimal:
    """Convert a user-facing number into a Decimal without binary noise.

    Floats go through ``repr`` so ``0.18`` becomes ``Decimal("0.18")`` rather
    than the exact binary expansion.
    """

    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    number = coerce_finite(value)
    try:
        return Decimal(repr(number))
    except InvalidOperation:  # pragma: no cover - repr of a finite float always parses
        return ZERO


def to_number(value: Decimal) -> float:
    """Round to 12 significant digits (half-up) and return a float.

    Values outside the float range come back as ``0.0`` rather than infinity.
    """

    if not value.is_finite():
        return 0.0
    number = float(_OUTPUT_CONTEXT.plus(value))
    return number if math.isfinite(number) else 0.0


def round_half_up(value: Decimal, places: int) -> Decimal:
    """Quantize ``value`` to ``places`` decimal places using half-up rounding."""

    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def engine_context():
    """Return a local decimal context configured for engine arithmetic.

    Each call gets its own context so concurrent snapshot builds never share
    precision or rounding state.
    """

    return localcontext(Context(prec=ENGINE_PRECISION, rounding=ROUND_HALF_UP))


__all__ = [
    "ENGINE_PRECISION",
    "OUTPUT_SIGNIFICANT_DIGITS",
    "ZERO",
    "ONE",
    "HUNDRED",
    "coerce_finite",
    "to_decimal",
    "to_number",
    "round_half_up",
    "engine_context",
]
