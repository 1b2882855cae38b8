"""Fee arithmetic for tips.

All arithmetic is done with ``Decimal`` on integer minor units and rounded
half-up, so ``5.00`` yields a fee of ``0.45`` and a net of ``4.55``.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
_WHOLE = Decimal("1")
_MINOR_UNITS_PER_MAJOR = 100


@dataclass(slots=True, frozen=True)
class FeeBreakdown:
    """Gross, fee and net amounts in minor units."""

    amount: int
    processing_fee: int
    net_amount: int


def to_minor_units(amount: Decimal) -> int:
    return int(amount.quantize(CENT, rounding=ROUND_HALF_UP) * _MINOR_UNITS_PER_MAJOR)


def from_minor_units(value: int) -> Decimal:
    return (Decimal(value) / _MINOR_UNITS_PER_MAJOR).quantize(CENT)


def calculate_fees(amount: int, *, rate: Decimal, fixed: Decimal) -> FeeBreakdown:
    """Return the processing fee and net amount for a gross ``amount`` in minor units."""

    fixed_minor = fixed * _MINOR_UNITS_PER_MAJOR
    fee = int((Decimal(amount) * rate + fixed_minor).quantize(_WHOLE, rounding=ROUND_HALF_UP))
    return FeeBreakdown(amount=amount, processing_fee=fee, net_amount=amount - fee)


__all__ = ["CENT", "FeeBreakdown", "calculate_fees", "from_minor_units", "to_minor_units"]
