"""Payment status derivation.

Pure helpers shared by the payment read path and the reconciliation
workflow. Nothing here touches the database; `today` is always a
parameter so callers and tests control the clock.

Money is compared in integer minor units (cents) rather than as floats,
so `0.1 + 0.2` and `0.3` count as the same amount.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

GRACE_PERIOD_DAYS = 30

PAID = "paid"
PENDING = "pending"
OVERDUE = "overdue"


def to_minor_units(amount: Optional[float]) -> int:
    """Convert a monetary amount to whole cents; `None` counts as zero."""
    if amount is None:
        return 0
    cents = Decimal(str(amount)) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def total_paid(amounts: Iterable[Optional[float]]) -> float:
    """Sum payment amounts without accumulating float error."""
    cents = sum(to_minor_units(a) for a in amounts)
    return float(Decimal(cents) / 100)


def is_fully_paid(paid: Optional[float], total: Optional[float]) -> bool:
    return to_minor_units(paid) >= to_minor_units(total)


def is_overdue(payment_date: date, today: date) -> bool:
    """True once `today` is strictly past the grace window.

    A payment exactly `GRACE_PERIOD_DAYS` old is still pending.
    """
    return today > payment_date + timedelta(days=GRACE_PERIOD_DAYS)


def derive_current_status(stored_status: Optional[str], payment_date: date, today: date) -> str:
    """Time-based status reported alongside each payment on reads."""
    if stored_status == PAID:
        return PAID
    if is_overdue(payment_date, today):
        return OVERDUE
    return PENDING


def reconciled_status(running_amount: Optional[float], total_amount: Optional[float],
                      payment_date: date, today: date) -> str:
    """Amount-based status written to existing payments during reconciliation."""
    if is_fully_paid(running_amount, total_amount):
        return PAID
    if is_overdue(payment_date, today):
        return OVERDUE
    return PENDING


def synthetic_status(amount: Optional[float], total_amount: Optional[float]) -> str:
    """Status of the payment created when a student has none yet."""
    return PAID if to_minor_units(amount) == to_minor_units(total_amount) else PENDING
