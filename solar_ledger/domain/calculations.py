"""Deterministic energy and money arithmetic

Everything here works on Decimal with fixed quantization so that re-running a
computation on the same inputs gives byte-identical results.
"""

import calendar
import re
from datetime import date, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import List, NamedTuple, Optional, Sequence, Tuple

KWH_QUANTUM = Decimal("0.000001")
MONEY_QUANTUM = Decimal("0.01")
PERCENT_QUANTUM = Decimal("0.0001")
RATIO_QUANTUM = Decimal("0.0001")

_MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def quantize_kwh(value: Decimal) -> Decimal:
    return Decimal(value).quantize(KWH_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


# Months -----------------------------------------------------------------

def parse_month(month: str) -> Tuple[int, int]:
    """Parse a ``YYYY-MM`` string into (year, month)"""
    match = _MONTH_PATTERN.match(month or "")
    if not match:
        raise ValueError(f"Invalid month '{month}', expected YYYY-MM")
    return int(match.group(1)), int(match.group(2))


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_of(day: date) -> str:
    return format_month(day.year, day.month)


def month_start(month: str) -> date:
    year, month_number = parse_month(month)
    return date(year, month_number, 1)


def month_end(month: str) -> date:
    year, month_number = parse_month(month)
    return date(year, month_number, calendar.monthrange(year, month_number)[1])


def add_months(month: str, count: int) -> str:
    year, month_number = parse_month(month)
    index = year * 12 + (month_number - 1) + count
    return format_month(index // 12, index % 12 + 1)


def previous_month(today: date) -> str:
    return add_months(month_of(today), -1)


def credit_expiration_date(month: str, validity_months: int) -> date:
    """Last usable day of credits generated in ``month``

    Credits stay valid for ``validity_months`` full months counted from the
    first day of the generation month.
    """
    return month_start(add_months(month, validity_months)) - timedelta(days=1)


def invoice_due_date(month: str, due_days: int) -> date:
    return month_start(add_months(month, 1)) + timedelta(days=due_days)


# Allocation -------------------------------------------------------------

class Share(NamedTuple):
    key: int
    weight: Decimal
    allocated_kwh: Decimal
    percentage: Decimal


def compute_shares(capacity_kwh: Decimal, weights: Sequence[Tuple[int, Decimal]]) -> List[Share]:
    """Split ``capacity_kwh`` proportionally to ``weights``

    Each share is rounded down to the kWh quantum, so the sum never exceeds the
    capacity. The rounding residual goes to the largest weight (lowest key on
    ties), after which the shares add up to the capacity exactly.

    Args:
        capacity_kwh: Energy to distribute (> 0)
        weights: (key, weight) pairs, every weight > 0

    Returns:
        One Share per input pair, in input order
    """
    if not weights:
        return []

    capacity = quantize_kwh(capacity_kwh)
    total_weight = sum((Decimal(w) for _, w in weights), Decimal("0"))
    if total_weight <= 0:
        raise ValueError("Total allocation weight must be positive")

    shares = []
    for key, weight in weights:
        raw = capacity * Decimal(weight) / total_weight
        shares.append(
            Share(
                key=key,
                weight=Decimal(weight),
                allocated_kwh=raw.quantize(KWH_QUANTUM, rounding=ROUND_DOWN),
                percentage=(Decimal(weight) / total_weight * 100).quantize(
                    PERCENT_QUANTUM, rounding=ROUND_HALF_UP
                ),
            )
        )

    residual = capacity - sum((s.allocated_kwh for s in shares), Decimal("0"))
    if residual:
        largest = min(range(len(shares)), key=lambda i: (-shares[i].weight, shares[i].key))
        shares[largest] = shares[largest]._replace(
            allocated_kwh=shares[largest].allocated_kwh + residual
        )
    return shares


def combine_shares(shares: Sequence[Share]) -> Optional[Share]:
    """Fold the shares of one customer into a single share

    Keeps the key of the heaviest share (lowest key on ties) and sums weight,
    kWh and percentage.
    """
    if not shares:
        return None
    primary = min(shares, key=lambda s: (-s.weight, s.key))
    return Share(
        key=primary.key,
        weight=sum((s.weight for s in shares), Decimal("0")),
        allocated_kwh=sum((s.allocated_kwh for s in shares), Decimal("0")),
        percentage=sum((s.percentage for s in shares), Decimal("0")),
    )


# Billing ----------------------------------------------------------------

class InvoiceAmounts(NamedTuple):
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal


def compute_invoice_amounts(
    energy_kwh: Decimal, unit_price: Decimal, discount_percentage: Decimal
) -> InvoiceAmounts:
    original = quantize_money(Decimal(energy_kwh) * Decimal(unit_price))
    discount = quantize_money(original * Decimal(discount_percentage) / Decimal("100"))
    return InvoiceAmounts(original, discount, original - discount)


# Reconciliation ---------------------------------------------------------

def compute_efficiency(actual_kwh: Decimal, expected_kwh: Decimal) -> Decimal:
    if expected_kwh <= 0:
        raise ValueError("Expected generation must be positive")
    return (Decimal(actual_kwh) / Decimal(expected_kwh)).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP)
