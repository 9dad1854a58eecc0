"""
Balance arithmetic for the class fee schedule.

balance(type) = max(0, scheduled(type) - sum of payments of that type)

Everything here is pure; the service feeds it schedules and payment sums read
from the database.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Tuple
from uuid import UUID

from school_admin.core.enums import FeeType

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


def remaining(scheduled, paid) -> Decimal:
    """What may still be paid against one fee type. Never negative."""
    return max(ZERO, money(scheduled) - money(paid))


@dataclass(frozen=True)
class FeeLine:
    fee_type: FeeType
    scheduled: Decimal
    paid: Decimal

    @property
    def balance(self) -> Decimal:
        return remaining(self.scheduled, self.paid)


@dataclass(frozen=True)
class BalanceSheet:
    lines: Tuple[FeeLine, ...]

    @property
    def total_expected(self) -> Decimal:
        return sum((line.scheduled for line in self.lines), ZERO)

    @property
    def total_paid(self) -> Decimal:
        return sum((line.paid for line in self.lines), ZERO)

    @property
    def total_balance(self) -> Decimal:
        # Sum of clamped lines: an overpaid type does not offset another type
        return sum((line.balance for line in self.lines), ZERO)

    def line(self, fee_type: FeeType) -> FeeLine:
        for line in self.lines:
            if line.fee_type is fee_type:
                return line
        raise KeyError(fee_type)


def build_sheet(schedule: Mapping[FeeType, Decimal], paid: Mapping[FeeType, Decimal]) -> BalanceSheet:
    """One line per fee type, in FeeType declaration order."""
    return BalanceSheet(
        lines=tuple(
            FeeLine(fee_type=ft, scheduled=money(schedule.get(ft)), paid=money(paid.get(ft)))
            for ft in FeeType
        )
    )


def sum_by_type(rows: Iterable[Tuple[str, object]]) -> Dict[FeeType, Decimal]:
    """Fold (fee_type label, amount) pairs into per-type totals."""
    totals: Dict[FeeType, Decimal] = defaultdict(lambda: ZERO)
    for label, amount in rows:
        totals[FeeType.parse(label)] += money(amount)
    return dict(totals)


def sum_by_student(rows: Iterable[Tuple[UUID, str, object]]) -> Dict[UUID, Dict[FeeType, Decimal]]:
    """Fold (student_id, fee_type label, amount) rows into per-student, per-type totals."""
    grouped: Dict[UUID, List[Tuple[str, object]]] = defaultdict(list)
    for student_id, label, amount in rows:
        grouped[student_id].append((label, amount))
    return {student_id: sum_by_type(pairs) for student_id, pairs in grouped.items()}
