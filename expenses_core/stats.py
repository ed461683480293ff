"""Budget and history aggregations derived from expense lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence

from .models import ZERO, Expense, InitialAmountEntry


@dataclass(frozen=True)
class WalletStats:
    initial_amount: Decimal
    period_start: str
    spent: Decimal = ZERO
    pending: Decimal = ZERO

    @property
    def remaining(self) -> Decimal:
        return self.initial_amount - self.spent

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initialAmount": f"{self.initial_amount:.2f}",
            "periodStart": self.period_start,
            "spent": f"{self.spent:.2f}",
            "pending": f"{self.pending:.2f}",
            "remaining": f"{self.remaining:.2f}",
        }


def compute_wallet_stats(
    expenses: Iterable[Expense], initial_amount: Decimal, period_start: str
) -> WalletStats:
    """Split period spending into paid and pending totals."""
    spent = ZERO
    pending = ZERO
    for expense in expenses:
        if expense.date < period_start:
            continue
        if expense.is_paid:
            spent += expense.full_amount
        else:
            pending += expense.full_amount
    return WalletStats(
        initial_amount=initial_amount, period_start=period_start, spent=spent, pending=pending
    )


def current_initial_amount(history: Sequence[InitialAmountEntry], default: Decimal) -> Decimal:
    """Newest entry wins; ``history`` is expected newest first."""
    if not history:
        return default
    return history[0].amount


def total_amount(expenses: Iterable[Expense]) -> Decimal:
    return sum((expense.full_amount for expense in expenses), start=ZERO)


def shop_suggestions(expenses: Iterable[Expense]) -> List[str]:
    """Unique non-blank shop names in first-seen order."""
    seen = set()
    shops: List[str] = []
    for expense in expenses:
        shop = (expense.shop or "").strip()
        if not shop or shop in seen:
            continue
        seen.add(shop)
        shops.append(shop)
    return shops


def paid_history(expenses: Iterable[Expense]) -> List[Expense]:
    return sorted((e for e in expenses if e.is_paid), key=lambda exp: exp.date, reverse=True)


@dataclass(frozen=True)
class EmployeeHistory:
    employee_id: str
    items: List[Expense] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return total_amount(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "employeeId": self.employee_id,
            "items": [expense.summary_dict() for expense in self.items],
            "total": f"{self.total:.2f}",
        }


def employee_history(expenses: Iterable[Expense], employee_id: str) -> EmployeeHistory:
    items = [e for e in paid_history(expenses) if e.employee_id == employee_id]
    return EmployeeHistory(employee_id=employee_id, items=items)


@dataclass(frozen=True)
class WeekSummary:
    week_start: str
    items: List[Expense] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return total_amount(self.items)

    @property
    def shops(self) -> List[str]:
        return shop_suggestions(self.items)
