"""Filtering and incremental pagination over expense lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from .exceptions import ValidationError
from .models import ROLES, Expense
from .validators import validate_enum, validate_optional_date

STATUSES = ("all", "paid", "unpaid")

INITIAL_ROWS = 5
ROWS_PER_PAGE = 10


def _selected(value: Any) -> Optional[str]:
    """Treat missing, blank and ``all`` as no selection."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == "all":
        return None
    return text


@dataclass(frozen=True)
class ExpenseFilters:
    role: Optional[str] = None
    status: str = "all"
    employee_id: Optional[str] = None
    shop: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    search: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "ExpenseFilters":
        """Build filters from query-string style input (``from``/``to``/``employee`` keys)."""
        role = _selected(raw.get("role"))
        status = _selected(raw.get("status")) or "all"
        date_from = validate_optional_date(raw.get("from"), "from")
        date_to = validate_optional_date(raw.get("to"), "to")
        if date_from and date_to and date_from > date_to:
            raise ValidationError("from must not be later than to")
        search = raw.get("search")
        return cls(
            role=validate_enum(role, "role", ROLES) if role else None,
            status=validate_enum(status, "status", STATUSES),
            employee_id=_selected(raw.get("employee")),
            shop=_selected(raw.get("shop")),
            date_from=date_from,
            date_to=date_to,
            search=search.strip() if isinstance(search, str) and search.strip() else None,
        )

    def matches(self, expense: Expense) -> bool:
        paid = expense.is_paid
        if self.role and expense.role != self.role:
            return False
        if self.status == "paid" and not paid:
            return False
        if self.status == "unpaid" and paid:
            return False
        if self.employee_id and expense.employee_id != self.employee_id:
            return False
        if self.shop and expense.shop != self.shop:
            return False
        if self.date_from and expense.date < self.date_from:
            return False
        if self.date_to and expense.date > self.date_to:
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in expense.description.lower() and needle not in (expense.shop or "").lower():
                return False
        return True


def filter_expenses(expenses: Iterable[Expense], filters: Optional[ExpenseFilters] = None) -> List[Expense]:
    """Return matching expenses ordered by date, oldest first."""
    filters = filters or ExpenseFilters()
    matched = [expense for expense in expenses if filters.matches(expense)]
    return sorted(matched, key=lambda exp: exp.date)


def next_visible_count(current: int, total: int) -> int:
    """Row count after one "load more" step."""
    return min(current + ROWS_PER_PAGE, total)


@dataclass(frozen=True)
class ExpensePage:
    items: List[Expense] = field(default_factory=list)
    visible: int = 0
    total: int = 0

    @property
    def has_more(self) -> bool:
        return self.visible < self.total

    @property
    def remaining(self) -> int:
        return max(self.total - self.visible, 0)

    def to_dict(self) -> dict:
        return {
            "items": [expense.summary_dict() for expense in self.items],
            "visible": self.visible,
            "total": self.total,
            "hasMore": self.has_more,
            "remaining": self.remaining,
            "nextVisible": next_visible_count(self.visible, self.total),
        }


def paginate(expenses: List[Expense], visible: Optional[int] = None) -> ExpensePage:
    """Slice the first ``visible`` rows; defaults to the initial window."""
    count = INITIAL_ROWS if visible is None else visible
    if count < 0:
        raise ValidationError("visible must be zero or more")
    count = min(count, len(expenses))
    return ExpensePage(items=list(expenses[:count]), visible=count, total=len(expenses))
