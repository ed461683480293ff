"""Data models for the expense wallet domain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

__all__ = [
    "ROLES",
    "Expense",
    "InitialAmountEntry",
    "SubExpense",
    "isoformat_utc",
    "parse_datetime",
]

ROLES = ("founder", "manager", "other")

ZERO = Decimal("0.00")


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="seconds")
    # datetime.isoformat renders +00:00 for UTC; replace with the shorter Z form.
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _optional_decimal(raw: Any) -> Optional[Decimal]:
    if raw is None:
        return None
    return Decimal(str(raw))


def _format_amount(amount: Optional[Decimal]) -> Optional[str]:
    return None if amount is None else f"{amount:.2f}"


def _timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw.astimezone(timezone.utc) if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if raw:
        return parse_datetime(str(raw))
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SubExpense:
    id: str
    title: str
    done: bool = False
    amount: Optional[Decimal] = None
    date: Optional[str] = None
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None

    @property
    def amount_or_zero(self) -> Decimal:
        return self.amount if self.amount is not None else ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "done": self.done,
            "amount": _format_amount(self.amount),
            "date": self.date,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubExpense":
        return cls(
            id=str(data["id"]),
            title=data["title"],
            done=bool(data.get("done", False)),
            amount=_optional_decimal(data.get("amount")),
            date=data.get("date"),
            employee_id=data.get("employeeId"),
            employee_name=data.get("employeeName"),
        )


@dataclass(frozen=True)
class Expense:
    id: str
    description: str
    amount: Decimal
    date: str
    week_start: str
    shop: str = ""
    paid: bool = False
    role: str = "other"
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None
    subtasks: List[SubExpense] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def subtasks_total(self) -> Decimal:
        return sum((sub.amount_or_zero for sub in self.subtasks), start=ZERO)

    @property
    def full_amount(self) -> Decimal:
        """Base amount plus every sub-expense amount."""
        return self.amount + self.subtasks_total

    @property
    def is_paid(self) -> bool:
        """Paid when flagged, or when every one of at least one subtask is done."""
        if self.paid:
            return True
        if not self.subtasks:
            return False
        return all(sub.done for sub in self.subtasks)

    def find_subtask(self, subtask_id: str) -> Optional[SubExpense]:
        for sub in self.subtasks:
            if sub.id == subtask_id:
                return sub
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense to JSON-friendly natives."""
        return {
            "id": self.id,
            "description": self.description,
            "amount": f"{self.amount:.2f}",
            "date": self.date,
            "weekStart": self.week_start,
            "shop": self.shop,
            "paid": self.paid,
            "role": self.role,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "subtasks": [sub.to_dict() for sub in self.subtasks],
            "createdAt": isoformat_utc(self.created_at),
            "updatedAt": isoformat_utc(self.updated_at),
        }

    def summary_dict(self) -> Dict[str, Any]:
        """Serialise with the derived totals and paid status included."""
        payload = self.to_dict()
        payload["subExpensesTotal"] = f"{self.subtasks_total:.2f}"
        payload["totalAmount"] = f"{self.full_amount:.2f}"
        payload["isPaid"] = self.is_paid
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        """Hydrate an Expense from stored data."""
        return cls(
            id=str(data["id"]),
            description=data["description"],
            amount=Decimal(str(data["amount"])),
            date=data["date"],
            week_start=data["weekStart"],
            shop=data.get("shop") or "",
            paid=bool(data.get("paid", False)),
            role=data.get("role") or "other",
            employee_id=data.get("employeeId"),
            employee_name=data.get("employeeName"),
            subtasks=[SubExpense.from_dict(sub) for sub in data.get("subtasks") or []],
            created_at=_timestamp(data.get("createdAt")),
            updated_at=_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class InitialAmountEntry:
    id: str
    amount: Decimal
    date: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": f"{self.amount:.2f}",
            "date": self.date,
            "createdAt": isoformat_utc(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InitialAmountEntry":
        return cls(
            id=str(data["id"]),
            amount=Decimal(str(data["amount"])),
            date=data["date"],
            created_at=_timestamp(data.get("createdAt")),
        )
