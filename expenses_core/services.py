"""Framework-agnostic business services for the expense wallet."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import DEFAULT_INITIAL_AMOUNT
from .exceptions import RecordNotFoundError, ValidationError
from .export import export_expenses_csv
from .filters import ExpenseFilters, ExpensePage, filter_expenses, paginate
from .models import Expense, InitialAmountEntry, SubExpense, isoformat_utc
from .stats import (
    EmployeeHistory,
    WalletStats,
    WeekSummary,
    compute_wallet_stats,
    current_initial_amount,
    employee_history,
    shop_suggestions,
)
from .validators import (
    new_record_id,
    normalize_employee_id,
    normalize_role,
    normalize_sub_expense,
    normalize_sub_expenses,
    parse_amount,
    parse_optional_amount,
    require_manager_employee,
    validate_date,
    validate_optional_date,
    validate_optional_str,
    validate_record_id,
    validate_required_str,
)
from .week import get_month_start, get_week_start

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "description",
    "amount",
    "date",
    "shop",
    "paid",
    "weekStart",
    "subtasks",
    "role",
    "employeeId",
    "employeeName",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _newest_first(records):
    """Order by ``created_at`` descending; later-stored records win ties."""
    ranked = sorted(enumerate(records), key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
    return [record for _, record in ranked]


class ExpenseService:
    """Manages expense records and their sub-expenses in the document store."""

    collection = "expenses"

    def __init__(self, store, *, week_starts_on: str = "sunday") -> None:
        self._store = store
        self._week_starts_on = week_starts_on

    # Queries ------------------------------------------------------------
    def list(self) -> List[Expense]:
        """All expenses, most recently created first."""
        return _newest_first([Expense.from_dict(doc) for doc in self._store.find(self.collection)])

    def week(self, week_start: object) -> WeekSummary:
        week_start = validate_date(week_start, "weekStart")
        docs = self._store.find(self.collection, weekStart=week_start)
        items = sorted((Expense.from_dict(doc) for doc in docs), key=lambda exp: exp.date, reverse=True)
        return WeekSummary(week_start=week_start, items=items)

    def get(self, expense_id: str) -> Expense:
        """Return an expense or raise if it does not exist."""
        return self._get_or_raise(expense_id)

    # Mutations ----------------------------------------------------------
    def add(self, payload: Mapping[str, Any]) -> Expense:
        description = validate_required_str(payload.get("description"), "description", 200)
        amount = parse_amount(payload.get("amount"), "amount", allow_zero=True)
        expense_date = validate_date(payload.get("date"), "date")
        week_start = (
            validate_optional_date(payload.get("weekStart"), "weekStart")
            or get_week_start(expense_date, self._week_starts_on)
        )
        role = normalize_role(payload.get("role"))
        employee_id = normalize_employee_id(payload.get("employeeId"))
        employee_name = validate_optional_str(payload.get("employeeName"), "employeeName", 100)
        require_manager_employee(role, employee_id, employee_name, require_name=True)

        now = _now()
        expense = Expense(
            id=new_record_id(),
            description=description,
            amount=amount,
            date=expense_date,
            week_start=week_start,
            shop=validate_optional_str(payload.get("shop"), "shop", 100) or "",
            paid=False,
            role=role,
            employee_id=employee_id,
            employee_name=employee_name,
            subtasks=normalize_sub_expenses(payload.get("subtasks")),
            created_at=now,
            updated_at=now,
        )
        self._store.insert(self.collection, expense.to_dict())
        return expense

    def update(self, expense_id: str, updates: Mapping[str, Any]) -> Expense:
        """Apply a partial update; keys outside UPDATABLE_FIELDS are ignored."""
        if not isinstance(updates, Mapping):
            raise ValidationError("Provide id and updates object")
        existing = self._get_or_raise(expense_id)
        changes = self._normalize_updates(updates)
        if not changes:
            raise ValidationError("No valid fields to update")

        if "date" in changes and "week_start" not in changes:
            changes["week_start"] = get_week_start(changes["date"], self._week_starts_on)

        updated = replace(existing, **changes)
        require_manager_employee(updated.role, updated.employee_id)
        return self._save(updated)

    def delete(self, expense_id: str) -> Expense:
        expense_id = validate_record_id(expense_id)
        removed = self._store.delete(self.collection, expense_id)
        if removed is None:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        logger.info("Deleted expense %s", expense_id)
        return Expense.from_dict(removed)

    def mark_paid(self, *, week_start: object = None, ids: object = None) -> int:
        """Flag every unpaid expense of a week (or of an id list) as paid."""
        id_list = [str(i) for i in ids] if isinstance(ids, (list, tuple)) else None
        if not week_start and not id_list:
            raise ValidationError("Provide weekStart or ids array")

        changes = {"paid": True, "updatedAt": isoformat_utc(_now())}
        if week_start:
            week_start = validate_date(week_start, "weekStart")
            modified = self._store.update_many(
                self.collection, {"weekStart": week_start, "paid": False}, changes
            )
        else:
            modified = self._store.update_many(self.collection, {"paid": False}, changes, ids=id_list)
        logger.info("Marked %d expense(s) as paid", modified)
        return modified

    def set_paid_status(self, expense_id: str, paid: bool, *, cascade: bool = True) -> Expense:
        """Set the paid flag; marking paid with ``cascade`` also completes every subtask."""
        expense = self._get_or_raise(expense_id)
        subtasks = expense.subtasks
        if cascade and paid:
            subtasks = [replace(sub, done=True) for sub in subtasks]
        return self._save(replace(expense, paid=bool(paid), subtasks=subtasks))

    def add_subtask(self, expense_id: str, payload: Mapping[str, Any]) -> Expense:
        """Prepend a sub-expense; it starts done when the parent already counts as paid."""
        parent = self._get_or_raise(expense_id)
        data = dict(payload)
        data.pop("id", None)
        data["done"] = parent.is_paid
        data["amount"] = parse_amount(payload.get("amount"), "amount", allow_zero=True)
        sub = normalize_sub_expense(data)
        if sub is None:
            raise ValidationError("Sub expense title is required")
        return self._save(replace(parent, subtasks=[sub, *parent.subtasks], paid=False))

    def update_subtask(self, expense_id: str, subtask_id: str, changes: Mapping[str, Any]) -> Expense:
        parent = self._get_or_raise(expense_id)
        current = self._subtask_or_raise(parent, subtask_id)
        edits: Dict[str, Any] = {}
        if "title" in changes:
            edits["title"] = validate_required_str(changes.get("title"), "title", 200)
        if "amount" in changes:
            edits["amount"] = parse_optional_amount(changes.get("amount"), "amount")
        if "date" in changes:
            edits["date"] = validate_optional_date(changes.get("date"), "date")
        if "employeeId" in changes:
            edits["employee_id"] = normalize_employee_id(changes.get("employeeId"))
            if edits["employee_id"] is None:
                edits["employee_name"] = None
        if "employeeName" in changes:
            edits["employee_name"] = validate_optional_str(changes.get("employeeName"), "employeeName", 100)
        if "done" in changes:
            return self.set_subtask_done(
                expense_id, subtask_id, bool(changes["done"]), extra=edits
            )
        if not edits:
            raise ValidationError("No valid fields to update")
        edited = replace(current, **edits)
        subtasks = [edited if sub.id == subtask_id else sub for sub in parent.subtasks]
        return self._save(replace(parent, subtasks=subtasks))

    def set_subtask_done(
        self, expense_id: str, subtask_id: str, done: bool, *, extra: Optional[Dict[str, Any]] = None
    ) -> Expense:
        """Toggle one subtask; completing the last open one flags the parent as paid."""
        parent = self._get_or_raise(expense_id)
        current = self._subtask_or_raise(parent, subtask_id)
        edited = replace(current, done=bool(done), **(extra or {}))
        subtasks = [edited if sub.id == subtask_id else sub for sub in parent.subtasks]
        paid = parent.paid or all(sub.done for sub in subtasks)
        return self._save(replace(parent, subtasks=subtasks, paid=paid))

    def delete_subtask(self, expense_id: str, subtask_id: str) -> Expense:
        parent = self._get_or_raise(expense_id)
        self._subtask_or_raise(parent, subtask_id)
        subtasks = [sub for sub in parent.subtasks if sub.id != subtask_id]
        return self._save(replace(parent, subtasks=subtasks))

    # Internal helpers ---------------------------------------------------
    def _save(self, expense: Expense) -> Expense:
        expense = replace(expense, updated_at=_now())
        if not self._store.replace(self.collection, expense.id, expense.to_dict()):
            raise RecordNotFoundError(f"Expense {expense.id} not found")
        return expense

    def _get_or_raise(self, expense_id: str) -> Expense:
        expense_id = validate_record_id(expense_id)
        document = self._store.get(self.collection, expense_id)
        if document is None:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        return Expense.from_dict(document)

    @staticmethod
    def _subtask_or_raise(parent: Expense, subtask_id: str) -> SubExpense:
        sub = parent.find_subtask(subtask_id)
        if sub is None:
            raise RecordNotFoundError(f"Sub expense {subtask_id} not found on expense {parent.id}")
        return sub

    @staticmethod
    def _normalize_updates(updates: Mapping[str, Any]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        for key in UPDATABLE_FIELDS:
            if key not in updates:
                continue
            value = updates[key]
            if key == "description":
                changes["description"] = validate_required_str(value, "description", 200)
            elif key == "amount":
                changes["amount"] = parse_amount(value, "amount", allow_zero=True)
            elif key == "date":
                changes["date"] = validate_date(value, "date")
            elif key == "weekStart":
                changes["week_start"] = validate_date(value, "weekStart")
            elif key == "shop":
                changes["shop"] = validate_optional_str(value, "shop", 100) or ""
            elif key == "paid":
                changes["paid"] = bool(value)
            elif key == "subtasks":
                changes["subtasks"] = normalize_sub_expenses(value)
            elif key == "role":
                changes["role"] = normalize_role(value)
            elif key == "employeeId":
                changes["employee_id"] = normalize_employee_id(value)
            elif key == "employeeName":
                changes["employee_name"] = validate_optional_str(value, "employeeName", 100)
        return changes


class InitialAmountService:
    """Append-only log of budget ("initial amount") entries."""

    collection = "initial_amount_history"

    def __init__(self, store, default_amount: Decimal = DEFAULT_INITIAL_AMOUNT) -> None:
        self._store = store
        self._default_amount = default_amount

    def history(self) -> List[InitialAmountEntry]:
        return _newest_first([InitialAmountEntry.from_dict(doc) for doc in self._store.find(self.collection)])

    def current(self) -> Decimal:
        return current_initial_amount(self.history(), self._default_amount)

    def record(self, payload: Mapping[str, Any]) -> InitialAmountEntry:
        try:
            amount = parse_amount(payload.get("amount"), "amount", allow_zero=True)
        except ValidationError as exc:
            raise ValidationError("Invalid amount provided.") from exc
        if not payload.get("date"):
            raise ValidationError("Date is required.")
        entry_date = validate_date(payload["date"], "date")

        entry = InitialAmountEntry(id=new_record_id(), amount=amount, date=entry_date, created_at=_now())
        self._store.insert(self.collection, entry.to_dict())
        logger.info("Initial amount set to %s", entry.amount)
        return entry


class WalletService:
    """Aggregates expenses and the budget log into derived views."""

    def __init__(self, expense_service: ExpenseService, budget_service: InitialAmountService) -> None:
        self._expenses = expense_service
        self._budget = budget_service

    def stats(self, period_start: object = None, *, today: Optional[date] = None) -> WalletStats:
        """Spent/pending/remaining for expenses dated on or after ``period_start``."""
        if period_start:
            start = validate_date(period_start, "periodStart")
        else:
            start = get_month_start(today or _now().date())
        return compute_wallet_stats(self._expenses.list(), self._budget.current(), start)

    def view(self, filters: Optional[ExpenseFilters] = None, visible: Optional[int] = None) -> ExpensePage:
        return paginate(filter_expenses(self._expenses.list(), filters), visible)

    def export_csv(
        self, filters: Optional[ExpenseFilters] = None, employees: Optional[Mapping[str, str]] = None
    ) -> str:
        return export_expenses_csv(filter_expenses(self._expenses.list(), filters), employees)

    def employee_history(self, employee_id: str) -> EmployeeHistory:
        return employee_history(self._expenses.list(), employee_id)

    def shops(self) -> List[str]:
        return shop_suggestions(self._expenses.list())
