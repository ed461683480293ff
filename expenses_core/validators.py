"""Validation helpers shared across expense wallet services."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from bson import ObjectId

from .exceptions import ValidationError
from .models import ROLES, SubExpense, parse_datetime


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def parse_amount(raw: object, field: str, *, allow_zero: bool = False) -> Decimal:
    """Convert raw input to a non-negative Decimal with exactly two fraction digits."""
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:  # type: ignore[arg-type]
        raise ValidationError(f"{field} must be a numeric value") from exc

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a numeric value")
    if amount < 0 or (amount == 0 and not allow_zero):
        bound = "zero or more" if allow_zero else "greater than zero"
        raise ValidationError(f"{field} must be {bound}")

    try:
        return _quantize_two_decimals(amount)
    except InvalidOperation as exc:
        raise ValidationError(f"{field} must be a numeric value") from exc


def parse_optional_amount(raw: object, field: str) -> Optional[Decimal]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    return parse_amount(raw, field, allow_zero=True)


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> Optional[str]:
    """Return a trimmed string, or None for missing and blank values."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    if not value.strip():
        return None
    return validate_required_str(value, field, max_length)


def validate_date(value: object, field: str) -> str:
    """Normalise a date, datetime or ISO string into YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required as an ISO date (YYYY-MM-DD)")
    raw = value.strip()
    try:
        return date.fromisoformat(raw).isoformat()
    except ValueError:
        pass
    try:
        return parse_datetime(raw).date().isoformat()
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)") from exc


def validate_optional_date(value: object, field: str) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_date(value, field)


def validate_enum(value: object, field: str, allowed: Iterable[str]) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    canonical = value.strip().lower()
    if canonical not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")
    return canonical


def normalize_role(value: object) -> str:
    """Map unknown or missing roles onto ``other``."""
    if not isinstance(value, str):
        return "other"
    canonical = value.strip().lower()
    return canonical if canonical in ROLES else "other"


def normalize_employee_id(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_record_id(value: object, label: str = "Expense") -> str:
    if not isinstance(value, str) or not ObjectId.is_valid(value.strip()):
        raise ValidationError(f"Invalid {label} ID format")
    return value.strip()


def new_record_id() -> str:
    return str(ObjectId())


def new_subtask_id() -> str:
    return uuid4().hex[:8]


def normalize_sub_expense(raw: object) -> Optional[SubExpense]:
    """Build a SubExpense from loosely-typed input; entries without a title are dropped."""
    if not isinstance(raw, dict):
        return None
    title = raw.get("title")
    title = title.strip() if isinstance(title, str) else ""
    if not title:
        return None

    raw_id = raw.get("id")
    sub_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else new_subtask_id()

    return SubExpense(
        id=sub_id,
        title=title,
        done=bool(raw.get("done", False)),
        amount=parse_optional_amount(raw.get("amount"), "subtask amount"),
        date=validate_optional_date(raw.get("date"), "subtask date"),
        employee_id=normalize_employee_id(raw.get("employeeId")),
        employee_name=validate_optional_str(raw.get("employeeName"), "subtask employeeName", 100),
    )


def normalize_sub_expenses(raw: object) -> List[SubExpense]:
    if not isinstance(raw, list):
        return []
    normalized: List[SubExpense] = []
    for entry in raw:
        sub = normalize_sub_expense(entry)
        if sub is not None:
            normalized.append(sub)
    return normalized


def require_manager_employee(role: str, employee_id: Optional[str], employee_name: Optional[str] = None,
                             *, require_name: bool = False) -> None:
    if role != "manager":
        return
    if not employee_id or (require_name and not employee_name):
        raise ValidationError("Employee ID and Name are required for Manager role.")


def clean_mapping(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose values are None or blank strings."""
    return {k: v for k, v in raw.items() if v not in (None, "")}
