"""CSV report export for filtered expense lists."""

from __future__ import annotations

import csv
import io
from datetime import date
from typing import List, Mapping, Optional, Sequence

from .exceptions import ValidationError
from .models import ZERO, Expense
from .validators import validate_date

HEADERS = [
    "Date",
    "Shop/Vendor",
    "Description",
    "Role",
    "Employee",
    "Amount (Base)",
    "Sub Expenses Total",
    "Total Expense",
    "Status",
]

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_date(value: Optional[str]) -> str:
    """Render ISO dates as ``05-Mar-2025``; unparseable input is returned as-is."""
    if not value:
        return "-"
    try:
        day = date.fromisoformat(validate_date(value, "date"))
    except ValidationError:
        return value
    return f"{day.day:02d}-{MONTHS[day.month - 1]}-{day.year}"


def report_filename(today: date) -> str:
    return f"expenses_report_{today.isoformat()}.csv"


def _employee_label(
    employee_id: Optional[str], stored_name: Optional[str], employees: Mapping[str, str]
) -> str:
    if not employee_id:
        return "-"
    return employees.get(employee_id) or stored_name or "-"


def build_rows(
    expenses: Sequence[Expense], employees: Optional[Mapping[str, str]] = None
) -> List[List[str]]:
    """Header, one row per expense followed by its sub-expenses, then the grand total."""
    employees = employees or {}
    rows: List[List[str]] = [list(HEADERS)]
    base_total = ZERO
    subs_total = ZERO
    grand_total = ZERO

    for expense in expenses:
        base_total += expense.amount
        subs_total += expense.subtasks_total
        grand_total += expense.full_amount
        rows.append([
            format_date(expense.date),
            expense.shop or "-",
            expense.description,
            expense.role,
            _employee_label(expense.employee_id, expense.employee_name, employees),
            f"{expense.amount:.2f}",
            f"{expense.subtasks_total:.2f}",
            f"{expense.full_amount:.2f}",
            "Done" if expense.is_paid else "Pending",
        ])
        for sub in expense.subtasks:
            rows.append([
                format_date(sub.date),
                "",
                f"  -> {sub.title}",
                expense.role,
                _employee_label(sub.employee_id, sub.employee_name, employees),
                "0.00",
                f"{sub.amount_or_zero:.2f}",
                f"{sub.amount_or_zero:.2f}",
                "Done (Sub)" if sub.done else "Pending (Sub)",
            ])

    rows.append([
        "",
        "",
        "GRAND TOTAL",
        "",
        "",
        f"{base_total:.2f}",
        f"{subs_total:.2f}",
        f"{grand_total:.2f}",
        "",
    ])
    return rows


def export_expenses_csv(
    expenses: Sequence[Expense], employees: Optional[Mapping[str, str]] = None
) -> str:
    if not expenses:
        raise ValidationError("No expenses match the current filters to download.")
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(build_rows(expenses, employees))
    return buffer.getvalue()
