"""Console interface for the expense wallet."""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional, Tuple

from expenses_core.config import Settings, configure_logging
from expenses_core.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from expenses_core.filters import ExpenseFilters, ROWS_PER_PAGE
from expenses_core.models import ROLES, Expense
from expenses_core.services import ExpenseService, InitialAmountService, WalletService
from expenses_core.storage import open_store
from expenses_core.validators import clean_mapping


def _parse_amount(value: str) -> str:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError("Amount must be a numeric value") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError("Amount must be a numeric value")
    if amount < 0:
        raise argparse.ArgumentTypeError("Amount must be zero or more")
    return value


def _parse_employee_label(value: str) -> Tuple[str, str]:
    employee_id, sep, name = value.partition("=")
    if not sep or not employee_id.strip() or not name.strip():
        raise argparse.ArgumentTypeError("Expected ID=NAME")
    return employee_id.strip(), name.strip()


def _load_services(settings: Settings) -> Tuple[WalletService, ExpenseService, InitialAmountService]:
    store = open_store(settings)
    expenses = ExpenseService(store, week_starts_on=settings.week_starts_on)
    budget = InitialAmountService(store, settings.default_initial_amount)
    return WalletService(expenses, budget), expenses, budget


def _format_expense(expense: Expense) -> str:
    status = "paid" if expense.is_paid else "pending"
    employee = expense.employee_name or expense.employee_id or "-"
    lines = [
        f"[{expense.id}] {expense.date} {expense.full_amount:.2f} ({status})",
        f"  {expense.description} | Shop: {expense.shop or '-'} | Role: {expense.role} | Employee: {employee}",
        f"  Base: {expense.amount:.2f} | Sub expenses: {expense.subtasks_total:.2f} | Week: {expense.week_start}",
    ]
    for sub in expense.subtasks:
        mark = "x" if sub.done else " "
        lines.append(f"    [{mark}] {sub.id} {sub.title} {sub.amount_or_zero:.2f} {sub.date or '-'}")
    return "\n".join(lines) + "\n"


def _filters_from_args(args: argparse.Namespace) -> ExpenseFilters:
    return ExpenseFilters.from_mapping({
        "role": args.role,
        "status": args.status,
        "employee": args.employee,
        "shop": args.shop,
        "from": args.date_from,
        "to": args.date_to,
        "search": args.search,
    })


def handle_expense(args: argparse.Namespace, service: ExpenseService, wallet: WalletService) -> None:
    if args.command == "add":
        payload = {
            "description": args.description,
            "amount": args.amount,
            "date": args.date,
            "weekStart": args.week_start,
            "shop": args.shop,
            "role": args.role,
            "employeeId": args.employee_id,
            "employeeName": args.employee_name,
        }
        expense = service.add(clean_mapping(payload))
        print("Expense added:\n" + _format_expense(expense))
    elif args.command == "list":
        page = wallet.view(_filters_from_args(args), args.limit)
        if not page.total:
            print("No expenses found.")
            return
        print(f"Showing {page.visible} of {page.total} expenses:")
        for expense in page.items:
            print(_format_expense(expense))
        if page.has_more:
            print(f"{page.remaining} more; rerun with --limit {page.visible + ROWS_PER_PAGE}")
    elif args.command == "edit":
        changes = {
            "description": args.description,
            "amount": args.amount,
            "date": args.date,
            "weekStart": args.week_start,
            "shop": args.shop,
            "role": args.role,
            "employeeId": args.employee_id,
            "employeeName": args.employee_name,
        }
        cleaned = {k: v for k, v in changes.items() if v is not None}
        expense = service.update(args.id, cleaned)
        print("Expense updated:\n" + _format_expense(expense))
    elif args.command == "show":
        print(_format_expense(service.get(args.id)), end="")
    elif args.command == "delete":
        service.delete(args.id)
        print(f"Expense {args.id} deleted.")
    elif args.command == "pay":
        if args.id:
            expense = service.set_paid_status(args.id, not args.pending, cascade=not args.no_cascade)
            print("Expense updated:\n" + _format_expense(expense))
        else:
            modified = service.mark_paid(week_start=args.week, ids=args.ids or None)
            print(f"Marked {modified} expense(s) as paid.")


def handle_subtask(args: argparse.Namespace, service: ExpenseService) -> None:
    if args.command == "add":
        payload = {
            "title": args.title,
            "amount": args.amount,
            "date": args.date,
            "employeeId": args.employee_id,
            "employeeName": args.employee_name,
        }
        expense = service.add_subtask(args.expense_id, clean_mapping(payload))
    elif args.command == "done":
        expense = service.set_subtask_done(args.expense_id, args.subtask_id, not args.undo)
    elif args.command == "edit":
        changes = {
            "title": args.title,
            "amount": args.amount,
            "date": args.date,
            "employeeId": args.employee_id,
            "employeeName": args.employee_name,
        }
        expense = service.update_subtask(
            args.expense_id, args.subtask_id, {k: v for k, v in changes.items() if v is not None}
        )
    else:
        expense = service.delete_subtask(args.expense_id, args.subtask_id)
    print(_format_expense(expense))


def handle_budget(args: argparse.Namespace, service: InitialAmountService) -> None:
    if args.command == "set":
        entry = service.record({"amount": args.amount, "date": args.date})
        print(f"Initial amount set to {entry.amount:.2f} ({entry.date}).")
    else:
        history = service.history()
        if not history:
            print(f"No budget history; using default {service.current():.2f}.")
            return
        for entry in history:
            print(f"{entry.date}  {entry.amount:.2f}")


def handle_wallet(args: argparse.Namespace, wallet: WalletService) -> None:
    stats = wallet.stats(args.period_start)
    print(f"Period start: {stats.period_start}")
    print(f"Initial amount: {stats.initial_amount:.2f}")
    print(f"Spent: {stats.spent:.2f}")
    print(f"Pending: {stats.pending:.2f}")
    print(f"Remaining: {stats.remaining:.2f}")


def handle_export(args: argparse.Namespace, wallet: WalletService) -> None:
    employees = dict(args.employee_label or [])
    content = wallet.export_csv(_filters_from_args(args), employees)
    if args.output:
        args.output.write_text(content, encoding="utf-8")
        print(f"Report written to {args.output}")
    else:
        sys.stdout.write(content)


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--role", choices=ROLES)
    parser.add_argument("--status", choices=("all", "paid", "unpaid"), default="all")
    parser.add_argument("--employee")
    parser.add_argument("--shop")
    parser.add_argument("--from", dest="date_from")
    parser.add_argument("--to", dest="date_to")
    parser.add_argument("--search")


def _add_employee_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--employee-id")
    parser.add_argument("--employee-name")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Expense Wallet CLI")
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory to store JSON data (default: EXPENSE_WALLET_DATA_DIR or ./data)",
    )

    subparsers = parser.add_subparsers(dest="entity", required=True)

    expense_parser = subparsers.add_parser("expense", help="Manage expenses")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Add a new expense")
    expense_add.add_argument("description")
    expense_add.add_argument("amount", type=_parse_amount)
    expense_add.add_argument("date")
    expense_add.add_argument("--week-start")
    expense_add.add_argument("--shop")
    expense_add.add_argument("--role", choices=ROLES, default="other")
    _add_employee_arguments(expense_add)

    expense_list = expense_sub.add_parser("list", help="List expenses")
    _add_filter_arguments(expense_list)
    expense_list.add_argument("--limit", type=int)

    expense_edit = expense_sub.add_parser("edit", help="Edit an existing expense")
    expense_edit.add_argument("id")
    expense_edit.add_argument("--description")
    expense_edit.add_argument("--amount", type=_parse_amount)
    expense_edit.add_argument("--date")
    expense_edit.add_argument("--week-start")
    expense_edit.add_argument("--shop")
    expense_edit.add_argument("--role", choices=ROLES)
    _add_employee_arguments(expense_edit)

    expense_show = expense_sub.add_parser("show", help="Show one expense with its sub expenses")
    expense_show.add_argument("id")

    expense_delete = expense_sub.add_parser("delete", help="Delete an expense")
    expense_delete.add_argument("id")

    expense_pay = expense_sub.add_parser("pay", help="Mark expenses as paid")
    target = expense_pay.add_mutually_exclusive_group(required=True)
    target.add_argument("--id", help="Single expense to update")
    target.add_argument("--week", help="Mark every unpaid expense of this week start")
    target.add_argument("--ids", nargs="+", help="Mark these unpaid expenses")
    expense_pay.add_argument("--pending", action="store_true", help="With --id, mark as pending instead")
    expense_pay.add_argument("--no-cascade", action="store_true", help="With --id, leave sub expenses untouched")

    sub_parser = subparsers.add_parser("sub", help="Manage sub expenses")
    sub_sub = sub_parser.add_subparsers(dest="command", required=True)

    sub_add = sub_sub.add_parser("add", help="Add a sub expense")
    sub_add.add_argument("expense_id")
    sub_add.add_argument("title")
    sub_add.add_argument("amount", type=_parse_amount)
    sub_add.add_argument("--date")
    _add_employee_arguments(sub_add)

    sub_done = sub_sub.add_parser("done", help="Mark a sub expense done")
    sub_done.add_argument("expense_id")
    sub_done.add_argument("subtask_id")
    sub_done.add_argument("--undo", action="store_true", help="Mark as pending instead")

    sub_edit = sub_sub.add_parser("edit", help="Edit a sub expense")
    sub_edit.add_argument("expense_id")
    sub_edit.add_argument("subtask_id")
    sub_edit.add_argument("--title")
    sub_edit.add_argument("--amount", type=_parse_amount)
    sub_edit.add_argument("--date")
    _add_employee_arguments(sub_edit)

    sub_delete = sub_sub.add_parser("delete", help="Delete a sub expense")
    sub_delete.add_argument("expense_id")
    sub_delete.add_argument("subtask_id")

    budget_parser = subparsers.add_parser("budget", help="Manage the initial amount")
    budget_sub = budget_parser.add_subparsers(dest="command", required=True)
    budget_set = budget_sub.add_parser("set", help="Record a new initial amount")
    budget_set.add_argument("amount", type=_parse_amount)
    budget_set.add_argument("date")
    budget_sub.add_parser("history", help="Show initial amount history")

    wallet_parser = subparsers.add_parser("wallet", help="Show spent/pending/remaining")
    wallet_parser.add_argument("--period-start")

    export_parser = subparsers.add_parser("export", help="Export filtered expenses as CSV")
    _add_filter_arguments(export_parser)
    export_parser.add_argument("--output", type=Path)
    export_parser.add_argument(
        "--employee-label",
        type=_parse_employee_label,
        action="append",
        metavar="ID=NAME",
        help="Name to print for an employee id (repeatable)",
    )

    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = settings or Settings.from_env()
    if args.data_dir is not None:
        settings = replace(settings, data_dir=args.data_dir, storage_backend="json")
    configure_logging(settings.log_level)

    try:
        wallet, expense_service, budget_service = _load_services(settings)
        if args.entity == "expense":
            handle_expense(args, expense_service, wallet)
        elif args.entity == "sub":
            handle_subtask(args, expense_service)
        elif args.entity == "budget":
            handle_budget(args, budget_service)
        elif args.entity == "wallet":
            handle_wallet(args, wallet)
        elif args.entity == "export":
            handle_export(args, wallet)
        else:  # pragma: no cover - argparse should prevent this
            parser.error(f"Unknown entity: {args.entity}")
            return 2
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
