"""Flask REST API exposing the expense wallet services."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS

from expenses_core.config import Settings
from expenses_core.exceptions import (
    AuthenticationError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from expenses_core.export import report_filename
from expenses_core.filters import ExpenseFilters
from expenses_core.services import ExpenseService, InitialAmountService, WalletService
from expenses_core.storage import open_store

from .auth import extract_token, is_protected, verify_token


def create_app(settings: Optional[Settings] = None, store=None) -> Flask:
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    app.logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    if settings.is_dev:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    elif settings.allowed_origins:
        CORS(app, resources={r"/*": {"origins": list(settings.allowed_origins)}}, supports_credentials=True)
    else:
        CORS(app)

    if not settings.jwt_secret:
        if not settings.is_dev:
            raise RuntimeError("JWT_SECRET must be set outside the dev environment")
        app.logger.warning("JWT_SECRET is not set; token checks are disabled")

    store = store if store is not None else open_store(settings)
    expense_service = ExpenseService(store, week_starts_on=settings.week_starts_on)
    budget_service = InitialAmountService(store, settings.default_initial_amount)
    wallet = WalletService(expense_service, budget_service)

    def _success(payload: Any, status: int = 200, **extra: Any):
        body: Dict[str, Any] = {"success": True, "data": payload}
        body.update(extra)
        return jsonify(body), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"success": False, "error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(AuthenticationError)
    def handle_auth_error(exc: AuthenticationError):
        return _handle_error(exc, 401, str(exc))

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    @app.before_request
    def authenticate():
        if request.method == "OPTIONS" or not settings.jwt_secret or not is_protected(request.path):
            return None
        token = extract_token(request.headers, request.cookies)
        g.token_claims = verify_token(token, settings.jwt_secret)
        return None

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _visible_arg() -> Optional[int]:
        raw = request.args.get("visible")
        if raw in (None, ""):
            return None
        try:
            return int(raw)
        except ValueError as exc:
            raise ValidationError("visible must be an integer") from exc

    @app.get("/api/health")
    def health():
        return _success({"status": "ok", "storage": settings.storage_backend})

    @app.get("/api/expenses")
    def list_expenses():
        week_start = request.args.get("weekStart")
        if week_start:
            summary = expense_service.week(week_start)
            return _success(
                [expense.summary_dict() for expense in summary.items],
                weekTotal=f"{summary.total:.2f}",
                shops=summary.shops,
            )
        expenses = expense_service.list()
        return _success(
            [expense.summary_dict() for expense in expenses],
            shops=wallet.shops(),
        )

    @app.post("/api/expenses")
    def create_expense():
        expense = expense_service.add(_json_body())
        return _success(expense.summary_dict(), 201)

    @app.put("/api/expenses")
    def mark_expenses_paid():
        payload = _json_body()
        modified = expense_service.mark_paid(
            week_start=payload.get("weekStart"), ids=payload.get("ids")
        )
        return jsonify({"success": True, "modifiedCount": modified}), 200

    @app.patch("/api/expenses")
    def patch_expense():
        payload = _json_body()
        expense_id = payload.get("id")
        updates = payload.get("updates")
        if not expense_id or not isinstance(updates, dict):
            raise ValidationError("Provide id and updates object")
        expense = expense_service.update(expense_id, updates)
        return _success(expense.summary_dict())

    @app.delete("/api/expenses")
    def delete_expense():
        expense_id = None
        if request.is_json:
            body = request.get_json(silent=True) or {}
            if isinstance(body, dict) and isinstance(body.get("id"), str) and body["id"].strip():
                expense_id = body["id"].strip()
        if not expense_id:
            expense_id = (request.args.get("id") or "").strip() or None
        if not expense_id:
            raise ValidationError("Missing id (in body or query param)")
        removed = expense_service.delete(expense_id)
        return _success(removed.to_dict())

    @app.put("/api/expenses/<expense_id>/paid")
    def set_paid_status(expense_id: str):
        payload = _json_body()
        if not isinstance(payload.get("paid"), bool):
            raise ValidationError("paid must be a boolean")
        expense = expense_service.set_paid_status(
            expense_id, payload["paid"], cascade=bool(payload.get("cascade", True))
        )
        return _success(expense.summary_dict())

    @app.post("/api/expenses/<expense_id>/subtasks")
    def add_subtask(expense_id: str):
        expense = expense_service.add_subtask(expense_id, _json_body())
        return _success(expense.summary_dict(), 201)

    @app.patch("/api/expenses/<expense_id>/subtasks/<subtask_id>")
    def update_subtask(expense_id: str, subtask_id: str):
        expense = expense_service.update_subtask(expense_id, subtask_id, _json_body())
        return _success(expense.summary_dict())

    @app.delete("/api/expenses/<expense_id>/subtasks/<subtask_id>")
    def delete_subtask(expense_id: str, subtask_id: str):
        expense = expense_service.delete_subtask(expense_id, subtask_id)
        return _success(expense.summary_dict())

    @app.get("/api/expenses/view")
    def view_expenses():
        filters = ExpenseFilters.from_mapping(request.args)
        page = wallet.view(filters, _visible_arg())
        return _success(page.to_dict())

    @app.get("/api/expenses/export")
    def export_expenses():
        filters = ExpenseFilters.from_mapping(request.args)
        content = wallet.export_csv(filters)
        filename = report_filename(datetime.now(timezone.utc).date())
        return Response(
            content,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.get("/api/wallet")
    def wallet_stats():
        stats = wallet.stats(request.args.get("periodStart"))
        return _success(stats.to_dict())

    @app.get("/api/employees/<employee_id>/history")
    def employee_history(employee_id: str):
        return _success(wallet.employee_history(employee_id).to_dict())

    @app.get("/api/initial-amount")
    def initial_amount_history():
        history = budget_service.history()
        return _success([entry.to_dict() for entry in history])

    @app.post("/api/initial-amount")
    def record_initial_amount():
        entry = budget_service.record(_json_body())
        return _success(entry.to_dict(), 201)

    return app
