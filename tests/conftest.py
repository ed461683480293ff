from decimal import Decimal

import jwt
import pytest

from expenses_api.app import create_app
from expenses_core.config import Settings
from expenses_core.models import Expense, SubExpense
from expenses_core.services import ExpenseService, InitialAmountService, WalletService
from expenses_core.storage import JSONStorage

SECRET = "test-secret"


@pytest.fixture
def store(tmp_path):
    return JSONStorage(tmp_path / "data")


@pytest.fixture
def expense_service(store):
    return ExpenseService(store)


@pytest.fixture
def budget_service(store):
    return InitialAmountService(store, Decimal("500000.00"))


@pytest.fixture
def wallet(expense_service, budget_service):
    return WalletService(expense_service, budget_service)


@pytest.fixture
def settings(tmp_path):
    return Settings(env="test", jwt_secret=SECRET, data_dir=tmp_path / "data")


@pytest.fixture
def app(settings, store):
    app = create_app(settings, store=store)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def token():
    return jwt.encode({"id": "user-1", "role": "ADMIN"}, SECRET, algorithm="HS256")


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_expense():
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        subtasks = [
            SubExpense(**sub) if isinstance(sub, dict) else sub
            for sub in overrides.pop("subtasks", [])
        ]
        data = {
            "id": f"exp-{counter['n']}",
            "description": f"Expense {counter['n']}",
            "amount": Decimal("100.00"),
            "date": "2025-03-05",
            "week_start": "2025-03-02",
        }
        data.update(overrides)
        if not isinstance(data["amount"], Decimal):
            data["amount"] = Decimal(str(data["amount"]))
        return Expense(subtasks=subtasks, **data)

    return _make
