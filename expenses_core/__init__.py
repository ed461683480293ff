"""Core business logic package for the expense wallet."""

from .config import Settings
from .exceptions import AuthenticationError, PersistenceError, RecordNotFoundError, ValidationError
from .filters import ExpenseFilters, ExpensePage
from .models import Expense, InitialAmountEntry, SubExpense
from .services import ExpenseService, InitialAmountService, WalletService
from .stats import WalletStats
from .storage import JSONStorage, MongoStorage, open_store

__all__ = [
    "Expense",
    "SubExpense",
    "InitialAmountEntry",
    "ExpenseFilters",
    "ExpensePage",
    "WalletStats",
    "ExpenseService",
    "InitialAmountService",
    "WalletService",
    "JSONStorage",
    "MongoStorage",
    "open_store",
    "Settings",
    "AuthenticationError",
    "PersistenceError",
    "ValidationError",
    "RecordNotFoundError",
]
