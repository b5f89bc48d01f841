"""Dividamos - Track shared group expenses and settle who owes whom."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .migration import migrate_data
from .models import Balance, Expense, Group, GroupedExpenseData, Transfer
from .service import ExpenseService
from .settlement import compute_balances, compute_transfers, validate_expense
from .store import GitHubStore, LocalFileStore, open_store

__all__ = [
    "Settings",
    "load_settings",
    "migrate_data",
    "Balance",
    "Expense",
    "Group",
    "GroupedExpenseData",
    "Transfer",
    "ExpenseService",
    "compute_balances",
    "compute_transfers",
    "validate_expense",
    "GitHubStore",
    "LocalFileStore",
    "open_store",
]
