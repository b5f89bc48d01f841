"""Service layer that composes storage and settlement operations.

Mutations are read-modify-write against the store: load the document, apply
the change, and save conditioned on the version that was loaded. Conflicting
writes are retried against a fresh copy of the document.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TypeVar

from .exceptions import StoreConflictError, ValidationError
from .models import Balance, Expense, Group, GroupedExpenseData, Transfer
from .settlement import compute_balances, compute_transfers, validate_expense
from .store import ExpenseStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExpenseService:
    """Service for managing groups, friends and expenses."""

    def __init__(self, store: ExpenseStore, conflict_retries: int = 2):
        """Initialize the expense service."""
        self.store = store
        self.conflict_retries = conflict_retries

    def _update(self, mutate: Callable[[GroupedExpenseData], T]) -> T:
        """Apply `mutate` to a fresh document and save it, retrying on conflict."""
        attempt = 0
        while True:
            snapshot = self.store.load()
            result = mutate(snapshot.data)
            try:
                self.store.save(snapshot.data, snapshot.version)
                return result
            except StoreConflictError:
                if attempt >= self.conflict_retries:
                    raise
                attempt += 1
                logger.warning(
                    f"Store changed during update, retrying "
                    f"({attempt}/{self.conflict_retries})"
                )

    # ========================================================================
    # Queries
    # ========================================================================

    def list_groups(self) -> list[Group]:
        """List all groups."""
        return self.store.load().data.groups

    def get_group(self, group_id: str) -> Group:
        """Get a group by id."""
        return self.store.load().data.get_group(group_id)

    def get_balances(self, group_id: str) -> list[Balance]:
        """Compute net balances for a group."""
        group = self.get_group(group_id)
        return compute_balances(group.friends, group.expenses)

    def get_transfers(self, group_id: str) -> list[Transfer]:
        """
        Compute the transfers that settle a group.

        Args:
            group_id: The group to settle

        Returns:
            Transfers from debtors to creditors
        """
        group = self.get_group(group_id)
        transfers = compute_transfers(group.friends, group.expenses)

        logger.info(
            f"Computed {len(transfers)} transfers for group '{group_id}' "
            f"from {len(group.expenses)} expenses"
        )
        return transfers

    # ========================================================================
    # Mutations
    # ========================================================================

    def add_group(self, name: str, group_id: str | None = None) -> Group:
        """
        Create a new, empty group.

        Args:
            name: Display name
            group_id: Optional id; generated when omitted

        Returns:
            The created group
        """
        name = name.strip()
        if not name:
            raise ValidationError("Group name must not be empty")

        def mutate(data: GroupedExpenseData) -> Group:
            new_id = group_id or uuid.uuid4().hex
            if any(g.id == new_id for g in data.groups):
                raise ValidationError(f"Group '{new_id}' already exists")
            group = Group(id=new_id, name=name)
            data.groups.append(group)
            return group

        group = self._update(mutate)
        logger.info(f"Added group '{group.name}' ({group.id})")
        return group

    def add_friend(self, group_id: str, name: str) -> Group:
        """Add a friend to a group; names are unique within the group."""
        name = name.strip()
        if not name:
            raise ValidationError("Friend name must not be empty")

        def mutate(data: GroupedExpenseData) -> Group:
            group = data.get_group(group_id)
            if name in group.friends:
                raise ValidationError(f"'{name}' is already in group '{group_id}'")
            group.friends.append(name)
            return group

        group = self._update(mutate)
        logger.info(f"Added friend '{name}' to group '{group_id}'")
        return group

    def add_expense(
        self,
        group_id: str,
        description: str,
        amount: Decimal,
        payer: str,
        beneficiaries: list[str],
        date: datetime | None = None,
    ) -> Expense:
        """
        Record a new expense, rejecting it if it is invalid for the group.

        Args:
            group_id: The group the expense belongs to
            description: What was paid for
            amount: Total amount paid
            payer: Friend who paid
            beneficiaries: Friends the amount is split between
            date: When it was paid (defaults to now)

        Returns:
            The stored expense

        Raises:
            ValidationError: If the expense is malformed
            DataIntegrityError: If it references friends not in the group
        """
        if not description.strip():
            raise ValidationError("Expense description must not be empty")

        expense = Expense(
            id=uuid.uuid4().hex,
            description=description.strip(),
            amount=amount,
            payer=payer,
            beneficiaries=list(beneficiaries),
            date=date or datetime.now(UTC),
        )

        def mutate(data: GroupedExpenseData) -> Expense:
            group = data.get_group(group_id)
            validate_expense(expense, group.friends)
            group.expenses.append(expense)
            return expense

        self._update(mutate)
        logger.info(
            f"Added expense '{expense.description}' ({expense.amount}) "
            f"to group '{group_id}'"
        )
        return expense

    def delete_expense(self, group_id: str, expense_id: str) -> Expense:
        """Delete an expense from a group."""

        def mutate(data: GroupedExpenseData) -> Expense:
            group = data.get_group(group_id)
            expense = group.get_expense(expense_id)
            group.expenses = [e for e in group.expenses if e.id != expense_id]
            return expense

        expense = self._update(mutate)
        logger.info(f"Deleted expense {expense_id} from group '{group_id}'")
        return expense

    def rewrite(self) -> GroupedExpenseData:
        """Load and save the document unchanged, persisting any migration."""
        return self._update(lambda data: data)
