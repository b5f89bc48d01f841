"""Pydantic domain models for Dividamos."""

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .exceptions import ExpenseNotFoundError, GroupNotFoundError

CURRENT_VERSION = 2

# ============================================================================
# Expense Models
# ============================================================================


class Expense(BaseModel):
    """A shared expense, split equally among its beneficiaries."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    description: str
    amount: Decimal
    payer: str = Field(alias="paidBy")
    beneficiaries: list[str] = Field(alias="participants")
    date: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_serializer("amount", when_used="json")
    def _amount_as_number(self, amount: Decimal) -> float:
        return float(amount)


class Balance(BaseModel):
    """Net position of one participant (positive = is owed)."""

    person: str
    balance: Decimal


class Transfer(BaseModel):
    """A recommended payment from a debtor to a creditor."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    debtor: str = Field(alias="from")
    creditor: str = Field(alias="to")
    amount: Decimal  # rounded to cents

    @field_serializer("amount", when_used="json")
    def _amount_as_number(self, amount: Decimal) -> float:
        return float(amount)


# ============================================================================
# Document Models
# ============================================================================


class ExpenseData(BaseModel):
    """Legacy single-group document: a flat list of friends and expenses."""

    friends: list[str] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)


class Group(BaseModel):
    """A group of friends sharing expenses."""

    id: str
    name: str
    friends: list[str] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)

    @field_validator("friends")
    @classmethod
    def _friends_unique(cls, friends: list[str]) -> list[str]:
        seen = set()
        for friend in friends:
            if friend in seen:
                raise ValueError(f"Duplicate friend '{friend}'")
            seen.add(friend)
        return friends

    def get_expense(self, expense_id: str) -> Expense:
        """Get an expense by id."""
        for expense in self.expenses:
            if expense.id == expense_id:
                return expense
        raise ExpenseNotFoundError(expense_id)


class GroupedExpenseData(BaseModel):
    """Current document format: versioned list of groups."""

    version: int = CURRENT_VERSION
    groups: list[Group] = Field(default_factory=list)

    def get_group(self, group_id: str) -> Group:
        """Get a group by id."""
        for group in self.groups:
            if group.id == group_id:
                return group
        raise GroupNotFoundError(group_id)

    def to_json(self) -> str:
        """Serialize using the on-disk field names."""
        return self.model_dump_json(by_alias=True, indent=2)
