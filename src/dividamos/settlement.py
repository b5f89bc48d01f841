"""Core settlement logic for computing who owes whom from shared expenses."""

import logging
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import DataIntegrityError, ValidationError
from .models import Balance, Expense, Transfer

logger = logging.getLogger(__name__)

# Balances within one cent of zero are considered settled
SETTLED_TOLERANCE = Decimal("0.01")

CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> Decimal:
    """
    Round a Decimal amount to two decimal places.
    Uses ROUND_HALF_UP for consistency.
    """
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_expense(expense: Expense, participants: Iterable[str]) -> None:
    """
    Check a single expense against the known participants.

    Args:
        expense: The expense to check
        participants: Known participant names

    Raises:
        ValidationError: If the amount is not positive or the beneficiaries
                         are empty or repeated
        DataIntegrityError: If the payer or a beneficiary is unknown
    """
    known = set(participants)

    if not expense.amount.is_finite() or expense.amount <= 0:
        raise ValidationError(
            f"Expense {expense.id} has non-positive amount: {expense.amount}"
        )
    if not expense.beneficiaries:
        raise ValidationError(f"Expense {expense.id} has no beneficiaries")
    if len(set(expense.beneficiaries)) != len(expense.beneficiaries):
        raise ValidationError(f"Expense {expense.id} lists a beneficiary twice")

    if expense.payer not in known:
        raise DataIntegrityError(
            f"Expense {expense.id} is paid by unknown participant '{expense.payer}'"
        )
    unknown = [b for b in expense.beneficiaries if b not in known]
    if unknown:
        raise DataIntegrityError(
            f"Expense {expense.id} references unknown participants: "
            f"{', '.join(unknown)}"
        )


def _settlement_order(
    participants: Iterable[str], expenses: Sequence[Expense]
) -> list[str]:
    """
    Order participants by first appearance in the expenses.

    Payer first, then beneficiaries in listed order. Participants with no
    expenses follow in their given order; they always net to zero.
    """
    order: dict[str, None] = {}
    for expense in expenses:
        order.setdefault(expense.payer, None)
        for beneficiary in expense.beneficiaries:
            order.setdefault(beneficiary, None)
    for participant in participants:
        order.setdefault(participant, None)
    return list(order)


def _net_balances(
    participants: Iterable[str], expenses: Sequence[Expense]
) -> list[list]:
    """Validate the input and build ordered [participant, balance] pairs."""
    known = list(participants)
    for expense in expenses:
        validate_expense(expense, known)

    balances = {p: Decimal("0") for p in _settlement_order(known, expenses)}
    for expense in expenses:
        share = expense.amount / len(expense.beneficiaries)
        balances[expense.payer] += expense.amount
        for beneficiary in expense.beneficiaries:
            balances[beneficiary] -= share

    return [[person, balance] for person, balance in balances.items()]


def compute_balances(
    participants: Iterable[str], expenses: Sequence[Expense]
) -> list[Balance]:
    """
    Compute each participant's net balance (paid minus owed share).

    Args:
        participants: Known participant names
        expenses: Expenses to aggregate

    Returns:
        Balances in settlement order; they sum to zero
    """
    return [
        Balance(person=person, balance=balance)
        for person, balance in _net_balances(participants, expenses)
    ]


def compute_transfers(
    participants: Iterable[str], expenses: Sequence[Expense]
) -> list[Transfer]:
    """
    Compute the transfers that settle all balances.

    Steps:
    1. Net every participant's balance (equal split per expense)
    2. Split into creditors and debtors, dropping anyone within one cent
    3. Greedily pay the current creditor from the current debtor
    4. Advance past whichever side drops below one cent

    Transfer amounts are differences of the rounded running total of
    matched amounts.

    Args:
        participants: Known participant names
        expenses: Expenses to settle

    Returns:
        Transfers in the order they were matched, amounts rounded to cents

    Raises:
        ValidationError: If an expense is malformed
        DataIntegrityError: If an expense references an unknown participant
    """
    creditors = []
    debtors = []
    for person, balance in _net_balances(participants, expenses):
        if balance > SETTLED_TOLERANCE:
            creditors.append([person, balance])
        elif balance < -SETTLED_TOLERANCE:
            debtors.append([person, -balance])

    transfers = []
    matched = Decimal("0")
    i = j = 0
    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]
        amount = min(creditor[1], debtor[1])

        rounded = to_cents(matched + amount) - to_cents(matched)
        matched += amount
        transfers.append(
            Transfer(debtor=debtor[0], creditor=creditor[0], amount=rounded)
        )

        creditor[1] -= amount
        debtor[1] -= amount

        if creditor[1] < SETTLED_TOLERANCE:
            i += 1
        if debtor[1] < SETTLED_TOLERANCE:
            j += 1

    logger.debug(
        f"Settled {len(creditors)} creditors and {len(debtors)} debtors "
        f"with {len(transfers)} transfers"
    )

    return transfers
