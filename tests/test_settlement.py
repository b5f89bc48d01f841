"""Tests for the settlement engine."""

import random
from datetime import datetime
from decimal import Decimal

import pytest

from dividamos.exceptions import DataIntegrityError, ValidationError
from dividamos.models import Expense, Transfer
from dividamos.settlement import (
    SETTLED_TOLERANCE,
    compute_balances,
    compute_transfers,
    to_cents,
    validate_expense,
)


# Helper function for tests
def make_expense(
    payer: str, amount: str, beneficiaries: list[str], id: str = "e1"
) -> Expense:
    """Create an Expense for testing."""
    return Expense(
        id=id,
        description=f"Test expense {id}",
        amount=Decimal(amount),
        payer=payer,
        beneficiaries=beneficiaries,
        date=datetime(2025, 1, 15),
    )


def residuals(participants, expenses, transfers) -> dict[str, Decimal]:
    """Balances left over after applying the transfers."""
    left = {b.person: b.balance for b in compute_balances(participants, expenses)}
    for transfer in transfers:
        left[transfer.debtor] += transfer.amount
        left[transfer.creditor] -= transfer.amount
    return left


class TestExamples:
    """Worked examples of settling a group."""

    def test_two_people_one_expense(self):
        """A pays 100 for A and B: B owes A half."""
        expenses = [make_expense("A", "100", ["A", "B"])]

        balances = compute_balances({"A", "B"}, expenses)
        transfers = compute_transfers({"A", "B"}, expenses)

        assert [(b.person, b.balance) for b in balances] == [
            ("A", Decimal("50")),
            ("B", Decimal("-50")),
        ]
        assert transfers == [
            Transfer(debtor="B", creditor="A", amount=Decimal("50.00"))
        ]

    def test_three_people_one_payer(self):
        """A pays 90 for everyone: B and C each owe 30."""
        expenses = [make_expense("A", "90", ["A", "B", "C"])]

        transfers = compute_transfers(["A", "B", "C"], expenses)

        assert transfers == [
            Transfer(debtor="B", creditor="A", amount=Decimal("30.00")),
            Transfer(debtor="C", creditor="A", amount=Decimal("30.00")),
        ]

    def test_cycle_cancels_out(self):
        """A pays for B, B for C, C for A: nobody owes anything."""
        expenses = [
            make_expense("A", "25", ["B"], id="e1"),
            make_expense("B", "25", ["C"], id="e2"),
            make_expense("C", "25", ["A"], id="e3"),
        ]

        balances = compute_balances(["A", "B", "C"], expenses)

        assert all(b.balance == 0 for b in balances)
        assert compute_transfers(["A", "B", "C"], expenses) == []

    def test_uneven_split_rounds_to_cents(self):
        """10.00 split three ways rounds each transfer to cents."""
        participants = ["A", "B", "C", "D"]
        expenses = [make_expense("A", "10.00", ["B", "C", "D"])]

        transfers = compute_transfers(participants, expenses)

        assert [t.amount for t in transfers] == [
            Decimal("3.33"),
            Decimal("3.34"),
            Decimal("3.33"),
        ]
        for transfer in transfers:
            assert transfer.amount == to_cents(transfer.amount)
        assert sum(t.amount for t in transfers) == Decimal("10.00")

    def test_uneven_split_including_payer(self):
        """Payer's own share stays with the payer."""
        expenses = [make_expense("A", "10.00", ["A", "B", "C"])]

        transfers = compute_transfers(["A", "B", "C"], expenses)

        assert [(t.debtor, t.creditor, t.amount) for t in transfers] == [
            ("B", "A", Decimal("3.33")),
            ("C", "A", Decimal("3.34")),
        ]

    def test_half_cent_shares_do_not_drift(self):
        """Half-cent shares round up and down alternately."""
        participants = ["A", "B", "C", "D"]
        expenses = [make_expense("A", "4.02", ["A", "B", "C", "D"])]
        # Balances: A +3.015, B/C/D -1.005 each

        transfers = compute_transfers(participants, expenses)

        assert [(t.debtor, t.creditor, t.amount) for t in transfers] == [
            ("B", "A", Decimal("1.01")),
            ("C", "A", Decimal("1.00")),
            ("D", "A", Decimal("1.01")),
        ]
        owed = Decimal("3.015")
        assert abs(sum(t.amount for t in transfers) - owed) <= SETTLED_TOLERANCE
        for left in residuals(participants, expenses, transfers).values():
            assert abs(left) <= SETTLED_TOLERANCE

    def test_debtor_split_across_creditors(self):
        """A debtor can pay several creditors."""
        expenses = [
            make_expense("A", "100", ["A", "B", "C", "D"], id="e1"),
            make_expense("B", "40", ["C", "D"], id="e2"),
        ]
        # Balances: A +75, B +15, C -45, D -45

        transfers = compute_transfers(["A", "B", "C", "D"], expenses)

        assert [(t.debtor, t.creditor, t.amount) for t in transfers] == [
            ("C", "A", Decimal("45.00")),
            ("D", "A", Decimal("30.00")),
            ("D", "B", Decimal("15.00")),
        ]


class TestDeterministicOrder:
    """Matching order follows first appearance in the expenses."""

    def test_first_appearance_breaks_ties(self):
        expenses = [
            make_expense("A", "20", ["C"], id="e1"),
            make_expense("B", "20", ["D"], id="e2"),
        ]

        transfers = compute_transfers({"D", "C", "B", "A"}, expenses)

        assert [(t.debtor, t.creditor) for t in transfers] == [("C", "A"), ("D", "B")]

    def test_expense_order_changes_pairing_not_totals(self):
        expenses = [
            make_expense("A", "20", ["C", "D"], id="e1"),
            make_expense("B", "20", ["D", "C"], id="e2"),
        ]

        forward = compute_transfers(["A", "B", "C", "D"], expenses)
        backward = compute_transfers(["A", "B", "C", "D"], list(reversed(expenses)))

        assert [(t.debtor, t.creditor) for t in forward] == [("C", "A"), ("D", "B")]
        assert [(t.debtor, t.creditor) for t in backward] == [("D", "B"), ("C", "A")]
        assert sum(t.amount for t in forward) == sum(t.amount for t in backward)

    def test_participants_without_expenses_are_ignored(self):
        expenses = [make_expense("A", "100", ["A", "B"])]

        balances = compute_balances(["Z", "A", "Y", "B"], expenses)

        assert [b.person for b in balances] == ["A", "B", "Z", "Y"]
        assert compute_transfers(["Z", "A", "Y", "B"], expenses) == [
            Transfer(debtor="B", creditor="A", amount=Decimal("50.00"))
        ]

    def test_repeated_calls_are_identical(self):
        expenses = [
            make_expense("A", "33.33", ["A", "B", "C"], id="e1"),
            make_expense("C", "12.10", ["A", "B"], id="e2"),
        ]

        first = compute_transfers({"A", "B", "C"}, expenses)
        second = compute_transfers({"A", "B", "C"}, expenses)

        assert first == second


class TestToleranceEdges:
    """Balances within a cent of zero are treated as settled."""

    def test_no_expenses(self):
        assert compute_transfers(["A", "B"], []) == []
        assert all(b.balance == 0 for b in compute_balances(["A", "B"], []))

    def test_no_participants(self):
        assert compute_transfers([], []) == []

    def test_one_cent_balance_is_settled(self):
        # B owes exactly one cent
        expenses = [make_expense("A", "0.02", ["A", "B"])]

        assert compute_transfers(["A", "B"], expenses) == []

    def test_payer_only_beneficiary(self):
        expenses = [make_expense("A", "50", ["A"])]

        assert compute_transfers(["A", "B"], expenses) == []

    def test_inputs_are_not_mutated(self):
        participants = ["A", "B", "C"]
        expenses = [make_expense("A", "90", ["A", "B", "C"])]
        snapshot = [e.model_copy(deep=True) for e in expenses]

        compute_transfers(participants, expenses)

        assert participants == ["A", "B", "C"]
        assert expenses == snapshot


class TestValidation:
    """Invalid expenses fail the whole computation."""

    @pytest.mark.parametrize("amount", ["0", "-5", "-0.01"])
    def test_non_positive_amount(self, amount):
        expenses = [make_expense("A", amount, ["A", "B"])]

        with pytest.raises(ValidationError, match="non-positive"):
            compute_transfers(["A", "B"], expenses)

    def test_empty_beneficiaries(self):
        expenses = [make_expense("A", "10", [])]

        with pytest.raises(ValidationError, match="no beneficiaries"):
            compute_transfers(["A", "B"], expenses)

    def test_duplicate_beneficiary(self):
        expenses = [make_expense("A", "10", ["B", "B"])]

        with pytest.raises(ValidationError):
            compute_transfers(["A", "B"], expenses)

    def test_unknown_payer(self):
        expenses = [make_expense("X", "10", ["A", "B"])]

        with pytest.raises(DataIntegrityError, match="'X'"):
            compute_transfers(["A", "B"], expenses)

    def test_unknown_beneficiary(self):
        expenses = [make_expense("A", "10", ["A", "Q"])]

        with pytest.raises(DataIntegrityError, match="Q"):
            compute_transfers(["A", "B"], expenses)

    def test_bad_expense_after_good_ones(self):
        """No partial result when a later expense is invalid."""
        expenses = [
            make_expense("A", "10", ["A", "B"], id="e1"),
            make_expense("A", "10", ["Q"], id="e2"),
        ]

        with pytest.raises(DataIntegrityError, match="e2"):
            compute_transfers(["A", "B"], expenses)

    def test_validate_expense_accepts_valid(self):
        validate_expense(make_expense("A", "10", ["A", "B"]), ["A", "B"])


def random_scenario(seed: int) -> tuple[list[str], list[Expense]]:
    """Random group with amounts in cents, so shares split unevenly."""
    rng = random.Random(seed)
    people = [f"P{i}" for i in range(rng.randint(2, 8))]
    expenses = []
    for n in range(rng.randint(1, 15)):
        beneficiaries = rng.sample(people, rng.randint(1, len(people)))
        amount = Decimal(rng.randint(1, 20000)) / 100
        expenses.append(
            make_expense(rng.choice(people), str(amount), beneficiaries, id=f"e{n}")
        )
    return people, expenses


class TestSettlementProperties:
    """Invariants that hold for any valid group."""

    @pytest.mark.parametrize("seed", range(25))
    def test_balances_sum_to_zero(self, seed):
        people, expenses = random_scenario(seed)

        total = sum(b.balance for b in compute_balances(people, expenses))

        assert abs(total) < SETTLED_TOLERANCE

    @pytest.mark.parametrize("seed", range(25))
    def test_conservation(self, seed):
        people, expenses = random_scenario(seed)

        owed = sum(
            b.balance
            for b in compute_balances(people, expenses)
            if b.balance > SETTLED_TOLERANCE
        )
        paid = sum(t.amount for t in compute_transfers(people, expenses))

        assert abs(paid - owed) <= SETTLED_TOLERANCE

    @pytest.mark.parametrize("seed", range(25))
    def test_everyone_settled(self, seed):
        people, expenses = random_scenario(seed)

        transfers = compute_transfers(people, expenses)

        for transfer in transfers:
            assert transfer.debtor != transfer.creditor
            assert transfer.amount > 0
        for left in residuals(people, expenses, transfers).values():
            assert abs(left) <= SETTLED_TOLERANCE

    def test_transfer_count_is_bounded(self):
        """Greedy matching needs fewer transfers than people."""
        for seed in range(25):
            people, expenses = random_scenario(seed)
            transfers = compute_transfers(people, expenses)
            assert len(transfers) <= max(len(people) - 1, 0)
