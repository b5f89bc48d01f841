"""CLI for Dividamos using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .exceptions import DividamosError, ValidationError
from .models import Balance, Transfer
from .service import ExpenseService
from .store import open_store

app = typer.Typer(
    name="dividamos",
    help="Track shared group expenses and settle who owes whom",
)

console = Console()

GROUP_HELP = "Group id (defaults to DEFAULT_GROUP)"


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def service_session(verbose: bool) -> Iterator[tuple[ExpenseService, str]]:
    """Open the configured store and report errors the same way for every command."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        with open_store(settings) as store:
            yield (
                ExpenseService(store, conflict_retries=settings.conflict_retries),
                settings.default_group,
            )
    except typer.Abort:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(1)
    except DividamosError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


def parse_amount(value: str) -> Decimal:
    """Parse a user-entered amount."""
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise ValidationError(f"'{value}' is not a valid amount") from e


def format_money(amount: Decimal, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"($[red]{abs_amount:,.2f}[/red])"
        return f"(${abs_amount:,.2f})"
    if use_color:
        return f" [green]${abs_amount:,.2f}[/green] "
    return f" ${abs_amount:,.2f} "


def display_balances(balances: list[Balance]):
    """Display balances in a table."""
    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Friend", style="cyan")
    table.add_column("Balance", justify="right", width=14)

    for balance in balances:
        table.add_row(balance.person, format_money(balance.balance))

    console.print(table)


def display_transfers(transfers: list[Transfer]):
    """Display settlement transfers in a table."""
    if not transfers:
        console.print("[green]Everyone is settled up.[/green]")
        return

    table = Table(title="Transfers", show_header=True, header_style="bold magenta")
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right", width=14)

    for transfer in transfers:
        table.add_row(
            transfer.debtor, transfer.creditor, format_money(transfer.amount)
        )

    console.print(table)


@app.command()
def groups(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List groups."""
    with service_session(verbose) as (service, _):
        all_groups = service.list_groups()
        if not all_groups:
            console.print("[yellow]No groups yet.[/yellow]")
            return

        table = Table(title="Groups", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Friends")
        table.add_column("Expenses", justify="right")
        for group in all_groups:
            table.add_row(
                group.id,
                group.name,
                ", ".join(group.friends),
                str(len(group.expenses)),
            )
        console.print(table)


@app.command("add-group")
def add_group(
    name: str = typer.Argument(..., help="Group name"),
    group_id: str | None = typer.Option(None, "--id", help="Explicit group id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a group."""
    with service_session(verbose) as (service, _):
        group = service.add_group(name, group_id=group_id)
        console.print(f"[green]✓ Created group '{group.name}' ({group.id})[/green]")


@app.command("add-friend")
def add_friend(
    name: str = typer.Argument(..., help="Friend name"),
    group: str | None = typer.Option(None, "--group", "-g", help=GROUP_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a friend to a group."""
    with service_session(verbose) as (service, default_group):
        group_id = group or default_group
        service.add_friend(group_id, name)
        console.print(f"[green]✓ Added {name.strip()} to '{group_id}'[/green]")


@app.command("add-expense")
def add_expense(
    description: str = typer.Argument(..., help="What was paid for"),
    amount: str = typer.Argument(..., help="Total amount paid"),
    paid_by: str = typer.Option(..., "--paid-by", "-p", help="Friend who paid"),
    beneficiaries: list[str] | None = typer.Option(
        None, "--for", "-f", help="Friend sharing the cost (repeatable, default all)"
    ),
    group: str | None = typer.Option(None, "--group", "-g", help=GROUP_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record an expense split equally between friends."""
    with service_session(verbose) as (service, default_group):
        group_id = group or default_group
        if not beneficiaries:
            beneficiaries = service.get_group(group_id).friends

        expense = service.add_expense(
            group_id,
            description=description,
            amount=parse_amount(amount),
            payer=paid_by,
            beneficiaries=beneficiaries,
        )
        console.print(
            f"[green]✓ Added '{expense.description}' "
            f"{format_money(expense.amount, use_color=False).strip()} "
            f"({expense.id})[/green]"
        )
        display_transfers(service.get_transfers(group_id))


@app.command()
def expenses(
    group: str | None = typer.Option(None, "--group", "-g", help=GROUP_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List a group's expenses."""
    with service_session(verbose) as (service, default_group):
        found = service.get_group(group or default_group)
        if not found.expenses:
            console.print("[yellow]No expenses yet.[/yellow]")
            return

        table = Table(
            title=f"Expenses: {found.name}",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("ID", style="dim")
        table.add_column("Date")
        table.add_column("Description", style="cyan")
        table.add_column("Paid By")
        table.add_column("Split Between")
        table.add_column("Amount", justify="right", width=14)
        for expense in found.expenses:
            table.add_row(
                expense.id,
                expense.date.date().isoformat(),
                expense.description,
                expense.payer,
                ", ".join(expense.beneficiaries),
                format_money(expense.amount),
            )
        console.print(table)


@app.command("delete-expense")
def delete_expense(
    expense_id: str = typer.Argument(..., help="Expense id"),
    group: str | None = typer.Option(None, "--group", "-g", help=GROUP_HELP),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense."""
    with service_session(verbose) as (service, default_group):
        group_id = group or default_group
        expense = service.get_group(group_id).get_expense(expense_id)

        if not yes and not typer.confirm(
            f"Delete '{expense.description}' ({expense.amount})?"
        ):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        service.delete_expense(group_id, expense_id)
        console.print(f"[green]✓ Deleted '{expense.description}'[/green]")


@app.command()
def balances(
    group: str | None = typer.Option(None, "--group", "-g", help=GROUP_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show each friend's net balance."""
    with service_session(verbose) as (service, default_group):
        display_balances(service.get_balances(group or default_group))


@app.command()
def settle(
    group: str | None = typer.Option(None, "--group", "-g", help=GROUP_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the transfers that settle a group."""
    with service_session(verbose) as (service, default_group):
        display_transfers(service.get_transfers(group or default_group))


@app.command()
def migrate(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Rewrite the stored document in the current format."""
    with service_session(verbose) as (service, _):
        data = service.rewrite()
        console.print(
            f"[green]✓ Document is at version {data.version} "
            f"with {len(data.groups)} group(s)[/green]"
        )


if __name__ == "__main__":
    app()
