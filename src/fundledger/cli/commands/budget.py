"""Budget management commands."""

from datetime import date

import click
from fundledger.cli.error_handling import handle_domain_error
from fundledger.config import get_settings
from fundledger.domain.budget import BudgetService
from fundledger.utils.amount_parser import parse_amount
from fundledger.utils.date_parser import parse_date


def _date_or_exit(ctx, value: str | None, label: str) -> date | None:
    if value is None:
        return None
    try:
        return parse_date(value, week_start=get_settings().week_start)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


@click.group()
def budget_group():
    """Manage budgets."""
    pass


@budget_group.command("create")
@click.argument("name")
@click.option("--amount", required=True, help="Target amount")
@click.option("--start-date", default="this month", show_default=True, help="First active day")
@click.option("--end-date", help="Last active day (open-ended if omitted)")
@click.option("--description", help="Budget description")
@click.pass_context
def create_budget(ctx, name: str, amount: str, start_date: str, end_date: str | None, description: str | None):
    """Create a budget.

    Examples:
        fundledger budget create Groceries --amount 400
        fundledger budget create Holiday --amount 1500 --start-date 2024-06-01 --end-date 2024-08-31
    """
    service = BudgetService(ctx.obj["db"])
    start = _date_or_exit(ctx, start_date, "start date")
    end = _date_or_exit(ctx, end_date, "end date")

    try:
        budget_id = service.create_budget(
            name=name,
            amount=parse_amount(amount),
            start_date=start,
            end_date=end,
            description=description,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created budget '{name}' (ID: {budget_id})")


@budget_group.command("list")
@click.option("--active", is_flag=True, help="Only budgets active today")
@click.pass_context
def list_budgets(ctx, active: bool):
    """List budgets with spending so far."""
    service = BudgetService(ctx.obj["db"])
    budgets = service.active_budgets() if active else service.list_budgets()
    if not budgets:
        click.echo("No budgets found.")
        return

    click.echo(f"\n{'ID':<5} {'Name':<20} {'Target':>12} {'Spent':>12} {'Remaining':>12}  Window")
    click.echo("-" * 90)
    for budget in budgets:
        spent = service.budget_spent(budget.id)
        window = f"{budget.start_date} .. {budget.end_date or ''}"
        click.echo(
            f"{budget.id:<5} {budget.name[:20]:<20} {budget.amount:>12,.2f} {spent:>12,.2f} "
            f"{budget.amount - spent:>12,.2f}  {window}"
        )


@budget_group.command("show")
@click.argument("budget_id", type=int)
@click.option("--year", type=int, help="Restrict spending to this year (with --month)")
@click.option("--month", type=int, help="Restrict spending to this month (with --year)")
@click.pass_context
def show_budget(ctx, budget_id: int, year: int | None, month: int | None):
    """Show a budget with its spending and transactions."""
    service = BudgetService(ctx.obj["db"])
    try:
        budget = service.require_budget(budget_id)
        spent = service.budget_spent(budget_id, year, month)
        transactions = service.budget_transactions(budget_id, year, month)
        remaining = service.budget_remaining(budget_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Budget {budget.id}: {budget.name}")
    if budget.description:
        click.echo(f"  {budget.description}")
    click.echo(f"  Target: {budget.amount:,.2f}")
    click.echo(f"  Spent: {spent:,.2f}")
    click.echo(f"  Remaining: {remaining:,.2f}")
    for txn in transactions:
        click.echo(f"  {txn.id:<6} {txn.transaction_date:%Y-%m-%d}  {txn.amount:>12,.2f}  {txn.description}")


@budget_group.command("update")
@click.argument("budget_id", type=int)
@click.option("--name", help="New name")
@click.option("--amount", help="New target amount")
@click.option("--start-date", help="New first active day")
@click.option("--end-date", help="New last active day")
@click.option("--open-ended", is_flag=True, help="Remove the end date")
@click.option("--description", help="New description")
@click.pass_context
def update_budget(ctx, budget_id, name, amount, start_date, end_date, open_ended, description):
    """Update a budget."""
    service = BudgetService(ctx.obj["db"])
    start = _date_or_exit(ctx, start_date, "start date")
    end = _date_or_exit(ctx, end_date, "end date")
    try:
        service.update_budget(
            budget_id,
            name=name,
            amount=parse_amount(amount) if amount is not None else None,
            start_date=start,
            end_date=end,
            description=description,
            clear_end_date=open_ended,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated budget {budget_id}")


@budget_group.command("delete")
@click.argument("budget_id", type=int)
@click.pass_context
def delete_budget(ctx, budget_id: int):
    """Delete a budget. Its transactions become unbudgeted."""
    try:
        BudgetService(ctx.obj["db"]).delete_budget(budget_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted budget {budget_id}")


@budget_group.command("unbudgeted")
@click.option("--year", type=int, help="Year (with --month)")
@click.option("--month", type=int, help="Month (with --year)")
@click.pass_context
def unbudgeted(ctx, year: int | None, month: int | None):
    """Show On Budget spending that has no budget."""
    try:
        total = BudgetService(ctx.obj["db"]).unbudgeted_spent(year, month)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Unbudgeted spending: {total:,.2f}")


def register_commands(cli):
    """Register budget commands with main CLI."""
    cli.add_command(budget_group, name="budget")
