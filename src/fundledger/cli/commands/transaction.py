"""Transaction management commands."""

import click
from fundledger.cli.account_resolution import resolve_account_or_exit, resolve_optional_account
from fundledger.cli.date_filters import (
    parse_when_or_exit,
    period_options,
    pop_period_flags,
    resolve_cli_date_range,
)
from fundledger.cli.error_handling import handle_domain_error
from fundledger.config import get_settings
from fundledger.domain.account import AccountService
from fundledger.domain.transaction import TransactionService
from fundledger.utils.amount_parser import parse_amount


@click.group()
def transaction_group():
    """Manage transactions."""
    pass


def _parse_amount_or_exit(ctx, amount: str | None):
    if amount is None:
        return None
    try:
        return parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)


@transaction_group.command("add")
@click.option("--account", required=True, help="Source account name or ID")
@click.option("--amount", required=True, help="Amount; positive leaves the account, negative enters it")
@click.option("--description", required=True, help="Transaction description")
@click.option("--to", "destination", help="Destination account name or ID (makes a transfer)")
@click.option("--payee", help="Destination name; linked to an account of that name if one exists")
@click.option("--category", help="Category name (created if missing)")
@click.option("--budget", "budget_id", type=int, help="Budget ID")
@click.option("--date", "when", help="Transaction date (YYYY-MM-DD, ISO timestamp, or 'today', 'yesterday')")
@click.option("--no-rules", is_flag=True, help="Do not run categorization rules")
@click.pass_context
def add_transaction(
    ctx,
    account: str,
    amount: str,
    description: str,
    destination: str | None,
    payee: str | None,
    category: str | None,
    budget_id: int | None,
    when: str | None,
    no_rules: bool,
):
    """Add a transaction.

    Examples:
        fundledger transaction add --account Checking --amount 42.10 --description "Weekly groceries"
        fundledger transaction add --account Checking --amount=-2500 --description Salary --category Income
        fundledger transaction add --account Checking --to Savings --amount 100 --description "Save"
    """
    db = ctx.obj["db"]
    transaction_service = TransactionService(db)
    account_service = AccountService(db)

    source_id = resolve_account_or_exit(ctx, account_service, account)
    destination_id = resolve_optional_account(ctx, account_service, destination)
    txn_amount = _parse_amount_or_exit(ctx, amount)
    txn_date = parse_when_or_exit(ctx, when)

    try:
        transaction_id = transaction_service.create_transaction(
            source_account_id=source_id,
            description=description,
            amount=txn_amount,
            category=category,
            destination_account_id=destination_id,
            destination_name=payee,
            budget_id=budget_id,
            transaction_date=txn_date,
            apply_rules=not no_rules,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    txn = transaction_service.get_transaction(transaction_id)
    click.echo(f"Created transaction {transaction_id}")
    click.echo(f"  Date: {txn.transaction_date:%Y-%m-%d %H:%M}")
    click.echo(f"  Amount: {txn.amount:,.2f}")
    click.echo(f"  Description: {txn.description}")
    if txn.destination_name:
        click.echo(f"  Destination: {txn.destination_name}")
    if txn.category:
        click.echo(f"  Category: {txn.category}")


@transaction_group.command("update")
@click.argument("transaction_id", type=int)
@click.option("--account", help="New source account name or ID")
@click.option("--amount", help="New amount")
@click.option("--description", help="New description")
@click.option("--to", "destination", help="New destination account name or ID")
@click.option("--payee", help="New destination name (text only)")
@click.option("--clear-destination", is_flag=True, help="Remove destination account and name")
@click.option("--category", help="Category name, or empty string to clear")
@click.option("--budget", "budget_id", type=int, help="Budget ID")
@click.option("--clear-budget", is_flag=True, help="Remove the budget assignment")
@click.option("--date", "when", help="New transaction date")
@click.option("--no-rules", is_flag=True, help="Do not run categorization rules")
@click.pass_context
def update_transaction(
    ctx,
    transaction_id: int,
    account: str | None,
    amount: str | None,
    description: str | None,
    destination: str | None,
    payee: str | None,
    clear_destination: bool,
    category: str | None,
    budget_id: int | None,
    clear_budget: bool,
    when: str | None,
    no_rules: bool,
) -> None:
    """Update a transaction.

    Updates only the fields that are provided. Every account touched before
    or after the change has its balance recomputed.

    Examples:
        fundledger transaction update 1 --date 2024-08-01
        fundledger transaction update 1 --category Food
        fundledger transaction update 1 --category ""  # Clear category
    """
    db = ctx.obj["db"]
    transaction_service = TransactionService(db)
    account_service = AccountService(db)

    source_id = resolve_optional_account(ctx, account_service, account)
    destination_id = resolve_optional_account(ctx, account_service, destination)
    txn_amount = _parse_amount_or_exit(ctx, amount)
    txn_date = parse_when_or_exit(ctx, when)

    clear_category = category == ""
    try:
        changed = transaction_service.update_transaction(
            transaction_id,
            source_account_id=source_id,
            description=description,
            amount=txn_amount,
            category=None if clear_category else category,
            destination_account_id=destination_id,
            destination_name=payee,
            budget_id=budget_id,
            transaction_date=txn_date,
            clear_category=clear_category,
            clear_budget=clear_budget,
            clear_destination=clear_destination,
            apply_rules=not no_rules,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    if changed:
        click.echo(f"Updated transaction {transaction_id}")
    else:
        click.echo(f"Transaction {transaction_id} unchanged")


@transaction_group.command("delete")
@click.argument("transaction_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_transaction(ctx, transaction_id: int, yes: bool) -> None:
    """Delete a transaction.

    Examples:
        fundledger transaction delete 1
    """
    transaction_service = TransactionService(ctx.obj["db"])

    txn = transaction_service.get_transaction(transaction_id)
    if txn is None:
        click.echo(f"Error: Transaction {transaction_id} not found", err=True)
        ctx.exit(1)

    if not yes and not click.confirm(
        f"Delete transaction {transaction_id} ({txn.description}, {txn.amount:,.2f})?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        transaction_service.delete_transaction(transaction_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted transaction {transaction_id}")


@transaction_group.command("list")
@click.option("--account", help="Account name or ID (as source or destination)")
@click.option("--category", help="Category name")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'last month')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like 'today')")
@click.option("--budget", "budget_id", type=int, help="Only transactions in this budget")
@click.option("--unbudgeted", is_flag=True, help="Only transactions without a budget")
@click.option("--limit", type=int, help="Page size (defaults to FUNDLEDGER_PAGE_SIZE)")
@click.option("--page", type=int, default=1, show_default=True, help="Page number")
@period_options
@click.pass_context
def list_transactions(
    ctx,
    account: str | None,
    category: str | None,
    start_date: str | None,
    end_date: str | None,
    budget_id: int | None,
    unbudgeted: bool,
    limit: int | None,
    page: int,
    **period_kwargs,
):
    """List transactions, newest first."""
    db = ctx.obj["db"]
    service = TransactionService(db)
    account_service = AccountService(db)

    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=pop_period_flags(period_kwargs)
    )
    account_id = resolve_optional_account(ctx, account_service, account)
    limit = limit or get_settings().page_size
    if page < 1:
        click.echo("Error: --page must be at least 1", err=True)
        ctx.exit(1)

    filters = dict(
        account_id=account_id,
        category=category,
        start_date=start,
        end_date=end,
        budget_id=budget_id,
        unbudgeted_only=unbudgeted,
    )
    try:
        transactions = service.list_transactions(limit=limit, offset=(page - 1) * limit, **filters)
        total = service.count_transactions(**filters)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not transactions:
        click.echo("No transactions found.")
        return

    accounts = {acc.id: acc.name for acc in account_service.list_accounts()}

    click.echo(f"\nShowing {len(transactions)} of {total} transaction(s) (page {page}):")
    click.echo("-" * 110)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Amount':>12}  {'From':<18} {'To':<18} {'Category':<18} {'Description':<22}"
    )
    click.echo("-" * 110)

    for txn in transactions:
        destination = (
            accounts.get(txn.destination_account_id, "")
            if txn.destination_account_id is not None
            else (txn.destination_name or "")
        )
        click.echo(
            f"{txn.id:<6} {txn.transaction_date:%Y-%m-%d}   {txn.amount:>12,.2f}  "
            f"{accounts.get(txn.source_account_id, 'Unknown')[:18]:<18} {destination[:18]:<18} "
            f"{(txn.category or '')[:18]:<18} {txn.description[:22]:<22}"
        )


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
