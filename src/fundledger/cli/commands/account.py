"""Account management commands."""

import click
from fundledger.cli.account_resolution import resolve_account_or_exit
from fundledger.cli.date_filters import parse_when_or_exit
from fundledger.cli.error_handling import handle_domain_error
from fundledger.domain.account import AccountService
from fundledger.domain.balance import BalanceService
from fundledger.domain.entities import AccountKind
from fundledger.utils.amount_parser import parse_amount

KIND_CHOICES = {
    "on-budget": AccountKind.ON_BUDGET,
    "off-budget": AccountKind.OFF_BUDGET,
    "external": AccountKind.EXTERNAL,
}


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option(
    "--type",
    "account_type",
    default="On Budget",
    show_default=True,
    help="'On Budget', 'Off Budget' or 'External', optionally with ' - <subtype>'",
)
@click.option("--currency", help="ISO currency code (defaults to FUNDLEDGER_CURRENCY)")
@click.option("--opening-balance", help="Opening balance (recorded as an Initial Balance transaction)")
@click.option("--default", "is_default", is_flag=True, help="Make this the default account")
@click.pass_context
def create_account(ctx, name: str, account_type: str, currency: str | None, opening_balance: str | None, is_default: bool):
    """Create a new account.

    Examples:
        fundledger account create "Checking" --type "On Budget - Checking" --opening-balance 5000
        fundledger account create "Mortgage" --type "Off Budget - Loan"
        fundledger account create "Grocer" --type External
    """
    service = AccountService(ctx.obj["db"])

    try:
        balance = parse_amount(opening_balance) if opening_balance else 0
        account_id = service.create_account(
            name=name,
            account_type=account_type,
            currency=currency,
            opening_balance=balance,
            is_default=is_default,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    account = service.get_account(account_id)
    click.echo(f"Created account '{account.name}' (ID: {account_id})")
    click.echo(f"  Type: {account.account_type}")
    if balance:
        click.echo(f"  Opening balance: {balance:,.2f} {account.currency}")


@account_group.command("list")
@click.option("--kind", type=click.Choice(list(KIND_CHOICES)), help="Only accounts of this kind")
@click.pass_context
def list_accounts(ctx, kind: str | None):
    """List accounts with their cached balances."""
    service = AccountService(ctx.obj["db"])

    accounts = service.list_accounts(kind=KIND_CHOICES[kind] if kind else None)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 80)
    for acc in accounts:
        marker = "*" if acc.is_default else " "
        click.echo(
            f"{marker}ID: {acc.id:3d} | {acc.name:20s} | {acc.account_type.label:28s} | "
            f"{acc.balance:>12,.2f} {acc.currency}"
        )


@account_group.command("balance")
@click.argument("account", metavar="ACCOUNT")
@click.option("--as-of", help="Balance through this date or timestamp instead of now")
@click.pass_context
def show_balance(ctx, account: str, as_of: str | None):
    """Show an account balance replayed from its transactions.

    ACCOUNT can be an account name or ID.

    Examples:
        fundledger account balance Checking
        fundledger account balance 1 --as-of 2024-06-30
    """
    db = ctx.obj["db"]
    account_service = AccountService(db)
    balances = BalanceService(db)
    account_id = resolve_account_or_exit(ctx, account_service, account)
    instant = parse_when_or_exit(ctx, as_of)

    try:
        if instant is None:
            value = balances.current_balance(account_id)
        else:
            value = balances.balance_at(account_id, instant)
    except ValueError as e:
        handle_domain_error(ctx, e)

    acc = account_service.get_account(account_id)
    suffix = f" as of {instant:%Y-%m-%d %H:%M}" if instant is not None else ""
    click.echo(f"{acc.name}: {value:,.2f} {acc.currency}{suffix}")


@account_group.command("update")
@click.argument("account", metavar="ACCOUNT")
@click.option("--name", help="New account name")
@click.option("--type", "account_type", help="New account type")
@click.option("--currency", help="New currency code")
@click.option("--default/--no-default", "is_default", default=None, help="Set or clear the default flag")
@click.pass_context
def update_account(ctx, account: str, name: str | None, account_type: str | None, currency: str | None, is_default: bool | None) -> None:
    """Update an account.

    Balances cannot be edited here; use 'account adjust' instead.

    Examples:
        fundledger account update Checking --name "Main Checking"
        fundledger account update 2 --type "On Budget - Credit Card" --default
    """
    service = AccountService(ctx.obj["db"])
    account_id = resolve_account_or_exit(ctx, service, account)

    try:
        service.update_account(
            account_id,
            name=name,
            account_type=account_type,
            currency=currency,
            is_default=is_default,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated account {account_id}")


@account_group.command("adjust")
@click.argument("account", metavar="ACCOUNT")
@click.option("--to", "target", required=True, help="Target balance")
@click.option("--date", "when", help="Date of the adjustment (defaults to now)")
@click.pass_context
def adjust_balance(ctx, account: str, target: str, when: str | None) -> None:
    """Bring an account to a target balance with a Balance Adjustment transaction.

    Examples:
        fundledger account adjust Checking --to 1520.35
    """
    service = AccountService(ctx.obj["db"])
    account_id = resolve_account_or_exit(ctx, service, account)
    as_of = parse_when_or_exit(ctx, when)

    try:
        transaction_id = service.adjust_balance(account_id, parse_amount(target), as_of=as_of)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if transaction_id is None:
        click.echo("Balance already matches; nothing recorded.")
    else:
        click.echo(f"Recorded balance adjustment as transaction {transaction_id}")


@account_group.command("delete")
@click.argument("account", metavar="ACCOUNT")
@click.option("--force", is_flag=True, help="Also delete every transaction touching the account")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_account(ctx, account: str, force: bool, yes: bool) -> None:
    """Delete an account.

    ACCOUNT can be an account name or ID.

    Without --force the account can only be deleted if no transaction
    references it. With --force those transactions are deleted too and the
    balances of the other accounts involved are recomputed.

    Examples:
        fundledger account delete "Old Savings"
        fundledger account delete 3 --force --yes
    """
    service = AccountService(ctx.obj["db"])
    account_id = resolve_account_or_exit(ctx, service, account)
    account_obj = service.get_account(account_id)

    if not yes and not click.confirm(
        f"Are you sure you want to delete account '{account_obj.name}' (ID: {account_id})?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        removed = service.delete_account(account_id, force=force)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Deleted account '{account_obj.name}'")
    if removed:
        click.echo(f"  Deleted {removed} transaction{'s' if removed != 1 else ''}")


@account_group.command("recompute")
@click.argument("accounts", nargs=-1, metavar="[ACCOUNT]...")
@click.pass_context
def recompute_balances(ctx, accounts: tuple[str, ...]) -> None:
    """Rebuild cached balances from the transaction log.

    With no ACCOUNT, every account is recomputed.
    """
    db = ctx.obj["db"]
    account_service = AccountService(db)
    balances = BalanceService(db)

    if accounts:
        ids = [resolve_account_or_exit(ctx, account_service, a) for a in accounts]
        results = balances.recompute(ids)
    else:
        results = balances.recompute_all()

    names = {acc.id: acc.name for acc in account_service.list_accounts()}
    for account_id, value in results.items():
        click.echo(f"{names.get(account_id, account_id)}: {value:,.2f}")
    click.echo(f"Recomputed {len(results)} account(s)")


@account_group.command("verify")
@click.pass_context
def verify_balances(ctx) -> None:
    """Compare cached balances with a full replay without changing anything.

    Exits with status 1 if any account is inconsistent.
    """
    db = ctx.obj["db"]
    names = {acc.id: acc.name for acc in AccountService(db).list_accounts()}
    checks = BalanceService(db).verify_all()

    mismatches = 0
    for check in checks:
        if check.consistent:
            click.echo(f"OK        {names[check.account_id]}: {check.replayed:,.2f}")
        else:
            mismatches += 1
            click.echo(
                f"MISMATCH  {names[check.account_id]}: cached {check.cached:,.2f}, "
                f"replayed {check.replayed:,.2f}"
            )

    if mismatches:
        click.echo(f"{mismatches} inconsistent account(s). Run 'fundledger account recompute' to fix.", err=True)
        ctx.exit(1)
    click.echo(f"All {len(checks)} account(s) consistent.")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
