"""Main CLI entry point."""

import logging

import click
from fundledger.config import LOG_LEVELS, get_settings
from fundledger.database.factories import create_sqlite_database

# Import and register all commands at module level
from fundledger.cli.commands import (
    account,
    budget,
    category,
    report,
    rule,
    transaction,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides FUNDLEDGER_DB_PATH environment variable)",
    envvar="FUNDLEDGER_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level (overrides FUNDLEDGER_LOG_LEVEL, default WARNING)",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """fundledger - Personal finance ledger.

    Accounts, transfers, budgets and categorization rules over a single
    transaction log. Balances and reports are always derived by replaying
    that log.
    """
    ctx.ensure_object(dict)

    try:
        settings = get_settings()
    except ValueError as e:
        raise click.UsageError(str(e))

    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
transaction.register_commands(cli)
category.register_commands(cli)
budget.register_commands(cli)
rule.register_commands(cli)
report.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
