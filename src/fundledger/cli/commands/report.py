"""Report commands: balance series, spending, inflow/outflow and monthly status."""

from datetime import date

import click
from fundledger.cli.account_resolution import resolve_account_or_exit
from fundledger.cli.date_filters import period_options, pop_period_flags, resolve_cli_date_range
from fundledger.cli.error_handling import handle_domain_error
from fundledger.domain.account import AccountService
from fundledger.domain.budget import BudgetService
from fundledger.domain.entities import Granularity, SeriesMode
from fundledger.domain.timeseries import TimeSeriesService

GRANULARITIES = [g.value for g in Granularity]


def _series_options(func):
    func = period_options(func)
    func = click.option(
        "--granularity",
        type=click.Choice(GRANULARITIES),
        default=Granularity.MONTH.value,
        show_default=True,
        help="Bucket width",
    )(func)
    func = click.option("--end-date", help="Last day included (default: today)")(func)
    func = click.option("--start-date", help="First day included (default: January 1 this year)")(func)
    func = click.option(
        "--account",
        "accounts",
        multiple=True,
        help="Account name or ID; repeat for several (default: all On Budget accounts)",
    )(func)
    return func


def _resolve_inputs(ctx, accounts, start_date, end_date, period_kwargs):
    db = ctx.obj["db"]
    account_service = AccountService(db)
    today = date.today()
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags=pop_period_flags(period_kwargs),
        default_range=(today.replace(month=1, day=1), today),
    )
    start = start or today.replace(month=1, day=1)
    end = end or today
    ids = [resolve_account_or_exit(ctx, account_service, a) for a in accounts]
    return ids, start, end


@click.group()
def report_group():
    """Reports derived from the transaction log."""
    pass


@report_group.command("balance")
@_series_options
@click.option(
    "--mode",
    type=click.Choice([m.value for m in SeriesMode]),
    default=SeriesMode.INDIVIDUAL.value,
    show_default=True,
    help="One line per account or one combined line",
)
@click.pass_context
def balance_report(ctx, accounts, start_date, end_date, granularity, mode, **period_kwargs):
    """Account balances at the end of each period.

    Examples:
        fundledger report balance --account Checking --start-date 2024-07-01 --end-date 2024-08-31
        fundledger report balance --account 1 --account 2 --granularity week --mode summed
    """
    ids, start, end = _resolve_inputs(ctx, accounts, start_date, end_date, period_kwargs)
    service = TimeSeriesService(ctx.obj["db"])

    try:
        lines = service.balance_lines(ids, start, end, granularity=granularity, mode=mode)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not lines:
        click.echo("No accounts selected.")
        return

    periods = [period for period, _ in lines[0].values]
    click.echo(f"\n{'Period':<12}" + "".join(f"{line.label[:16]:>18}" for line in lines))
    click.echo("-" * (12 + 18 * len(lines)))
    for i, period in enumerate(periods):
        click.echo(f"{period:<12}" + "".join(f"{line.values[i][1]:>18,.2f}" for line in lines))


@report_group.command("spending")
@_series_options
@click.option("--by-group", is_flag=True, help="Group by top-level category instead of category")
@click.pass_context
def spending_report(ctx, accounts, start_date, end_date, granularity, by_group, **period_kwargs):
    """Spending per period by category.

    Initial Balance and Transfer categories are not counted.
    """
    ids, start, end = _resolve_inputs(ctx, accounts, start_date, end_date, period_kwargs)
    service = TimeSeriesService(ctx.obj["db"])

    try:
        rows = service.spending_series(ids, start, end, granularity=granularity, group_by_category_group=by_group)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not rows:
        click.echo("No spending found.")
        return

    click.echo(f"\n{'Period':<12} {'Group' if by_group else 'Category':<30} {'Amount':>14}")
    click.echo("-" * 58)
    for row in rows:
        click.echo(f"{row.period:<12} {row.name[:30]:<30} {row.amount:>14,.2f}")


@report_group.command("flow")
@_series_options
@click.option("--by-category", is_flag=True, help="Show the per-category breakdown")
@click.pass_context
def flow_report(ctx, accounts, start_date, end_date, granularity, by_category, **period_kwargs):
    """Inflow versus outflow per period.

    Transfers between two selected accounts are internal and not shown.
    """
    ids, start, end = _resolve_inputs(ctx, accounts, start_date, end_date, period_kwargs)
    service = TimeSeriesService(ctx.obj["db"])

    try:
        points = service.inflow_outflow_series(ids, start, end, granularity=granularity)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\n{'Period':<12} {'Inflow':>14} {'Outflow':>14} {'Net':>14}")
    click.echo("-" * 57)
    for point in points:
        click.echo(f"{point.period:<12} {point.inflow:>14,.2f} {point.outflow:>14,.2f} {point.net:>14,.2f}")
        if by_category:
            for name, flow in point.categories.items():
                click.echo(f"  {name[:10]:<10} {flow.inflow:>14,.2f} {flow.outflow:>14,.2f}")


@report_group.command("monthly-status")
@click.option("--year", type=int, help="Year (default: current)")
@click.option("--month", type=int, help="Month 1-12 (default: current)")
@click.pass_context
def monthly_status(ctx, year: int | None, month: int | None):
    """Incoming and outgoing funds of On Budget accounts for one month."""
    today = date.today()
    service = BudgetService(ctx.obj["db"])

    try:
        status = service.monthly_status(
            year if year is not None else today.year,
            month if month is not None else today.month,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\nBudget status for {status.year}-{status.month:02d}")
    click.echo("-" * 40)
    click.echo(f"{'Incoming funds:':<22}{status.incoming_funds:>18,.2f}")
    click.echo(f"{'Outgoing funds:':<22}{status.outgoing_funds:>18,.2f}")
    click.echo(f"{'Budgeted:':<22}{status.budgeted_amount:>18,.2f}")
    click.echo(f"{'Left to budget:':<22}{status.remaining_to_budget:>18,.2f}")


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(report_group, name="report")
