"""Categorization rule commands."""

import click
from fundledger.cli.error_handling import handle_domain_error
from fundledger.domain.entities import ActionType, ConditionType
from fundledger.domain.rules import DEFAULT_PRIORITY, RuleService, parse_action, parse_condition

CONDITION_HELP = "Condition as TYPE VALUE; repeat for AND. Types: " + ", ".join(c.value for c in ConditionType)
ACTION_HELP = "Action as TYPE VALUE; repeat to chain. Types: " + ", ".join(a.value for a in ActionType)


def _print_rule(rule) -> None:
    state = "active" if rule.is_active else "inactive"
    click.echo(f"Rule {rule.id}: {rule.name} (priority {rule.priority}, {state})")
    if rule.description:
        click.echo(f"  {rule.description}")
    for condition in rule.conditions:
        click.echo(f"  when {condition.condition_type.value} '{condition.value}'")
    for action in rule.actions:
        click.echo(f"  then {action.action_type.value} '{action.value}'")


@click.group()
def rule_group():
    """Manage and run categorization rules."""
    pass


@rule_group.command("create")
@click.argument("name")
@click.option("--when", "conditions", nargs=2, multiple=True, required=True, help=CONDITION_HELP)
@click.option("--then", "actions", nargs=2, multiple=True, required=True, help=ACTION_HELP)
@click.option("--priority", type=int, default=DEFAULT_PRIORITY, show_default=True, help="Lower runs first")
@click.option("--description", help="Rule description")
@click.option("--inactive", is_flag=True, help="Create the rule disabled")
@click.pass_context
def create_rule(ctx, name, conditions, actions, priority, description, inactive):
    """Create a rule.

    Examples:
        fundledger rule create Groceries --when description_contains groceries --then set_category Food
    """
    service = RuleService(ctx.obj["db"])
    try:
        rule_id = service.create_rule(
            name=name,
            conditions=[parse_condition(t, v) for t, v in conditions],
            actions=[parse_action(t, v) for t, v in actions],
            priority=priority,
            is_active=not inactive,
            description=description,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created rule '{name}' (ID: {rule_id})")


@rule_group.command("list")
@click.pass_context
def list_rules(ctx):
    """List rules in evaluation order."""
    rules = RuleService(ctx.obj["db"]).list_rules()
    if not rules:
        click.echo("No rules found.")
        return
    for rule in rules:
        _print_rule(rule)


@rule_group.command("show")
@click.argument("rule_id", type=int)
@click.pass_context
def show_rule(ctx, rule_id: int):
    """Show one rule."""
    try:
        rule = RuleService(ctx.obj["db"]).require_rule(rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    _print_rule(rule)


@rule_group.command("update")
@click.argument("rule_id", type=int)
@click.option("--name", help="New name")
@click.option("--when", "conditions", nargs=2, multiple=True, help="Replace conditions. " + CONDITION_HELP)
@click.option("--then", "actions", nargs=2, multiple=True, help="Replace actions. " + ACTION_HELP)
@click.option("--priority", type=int, help="New priority")
@click.option("--description", help="New description")
@click.pass_context
def update_rule(ctx, rule_id, name, conditions, actions, priority, description):
    """Update a rule."""
    service = RuleService(ctx.obj["db"])
    try:
        service.update_rule(
            rule_id,
            name=name,
            conditions=[parse_condition(t, v) for t, v in conditions] if conditions else None,
            actions=[parse_action(t, v) for t, v in actions] if actions else None,
            priority=priority,
            description=description,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated rule {rule_id}")


@rule_group.command("enable")
@click.argument("rule_id", type=int)
@click.pass_context
def enable_rule(ctx, rule_id: int):
    """Activate a rule."""
    try:
        RuleService(ctx.obj["db"]).set_active(rule_id, True)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Enabled rule {rule_id}")


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id: int):
    """Deactivate a rule."""
    try:
        RuleService(ctx.obj["db"]).set_active(rule_id, False)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Disabled rule {rule_id}")


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.pass_context
def delete_rule(ctx, rule_id: int):
    """Delete a rule."""
    try:
        RuleService(ctx.obj["db"]).delete_rule(rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted rule {rule_id}")


@rule_group.command("run")
@click.argument("rule_id", type=int, required=False)
@click.pass_context
def run_rules(ctx, rule_id: int | None):
    """Apply rules to every existing transaction.

    With RULE_ID only that rule runs. Without it every active rule runs in
    priority order and the first match wins for each transaction.
    """
    try:
        changed = RuleService(ctx.obj["db"]).apply_and_persist(rule_id=rule_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated {changed} transaction(s)")


@rule_group.command("test")
@click.option("--when", "conditions", nargs=2, multiple=True, required=True, help=CONDITION_HELP)
@click.option("--sample", type=int, default=10, show_default=True, help="Matches to show")
@click.pass_context
def test_rule(ctx, conditions, sample: int):
    """Count existing transactions a set of conditions would match."""
    try:
        total, matches = RuleService(ctx.obj["db"]).test_conditions(
            [parse_condition(t, v) for t, v in conditions], sample_size=sample
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"{total} transaction(s) match")
    for txn in matches:
        click.echo(f"  {txn.id:<6} {txn.transaction_date:%Y-%m-%d}  {txn.amount:>12,.2f}  {txn.description}")


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
