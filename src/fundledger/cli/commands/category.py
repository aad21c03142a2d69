"""Category management commands."""

import click
from fundledger.cli.error_handling import handle_domain_error
from fundledger.domain.category import CategoryService


def print_category_tree(categories: list[dict], indent: int = 0) -> None:
    """Recursively print category tree."""
    for cat in categories:
        prefix = "  " * indent
        click.echo(f"{prefix}{cat['name']} (ID: {cat['id']})")
        if cat.get("children"):
            print_category_tree(cat["children"], indent + 1)


@click.group()
def category_group():
    """Manage categories."""
    pass


@category_group.command("list")
@click.pass_context
def list_categories(ctx):
    """List all categories in tree format."""
    service = CategoryService(ctx.obj["db"])

    tree = service.get_category_tree()
    if not tree:
        click.echo("No categories found.")
        return

    click.echo("\nCategories:")
    print_category_tree(tree)


@category_group.command("create")
@click.argument("name")
@click.option("--parent", help="Parent category name; the top-level ancestor is the category group")
@click.pass_context
def create_category(ctx, name: str, parent: str | None):
    """Create a new category."""
    service = CategoryService(ctx.obj["db"])

    try:
        category_id = service.create_category(name=name, parent_name=parent)
    except ValueError as e:
        handle_domain_error(ctx, e)
    parent_str = f" under '{parent}'" if parent else ""
    click.echo(f"Created category '{name}'{parent_str} (ID: {category_id})")


def register_commands(cli):
    """Register category commands with main CLI."""
    cli.add_command(category_group, name="category")
