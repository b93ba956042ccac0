"""Registry inspection commands."""

import sys

import click
from rich.table import Table

from . import cli
from .shared import console, _open_store

_data_file_option = click.option(
    "--data-file", default=None, type=click.Path(dir_okay=False),
    help="Tag registry file (default: TAGALL_DATA_FILE)",
)


@cli.command()
@_data_file_option
def tags(data_file):
    """List saved tags and member counts."""
    store = _open_store(data_file)
    if not len(store):
        console.print(f"[yellow]No tags saved in {store.path}[/yellow]")
        return

    table = Table(title=f"Tags ({store.path})")
    table.add_column("Tag", style="bold")
    table.add_column("Numbers", justify="right")
    table.add_column("Chat command", style="dim")
    for name in store.names():
        table.add_row(name, str(len(store.get(name) or [])), f"tag{name}!")
    console.print(table)


@cli.command()
@click.argument("name")
@_data_file_option
def show(name, data_file):
    """Show the numbers saved under a tag."""
    store = _open_store(data_file)
    numbers = store.get(name)
    if not numbers:
        console.print(f'[red]No phone numbers found for tag "{name.strip().lower()}".[/red]')
        sys.exit(1)

    console.print(f"[bold]{name.strip().lower()}[/bold] — {len(numbers)} number(s)")
    for number in numbers:
        console.print(f"  {number}")


@cli.command()
@click.argument("text")
def parse(text):
    """Show how a chat message would be interpreted."""
    from tagall.commands.parser import Malformed, parse_command
    from tagall.commands.replies import format_usage

    command = parse_command(text)
    if command is None:
        console.print("[dim]Not a command (ignored).[/dim]")
        return
    if isinstance(command, Malformed):
        console.print(f"[yellow]Malformed {command.kind} command[/yellow]")
        console.print(format_usage(command.kind).text, markup=False)
        return
    console.print(repr(command), style="green", markup=False)
