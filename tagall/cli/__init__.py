"""TagAll CLI — command line interface."""

import click
from tagall import __version__
from .shared import console


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="tagall")
@click.pass_context
def cli(ctx):
    """TagAll — tag registry and mention broadcaster for WhatsApp groups"""
    if ctx.invoked_subcommand is None:
        _show_help()


def _show_help():
    """Show all available commands grouped by category."""
    console.print(f"[bold]TagAll v{__version__}[/bold] — tag registry and mention broadcaster\n")

    groups = {
        "Usage": [
            ("start", "Start the bot (WhatsApp bridge via wacli)"),
        ],
        "Registry": [
            ("tags", "List saved tags and member counts"),
            ("show NAME", "Show the numbers saved under a tag"),
            ("parse TEXT", "Show how a chat message would be interpreted"),
        ],
    }

    for category, commands in groups.items():
        console.print(f"  [bold cyan]{category}[/bold cyan]")
        for name, desc in commands:
            console.print(f"    [bold]tagall {name:14s}[/bold] {desc}")
        console.print()

    console.print("[bold]Chat commands[/bold] (group admins only)")
    console.print("    tagall!                               mention every group member", markup=False)
    console.print("    tag<name>!                            mention every number saved under <name>", markup=False)
    console.print("    !PUSH @<number>[@<number>...] #<name>   save numbers under a tag", markup=False)
    console.print("    !POP @<number>[@<number>...] #<name>    remove numbers from a tag", markup=False)
    console.print("    !RENAME #<old> #<new>                 rename a tag", markup=False)
    console.print()
    console.print("[dim]Run 'tagall <command> --help' for details on a specific command.[/dim]")


# Import all command modules (registers commands onto cli group)
from . import cmd_start  # noqa: E402, F401
from . import cmd_tags  # noqa: E402, F401


@cli.command(name="help", hidden=True)
def help_cmd():
    """Show all available commands."""
    _show_help()


def main():
    """CLI entry point."""
    import sys
    try:
        cli(standalone_mode=False)
    except click.UsageError as e:
        if e.ctx:
            click.echo(e.ctx.command.get_usage(e.ctx), err=True)
        click.echo("Try 'tagall help' for help.\n", err=True)
        click.echo(f"Error: {e.format_message()}", err=True)
        sys.exit(2)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Exit as e:
        sys.exit(e.code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
