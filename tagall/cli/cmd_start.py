"""Start command."""

import asyncio
import click

from . import cli
from .shared import console


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start the TagAll bot."""
    from tagall.config import load_settings
    from tagall.main import run, setup_logging

    settings = load_settings()
    if debug:
        settings.debug = True
    setup_logging(settings)

    console.print("[bold blue]Starting TagAll bot...[/bold blue]")
    asyncio.run(run(settings))
