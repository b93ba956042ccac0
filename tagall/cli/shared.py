"""Shared utilities for TagAll CLI commands."""

from rich.console import Console

from tagall.config import load_settings
from tagall.store import TagStore

console = Console()


def _open_store(data_file: str | None = None) -> TagStore:
    """Open the tag registry from --data-file or TAGALL_DATA_FILE."""
    if data_file is None:
        data_file = load_settings().data_file
    return TagStore(data_file)
