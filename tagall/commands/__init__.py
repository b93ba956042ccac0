"""Chat commands — parsing, reply templates, and dispatch."""

from .parser import Command, CustomTag, Malformed, Pop, Push, Rename, TagAll, parse_command
from .replies import Reply
from .dispatcher import CommandDispatcher

__all__ = [
    "Command",
    "CustomTag",
    "Malformed",
    "Pop",
    "Push",
    "Rename",
    "TagAll",
    "parse_command",
    "Reply",
    "CommandDispatcher",
]
