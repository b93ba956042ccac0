"""Chat transports that feed messages to the dispatcher."""

from .base import GroupTransport, MessageHandler, Role, RosterMember

__all__ = ["GroupTransport", "MessageHandler", "Role", "RosterMember"]
