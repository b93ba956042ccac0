"""Transport interface consumed by the command core.

The core only needs two things from the chat network: the live roster
of a group (for authorization and tagall!) and a way to post a reply
with mentions. Everything else (sessions, login, QR codes,
reconnection) stays inside the concrete transport.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Sequence

from ..phone import normalize_jid


class Role(Enum):
    MEMBER = "member"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


@dataclass(frozen=True)
class RosterMember:
    member_id: str
    role: Role = Role.MEMBER

    @property
    def is_operator(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPERADMIN)


# on_message(group_id, sender_id, text)
MessageHandler = Callable[[str, str, str], Awaitable[None]]


class GroupTransport(ABC):
    """Abstract base class for chat transports."""

    @abstractmethod
    async def fetch_group_roster(self, group_id: str) -> list[RosterMember]:
        """Return every participant of the group with its role."""
        ...

    @abstractmethod
    async def send_reply(self, group_id: str, text: str, mention_ids: Sequence[str]) -> None:
        """Post a text message to the group. Raises on failure."""
        ...

    def resolve_member_id(self, member_id: str) -> str:
        """Canonical form of a participant id, used to match senders to roster entries.

        The default only strips the device suffix. Transports that address
        participants under more than one id (phone number and LID) map
        them to one form here.
        """
        return normalize_jid(member_id)
