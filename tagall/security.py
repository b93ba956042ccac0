"""Operator checks for privileged commands.

Every tag command is privileged: only group admins and super admins
may run it. Status is read from the live group roster on every call,
never cached, because admins can be promoted or demoted between
messages. Any failure talking to the transport counts as "not an
operator" (fail closed).
"""

import asyncio
import logging
from typing import Callable, Optional

from .phone import normalize_jid
from .transport.base import GroupTransport, RosterMember

logger = logging.getLogger("tagall.security")


async def fetch_roster(
    transport: GroupTransport,
    group_id: str,
    timeout: Optional[float] = None,
) -> list[RosterMember]:
    """Fetch a group roster, bounded by ``timeout`` seconds when set."""
    if timeout:
        return await asyncio.wait_for(transport.fetch_group_roster(group_id), timeout=timeout)
    return await transport.fetch_group_roster(group_id)


def find_member(
    roster: list[RosterMember],
    sender_id: str,
    resolve: Callable[[str], str] = normalize_jid,
) -> Optional[RosterMember]:
    """Roster entry for ``sender_id``; both sides are compared after ``resolve``."""
    sender = resolve(sender_id)
    for member in roster:
        if resolve(member.member_id) == sender:
            return member
    return None


class AuthorizationGate:
    """Decides whether a sender is an operator of a group."""

    def __init__(self, transport: GroupTransport, timeout: Optional[float] = None):
        self._transport = transport
        self._timeout = timeout

    async def is_operator(self, sender_id: str, group_id: str) -> bool:
        try:
            roster = await fetch_roster(self._transport, group_id, self._timeout)
        except Exception as e:
            logger.warning(f"Roster lookup failed for {group_id}, denying {sender_id}: {type(e).__name__}: {e}")
            return False

        member = find_member(roster, sender_id, self._transport.resolve_member_id)
        if member is None:
            logger.info(f"Sender {sender_id} not found in roster of {group_id}")
            return False
        return member.is_operator
