"""Command dispatcher — parse → authorize → execute → reply.

One inbound message is handled to completion before the next one
starts. Nothing raised while handling a message leaves ``dispatch``:
every path ends in a Reply or in None (not a command).
"""

import asyncio
import logging
from typing import Optional

from ..errors import (
    AuthorizationError,
    CollaboratorFailure,
    ConflictError,
    NotFoundError,
    TagallError,
    ValidationError,
    classify_error,
)
from ..security import AuthorizationGate, fetch_roster
from ..store import RenameStatus, TagStore
from ..transport.base import GroupTransport
from . import replies
from .parser import Command, CustomTag, Malformed, Pop, Push, Rename, TagAll, parse_command
from .replies import Reply

logger = logging.getLogger("tagall.dispatcher")


class CommandDispatcher:
    """Runs chat commands against a TagStore and a group transport."""

    def __init__(
        self,
        store: TagStore,
        transport: GroupTransport,
        gate: Optional[AuthorizationGate] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.transport = transport
        self.gate = gate or AuthorizationGate(transport, timeout=timeout)
        self._timeout = timeout
        self._lock = asyncio.Lock()

    async def on_message(self, group_id: str, sender_id: str, text: str):
        """Transport callback: handle one message and post the reply, if any."""
        reply = await self.dispatch(group_id, sender_id, text)
        if reply is None:
            return
        try:
            await self.transport.send_reply(group_id, reply.text, reply.mentions)
        except Exception as e:
            logger.error(f"Failed to send reply to {group_id}: {type(e).__name__}: {e}")

    async def dispatch(self, group_id: str, sender_id: str, text: str) -> Optional[Reply]:
        command = parse_command(text)
        if command is None:
            return None

        async with self._lock:
            try:
                if not await self.gate.is_operator(sender_id, group_id):
                    raise AuthorizationError(
                        f"{sender_id} is not an admin of {group_id}",
                        reply=replies.format_denial(command.kind),
                    )
                return await self._execute(command, group_id, sender_id)
            except TagallError as e:
                logger.info(f"{command.kind} from {sender_id} in {group_id}: {type(e).__name__}: {e}")
                return e.reply or Reply(f"❌ {classify_error(e)}")
            except Exception as e:
                logger.error(
                    f"Error handling {command.kind} from {sender_id} in {group_id}: {e}",
                    exc_info=True,
                )
                return replies.format_error(command.kind)

    async def _execute(self, command: Command, group_id: str, sender_id: str) -> Reply:
        if isinstance(command, Malformed):
            raise ValidationError(
                f"malformed {command.kind} command", reply=replies.format_usage(command.kind),
            )
        if isinstance(command, TagAll):
            return await self._tag_all(group_id, sender_id)
        if isinstance(command, CustomTag):
            return self._custom_tag(command, sender_id)
        if isinstance(command, Push):
            return self._push(command, sender_id)
        if isinstance(command, Pop):
            return self._pop(command, sender_id)
        if isinstance(command, Rename):
            return self._rename(command, sender_id)
        raise TypeError(f"Unhandled command: {command!r}")

    # ── Handlers ───────────────────────────────────────────────

    async def _tag_all(self, group_id: str, sender_id: str) -> Reply:
        try:
            roster = await fetch_roster(self.transport, group_id, self._timeout)
        except Exception as e:
            logger.error(f"Roster fetch for {group_id} failed: {type(e).__name__}: {e}", exc_info=True)
            raise CollaboratorFailure(
                f"roster fetch for {group_id} failed", reply=replies.format_error("tagall"),
            ) from e

        reply = replies.format_tag_all([m.member_id for m in roster], sender_id)
        logger.info(f"TagAll in {group_id} by {sender_id}: {len(roster)} member(s)")
        return reply

    def _custom_tag(self, command: CustomTag, sender_id: str) -> Reply:
        numbers = self.store.get(command.tag)
        if not numbers:
            raise NotFoundError(
                f'tag "{command.tag}" has no numbers', reply=replies.format_tag_empty(command.tag),
            )
        logger.info(f"Tag '{command.tag}' by {sender_id}: {len(numbers)} number(s)")
        return replies.format_custom_tag(command.tag, numbers, sender_id)

    def _push(self, command: Push, sender_id: str) -> Reply:
        result = self.store.add_members(command.tag, command.numbers)
        if not result.added and not result.duplicates:
            raise ValidationError(
                f"no valid phone numbers for '{command.tag}'",
                reply=replies.format_push_no_valid(result.invalid),
            )
        total = len(self.store.get(command.tag) or [])
        logger.info(f"PUSH by {sender_id}: {len(result.added)} number(s) added to '{command.tag}'")
        return replies.format_push(command.tag, result, total)

    def _pop(self, command: Pop, sender_id: str) -> Reply:
        result = self.store.remove_members(command.tag, command.numbers)
        if not result.tag_found:
            raise NotFoundError(
                f'tag "{command.tag}" does not exist', reply=replies.format_pop_missing(command.tag),
            )
        remaining = len(self.store.get(command.tag) or [])
        logger.info(f"POP by {sender_id}: {len(result.removed)} number(s) removed from '{command.tag}'")
        return replies.format_pop(command.tag, result, remaining)

    def _rename(self, command: Rename, sender_id: str) -> Reply:
        status = self.store.rename(command.old, command.new)
        count = len(self.store.get(command.new) or [])
        reply = replies.format_rename(status, command.old, command.new, count)
        if status is RenameStatus.NOT_FOUND:
            raise NotFoundError(f'tag "{command.old}" does not exist', reply=reply)
        if status is not RenameStatus.OK:
            raise ConflictError(f"cannot rename '{command.old}' to '{command.new}' ({status.value})", reply=reply)
        logger.info(f"RENAME by {sender_id}: '{command.old}' → '{command.new}'")
        return reply
