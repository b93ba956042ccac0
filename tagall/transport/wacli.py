"""WhatsApp transport via wacli.

Keeps a `wacli sync --follow` process alive (restarting it when it dies),
polls wacli's SQLite store for new group text messages (and media
captions), and hands them one at a time to the message handler. Group
rosters are read with `wacli groups info`, replies are posted with
`wacli send text`.

Requires: wacli binary installed and authenticated (`wacli auth`, scan
the QR code once).
"""

import asyncio
import hashlib
import json
import logging
import os
import shutil
import sqlite3
import time
from typing import Any, Optional, Sequence

from ..errors import CollaboratorFailure, classify_error
from ..phone import is_group_jid, jid_local_part, normalize_jid, to_jid
from .base import GroupTransport, MessageHandler, Role, RosterMember

logger = logging.getLogger("tagall.wacli")

_ECHO_TTL = 20          # seconds a sent text is remembered for echo suppression
_SEEN_MAX = 5000        # max remembered rowids before prune
_RESTART_DELAY = 5      # seconds before restarting a dead sync process

STATUS_BROADCAST_JID = "status@broadcast"
LID_SUFFIX = "@lid"


def parse_group_roster(data: Any) -> list[RosterMember]:
    """Turn `wacli groups info --json` output into roster entries.

    Accepts the bare group object or one wrapped in {"data": ...}.
    Participants carry either IsAdmin/IsSuperAdmin flags or a role string.
    """
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        data = data["data"]
    if not isinstance(data, dict):
        raise CollaboratorFailure("group info is not a JSON object")

    participants = data.get("Participants") or data.get("participants") or []
    roster = []
    for p in participants:
        if not isinstance(p, dict):
            continue
        jid = str(p.get("JID") or p.get("jid") or p.get("id") or "").strip()
        if not jid:
            continue
        role_str = str(p.get("role") or p.get("admin") or "").lower()
        if p.get("IsSuperAdmin") or role_str == "superadmin":
            role = Role.SUPERADMIN
        elif p.get("IsAdmin") or role_str == "admin":
            role = Role.ADMIN
        else:
            role = Role.MEMBER
        roster.append(RosterMember(member_id=jid, role=role))
    return roster


class WacliTransport(GroupTransport):
    """WhatsApp bridge using the wacli subprocess."""

    def __init__(
        self,
        wacli_path: str = "wacli",
        store_dir: str = "~/.wacli",
        poll_interval: float = 2.0,
        command_timeout: float = 30.0,
    ):
        self._wacli_path = wacli_path
        self._store_dir = os.path.expanduser(store_dir)
        self._poll_interval = poll_interval
        self._command_timeout = command_timeout or None
        self._handler: Optional[MessageHandler] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._monitor_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._worker_task: Optional[asyncio.Task] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._last_rowid: int = 0
        self._running = False
        self._cli_lock = asyncio.Lock()
        self._seen_rowids: set[int] = set()
        self._echo_hashes: dict[str, float] = {}
        self._lid_to_pn_cache: dict[str, str] = {}  # lid digits -> phone digits

    # ── Dependencies ────────────────────────────────────────────

    def resolve_wacli(self) -> Optional[str]:
        """Full path of the wacli binary, or None if it cannot be found."""
        if os.path.isfile(self._wacli_path) and os.access(self._wacli_path, os.X_OK):
            return self._wacli_path
        found = shutil.which(self._wacli_path)
        if found:
            return found
        gobin = os.path.join(os.environ.get("GOPATH") or os.path.expanduser("~/go"), "bin", "wacli")
        if os.path.isfile(gobin) and os.access(gobin, os.X_OK):
            return gobin
        return None

    @property
    def db_path(self) -> str:
        return os.path.join(self._store_dir, "wacli.db")

    @property
    def session_db_path(self) -> str:
        """whatsmeow session store; holds the LID <-> phone number map."""
        return os.path.join(self._store_dir, "session.db")

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self, handler: MessageHandler) -> bool:
        """Start syncing and delivering messages to ``handler``."""
        resolved = self.resolve_wacli()
        if not resolved:
            logger.error("wacli binary not found. Install: go install github.com/steipete/wacli@latest")
            return False
        self._wacli_path = resolved

        if not os.path.isfile(self.db_path):
            logger.error(f"wacli database not found at {self.db_path}. Run 'wacli auth' first.")
            return False

        self._handler = handler
        self._running = True

        ok = await self._start_sync()
        if not ok:
            self._running = False
            return False

        self._worker_task = asyncio.create_task(self._worker_loop())
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("WhatsApp bridge started.")
        return True

    async def stop(self):
        self._running = False
        for task in (self._poll_task, self._worker_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._poll_task = None
        self._worker_task = None
        await self._stop_sync()
        logger.info("WhatsApp bridge stopped.")

    # ── Sync process ────────────────────────────────────────────

    async def _start_sync(self) -> bool:
        """Start the long-running `wacli sync --follow` process.

        It keeps the WhatsApp connection alive and writes new messages
        into wacli.db, where the poller picks them up.
        """
        await self._stop_sync()
        try:
            self._process = await asyncio.create_subprocess_exec(
                self._wacli_path, "sync", "--follow",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(f"Failed to start wacli sync: {e}")
            self._process = None
            return False

        self._monitor_task = asyncio.create_task(self._monitor_loop(self._process))
        return True

    async def _stop_sync(self):
        # Monitor goes first so it does not restart the process we are stopping
        monitor = self._monitor_task
        self._monitor_task = None
        if monitor and monitor is not asyncio.current_task() and not monitor.done():
            monitor.cancel()
            try:
                await monitor
            except asyncio.CancelledError:
                pass

        if self._process:
            try:
                self._process.terminate()
                await asyncio.wait_for(self._process.wait(), timeout=5)
            except (asyncio.TimeoutError, ProcessLookupError):
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
            self._process = None

    async def _monitor_loop(self, process: asyncio.subprocess.Process):
        """Watch the sync process and reconnect if it dies unexpectedly."""
        try:
            await process.wait()
            if not self._running:
                return
            logger.warning(f"wacli sync exited (rc={process.returncode}), restarting in {_RESTART_DELAY}s...")
            self._process = None
            await asyncio.sleep(_RESTART_DELAY)
            if self._running and self._process is None:
                if not await self._start_sync():
                    logger.error("Failed to restart wacli sync")
        except asyncio.CancelledError:
            pass

    # ── Inbound ─────────────────────────────────────────────────

    def _read_new_rows(self) -> list[sqlite3.Row]:
        conn = sqlite3.connect(self.db_path, timeout=5)
        try:
            conn.row_factory = sqlite3.Row
            cur = conn.execute("""
                SELECT rowid, chat_jid, sender_jid, text, media_caption
                FROM messages
                WHERE rowid > ?
                  AND COALESCE(NULLIF(text, ''), media_caption, '') != ''
                  AND chat_jid != ?
                ORDER BY rowid ASC
            """, (self._last_rowid, STATUS_BROADCAST_JID))
            return cur.fetchall()
        finally:
            conn.close()

    def _seed_last_rowid(self):
        conn = sqlite3.connect(self.db_path, timeout=5)
        try:
            self._last_rowid = conn.execute("SELECT MAX(rowid) FROM messages").fetchone()[0] or 0
        finally:
            conn.close()

    async def _poll_loop(self):
        """Poll wacli.db for new messages; only messages after startup are handled."""
        try:
            self._seed_last_rowid()
            logger.info(f"WhatsApp poller started (last_rowid={self._last_rowid}, db={self.db_path})")
        except sqlite3.Error as e:
            logger.error(f"Failed to read wacli DB: {e}")
            return

        while self._running:
            try:
                await asyncio.sleep(self._poll_interval)
                if not self._running:
                    break
                for row in self._read_new_rows():
                    self._last_rowid = row["rowid"]
                    if row["rowid"] in self._seen_rowids:
                        continue
                    self._seen_rowids.add(row["rowid"])
                    message = self._filter_inbound(dict(row))
                    if message:
                        self._queue.put_nowait(message)
                self._prune_caches()
            except asyncio.CancelledError:
                break
            except sqlite3.Error as e:
                logger.error(f"Error in WhatsApp poll loop: {e}", exc_info=True)
                await asyncio.sleep(5)

    def _filter_inbound(self, row: dict) -> Optional[tuple[str, str, str]]:
        """Return (group_id, sender_id, text) for rows the bot should handle."""
        chat_jid = row.get("chat_jid") or ""
        # Image/video captions count as message text
        text = (row.get("text") or row.get("media_caption") or "").strip()
        if not text or chat_jid == STATUS_BROADCAST_JID or not is_group_jid(chat_jid):
            return None

        h = self._content_hash(chat_jid, text)
        sent_at = self._echo_hashes.get(h)
        if sent_at is not None and time.time() - sent_at < _ECHO_TTL:
            del self._echo_hashes[h]
            logger.debug(f"[whatsapp] echo suppressed: {text[:60]}")
            return None

        sender_jid = row.get("sender_jid") or ""
        if not sender_jid:
            # from_me rows written by our own sends have no sender
            logger.debug(f"[whatsapp] drop: no sender in {chat_jid}")
            return None
        return chat_jid, sender_jid, text

    async def _worker_loop(self):
        """Deliver queued messages to the handler strictly one at a time."""
        while True:
            group_id, sender_id, text = await self._queue.get()
            try:
                logger.info(f"[whatsapp] inbound: chat={group_id} sender={sender_id} text={text[:60]}")
                await self._handler(group_id, sender_id, text)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error handling WhatsApp message: {e}", exc_info=True)
                try:
                    await self.send_reply(group_id, f"❌ {classify_error(e)}", [])
                except CollaboratorFailure as send_error:
                    logger.error(f"Error sending error message: {send_error}")
            finally:
                self._queue.task_done()

    def _content_hash(self, chat_jid: str, text: str) -> str:
        return f"{chat_jid}:{hashlib.md5(text.encode()).hexdigest()[:12]}"

    def _prune_caches(self):
        now = time.time()
        self._echo_hashes = {k: v for k, v in self._echo_hashes.items() if (now - v) < _ECHO_TTL}
        if len(self._seen_rowids) > _SEEN_MAX:
            self._seen_rowids = set(sorted(self._seen_rowids)[-_SEEN_MAX:])

    # ── Participant ids ─────────────────────────────────────────

    def _lookup_pn_from_lid(self, lid: str) -> str:
        """Map a LID (digits) to a phone number (digits) via session.db.

        Returns '' if unknown or unavailable. Results are cached.
        """
        if not lid or not lid.isdigit() or not os.path.isfile(self.session_db_path):
            return ""
        cached = self._lid_to_pn_cache.get(lid)
        if cached is not None:
            return cached
        try:
            conn = sqlite3.connect(f"file:{self.session_db_path}?mode=ro", uri=True, timeout=1)
            try:
                row = conn.execute(
                    "SELECT pn FROM whatsmeow_lid_map WHERE lid = ? LIMIT 1", (lid,)
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.debug(f"[whatsapp] LID lookup failed for {lid}: {e}")
            return ""
        pn = jid_local_part(str(row[0])) if row and row[0] else ""
        self._lid_to_pn_cache[lid] = pn
        return pn

    def resolve_member_id(self, member_id: str) -> str:
        """'<lid>@lid' → '<phone>@s.whatsapp.net' when the session knows the mapping."""
        jid = normalize_jid(member_id)
        if not jid.endswith(LID_SUFFIX):
            return jid
        pn = self._lookup_pn_from_lid(jid_local_part(jid))
        return to_jid(pn) if pn else jid

    # ── Collaborator interface ─────────────────────────────────

    async def _run_wacli(self, *args: str) -> str:
        """Run a one-shot wacli command and return stdout.

        `wacli sync --follow` holds an exclusive lock on the store, so sync
        is paused for the duration of the command and resumed afterwards.
        """
        async with self._cli_lock:
            was_syncing = self._process is not None
            if was_syncing:
                await self._stop_sync()
            try:
                proc = await asyncio.create_subprocess_exec(
                    self._wacli_path, *args,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._command_timeout)
                if proc.returncode != 0:
                    err = stderr.decode("utf-8", errors="replace") if stderr else ""
                    raise CollaboratorFailure(f"wacli {args[0]} failed (rc={proc.returncode}): {err[:200]}")
                return stdout.decode("utf-8", errors="replace")
            except (OSError, asyncio.TimeoutError) as e:
                raise CollaboratorFailure(f"wacli {args[0]} failed: {type(e).__name__}: {e}") from e
            finally:
                if self._running and was_syncing:
                    if not await self._start_sync():
                        logger.error("Failed to restart wacli sync after command")

    async def fetch_group_roster(self, group_id: str) -> list[RosterMember]:
        out = await self._run_wacli("groups", "info", "--jid", group_id, "--json")
        try:
            data = json.loads(out)
        except json.JSONDecodeError as e:
            raise CollaboratorFailure(f"Unexpected wacli groups info output: {e}") from e
        return parse_group_roster(data)

    async def send_reply(self, group_id: str, text: str, mention_ids: Sequence[str]) -> None:
        # wacli send text carries no mention metadata; '@<number>' stays in the text
        if mention_ids:
            logger.debug(
                f"[whatsapp] reply to {group_id} references "
                f"{', '.join(jid_local_part(m) for m in mention_ids)}"
            )
        self._echo_hashes[self._content_hash(group_id, text.strip())] = time.time()
        await self._run_wacli("send", "text", "--to", group_id, "--message", text)
        logger.info(f"[whatsapp] sent reply to {group_id} ({len(mention_ids)} mention(s))")
