"""Tests for the wacli WhatsApp transport (no real wacli binary needed)."""

import asyncio
import contextlib
import json
import sqlite3
import time

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from tagall.errors import CollaboratorFailure
from tagall.security import AuthorizationGate
from tagall.transport.base import Role, RosterMember
from tagall.transport.wacli import WacliTransport, parse_group_roster

GROUP = "120363000000000001@g.us"
SENDER = "919000000001@s.whatsapp.net"


def _proc(stdout=b"", stderr=b"", returncode=0):
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.returncode = returncode
    return proc


class TestParseGroupRoster:
    def test_whatsmeow_flags(self):
        data = {"JID": GROUP, "Participants": [
            {"JID": "1@s.whatsapp.net", "IsAdmin": True, "IsSuperAdmin": True},
            {"JID": "2@s.whatsapp.net", "IsAdmin": True, "IsSuperAdmin": False},
            {"JID": "3@s.whatsapp.net", "IsAdmin": False},
        ]}
        assert parse_group_roster(data) == [
            RosterMember("1@s.whatsapp.net", Role.SUPERADMIN),
            RosterMember("2@s.whatsapp.net", Role.ADMIN),
            RosterMember("3@s.whatsapp.net", Role.MEMBER),
        ]

    def test_wrapped_with_role_strings(self):
        data = {"success": True, "data": {"participants": [
            {"jid": "1@s.whatsapp.net", "admin": "superadmin"},
            {"id": "2@s.whatsapp.net", "admin": None},
        ]}}
        roster = parse_group_roster(data)
        assert [m.role for m in roster] == [Role.SUPERADMIN, Role.MEMBER]

    def test_skips_entries_without_jid(self):
        assert parse_group_roster({"Participants": [{"IsAdmin": True}, "junk"]}) == []

    def test_not_an_object(self):
        with pytest.raises(CollaboratorFailure):
            parse_group_roster(["not", "a", "group"])


class TestFilterInbound:
    def setup_method(self):
        self.transport = WacliTransport()

    def test_group_text_passes(self):
        row = {"chat_jid": GROUP, "sender_jid": SENDER, "text": "  tagall!  "}
        assert self.transport._filter_inbound(row) == (GROUP, SENDER, "tagall!")

    def test_direct_chat_dropped(self):
        row = {"chat_jid": SENDER, "sender_jid": SENDER, "text": "tagall!"}
        assert self.transport._filter_inbound(row) is None

    def test_status_broadcast_dropped(self):
        row = {"chat_jid": "status@broadcast", "sender_jid": SENDER, "text": "tagall!"}
        assert self.transport._filter_inbound(row) is None

    def test_empty_text_dropped(self):
        assert self.transport._filter_inbound({"chat_jid": GROUP, "sender_jid": SENDER, "text": None}) is None

    def test_no_sender_dropped(self):
        assert self.transport._filter_inbound({"chat_jid": GROUP, "sender_jid": "", "text": "tagall!"}) is None

    def test_echo_of_sent_reply_dropped_once(self):
        text = "🔔 *TAG ALL MEMBERS* 🔔"
        self.transport._echo_hashes[self.transport._content_hash(GROUP, text)] = time.time()
        row = {"chat_jid": GROUP, "sender_jid": SENDER, "text": text}
        assert self.transport._filter_inbound(row) is None
        assert self.transport._filter_inbound(row) == (GROUP, SENDER, text)


class TestCommands:
    @pytest.mark.asyncio
    async def test_send_reply(self):
        transport = WacliTransport(wacli_path="/usr/bin/wacli")
        proc = _proc()
        with patch("tagall.transport.wacli.asyncio.create_subprocess_exec",
                   new=AsyncMock(return_value=proc)) as mock_exec:
            await transport.send_reply(GROUP, "hello", [SENDER])

        args = mock_exec.call_args.args
        assert args == ("/usr/bin/wacli", "send", "text", "--to", GROUP, "--message", "hello")
        assert transport._content_hash(GROUP, "hello") in transport._echo_hashes

    @pytest.mark.asyncio
    async def test_send_failure_raises_collaborator_failure(self):
        transport = WacliTransport()
        proc = _proc(stderr=b"not authenticated", returncode=1)
        with patch("tagall.transport.wacli.asyncio.create_subprocess_exec",
                   new=AsyncMock(return_value=proc)):
            with pytest.raises(CollaboratorFailure, match="not authenticated"):
                await transport.send_reply(GROUP, "hello", [])

    @pytest.mark.asyncio
    async def test_missing_binary_raises_collaborator_failure(self):
        transport = WacliTransport()
        with patch("tagall.transport.wacli.asyncio.create_subprocess_exec",
                   new=AsyncMock(side_effect=FileNotFoundError("wacli"))):
            with pytest.raises(CollaboratorFailure):
                await transport.fetch_group_roster(GROUP)

    @pytest.mark.asyncio
    async def test_fetch_group_roster(self):
        transport = WacliTransport()
        out = json.dumps({"Participants": [{"JID": SENDER, "IsAdmin": True}]}).encode()
        with patch("tagall.transport.wacli.asyncio.create_subprocess_exec",
                   new=AsyncMock(return_value=_proc(stdout=out))) as mock_exec:
            roster = await transport.fetch_group_roster(GROUP)

        assert roster == [RosterMember(SENDER, Role.ADMIN)]
        assert mock_exec.call_args.args[1:] == ("groups", "info", "--jid", GROUP, "--json")

    @pytest.mark.asyncio
    async def test_fetch_group_roster_bad_json(self):
        transport = WacliTransport()
        with patch("tagall.transport.wacli.asyncio.create_subprocess_exec",
                   new=AsyncMock(return_value=_proc(stdout=b"Group: something"))):
            with pytest.raises(CollaboratorFailure):
                await transport.fetch_group_roster(GROUP)


class TestWorker:
    @pytest.mark.asyncio
    async def test_messages_handled_in_order(self):
        transport = WacliTransport()
        seen = []

        async def handler(group_id, sender_id, text):
            seen.append(text)
            await asyncio.sleep(0)

        transport._handler = handler
        for text in ("one", "two", "three"):
            transport._queue.put_nowait((GROUP, SENDER, text))

        worker = asyncio.create_task(transport._worker_loop())
        await asyncio.wait_for(transport._queue.join(), timeout=1)
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
        assert seen == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_handler_error_reported_to_group(self):
        transport = WacliTransport()
        transport._handler = AsyncMock(side_effect=ZeroDivisionError())
        transport.send_reply = AsyncMock()
        transport._queue.put_nowait((GROUP, SENDER, "tagall!"))

        worker = asyncio.create_task(transport._worker_loop())
        await asyncio.wait_for(transport._queue.join(), timeout=1)
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker

        group_id, text, mentions = transport.send_reply.call_args.args
        assert group_id == GROUP
        assert "ZeroDivisionError" in text


class TestStore:
    def _make_db(self, path):
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE messages (chat_jid TEXT, sender_jid TEXT, text TEXT, media_caption TEXT)"
        )
        conn.executemany("INSERT INTO messages VALUES (?, ?, ?, ?)", [
            (GROUP, SENDER, "old message", None),
            ("status@broadcast", SENDER, "status", None),
            (GROUP, SENDER, "", None),
            (GROUP, SENDER, "tagall!", None),
            (GROUP, SENDER, "", "tagexam!"),
        ])
        conn.commit()
        conn.close()

    def test_read_new_rows(self, tmp_path):
        self._make_db(tmp_path / "wacli.db")
        transport = WacliTransport(store_dir=str(tmp_path))
        transport._last_rowid = 1

        rows = transport._read_new_rows()

        assert [r["text"] or r["media_caption"] for r in rows] == ["tagall!", "tagexam!"]

    def test_seed_last_rowid(self, tmp_path):
        self._make_db(tmp_path / "wacli.db")
        transport = WacliTransport(store_dir=str(tmp_path))
        transport._seed_last_rowid()
        assert transport._last_rowid == 5

    def test_resolve_wacli_explicit_path(self, tmp_path):
        binary = tmp_path / "wacli"
        binary.write_text("#!/bin/sh\n")
        binary.chmod(0o755)
        assert WacliTransport(wacli_path=str(binary)).resolve_wacli() == str(binary)

    @pytest.mark.asyncio
    async def test_start_without_binary_fails(self, tmp_path):
        transport = WacliTransport(wacli_path=str(tmp_path / "missing"))
        with patch("tagall.transport.wacli.shutil.which", return_value=None), \
             patch.dict("os.environ", {"GOPATH": str(tmp_path)}):
            assert await transport.start(AsyncMock()) is False


class TestMemberIds:
    LID = "123456789012345@lid"

    def _make_session_db(self, path):
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE whatsmeow_lid_map (lid TEXT PRIMARY KEY, pn TEXT)")
        conn.execute("INSERT INTO whatsmeow_lid_map VALUES (?, ?)", ("123456789012345", "919000000001"))
        conn.commit()
        conn.close()

    def test_lid_mapped_to_phone_jid(self, tmp_path):
        self._make_session_db(tmp_path / "session.db")
        transport = WacliTransport(store_dir=str(tmp_path))
        assert transport.resolve_member_id(self.LID) == SENDER
        assert transport.resolve_member_id("123456789012345:7@lid") == SENDER

    def test_unknown_lid_unchanged(self, tmp_path):
        self._make_session_db(tmp_path / "session.db")
        transport = WacliTransport(store_dir=str(tmp_path))
        assert transport.resolve_member_id("999@lid") == "999@lid"

    def test_no_session_db(self, tmp_path):
        transport = WacliTransport(store_dir=str(tmp_path))
        assert transport.resolve_member_id(self.LID) == self.LID

    def test_phone_jid_device_stripped(self, tmp_path):
        transport = WacliTransport(store_dir=str(tmp_path))
        assert transport.resolve_member_id("919000000001:12@s.whatsapp.net") == SENDER

    @pytest.mark.asyncio
    async def test_admin_writing_under_lid_is_operator(self, tmp_path):
        """Roster lists the phone JID, the message arrives under the LID."""
        self._make_session_db(tmp_path / "session.db")
        transport = WacliTransport(store_dir=str(tmp_path))
        transport.fetch_group_roster = AsyncMock(return_value=[RosterMember(SENDER, Role.ADMIN)])

        assert await AuthorizationGate(transport).is_operator(self.LID, GROUP) is True

    @pytest.mark.asyncio
    async def test_roster_under_lid_matches_phone_sender(self, tmp_path):
        self._make_session_db(tmp_path / "session.db")
        transport = WacliTransport(store_dir=str(tmp_path))
        transport.fetch_group_roster = AsyncMock(return_value=[RosterMember(self.LID, Role.SUPERADMIN)])

        assert await AuthorizationGate(transport).is_operator(SENDER, GROUP) is True


def test_caption_counts_as_text():
    transport = WacliTransport()
    row = {"chat_jid": GROUP, "sender_jid": SENDER, "text": None, "media_caption": " tagall! "}
    assert transport._filter_inbound(row) == (GROUP, SENDER, "tagall!")
