"""Pytest configuration and shared fixtures."""

import pytest

from tagall.store import TagStore
from tagall.transport.base import GroupTransport, Role, RosterMember

GROUP_ID = "120363000000000001@g.us"
ADMIN_ID = "919000000001@s.whatsapp.net"
MEMBER_ID = "919000000002@s.whatsapp.net"


class FakeTransport(GroupTransport):
    """In-memory transport: fixed roster, records sent replies."""

    def __init__(self, roster=None, roster_error=None, lid_map=None):
        self.roster = roster if roster is not None else [
            RosterMember(ADMIN_ID, Role.ADMIN),
            RosterMember(MEMBER_ID, Role.MEMBER),
        ]
        self.roster_error = roster_error
        self.lid_map = lid_map or {}
        self.roster_calls = 0
        self.sent = []

    async def fetch_group_roster(self, group_id):
        self.roster_calls += 1
        if self.roster_error:
            raise self.roster_error
        return list(self.roster)

    async def send_reply(self, group_id, text, mention_ids):
        self.sent.append((group_id, text, list(mention_ids)))

    def resolve_member_id(self, member_id):
        member_id = super().resolve_member_id(member_id)
        return self.lid_map.get(member_id, member_id)


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "bot_data.json"


@pytest.fixture
def store(data_file):
    return TagStore(data_file)


@pytest.fixture
def transport():
    return FakeTransport()
