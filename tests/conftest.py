"""In-memory stand-ins for the platform collaborators."""

import asyncio
import datetime
import itertools
from typing import Dict, List, Optional, Tuple

import pytest

from promoter.models import ChannelRef, HistoryMessage, Member, RoleRef
from promoter.tiers import TierConfig

UTC = datetime.timezone.utc
NOW = datetime.datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

GUILD = 5000
OPERATOR = 42
EVERYONE = 1
NEW = 10
JUNIOR = 11
FULL = 12
PRONOUNS = 20
NEW_CHAT = 100
JUNIOR_CHAT = 101

BASE_CONFIG = {
    "new_role": NEW,
    "junior_role": JUNIOR,
    "full_role": FULL,
    "new_chat_channel": NEW_CHAT,
    "junior_chat_channel": JUNIOR_CHAT,
    "new_min_messages": 1,
    "junior_min_messages": 2,
    "junior_min_age_days": 3,
    "new_message_max_age_days": 30,
}

_ids = itertools.count(1000)


def make_member(member_id: int, *roles: int, days_ago: Optional[float] = 30, bot: bool = False, name: Optional[str] = None) -> Member:
    joined = NOW - datetime.timedelta(days=days_ago) if days_ago is not None else None
    return Member(
        id=member_id,
        display_name=name or f"user{member_id}",
        joined_at=joined,
        role_ids=frozenset((EVERYONE,) + roles),
        bot=bot,
    )


def make_message(author_id: int, hours_ago: float, message_id: Optional[int] = None) -> HistoryMessage:
    return HistoryMessage(
        id=message_id if message_id is not None else next(_ids),
        author_id=author_id,
        timestamp=NOW - datetime.timedelta(hours=hours_ago),
    )


class FakeDirectory:
    def __init__(self, roster: List[Member], roles: Optional[Dict[int, str]] = None, channels: Optional[Dict[int, str]] = None):
        self.roster = roster
        self.roles = roles if roles is not None else {NEW: "New", JUNIOR: "Junior", FULL: "Member"}
        self.channels = channels if channels is not None else {NEW_CHAT: "introductions", JUNIOR_CHAT: "general"}
        self.roster_error: Optional[Exception] = None
        self.roster_calls = 0

    async def fetch_roster(self, group: int) -> List[Member]:
        self.roster_calls += 1
        if self.roster_error is not None:
            raise self.roster_error
        return list(self.roster)

    async def resolve_role(self, group: int, role_id: int) -> Optional[RoleRef]:
        if role_id not in self.roles:
            return None
        return RoleRef(id=role_id, name=self.roles[role_id])

    async def resolve_channel(self, group: int, channel_id: int) -> Optional[ChannelRef]:
        if channel_id not in self.channels:
            return None
        return ChannelRef(id=channel_id, name=self.channels[channel_id])


class FakeHistory:
    """Serves fixed per-channel history newest-first, honouring ``before`` and ``limit``."""

    def __init__(self, messages: Optional[Dict[int, List[HistoryMessage]]] = None):
        self.messages = {
            cid: sorted(msgs, key=lambda m: m.timestamp, reverse=True) for cid, msgs in (messages or {}).items()
        }
        self.calls: List[Tuple[int, Optional[int], int]] = []
        self.error: Optional[Exception] = None

    async def fetch_page(self, channel: ChannelRef, before: Optional[int] = None, limit: int = 100) -> List[HistoryMessage]:
        self.calls.append((channel.id, before, limit))
        if self.error is not None:
            raise self.error
        msgs = self.messages.get(channel.id, [])
        if before is not None:
            idx = next(i for i, m in enumerate(msgs) if m.id == before)
            msgs = msgs[idx + 1:]
        return msgs[:limit]


class EndlessHistory:
    """Always returns a full page of recent messages; never reaches the cutoff."""

    def __init__(self, author_id: int = 7):
        self.author_id = author_id
        self.calls = 0

    async def fetch_page(self, channel: ChannelRef, before: Optional[int] = None, limit: int = 100) -> List[HistoryMessage]:
        self.calls += 1
        return [make_message(self.author_id, hours_ago=0.01 * (self.calls * limit + i)) for i in range(limit)]


class FakeMessage:
    def __init__(self, message_id: int, title: str, description: str):
        self.id = message_id
        self.title = title
        self.description = description
        self.reactions: List[str] = []
        self.deleted = False
        self.edits: List[Tuple[str, str]] = []


class FakeUI:
    """
    Records everything posted. ``script`` maps a prompt title to the reactions
    that will arrive on it, in order, as (emoji, user_id) pairs; a prompt with
    no qualifying reaction times out.
    """

    def __init__(self, script: Optional[Dict[str, List[Tuple[str, int]]]] = None):
        self.script = script or {}
        self.messages: List[FakeMessage] = []
        self.notices: List[str] = []
        self.cleared: List[int] = []
        self.waits: List[float] = []
        self._ids = itertools.count(1)

    async def post(self, title: str, description: str = "") -> FakeMessage:
        message = FakeMessage(next(self._ids), title, description)
        self.messages.append(message)
        return message

    async def notify(self, text: str) -> None:
        self.notices.append(text)

    async def add_reaction(self, message: FakeMessage, emoji: str) -> None:
        message.reactions.append(emoji)

    async def await_reaction(self, message: FakeMessage, check, timeout: float) -> str:
        self.waits.append(timeout)
        await asyncio.sleep(0)
        for emoji, user_id in self.script.get(message.title, []):
            if check(emoji, user_id):
                return emoji
        raise asyncio.TimeoutError()

    async def clear_reactions(self, message: FakeMessage) -> None:
        message.reactions.clear()
        self.cleared.append(message.id)

    async def edit(self, message: FakeMessage, title: str, description: str = "") -> None:
        message.title = title
        message.description = description
        message.edits.append((title, description))

    async def delete(self, message: FakeMessage) -> None:
        message.deleted = True

    def message_id(self, message: FakeMessage) -> int:
        return message.id

    def prompts(self) -> List[FakeMessage]:
        return [m for m in self.messages if not m.deleted]


class FakeRoles:
    def __init__(self):
        self.calls: List[Tuple[str, int, int]] = []
        self.fail: set = set()

    async def add_role(self, member: Member, role: RoleRef) -> None:
        self.calls.append(("add", member.id, role.id))
        if ("add", member.id, role.id) in self.fail:
            raise RuntimeError("Missing Permissions")

    async def remove_role(self, member: Member, role: RoleRef) -> None:
        self.calls.append(("remove", member.id, role.id))
        if ("remove", member.id, role.id) in self.fail:
            raise RuntimeError("Missing Permissions")


class FakeConfigStore:
    def __init__(self, raw: Optional[dict] = None):
        self.raw = raw

    def get_tier_config(self, group: int) -> Optional[TierConfig]:
        if self.raw is None:
            return None
        return TierConfig.from_dict(self.raw)


@pytest.fixture
def config() -> TierConfig:
    return TierConfig.from_dict(BASE_CONFIG)


@pytest.fixture
def roles() -> FakeRoles:
    return FakeRoles()
