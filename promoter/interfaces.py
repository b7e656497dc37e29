"""
Collaborator interfaces the promotion engine is built against.

The orchestrator receives implementations of these at construction time;
``discord_adapter`` provides the discord.py versions and the tests provide
in-memory fakes.
"""

from typing import Any, Awaitable, Callable, List, Optional, Protocol

from .models import ChannelRef, HistoryMessage, Member, RoleRef
from .tiers import TierConfig

# (emoji, user_id) -> accept this reaction?
ReactionCheck = Callable[[str, int], bool]
ApplyFn = Callable[[Member], Awaitable[Any]]


class Directory(Protocol):
    async def fetch_roster(self, group: int) -> List[Member]: ...

    async def resolve_role(self, group: int, role_id: int) -> Optional[RoleRef]: ...

    async def resolve_channel(self, group: int, channel_id: int) -> Optional[ChannelRef]: ...


class MessageHistory(Protocol):
    async def fetch_page(
        self, channel: ChannelRef, before: Optional[int] = None, limit: int = 100
    ) -> List[HistoryMessage]:
        """Return up to ``limit`` messages older than ``before``, newest first."""
        ...


class ReactionUI(Protocol):
    async def post(self, title: str, description: str = "") -> Any: ...

    async def notify(self, text: str) -> None: ...

    async def add_reaction(self, message: Any, emoji: str) -> None: ...

    async def await_reaction(self, message: Any, check: ReactionCheck, timeout: float) -> str:
        """Return the emoji of the first reaction passing ``check``; raise ``asyncio.TimeoutError``."""
        ...

    async def clear_reactions(self, message: Any) -> None: ...

    async def edit(self, message: Any, title: str, description: str = "") -> None: ...

    async def delete(self, message: Any) -> None: ...

    def message_id(self, message: Any) -> int: ...


class RoleMutator(Protocol):
    async def add_role(self, member: Member, role: RoleRef) -> None: ...

    async def remove_role(self, member: Member, role: RoleRef) -> None: ...


class ConfigStore(Protocol):
    def get_tier_config(self, group: int) -> Optional[TierConfig]:
        """Return the guild's config, ``None`` if unset; raise ``ConfigurationError`` if incomplete."""
        ...
