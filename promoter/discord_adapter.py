"""discord.py implementations of the promotion engine's collaborator interfaces."""

import logging
from typing import Any, List, Optional

import discord

from .interfaces import ReactionCheck
from .models import ChannelRef, HistoryMessage, Member, RoleRef

log = logging.getLogger(__name__)

PROMPT_COLOUR = 0x5865F2
NOTICE_COLOUR = 0x92FC68


def to_member(member: discord.Member) -> Member:
    return Member(
        id=member.id,
        display_name=member.display_name,
        joined_at=member.joined_at,
        role_ids=frozenset(r.id for r in member.roles),
        bot=member.bot,
        handle=member,
    )


class DiscordDirectory:
    def __init__(self, bot: discord.Client):
        self.bot = bot

    async def _guild(self, group: int) -> discord.Guild:
        guild = self.bot.get_guild(group)
        if guild is None:
            guild = await self.bot.fetch_guild(group)
        return guild

    async def fetch_roster(self, group: int) -> List[Member]:
        guild = await self._guild(group)
        members = [m async for m in guild.fetch_members(limit=None)]
        log.info("fetch_roster: fetched %d members of %s", len(members), guild.name)
        return [to_member(m) for m in members]

    async def resolve_role(self, group: int, role_id: int) -> Optional[RoleRef]:
        guild = await self._guild(group)
        role = guild.get_role(role_id)
        if role is None:
            try:
                role = discord.utils.get(await guild.fetch_roles(), id=role_id)
            except discord.HTTPException as e:
                log.warning("resolve_role: fetch_roles failed for %s: %s", guild.id, e)
                role = None
        if role is None:
            log.error("resolve_role: no such role %s in guild %s", role_id, guild.id)
            return None
        return RoleRef(id=role.id, name=role.name, handle=role)

    async def resolve_channel(self, group: int, channel_id: int) -> Optional[ChannelRef]:
        guild = await self._guild(group)
        channel = guild.get_channel(channel_id)
        if channel is None:
            try:
                channel = await guild.fetch_channel(channel_id)
            except (discord.NotFound, discord.Forbidden):
                channel = None
        if channel is None:
            log.error("resolve_channel: no such channel %s in guild %s", channel_id, guild.id)
            return None
        if not isinstance(channel, discord.TextChannel):
            log.error("resolve_channel: %s (%s) is not a text channel", channel.name, channel_id)
            return None
        return ChannelRef(id=channel.id, name=channel.name, handle=channel)


class DiscordHistory:
    async def fetch_page(self, channel: ChannelRef, before: Optional[int] = None, limit: int = 100) -> List[HistoryMessage]:
        cursor = discord.Object(id=before) if before is not None else None
        page = [m async for m in channel.handle.history(limit=limit, before=cursor)]
        return [HistoryMessage(id=m.id, author_id=m.author.id, timestamp=m.created_at) for m in page]


class DiscordReactionUI:
    """Prompts and status messages in the channel the command was run from."""

    def __init__(self, bot: discord.Client, channel: discord.abc.Messageable):
        self.bot = bot
        self.channel = channel

    async def post(self, title: str, description: str = "") -> discord.Message:
        embed = discord.Embed(title=title, description=description or None, colour=PROMPT_COLOUR)
        return await self.channel.send(embed=embed, allowed_mentions=discord.AllowedMentions.none())

    async def notify(self, text: str) -> None:
        await self.channel.send(
            embed=discord.Embed(description=text, colour=NOTICE_COLOUR),
            allowed_mentions=discord.AllowedMentions.none(),
        )

    async def add_reaction(self, message: discord.Message, emoji: str) -> None:
        await message.add_reaction(emoji)

    async def await_reaction(self, message: discord.Message, check: ReactionCheck, timeout: float) -> str:
        def reaction_check(reaction: discord.Reaction, user: discord.abc.User) -> bool:
            return reaction.message.id == message.id and check(str(reaction.emoji), user.id)

        reaction, _ = await self.bot.wait_for("reaction_add", timeout=timeout, check=reaction_check)
        return str(reaction.emoji)

    async def clear_reactions(self, message: discord.Message) -> None:
        await message.clear_reactions()

    async def edit(self, message: discord.Message, title: str, description: str = "") -> None:
        embed = discord.Embed(title=title, description=description or None, colour=PROMPT_COLOUR)
        await message.edit(embed=embed)

    async def delete(self, message: discord.Message) -> None:
        await message.delete()

    def message_id(self, message: Any) -> int:
        return message.id


class DiscordRoleMutator:
    def __init__(self, reason: str = "Tier promotion"):
        self.reason = reason

    async def add_role(self, member: Member, role: RoleRef) -> None:
        await member.handle.add_roles(role.handle or discord.Object(id=role.id), reason=self.reason)

    async def remove_role(self, member: Member, role: RoleRef) -> None:
        await member.handle.remove_roles(role.handle or discord.Object(id=role.id), reason=self.reason)
