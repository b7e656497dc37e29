# bot.py
# Tier Promoter

import os
import json
import re
import logging
from typing import List, Optional, Set

from dotenv import load_dotenv
import discord
from discord import app_commands
from discord.ext import commands

from promoter import JsonConfigStore, PromotionError, PromotionOrchestrator, PromotionStatus
from promoter.discord_adapter import DiscordDirectory, DiscordHistory, DiscordReactionUI, DiscordRoleMutator

load_dotenv()
BOT_TOKEN = os.getenv("BOT_TOKEN")
GUILD_ID = int(os.getenv("GUILD_ID") or 0)

ADMIN_ROLE_IDS_RAW = json.loads(os.getenv("ADMIN_ROLE_IDS", "[]") or "[]")
COMMAND_PREFIX = os.getenv("COMMAND_PREFIX", "!")
CONFIRM_TIMEOUT_SECONDS = float(os.getenv("CONFIRM_TIMEOUT_SECONDS", "300"))
CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

log = logging.getLogger("promoter.bot")

# Normalize admin role ids to ints safely
ADMIN_ROLE_IDS: List[int] = []
for rid in ADMIN_ROLE_IDS_RAW:
    try:
        ADMIN_ROLE_IDS.append(int(rid))
    except (TypeError, ValueError):
        log.warning("Ignoring invalid admin role id %r", rid)
ADMIN_ROLE_IDS_SET: Set[int] = set(ADMIN_ROLE_IDS)

ROLE_RE = re.compile(r"^<@&(\d{17,20})>$|^(\d{17,20})$")
CHANNEL_RE = re.compile(r"^<#(\d{17,20})>$|^(\d{17,20})$")
USER_RE = re.compile(r"^<@!?(\d{17,20})>$|^(\d{17,20})$")

intents = discord.Intents.default()
intents.members = True     # roster fetch; enable in Dev Portal
intents.message_content = True
intents.guilds = True
intents.reactions = True

bot = commands.Bot(command_prefix=COMMAND_PREFIX, intents=intents, help_command=None)

store = JsonConfigStore(CONFIG_PATH)

# -------------------------
# Admin detection helper
# -------------------------
def is_admin_member(member: Optional[discord.Member]) -> bool:
    if not member:
        return False
    if member.guild and member.guild.owner_id == member.id:
        return True
    if member.guild_permissions.administrator:
        return True
    return any(r.id in ADMIN_ROLE_IDS_SET for r in member.roles)

def in_scope(guild: Optional[discord.Guild]) -> bool:
    return guild is not None and (not GUILD_ID or guild.id == GUILD_ID)

# -------------------------
# Logging helper (non-notifying)
# -------------------------
async def log_to_channel(guild: discord.Guild, text: str):
    channel_id = store.get_log_channel(guild.id)
    if not channel_id:
        log.info("[LOG] %s", text)
        return
    ch = guild.get_channel(channel_id)
    if ch is None:
        try:
            ch = await guild.fetch_channel(channel_id)
        except discord.HTTPException:
            log.info("[LOG] channel not available, fallback to console: %s", text)
            return
    try:
        # disable allowed_mentions to avoid accidental pings
        await ch.send(content=text, allowed_mentions=discord.AllowedMentions.none())
    except discord.HTTPException as e:
        log.warning("Failed to send log: %s", e)

# -------------------------
# Argument parsing
# -------------------------
def _match_id(pattern: re.Pattern, token: str) -> Optional[int]:
    m = pattern.match(token.strip())
    if not m:
        return None
    return int(m.group(1) or m.group(2))

def parse_role(token: str) -> Optional[int]:
    return _match_id(ROLE_RE, token)

def parse_channel(token: str) -> Optional[int]:
    return _match_id(CHANNEL_RE, token)

def parse_user(token: str) -> Optional[int]:
    return _match_id(USER_RE, token)

def parse_count(token: str) -> Optional[int]:
    try:
        value = int(token)
    except ValueError:
        return None
    return value if value >= 0 else None

# -------------------------
# Promotion run
# -------------------------
async def run_promote(guild: discord.Guild, channel: discord.abc.Messageable, initiator: discord.abc.User, force_member: Optional[int] = None):
    """
    Run a promotion pass with prompts posted in ``channel``.

    The caller has already checked that ``initiator`` is an admin. Returns the
    report, or None if the run was aborted by an error.
    """
    orchestrator = PromotionOrchestrator(
        directory=DiscordDirectory(bot),
        history=DiscordHistory(),
        config_store=store,
        ui=DiscordReactionUI(bot, channel),
        roles=DiscordRoleMutator(reason=f"Promotion run by {initiator}"),
        confirm_timeout=CONFIRM_TIMEOUT_SECONDS,
    )
    log.info("run_promote: started by %s (id %s) in guild %s, force_member=%s", initiator, initiator.id, guild.id, force_member)
    try:
        report = await orchestrator.run_promotion(guild.id, initiator.id, force_member=force_member)
    except PromotionError as e:
        log.error("run_promote: aborted: %s", e)
        await log_to_channel(guild, f":x: Promote error: {e}")
        return None
    except Exception as e:
        log.exception("run_promote: unexpected error")
        await log_to_channel(guild, f":x: Promote error: {e!r}")
        try:
            await channel.send("Error during promotion (see console).")
        except discord.HTTPException:
            pass
        return None

    if report.status is PromotionStatus.CONFIGURATION_ERROR:
        await log_to_channel(guild, f":grey_question: Promote not configured: {'; '.join(report.problems)}")
    elif report.status is PromotionStatus.RESOLUTION_ERROR:
        await log_to_channel(guild, f":x: Promote error: {'; '.join(report.problems)}")
    else:
        await log_to_channel(guild, f":white_check_mark: {report.summary()}")
    return report

def describe_config(guild_id: int) -> str:
    promote = store.guild(guild_id).get("promote") or {}
    if not promote:
        return "Promotion is not configured."
    lines = ["Current promote settings:"]
    for key, value in sorted(promote.items()):
        lines.append(f"- `{key}`: {value}")
    return "\n".join(lines)

# -------------------------
# Events
# -------------------------
@bot.event
async def on_ready():
    log.info("Logged in as %s (id: %s)", bot.user, bot.user.id)
    log.info("Effective intents at runtime: %s", json.dumps({
        "members": bot.intents.members,
        "message_content": bot.intents.message_content,
        "guilds": bot.intents.guilds,
        "reactions": bot.intents.reactions,
    }))
    if GUILD_ID and not bot.get_guild(GUILD_ID):
        log.warning("Bot not in configured guild. Check GUILD_ID.")
    log.info("NOTE: bot will NOT auto-sync application commands at startup (use register_commands.py).")

# -------------------------
# Prefix commands handler
# -------------------------
@bot.event
async def on_message(message: discord.Message):
    if message.author.bot or not in_scope(message.guild):
        return
    if not message.content:
        return

    content = message.content.lstrip()
    if not content.startswith(COMMAND_PREFIX):
        return

    args = content[len(COMMAND_PREFIX):].split()
    if not args:
        return
    cmd = args[0].lower()
    log.debug("on_message: prefix command %s args=%s from %s", cmd, args[1:], message.author.id)

    member = message.guild.get_member(message.author.id)
    if not member:
        try:
            member = await message.guild.fetch_member(message.author.id)
        except discord.HTTPException:
            member = None
    is_admin = is_admin_member(member)

    # HELP
    if cmd == "help":
        help_text = (
            "Available prefix commands:\n"
            f"- `{COMMAND_PREFIX}ping` — quick ping test\n"
            f"- `{COMMAND_PREFIX}setlog #channel` — set log channel (admin)\n"
            f"- `{COMMAND_PREFIX}greetrole @New` — set the new member role (admin)\n"
            f"- `{COMMAND_PREFIX}promoteroles @Junior @Full` — set the junior and full member roles (admin)\n"
            f"- `{COMMAND_PREFIX}promoterules #new-chat #junior-chat new_min junior_min junior_min_age_days new_message_max_age_days` — set promotion rules (admin)\n"
            f"    - e.g. `{COMMAND_PREFIX}promoterules #introduce-yourself #general 1 10 3 30`\n"
            f"- `{COMMAND_PREFIX}promoteconfig` — show the current promotion settings (admin)\n"
            f"- `{COMMAND_PREFIX}promote [@member]` — find eligible members and ask to promote them; a mentioned member skips the activity checks (admin)\n"
        )
        return await message.reply(help_text)

    # PING
    if cmd == "ping":
        try:
            await message.channel.send("pong")
        except discord.HTTPException as e:
            log.warning("Failed to send pong: %s", e)
        return

    if cmd not in ("setlog", "greetrole", "promoteroles", "promoterules", "promoteconfig", "promote"):
        return await bot.process_commands(message)

    if not is_admin:
        log.info("on_message: %s denied for %s (not admin)", cmd, message.author.id)
        return await message.reply("Only configured admin roles may run this command.")

    # SETLOG
    if cmd == "setlog":
        cid = parse_channel(args[1]) if len(args) > 1 else None
        if cid is None:
            return await message.reply(f"Usage: {COMMAND_PREFIX}setlog #channel or {COMMAND_PREFIX}setlog CHANNEL_ID")
        ch = message.guild.get_channel(cid)
        if not ch or not hasattr(ch, "send"):
            return await message.reply("Channel not found or not text-based.")
        store.set_log_channel(message.guild.id, cid)
        return await message.reply(f"Log channel updated to {ch.mention}")

    # GREETROLE
    if cmd == "greetrole":
        rid = parse_role(args[1]) if len(args) > 1 else None
        if rid is None:
            return await message.reply(f"Usage: {COMMAND_PREFIX}greetrole @New")
        store.update_promote(message.guild.id, new_role=rid)
        return await message.reply("New member role set.")

    # PROMOTEROLES
    if cmd == "promoteroles":
        ids = [parse_role(a) for a in args[1:3]]
        if len(ids) != 2 or None in ids:
            return await message.reply(f"Usage: {COMMAND_PREFIX}promoteroles @Junior @Full")
        store.update_promote(message.guild.id, junior_role=ids[0], full_role=ids[1])
        return await message.reply("Promote roles set.")

    # PROMOTERULES
    if cmd == "promoterules":
        if len(args) != 7:
            return await message.reply(f"Usage: {COMMAND_PREFIX}promoterules #new-chat #junior-chat new_min junior_min junior_min_age_days new_message_max_age_days")
        channels = [parse_channel(a) for a in args[1:3]]
        numbers = [parse_count(a) for a in args[3:7]]
        if None in channels or None in numbers:
            return await message.reply("Invalid channel mention or number (numbers must be whole and non-negative).")
        store.update_promote(
            message.guild.id,
            new_chat_channel=channels[0],
            junior_chat_channel=channels[1],
            new_min_messages=numbers[0],
            junior_min_messages=numbers[1],
            junior_min_age_days=numbers[2],
            new_message_max_age_days=numbers[3],
        )
        return await message.reply("Promote rules set.")

    # PROMOTECONFIG
    if cmd == "promoteconfig":
        return await message.reply(describe_config(message.guild.id))

    # PROMOTE
    if cmd == "promote":
        force_member = None
        if message.mentions:
            force_member = message.mentions[0].id
        elif len(args) > 1:
            force_member = parse_user(args[1])
            if force_member is None:
                return await message.reply(f"Usage: {COMMAND_PREFIX}promote [@member]")
        await run_promote(message.guild, message.channel, message.author, force_member=force_member)
        return

@bot.event
async def on_command_error(ctx, error):
    if isinstance(error, commands.CommandNotFound):
        return
    log.error("Command error: %s", error, exc_info=error)

# -------------------------
# Slash commands: /setlog, /greetrole, /promoteroles, /promoterules, /promoteconfig, /promote
# -------------------------
async def _require_admin(interaction: discord.Interaction) -> bool:
    if not in_scope(interaction.guild):
        await interaction.response.send_message("This bot is not configured for this server.", ephemeral=True)
        return False
    inv = interaction.guild.get_member(interaction.user.id) or await interaction.guild.fetch_member(interaction.user.id)
    if not is_admin_member(inv):
        await interaction.response.send_message("Only configured admins can run this command.", ephemeral=True)
        return False
    return True

@bot.tree.command(name="setlog", description="Set the channel where promotion results should be logged.")
@app_commands.describe(channel="Text channel to use as logs")
async def setlog(interaction: discord.Interaction, channel: discord.TextChannel):
    if not await _require_admin(interaction):
        return
    store.set_log_channel(interaction.guild.id, channel.id)
    await interaction.response.send_message(f"Log channel set to {channel.mention}", ephemeral=True)

@bot.tree.command(name="greetrole", description="Set the role held by new members.")
@app_commands.describe(role="New member role")
async def greetrole(interaction: discord.Interaction, role: discord.Role):
    if not await _require_admin(interaction):
        return
    store.update_promote(interaction.guild.id, new_role=role.id)
    await interaction.response.send_message(f"New member role set to {role.mention}", ephemeral=True)

@bot.tree.command(name="promoteroles", description="Set the junior and full member roles.")
@app_commands.describe(junior="Junior member role", full="Full member role")
async def promoteroles(interaction: discord.Interaction, junior: discord.Role, full: discord.Role):
    if not await _require_admin(interaction):
        return
    store.update_promote(interaction.guild.id, junior_role=junior.id, full_role=full.id)
    await interaction.response.send_message("Promote roles set.", ephemeral=True)

@bot.tree.command(name="promoterules", description="Set the promotion rules.")
@app_commands.describe(
    new_chat="Channel new members must post in",
    junior_chat="Channel junior members must post in",
    new_min_messages="Messages needed in the new chat channel",
    junior_min_messages="Messages needed in the junior chat channel",
    junior_min_age_days="Days a member must have been in the server before becoming full",
    new_message_max_age_days="Only messages newer than this many days are counted",
)
async def promoterules(
    interaction: discord.Interaction,
    new_chat: discord.TextChannel,
    junior_chat: discord.TextChannel,
    new_min_messages: app_commands.Range[int, 0],
    junior_min_messages: app_commands.Range[int, 0],
    junior_min_age_days: app_commands.Range[int, 0],
    new_message_max_age_days: app_commands.Range[int, 0],
):
    if not await _require_admin(interaction):
        return
    store.update_promote(
        interaction.guild.id,
        new_chat_channel=new_chat.id,
        junior_chat_channel=junior_chat.id,
        new_min_messages=new_min_messages,
        junior_min_messages=junior_min_messages,
        junior_min_age_days=junior_min_age_days,
        new_message_max_age_days=new_message_max_age_days,
    )
    await interaction.response.send_message("Promote rules set.", ephemeral=True)

@bot.tree.command(name="promoteconfig", description="Show the current promotion settings.")
async def promoteconfig(interaction: discord.Interaction):
    if not await _require_admin(interaction):
        return
    await interaction.response.send_message(describe_config(interaction.guild.id), ephemeral=True)

@bot.tree.command(name="promote", description="Find eligible members and ask to promote them.")
@app_commands.describe(member="Override checks and upgrade this member to the next level")
async def promote(interaction: discord.Interaction, member: discord.Member = None):
    if not await _require_admin(interaction):
        return
    await interaction.response.send_message("Calculating promotions in this channel...", ephemeral=True)
    await run_promote(interaction.guild, interaction.channel, interaction.user, force_member=member.id if member else None)

# -------------------------
# Start
# -------------------------
def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not BOT_TOKEN:
        log.error("BOT_TOKEN must be set in .env")
        raise SystemExit(1)
    bot.run(BOT_TOKEN, log_handler=None)

if __name__ == "__main__":
    main()
