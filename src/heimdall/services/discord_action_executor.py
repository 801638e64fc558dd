"""
DiscordActionExecutor: carries out moderation actions against py-cord objects.

Each method resolves the guild, member, channel or message it needs from the
bot's cache (falling back to a fetch), performs the side effect, and logs
recoverable Discord errors (missing message, DMs closed, missing permission)
instead of raising them. Anything unexpected propagates to the enforcer,
which logs it and continues with the remaining actions.
"""

from __future__ import annotations

import datetime
from typing import Optional

import discord

from heimdall.configuration.guild_settings import ModerationConfigManager
from heimdall.datatypes.action_datatypes import (
    ActionContext,
    Ban,
    DeleteMessage,
    Kick,
    LogAction,
    RemoveReaction,
    SendDirectMessage,
    Timeout,
    Warn,
)
from heimdall.util.format_utils import DEFAULT_DM_TEMPLATE, format_duration, render_template, truncate
from heimdall.util.logger import get_logger

logger = get_logger("discord_action_executor")

AUTOMOD_COLOR = discord.Color.orange()
ESCALATION_COLOR = discord.Color.red()


class DiscordActionExecutor:
    """:class:`ActionExecutor` backed by a live ``discord.Bot``."""

    def __init__(self, bot: discord.Bot, config_manager: ModerationConfigManager) -> None:
        self.bot = bot
        self._config_manager = config_manager

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _guild(self, context: ActionContext) -> Optional[discord.Guild]:
        guild = self.bot.get_guild(context.guild_id.to_int())
        if guild is None:
            logger.warning("[ACTION EXECUTOR] Guild %s is not cached, skipping action", context.guild_id)
        return guild

    async def _member(self, guild: discord.Guild, context: ActionContext) -> Optional[discord.Member]:
        member = guild.get_member(context.user_id.to_int())
        if member is not None:
            return member
        try:
            return await guild.fetch_member(context.user_id.to_int())
        except discord.NotFound:
            logger.debug("[ACTION EXECUTOR] User %s is no longer in guild %s", context.user_id, context.guild_id)
            return None

    async def _message(self, context: ActionContext) -> Optional[discord.PartialMessage]:
        if context.channel_id is None or context.message_id is None:
            return None
        channel = self.bot.get_channel(context.channel_id.to_int())
        if channel is None or not hasattr(channel, "get_partial_message"):
            return None
        return channel.get_partial_message(context.message_id.to_int())

    # ------------------------------------------------------------------
    # Message-level actions
    # ------------------------------------------------------------------

    async def delete_message(self, action: DeleteMessage, context: ActionContext) -> None:
        message = await self._message(context)
        if message is None:
            return
        try:
            await message.delete()
        except discord.NotFound:
            pass
        except discord.Forbidden:
            logger.warning("[ACTION EXECUTOR] No permission to delete message %s", context.message_id)

    async def remove_reaction(self, action: RemoveReaction, context: ActionContext) -> None:
        message = await self._message(context)
        if message is None or not context.emoji:
            return

        emoji: str | discord.PartialEmoji = context.emoji
        name, _, emoji_id = context.emoji.partition(":")
        if emoji_id.isdigit():
            emoji = discord.PartialEmoji(name=name, id=int(emoji_id))

        try:
            # Every reaction of this emoji goes, not only the member's.
            await message.clear_reaction(emoji)
        except discord.NotFound:
            pass
        except discord.Forbidden:
            logger.warning("[ACTION EXECUTOR] No permission to clear reactions on message %s", context.message_id)

    # ------------------------------------------------------------------
    # Member-level actions
    # ------------------------------------------------------------------

    async def send_dm(self, action: SendDirectMessage, context: ActionContext) -> None:
        guild = self._guild(context)
        if guild is None:
            return
        member = await self._member(guild, context)
        if member is None:
            return

        match = context.match
        variables = {
            "user": member.mention,
            "username": member.name,
            "server": guild.name,
            "rule": match.rule.name if match else None,
            "channel": f"<#{context.channel_id}>" if context.channel_id else "N/A",
            "points": context.points,
            "totalPoints": context.active_points,
            "action": "Automod" if match else "Moderation",
            "reason": context.reason,
            "matchedContent": match.matched_content if match else None,
            "timestamp": discord.utils.utcnow().isoformat(),
        }
        content = render_template(action.template or DEFAULT_DM_TEMPLATE, variables)

        try:
            await member.send(content)
        except discord.Forbidden:
            logger.debug("[ACTION EXECUTOR] Could not DM %s: DMs disabled", member.display_name)

    async def warn(self, action: Warn, context: ActionContext) -> None:
        # Points are recorded by the ledger and the DM tells the member.
        logger.info("[ACTION EXECUTOR] Warned user %s in guild %s (+%d)", context.user_id, context.guild_id, action.points)

    async def timeout(self, action: Timeout, context: ActionContext) -> None:
        guild = self._guild(context)
        if guild is None:
            return
        member = await self._member(guild, context)
        if member is None:
            return

        until = discord.utils.utcnow() + datetime.timedelta(seconds=action.duration_seconds)
        try:
            await member.timeout(until, reason=context.reason)
            logger.info(
                "[ACTION EXECUTOR] Timed out %s in %s for %s",
                member, guild.name, format_duration(action.duration_seconds),
            )
        except discord.Forbidden:
            logger.warning("[ACTION EXECUTOR] No permission to time out %s in %s", member, guild.name)

    async def kick(self, action: Kick, context: ActionContext) -> None:
        guild = self._guild(context)
        if guild is None:
            return
        try:
            await guild.kick(discord.Object(id=context.user_id.to_int()), reason=context.reason)
            logger.info("[ACTION EXECUTOR] Kicked user %s from %s", context.user_id, guild.name)
        except discord.NotFound:
            pass
        except discord.Forbidden:
            logger.warning("[ACTION EXECUTOR] No permission to kick user %s from %s", context.user_id, guild.name)

    async def ban(self, action: Ban, context: ActionContext) -> None:
        guild = self._guild(context)
        if guild is None:
            return
        try:
            await guild.ban(
                discord.Object(id=context.user_id.to_int()),
                reason=context.reason,
                delete_message_seconds=action.delete_message_seconds,
            )
            logger.info("[ACTION EXECUTOR] Banned user %s from %s", context.user_id, guild.name)
        except discord.Forbidden:
            logger.warning("[ACTION EXECUTOR] No permission to ban user %s from %s", context.user_id, guild.name)

    # ------------------------------------------------------------------
    # Mod log
    # ------------------------------------------------------------------

    def build_log_embed(self, context: ActionContext) -> discord.Embed:
        match = context.match
        if match is not None:
            embed = discord.Embed(title="🤖 Automod Triggered", color=AUTOMOD_COLOR)
            embed.add_field(name="User", value=f"<@{context.user_id}>", inline=True)
            embed.add_field(name="Rule", value=match.rule.name, inline=True)
            embed.add_field(name="Target", value=str(match.target), inline=True)
            embed.add_field(name="Matched", value=f"`{truncate(match.matched_content, 1000)}`", inline=False)
            embed.add_field(name="Pattern", value=f"`{truncate(match.pattern.label or match.pattern.regex, 1000)}`", inline=False)
        else:
            embed = discord.Embed(title="⚡ Escalation Triggered", color=ESCALATION_COLOR)
            embed.add_field(name="User", value=f"<@{context.user_id}>", inline=True)
            embed.add_field(name="Reason", value=truncate(context.reason), inline=False)

        embed.add_field(name="Points", value=f"+{context.points} (total: {context.active_points})", inline=True)
        if context.channel_id is not None:
            location = f"<#{context.channel_id}>"
            if context.message_id is not None:
                location += (
                    f" · [Jump to message](https://discord.com/channels/"
                    f"{context.guild_id}/{context.channel_id}/{context.message_id})"
                )
            embed.add_field(name="Context", value=location, inline=False)
        embed.set_footer(text=f"User ID: {context.user_id}")
        embed.timestamp = discord.utils.utcnow()
        return embed

    async def log(self, action: LogAction, context: ActionContext) -> None:
        config = self._config_manager.get_config(context.guild_id)
        if config.log_channel_id is None:
            logger.debug("[ACTION EXECUTOR] No log channel configured for guild %s", context.guild_id)
            return

        channel = self.bot.get_channel(config.log_channel_id.to_int())
        if channel is None or not hasattr(channel, "send"):
            logger.warning("[ACTION EXECUTOR] Log channel %s for guild %s is unavailable", config.log_channel_id, context.guild_id)
            return

        try:
            await channel.send(embed=self.build_log_embed(context))
        except discord.Forbidden:
            logger.warning("[ACTION EXECUTOR] No permission to post in log channel %s", config.log_channel_id)
