"""Automod listener Cog for Heimdall.

This cog has exactly ONE responsibility: turn Discord events into
:class:`ContentEvent` objects and hand them to the :class:`AutomodEnforcer`.

Rule evaluation, infraction recording and escalation live in the service
layer, NOT here.
"""

from typing import Optional

import discord
from discord.ext import commands

from heimdall.automod.regex_engine import extract_sticker_names
from heimdall.datatypes.automod_datatypes import ContentEvent, EventKind
from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, RoleID, UserID
from heimdall.services.automod_enforcer import AutomodEnforcer
from heimdall.util.logger import get_logger

logger = get_logger("automod_listener_cog")


def _role_ids(member: discord.Member) -> frozenset:
    return frozenset(RoleID(role.id) for role in getattr(member, "roles", ()) or ())


def event_from_message(message: discord.Message) -> Optional[ContentEvent]:
    """A MESSAGE event, or None for bots, DMs and non-member authors."""
    author = message.author
    if message.guild is None or author.bot or not isinstance(author, discord.Member):
        return None
    return ContentEvent(
        kind=EventKind.MESSAGE,
        guild_id=GuildID(message.guild.id),
        author_id=UserID(author.id),
        text=message.content or "",
        channel_id=ChannelID(message.channel.id),
        message_id=MessageID(message.id),
        author_role_ids=_role_ids(author),
        sticker_names=tuple(extract_sticker_names(message.stickers)),
    )


def event_from_reaction(payload: discord.RawReactionActionEvent) -> Optional[ContentEvent]:
    """A REACTION event; custom emoji carry their id so content becomes ``name:id``."""
    member = payload.member
    if payload.guild_id is None or member is None or member.bot:
        return None
    emoji = payload.emoji
    return ContentEvent(
        kind=EventKind.REACTION,
        guild_id=GuildID(payload.guild_id),
        author_id=UserID(payload.user_id),
        text=emoji.name or "",
        channel_id=ChannelID(payload.channel_id),
        message_id=MessageID(payload.message_id),
        author_role_ids=_role_ids(member),
        emoji_id=str(emoji.id) if emoji.id else None,
    )


def event_from_member(member: discord.Member, kind: EventKind) -> Optional[ContentEvent]:
    """A MEMBER_JOIN (username) or NICKNAME_CHANGE (nickname) event."""
    if member.bot:
        return None
    text = member.name if kind is EventKind.MEMBER_JOIN else member.nick
    if not text:
        return None
    return ContentEvent(
        kind=kind,
        guild_id=GuildID(member.guild.id),
        author_id=UserID(member.id),
        text=text,
        author_role_ids=_role_ids(member),
    )


class AutomodListenerCog(commands.Cog):
    """
    Thin event listener that forwards content to the automod enforcer.

    Parameters
    ----------
    bot:
        Discord bot instance.
    enforcer:
        Evaluates events and applies the resulting actions.
    """

    def __init__(self, bot: discord.Bot, enforcer: AutomodEnforcer) -> None:
        self.bot = bot
        self._enforcer = enforcer
        logger.info("[AUTOMOD LISTENER] Automod listener cog loaded")

    async def _dispatch(self, event: Optional[ContentEvent]) -> None:
        if event is None:
            return
        try:
            await self._enforcer.handle_event(event)
        except Exception:
            logger.exception(
                "[AUTOMOD LISTENER] Failed to process %s event for user %s in guild %s",
                event.kind.value, event.author_id, event.guild_id,
            )

    # ------------------------------------------------------------------
    # Event handlers, keep these as small as possible
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        await self._dispatch(event_from_message(message))

    @commands.Cog.listener(name="on_raw_reaction_add")
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self._dispatch(event_from_reaction(payload))

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member) -> None:
        await self._dispatch(event_from_member(member, EventKind.MEMBER_JOIN))

    @commands.Cog.listener(name="on_member_update")
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        """Only nickname changes are evaluated."""
        if before.nick == after.nick:
            return
        await self._dispatch(event_from_member(after, EventKind.NICKNAME_CHANGE))


def setup(bot: discord.Bot, enforcer: AutomodEnforcer) -> None:
    """Register the AutomodListenerCog with the bot."""
    bot.add_cog(AutomodListenerCog(bot, enforcer))
