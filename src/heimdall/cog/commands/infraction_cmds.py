"""
Infraction commands cog: manual warnings and infraction history.

This cog exposes three slash commands:
- /warn: record a manual warning with points (runs escalation)
- /infractions: show a member's active points and recent infractions
- /clear_infractions: deactivate every active infraction for a member

All commands require the Moderate Members permission.
"""

import discord
from discord import Option
from discord.ext import commands

from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from heimdall.datatypes.infraction_datatypes import InfractionPersistenceError, InfractionType
from heimdall.services.automod_enforcer import AutomodEnforcer
from heimdall.services.infraction_ledger import InfractionLedger
from heimdall.util.format_utils import humanize_timestamp, truncate
from heimdall.util.logger import get_logger

logger = get_logger("infraction_commands")

MAX_WARN_POINTS = 100


class InfractionCommandsCog(commands.Cog):
    """Manual infraction recording and lookup."""

    def __init__(self, bot: discord.Bot, enforcer: AutomodEnforcer, ledger: InfractionLedger) -> None:
        self.bot = bot
        self._enforcer = enforcer
        self._ledger = ledger
        logger.info("[INFRACTION CMDS] Infraction commands cog loaded")

    async def _check_permissions(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        if not isinstance(ctx.user, discord.Member) or not ctx.user.guild_permissions.moderate_members:
            await ctx.respond("You need the Moderate Members permission.", ephemeral=True)
            return False
        return True

    @commands.slash_command(name="warn", description="Warn a member and add infraction points.")
    async def warn(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The member to warn.", required=True),  # type: ignore
        points: Option(int, "Points to add.", min_value=0, max_value=MAX_WARN_POINTS, default=1),  # type: ignore
        reason: Option(str, "Reason for the warning.", default="No reason provided."),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        if user.bot:
            await ctx.respond("Bots cannot receive infractions.", ephemeral=True)
            return

        await ctx.defer(ephemeral=True)
        try:
            result = await self._enforcer.record_manual_infraction(
                guild_id=GuildID(ctx.guild_id),
                user_id=UserID(user.id),
                moderator_id=UserID(ctx.user.id),
                infraction_type=InfractionType.WARN,
                reason=reason,
                points=points,
                channel_id=ChannelID(ctx.channel_id) if ctx.channel_id else None,
            )
        except InfractionPersistenceError:
            await ctx.send_followup("❌ The warning could not be saved. Please try again.", ephemeral=True)
            return

        message = f"⚠️ Warned {user.mention} (+{points}, total {result.active_points})."
        if result.escalation is not None:
            message += f"\n⚡ Escalation tier **{result.escalation.name}** triggered."
        await ctx.send_followup(message, ephemeral=True)

    @commands.slash_command(name="infractions", description="Show a member's infraction history.")
    async def infractions(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The member to look up.", required=True),  # type: ignore
        page: Option(int, "Page number.", min_value=1, default=1),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        user_id = UserID(user.id)
        active_points = await self._ledger.get_active_points(guild_id, user_id)
        history = await self._ledger.get_user_infractions(guild_id, user_id, page=page)

        embed = discord.Embed(
            title=f"Infractions for {user.display_name}",
            description=f"Active points: **{active_points}** · {history.total} total",
            color=discord.Color.blurple(),
        )
        for infraction in history.infractions:
            status = "" if infraction.active else " (cleared)"
            embed.add_field(
                name=f"#{infraction.infraction_id} · {infraction.type}{status}",
                value=truncate(
                    f"{infraction.reason or 'No reason'}\n"
                    f"+{infraction.points_assigned} → {infraction.total_points_after} · "
                    f"{humanize_timestamp(infraction.created_at)}"
                ),
                inline=False,
            )
        if history.pages:
            embed.set_footer(text=f"Page {history.page}/{history.pages}")

        await ctx.respond(embed=embed, ephemeral=True)

    @commands.slash_command(name="clear_infractions", description="Clear all active infractions for a member.")
    async def clear_infractions(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The member whose infractions to clear.", required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return

        try:
            cleared = await self._ledger.clear_user_infractions(GuildID(ctx.guild_id), UserID(user.id))
        except InfractionPersistenceError:
            await ctx.respond("❌ Infractions could not be cleared. Please try again.", ephemeral=True)
            return

        logger.info("[INFRACTION CMDS] %s cleared %d infractions for %s", ctx.user, cleared, user)
        await ctx.respond(f"🧹 Cleared {cleared} infraction(s) for {user.mention}.", ephemeral=True)


def setup(bot: discord.Bot, enforcer: AutomodEnforcer, ledger: InfractionLedger) -> None:
    """Register the InfractionCommandsCog with the bot."""
    bot.add_cog(InfractionCommandsCog(bot, enforcer, ledger))
