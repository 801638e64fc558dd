"""
Automod settings cog: rule authoring and guild moderation configuration.

This cog exposes one ``/automod`` command group:
- /automod rule create|edit|delete|toggle|list: manage the guild's rules
- /automod preset list|enable: browse and install built-in presets
- /automod escalation set|remove|rearm: configure escalation tiers
- /automod status|enable|decay|logchannel|immune: guild-wide switches

All commands require the Manage Server permission. Responses are ephemeral to
avoid leaking configuration in public channels.
"""

from typing import List, Optional

import discord
from discord import Option
from discord.ext import commands

from heimdall.automod import presets
from heimdall.automod.rule_builder import build_rule
from heimdall.configuration.automod_settings import AutomodSettings
from heimdall.configuration.guild_settings import ModerationConfigManager
from heimdall.datatypes.automod_datatypes import AutomodAction, AutomodTarget, MatchMode, PatternValidationError
from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from heimdall.datatypes.escalation_datatypes import EscalationTier, RearmPolicy
from heimdall.repositories.automod_rule_repo import DuplicateRuleError, RuleLimitError
from heimdall.services.rule_store import RuleStore
from heimdall.util.format_utils import format_duration, truncate
from heimdall.util.logger import get_logger

logger = get_logger("automod_commands")

TARGET_CHOICES = [target.value for target in AutomodTarget]
MATCH_MODE_CHOICES = [mode.value for mode in MatchMode]
REARM_CHOICES = [policy.value for policy in RearmPolicy]
TIER_ACTIONS = {AutomodAction.TIMEOUT, AutomodAction.KICK, AutomodAction.BAN, AutomodAction.LOG, AutomodAction.DM}


def split_list(text: Optional[str]) -> List[str]:
    """Split a comma separated option into trimmed, non-empty entries."""
    return [part.strip() for part in (text or "").split(",") if part.strip()]


def format_errors(errors: List[str]) -> str:
    return "❌ The rule was not saved:\n" + "\n".join(f"• {error}" for error in errors)


class AutomodCommandsCog(commands.Cog):
    """Staff-facing automod configuration."""

    automod = discord.SlashCommandGroup("automod", "Configure automod rules and escalation.")
    rule = automod.create_subgroup("rule", "Create and manage automod rules.")
    preset = automod.create_subgroup("preset", "Install built-in automod rules.")
    escalation = automod.create_subgroup("escalation", "Configure escalation tiers.")

    def __init__(
        self,
        bot: discord.Bot,
        rule_store: RuleStore,
        config_manager: ModerationConfigManager,
        settings: Optional[AutomodSettings] = None,
    ) -> None:
        self.bot = bot
        self._rule_store = rule_store
        self._config_manager = config_manager
        self._settings = settings or AutomodSettings()
        logger.info("[AUTOMOD CMDS] Automod commands cog loaded")

    async def _check_permissions(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        if not isinstance(ctx.user, discord.Member) or not ctx.user.guild_permissions.manage_guild:
            await ctx.respond("You need Manage Server permission.", ephemeral=True)
            return False
        return True

    async def _save_config(self, ctx: discord.ApplicationContext, message: str, **changes) -> None:
        if await self._config_manager.update_config(GuildID(ctx.guild_id), **changes):
            await ctx.respond(message, ephemeral=True)
        else:
            await ctx.respond("❌ The setting could not be saved. Please try again.", ephemeral=True)

    # -------- Rules --------
    @rule.command(name="create", description="Create an automod rule from wildcard patterns.")
    async def rule_create(
        self,
        ctx: discord.ApplicationContext,
        name: Option(str, "Unique rule name.", required=True),  # type: ignore
        patterns: Option(str, "Comma separated wildcards, e.g. badword, *scam*", required=True),  # type: ignore
        actions: Option(str, "Comma separated actions, e.g. delete, warn, log", default="delete, log"),  # type: ignore
        target: Option(str, "Content to inspect.", choices=TARGET_CHOICES, default=AutomodTarget.MESSAGE_CONTENT.value),  # type: ignore
        match_mode: Option(str, "Whether any or all patterns must match.", choices=MATCH_MODE_CHOICES, default=MatchMode.ANY.value),  # type: ignore
        warn_points: Option(int, "Points for the warn action.", min_value=0, default=1),  # type: ignore
        priority: Option(int, "Higher priority rules are checked first.", default=0),  # type: ignore
        timeout_seconds: Option(int, "Timeout length for the timeout action.", min_value=1, required=False, default=None),  # type: ignore
        regex: Option(str, "Optional raw regular expression.", required=False, default=None),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            new_rule = build_rule(
                guild_id,
                name,
                split_list(actions),
                wildcard_patterns=patterns,
                patterns=[regex] if regex else None,
                target=target,
                match_mode=match_mode,
                warn_points=warn_points,
                priority=priority,
                timeout_duration=timeout_seconds,
                settings=self._settings,
            )
            created = await self._rule_store.create_rule(new_rule)
        except PatternValidationError as exc:
            await ctx.respond(format_errors(exc.errors), ephemeral=True)
            return
        except (DuplicateRuleError, RuleLimitError) as exc:
            await ctx.respond(f"❌ {exc}", ephemeral=True)
            return

        logger.info("[AUTOMOD CMDS] %s created rule %r in guild %s", ctx.user, created.name, guild_id)
        labels = ", ".join(p.label or p.regex for p in created.patterns)
        await ctx.respond(f"✅ Created rule **{created.name}** (#{created.rule_id}): {truncate(labels, 1500)}", ephemeral=True)

    @rule.command(name="edit", description="Replace a rule's patterns or actions.")
    async def rule_edit(
        self,
        ctx: discord.ApplicationContext,
        rule_id: Option(int, "Rule number.", required=True),  # type: ignore
        patterns: Option(str, "New comma separated wildcards.", required=False, default=None),  # type: ignore
        actions: Option(str, "New comma separated actions.", required=False, default=None),  # type: ignore
        warn_points: Option(int, "New warn points.", min_value=0, required=False, default=None),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        existing = await self._rule_store.get_rule(guild_id, rule_id)
        if existing is None:
            await ctx.respond(f"Rule #{rule_id} was not found.", ephemeral=True)
            return

        # New wildcards replace the wildcard patterns only; raw regex patterns are kept.
        if patterns is not None:
            raw_patterns = [p for p in existing.patterns if not p.wildcard]
        else:
            raw_patterns = list(existing.patterns)
        try:
            rebuilt = build_rule(
                guild_id,
                existing.name,
                split_list(actions) if actions is not None else existing.actions,
                wildcard_patterns=patterns,
                patterns=raw_patterns,
                target=existing.target,
                match_mode=existing.match_mode,
                warn_points=warn_points if warn_points is not None else existing.warn_points,
                priority=existing.priority,
                enabled=existing.enabled,
                timeout_duration=existing.timeout_duration,
                channel_include=existing.channel_include,
                channel_exclude=existing.channel_exclude,
                role_include=existing.role_include,
                role_exclude=existing.role_exclude,
                dm_template=existing.dm_template,
                settings=self._settings,
            )
        except PatternValidationError as exc:
            await ctx.respond(format_errors(exc.errors), ephemeral=True)
            return

        rebuilt.rule_id = existing.rule_id
        if patterns is None:
            rebuilt.wildcard_input = existing.wildcard_input
        if await self._rule_store.update_rule(rebuilt):
            await ctx.respond(f"✅ Updated rule **{rebuilt.name}**.", ephemeral=True)
        else:
            await ctx.respond(f"Rule #{rule_id} was not found.", ephemeral=True)

    @rule.command(name="delete", description="Delete an automod rule.")
    async def rule_delete(
        self,
        ctx: discord.ApplicationContext,
        rule_id: Option(int, "Rule number.", required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        if await self._rule_store.delete_rule(GuildID(ctx.guild_id), rule_id):
            await ctx.respond(f"🗑️ Deleted rule #{rule_id}.", ephemeral=True)
        else:
            await ctx.respond(f"Rule #{rule_id} was not found.", ephemeral=True)

    @rule.command(name="toggle", description="Enable or disable an automod rule.")
    async def rule_toggle(
        self,
        ctx: discord.ApplicationContext,
        rule_id: Option(int, "Rule number.", required=True),  # type: ignore
        enabled: Option(bool, "Whether the rule is active.", required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        if await self._rule_store.set_enabled(GuildID(ctx.guild_id), rule_id, enabled):
            state = "enabled" if enabled else "disabled"
            await ctx.respond(f"✅ Rule #{rule_id} {state}.", ephemeral=True)
        else:
            await ctx.respond(f"Rule #{rule_id} was not found.", ephemeral=True)

    @rule.command(name="list", description="List this server's automod rules.")
    async def rule_list(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_permissions(ctx):
            return

        rules = await self._rule_store.list_rules(GuildID(ctx.guild_id))
        embed = discord.Embed(title="Automod rules", color=discord.Color.blurple())
        if not rules:
            embed.description = "No rules yet. Use `/automod rule create` or `/automod preset enable`."
        for item in rules[:25]:
            state = "🟢" if item.enabled else "⚪"
            actions = ", ".join(str(a) for a in item.actions)
            embed.add_field(
                name=f"{state} #{item.rule_id} · {item.name}",
                value=truncate(
                    f"{item.target} · {item.match_mode} · priority {item.priority}\n"
                    f"Actions: {actions} · {item.points} pt\n"
                    f"{item.wildcard_input or ', '.join(p.label or p.regex for p in item.patterns)}"
                ),
                inline=False,
            )
        await ctx.respond(embed=embed, ephemeral=True)

    # -------- Presets --------
    @preset.command(name="list", description="Show the built-in presets.")
    async def preset_list(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_permissions(ctx):
            return
        lines = [f"`{p.id}` **{p.name}**: {p.description}" for p in presets.get_all_presets()]
        await ctx.respond(truncate("\n".join(lines), 2000), ephemeral=True)

    @preset.command(name="enable", description="Install a built-in preset as a rule.")
    async def preset_enable(
        self,
        ctx: discord.ApplicationContext,
        preset_id: Option(str, "Preset id from /automod preset list.", required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return

        try:
            new_rule = presets.preset_to_rule(preset_id, GuildID(ctx.guild_id))
            created = await self._rule_store.create_rule(new_rule)
        except KeyError:
            await ctx.respond(f"Unknown preset `{preset_id}`.", ephemeral=True)
            return
        except (DuplicateRuleError, RuleLimitError) as exc:
            await ctx.respond(f"❌ {exc}", ephemeral=True)
            return

        await ctx.respond(f"✅ Installed preset **{created.name}** as rule #{created.rule_id}.", ephemeral=True)

    # -------- Escalation --------
    @escalation.command(name="set", description="Create or replace an escalation tier.")
    async def escalation_set(
        self,
        ctx: discord.ApplicationContext,
        name: Option(str, "Tier name.", required=True),  # type: ignore
        threshold: Option(int, "Active points that trigger the tier.", min_value=1, required=True),  # type: ignore
        actions: Option(str, "Comma separated: timeout, kick, ban, dm, log", default="timeout"),  # type: ignore
        duration_seconds: Option(int, "Timeout length.", min_value=1, required=False, default=None),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return

        parsed: List[AutomodAction] = []
        for entry in split_list(actions):
            try:
                action = AutomodAction(entry)
            except ValueError:
                action = None
            if action not in TIER_ACTIONS:
                await ctx.respond(f"❌ `{entry}` is not a valid escalation action.", ephemeral=True)
                return
            parsed.append(action)
        if not parsed:
            await ctx.respond("❌ At least one action is required.", ephemeral=True)
            return

        guild_id = GuildID(ctx.guild_id)
        tier = EscalationTier(name=name.strip(), threshold=threshold, actions=parsed, duration=duration_seconds)
        tiers = [t for t in self._config_manager.get_config(guild_id).escalation_tiers if t.name != tier.name]
        tiers.append(tier)
        tiers.sort(key=lambda t: t.threshold)

        if await self._config_manager.set_escalation_tiers(guild_id, tiers):
            await ctx.respond(f"✅ Tier **{tier.name}** fires at {threshold} points.", ephemeral=True)
        else:
            await ctx.respond("❌ The tier could not be saved. Please try again.", ephemeral=True)

    @escalation.command(name="remove", description="Remove an escalation tier.")
    async def escalation_remove(
        self,
        ctx: discord.ApplicationContext,
        name: Option(str, "Tier name.", required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        current = self._config_manager.get_config(guild_id).escalation_tiers
        remaining = [t for t in current if t.name != name.strip()]
        if len(remaining) == len(current):
            await ctx.respond(f"No tier named **{name}**.", ephemeral=True)
            return
        await self._save_config(ctx, f"🗑️ Removed tier **{name}**.", escalation_tiers=remaining)

    @escalation.command(name="rearm", description="Choose when a tier may fire again.")
    async def escalation_rearm(
        self,
        ctx: discord.ApplicationContext,
        policy: Option(str, "crossing, decay or never", choices=REARM_CHOICES, required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        await self._save_config(ctx, f"✅ Escalation re-arm policy set to **{policy}**.", escalation_rearm=RearmPolicy(policy))

    # -------- Guild switches --------
    @automod.command(name="status", description="Show this server's automod configuration.")
    async def status(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_permissions(ctx):
            return

        config = self._config_manager.get_config(GuildID(ctx.guild_id))
        decay = f"{config.point_decay_days} days" if config.point_decay_enabled else "off"
        embed = discord.Embed(title="Automod settings", color=discord.Color.blurple())
        embed.add_field(name="Automod", value="on" if config.automod_enabled else "off")
        embed.add_field(name="Point decay", value=decay)
        embed.add_field(name="Re-arm", value=str(config.escalation_rearm))
        embed.add_field(name="Log channel", value=f"<#{config.log_channel_id}>" if config.log_channel_id else "not set")
        embed.add_field(
            name="Immune roles",
            value=", ".join(f"<@&{role_id}>" for role_id in config.immune_role_ids) or "none",
        )
        tiers = [
            f"**{t.name}** at {t.threshold}: {', '.join(str(a) for a in t.actions)}"
            + (f" ({format_duration(t.duration)})" if t.duration else "")
            for t in sorted(config.escalation_tiers, key=lambda t: t.threshold)
        ]
        embed.add_field(name="Escalation tiers", value=truncate("\n".join(tiers)) or "none", inline=False)
        await ctx.respond(embed=embed, ephemeral=True)

    @automod.command(name="enable", description="Turn automod on or off for this server.")
    async def enable(
        self,
        ctx: discord.ApplicationContext,
        enabled: Option(bool, "Whether automod runs.", required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        await self._save_config(ctx, f"✅ Automod {'enabled' if enabled else 'disabled'}.", automod_enabled=enabled)

    @automod.command(name="decay", description="Configure infraction point decay.")
    async def decay(
        self,
        ctx: discord.ApplicationContext,
        enabled: Option(bool, "Whether points expire.", required=True),  # type: ignore
        days: Option(int, "Days until points expire.", min_value=1, max_value=365, default=30),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        message = f"✅ Points now expire after {days} days." if enabled else "✅ Point decay disabled."
        await self._save_config(ctx, message, point_decay_enabled=enabled, point_decay_days=days)

    @automod.command(name="logchannel", description="Set the channel for automod log entries.")
    async def logchannel(
        self,
        ctx: discord.ApplicationContext,
        channel: Option(discord.TextChannel, "Log channel; leave empty to disable.", required=False, default=None),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        if channel is None:
            await self._save_config(ctx, "✅ Automod logging disabled.", log_channel_id=None)
        else:
            await self._save_config(ctx, f"✅ Automod logs go to {channel.mention}.", log_channel_id=ChannelID(channel.id))

    @automod.command(name="immune", description="Add or remove a role that automod ignores.")
    async def immune(
        self,
        ctx: discord.ApplicationContext,
        role: Option(discord.Role, "Role to toggle.", required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return

        role_id = RoleID(role.id)
        current = list(self._config_manager.get_config(GuildID(ctx.guild_id)).immune_role_ids)
        if role_id in current:
            current.remove(role_id)
            message = f"✅ {role.mention} is no longer immune."
        else:
            current.append(role_id)
            message = f"✅ {role.mention} is now immune to automod."
        await self._save_config(ctx, message, immune_role_ids=current)


def setup(
    bot: discord.Bot,
    rule_store: RuleStore,
    config_manager: ModerationConfigManager,
    settings: Optional[AutomodSettings] = None,
) -> None:
    """Register the AutomodCommandsCog with the bot."""
    bot.add_cog(AutomodCommandsCog(bot, rule_store, config_manager, settings))
