"""
AutomodEnforcer: content event -> rule check -> actions -> ledger -> escalation.

Responsibilities:
- Skip guilds with automod disabled and members holding an immune role
- Evaluate the guild's enabled rules against the event
- Apply the triggering rule's actions through an :class:`ActionExecutor`
- Record the infraction, then resolve and apply any escalation tier
- Give manual moderation commands the same ledger and escalation path

The record / resolve / escalation-record sequence runs under a per-member
lock so concurrent events for one member see each other's points.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional

from heimdall.automod.rule_engine import RuleEngine
from heimdall.configuration.guild_settings import ModerationConfig, ModerationConfigManager
from heimdall.datatypes.action_datatypes import (
    ActionContext,
    ActionExecutor,
    LogAction,
    ModerationAction,
    build_actions,
)
from heimdall.datatypes.automod_datatypes import ContentEvent, EventKind, RuleMatch
from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID
from heimdall.datatypes.escalation_datatypes import EscalationTier
from heimdall.datatypes.infraction_datatypes import (
    InfractionSource,
    InfractionType,
    RecordInfractionData,
    RecordResult,
)
from heimdall.services.escalation_resolver import DEFAULT_ESCALATION_TIMEOUT_SECONDS, EscalationResolver
from heimdall.services.infraction_ledger import InfractionLedger
from heimdall.services.rule_store import RuleStore
from heimdall.util.keyed_lock import KeyedLock
from heimdall.util.logger import get_logger

logger = get_logger("automod_enforcer")

_INFRACTION_TYPE_BY_EVENT = {
    EventKind.MESSAGE: InfractionType.AUTOMOD_DELETE,
    EventKind.REACTION: InfractionType.AUTOMOD_REACTION,
    EventKind.MEMBER_JOIN: InfractionType.AUTOMOD_USERNAME,
    EventKind.NICKNAME_CHANGE: InfractionType.AUTOMOD_USERNAME,
}


@dataclass(slots=True)
class EnforcementResult:
    """What the enforcer did for one event or manual infraction."""

    record: RecordResult
    match: Optional[RuleMatch] = None
    escalation: Optional[EscalationTier] = None
    escalation_record: Optional[RecordResult] = None

    @property
    def active_points(self) -> int:
        return self.record.active_points


class AutomodEnforcer:
    """Runs the automod pipeline for content events and manual infractions."""

    def __init__(
        self,
        config_manager: ModerationConfigManager,
        rule_store: RuleStore,
        rule_engine: RuleEngine,
        ledger: InfractionLedger,
        resolver: EscalationResolver,
        executor: ActionExecutor,
        member_locks: Optional[KeyedLock] = None,
    ) -> None:
        self._config_manager = config_manager
        self._rule_store = rule_store
        self._rule_engine = rule_engine
        self._ledger = ledger
        self._resolver = resolver
        self._executor = executor
        self._member_locks = member_locks or KeyedLock()

    @staticmethod
    def _reaction_emoji(event: ContentEvent) -> Optional[str]:
        if event.kind is not EventKind.REACTION or not event.text:
            return None
        return f"{event.text}:{event.emoji_id}" if event.emoji_id else event.text

    @staticmethod
    def is_immune(config: ModerationConfig, role_ids: Iterable) -> bool:
        roles = set(role_ids)
        return any(role in roles for role in config.immune_role_ids)

    # ------------------------------------------------------------------
    # Automod events
    # ------------------------------------------------------------------

    async def handle_event(self, event: ContentEvent) -> Optional[EnforcementResult]:
        """
        Evaluate and enforce one content event.

        Returns None when nothing triggered.

        Raises:
            InfractionPersistenceError: If the infraction could not be recorded.
        """
        config = self._config_manager.get_config(event.guild_id)
        if not config.automod_enabled:
            return None
        if self.is_immune(config, event.author_role_ids):
            logger.debug("[AUTOMOD] User %s is immune in guild %s, skipping", event.author_id, event.guild_id)
            return None

        rules = await self._rule_store.list_enabled_rules(event.guild_id)
        if not rules:
            return None

        match = self._rule_engine.evaluate(rules, event)
        if match is None:
            return None

        logger.info(
            "[AUTOMOD] Rule %r triggered for user %s in guild %s (%s)",
            match.rule.name, event.author_id, event.guild_id, match.target,
        )
        return await self.enforce(match, event, config)

    async def enforce(self, match: RuleMatch, event: ContentEvent, config: ModerationConfig) -> EnforcementResult:
        rule = match.rule
        actions = build_actions(
            rule.actions,
            warn_points=rule.warn_points,
            timeout_duration=rule.timeout_duration,
            dm_template=rule.dm_template,
        )
        points = rule.points
        context = ActionContext(
            guild_id=event.guild_id,
            user_id=event.author_id,
            reason=f"Automod: {rule.name}",
            channel_id=event.channel_id,
            message_id=event.message_id,
            match=match,
            points=points,
            emoji=self._reaction_emoji(event),
        )

        await self._apply([a for a in actions if not a.after_record], context)

        data = RecordInfractionData(
            guild_id=event.guild_id,
            user_id=event.author_id,
            source=InfractionSource.AUTOMOD,
            type=_INFRACTION_TYPE_BY_EVENT[event.kind],
            reason=f"Automod rule: {rule.name}",
            rule_id=rule.rule_id,
            rule_name=rule.name,
            matched_content=match.matched_content,
            matched_pattern=match.matched_pattern,
            points_assigned=points,
            channel_id=event.channel_id,
            message_id=event.message_id,
        )
        deferred = [a for a in actions if a.after_record]
        result = await self._record_and_escalate(data, config, context, deferred)
        result.match = match
        return result

    # ------------------------------------------------------------------
    # Manual moderation
    # ------------------------------------------------------------------

    async def record_manual_infraction(
        self,
        guild_id: GuildID,
        user_id: UserID,
        moderator_id: UserID,
        infraction_type: InfractionType,
        reason: str,
        points: int = 0,
        duration: Optional[int] = None,
        channel_id: Optional[ChannelID] = None,
        message_id: Optional[MessageID] = None,
    ) -> EnforcementResult:
        """
        Record a staff action and run escalation for it.

        The staff action itself (kick, ban...) is carried out by the caller;
        only escalation tier actions are applied here.
        """
        config = self._config_manager.get_config(guild_id)
        data = RecordInfractionData(
            guild_id=guild_id,
            user_id=user_id,
            source=InfractionSource.MANUAL,
            type=infraction_type,
            moderator_id=moderator_id,
            reason=reason,
            points_assigned=max(0, points),
            channel_id=channel_id,
            message_id=message_id,
            duration=duration,
        )
        context = ActionContext(
            guild_id=guild_id,
            user_id=user_id,
            reason=reason,
            channel_id=channel_id,
            message_id=message_id,
            points=data.points_assigned,
        )
        return await self._record_and_escalate(data, config, context, ())

    # ------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------

    async def _record_and_escalate(
        self,
        data: RecordInfractionData,
        config: ModerationConfig,
        context: ActionContext,
        after_record: Iterable[ModerationAction],
    ) -> EnforcementResult:
        tier: Optional[EscalationTier] = None
        escalation_record: Optional[RecordResult] = None

        async with self._member_locks.hold((data.guild_id, data.user_id)):
            record = await self._ledger.record_infraction(data)

            if data.points_assigned > 0 and config.escalation_tiers:
                tier = await self._resolver.resolve(
                    data.guild_id, data.user_id, record.active_points, record.previous_points,
                )
                if tier is not None:
                    escalation_record = await self._ledger.record_infraction(
                        RecordInfractionData(
                            guild_id=data.guild_id,
                            user_id=data.user_id,
                            source=data.source,
                            type=InfractionType.ESCALATION,
                            moderator_id=data.moderator_id,
                            reason=f"Escalation: {tier.name}",
                            points_assigned=0,
                            channel_id=data.channel_id,
                            duration=tier.duration,
                            escalation_triggered=tier.name,
                        )
                    )

        context = replace(context, active_points=record.active_points)

        await self._apply(after_record, context)

        if tier is not None:
            await self._apply_tier(tier, context)

        return EnforcementResult(record=record, escalation=tier, escalation_record=escalation_record)

    async def _apply_tier(self, tier: EscalationTier, context: ActionContext) -> None:
        actions = build_actions(
            tier.actions,
            timeout_duration=tier.duration or DEFAULT_ESCALATION_TIMEOUT_SECONDS,
        )
        if not any(isinstance(action, LogAction) for action in actions):
            actions.append(LogAction())
        tier_context = replace(context, reason=f"Escalation: {tier.name} (points threshold reached)", match=None)
        await self._apply(actions, tier_context)

    async def _apply(self, actions: Iterable[ModerationAction], context: ActionContext) -> None:
        """Apply actions in order. A failing action is logged and the rest still run."""
        for action in actions:
            try:
                await action.apply(self._executor, context)
            except Exception:
                logger.exception(
                    "[AUTOMOD] %s failed for user %s in guild %s",
                    type(action).__name__, context.user_id, context.guild_id,
                )
