"""
EscalationResolver: map a member's updated points total to an escalation tier.

A tier fires only when the total crosses its threshold on this infraction
(previous < threshold <= new). The guild's :class:`RearmPolicy` then decides
whether an earlier escalation record for the same tier blocks it.
"""

from __future__ import annotations

from typing import Optional

from heimdall.configuration.guild_settings import ModerationConfigManager
from heimdall.datatypes.discord_datatypes import GuildID, UserID
from heimdall.datatypes.escalation_datatypes import EscalationTier, RearmPolicy
from heimdall.services.infraction_ledger import InfractionLedger
from heimdall.util.logger import get_logger

logger = get_logger("escalation_resolver")

# Escalation timeouts without a configured duration last one hour.
DEFAULT_ESCALATION_TIMEOUT_SECONDS = 60 * 60


class EscalationResolver:
    """Decides which escalation tier, if any, a new points total triggers."""

    def __init__(self, config_manager: ModerationConfigManager, ledger: InfractionLedger) -> None:
        self._config_manager = config_manager
        self._ledger = ledger

    async def resolve(
        self,
        guild_id: GuildID,
        user_id: UserID,
        new_points: int,
        previous_points: int,
    ) -> Optional[EscalationTier]:
        """
        Return the highest newly crossed tier that is armed, or None.

        Args:
            guild_id: Guild whose tiers apply.
            user_id: Member whose total changed.
            new_points: Active points after the infraction.
            previous_points: Active points before it.
        """
        config = self._config_manager.get_config(guild_id)
        if not config.escalation_tiers or new_points <= previous_points:
            return None

        crossed = [
            tier for tier in config.sorted_tiers()
            if previous_points < tier.threshold <= new_points
        ]
        if not crossed:
            return None

        policy = config.escalation_rearm
        blocked = set()
        if policy is not RearmPolicy.CROSSING:
            blocked = await self._ledger.triggered_tiers(
                guild_id, user_id, include_expired=policy is RearmPolicy.NEVER,
            )

        for tier in crossed:
            if tier.name in blocked:
                logger.debug(
                    "[ESCALATION] Tier %r for user %s in guild %s not re-armed under %s policy",
                    tier.name, user_id, guild_id, policy,
                )
                continue
            logger.info(
                "[ESCALATION] User %s in guild %s crossed tier %r (%d -> %d, threshold %d)",
                user_id, guild_id, tier.name, previous_points, new_points, tier.threshold,
            )
            return tier
        return None
