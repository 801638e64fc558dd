"""
InfractionLedger: points tracking, decay and infraction history.

Responsibilities:
- Record infractions with a decay expiry taken from the guild's config
- Compute a member's active points (active and not yet expired)
- Paginated history, manual clears and guild-wide stats

Write paths raise :class:`InfractionPersistenceError`; read paths log and
return zero or empty results so a storage hiccup never blocks automod.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Set

from heimdall.configuration.guild_settings import ModerationConfigManager
from heimdall.database.db_connection import ConnectionManager
from heimdall.datatypes.discord_datatypes import GuildID, UserID
from heimdall.datatypes.infraction_datatypes import (
    GuildInfractionStats,
    InfractionPage,
    InfractionPersistenceError,
    InfractionSource,
    InfractionType,
    RecordInfractionData,
    RecordResult,
)
from heimdall.repositories.infraction_repo import InfractionRepo
from heimdall.util.logger import get_logger

logger = get_logger("infraction_ledger")

Clock = Callable[[], datetime]

DEFAULT_PAGE_SIZE = 10
RECENT_LIMIT = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InfractionLedger:
    """Append-only infraction record per (guild, member)."""

    def __init__(
        self,
        db: ConnectionManager,
        config_manager: ModerationConfigManager,
        clock: Clock = utc_now,
    ) -> None:
        self._db = db
        self._config_manager = config_manager
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def compute_expiry(self, data: RecordInfractionData, now: datetime) -> Optional[datetime]:
        """
        When the infraction stops counting, or None if it never decays.

        Point-bearing infractions and escalation records decay so that
        escalation tiers can re-arm once the member's record cools down.
        """
        config = self._config_manager.get_config(data.guild_id)
        if not config.decay_active:
            return None
        if data.points_assigned > 0 or data.type is InfractionType.ESCALATION:
            return now + timedelta(days=config.point_decay_days)
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_infraction(self, data: RecordInfractionData) -> RecordResult:
        """
        Persist an infraction and return it with the member's new active points.

        The current total is read and the new row inserted inside one write
        transaction, so concurrent records for the same member cannot both
        build on the same snapshot.

        Raises:
            InfractionPersistenceError: If the write fails.
        """
        now = self.now()
        expires_at = self.compute_expiry(data, now)

        try:
            async with self._db.transaction() as conn:
                current = await InfractionRepo.sum_active_points(conn, data.guild_id, data.user_id, now)
                total_after = current + data.points_assigned
                infraction = await InfractionRepo.insert(conn, data, total_after, expires_at, now)
        except Exception as exc:
            logger.exception(
                "[INFRACTION LEDGER] Failed to record %s infraction for user %s in guild %s",
                data.type, data.user_id, data.guild_id,
            )
            raise InfractionPersistenceError(
                f"Could not record {data.type} infraction for user {data.user_id}"
            ) from exc

        logger.info(
            "[INFRACTION LEDGER] Recorded %s (%s, +%d) for user %s in guild %s, active points now %d",
            data.type, data.source, data.points_assigned, data.user_id, data.guild_id, total_after,
        )
        return RecordResult(infraction=infraction, active_points=total_after)

    async def clear_user_infractions(self, guild_id: GuildID, user_id: UserID) -> int:
        """
        Deactivate every active infraction for the member. Rows are kept.

        Raises:
            InfractionPersistenceError: If the update fails.
        """
        try:
            async with self._db.transaction() as conn:
                cleared = await InfractionRepo.deactivate_member(conn, guild_id, user_id)
        except Exception as exc:
            logger.exception("[INFRACTION LEDGER] Failed to clear infractions for user %s in guild %s", user_id, guild_id)
            raise InfractionPersistenceError(f"Could not clear infractions for user {user_id}") from exc

        logger.info("[INFRACTION LEDGER] Cleared %d infractions for user %s in guild %s", cleared, user_id, guild_id)
        return cleared

    # ------------------------------------------------------------------
    # Reads (degrade on error)
    # ------------------------------------------------------------------

    async def get_active_points(self, guild_id: GuildID, user_id: UserID) -> int:
        try:
            async with self._db.read() as conn:
                return await InfractionRepo.sum_active_points(conn, guild_id, user_id, self.now())
        except Exception:
            logger.exception("[INFRACTION LEDGER] Failed to read active points for user %s in guild %s", user_id, guild_id)
            return 0

    async def get_user_infractions(
        self,
        guild_id: GuildID,
        user_id: Optional[UserID],
        source: Optional[InfractionSource] = None,
        infraction_type: Optional[InfractionType] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> InfractionPage:
        """Newest-first page of a member's history (or the whole guild's when ``user_id`` is None)."""
        page = max(1, page)
        limit = max(1, limit)
        try:
            async with self._db.read() as conn:
                total = await InfractionRepo.count(conn, guild_id, user_id, source, infraction_type)
                rows = await InfractionRepo.list_newest(
                    conn, guild_id, user_id, source, infraction_type,
                    limit=limit, offset=(page - 1) * limit,
                )
        except Exception:
            logger.exception("[INFRACTION LEDGER] Failed to list infractions for user %s in guild %s", user_id, guild_id)
            return InfractionPage()

        return InfractionPage(infractions=rows, total=total, page=page, pages=math.ceil(total / limit))

    async def get_guild_stats(self, guild_id: GuildID) -> GuildInfractionStats:
        try:
            async with self._db.read() as conn:
                return GuildInfractionStats(
                    total_infractions=await InfractionRepo.count(conn, guild_id),
                    active_infractions=await InfractionRepo.count_active(conn, guild_id),
                    by_source=await InfractionRepo.count_by(conn, guild_id, "source"),
                    by_type=await InfractionRepo.count_by(conn, guild_id, "type"),
                    recent_infractions=await InfractionRepo.list_newest(conn, guild_id, limit=RECENT_LIMIT),
                )
        except Exception:
            logger.exception("[INFRACTION LEDGER] Failed to compute stats for guild %s", guild_id)
            return GuildInfractionStats()

    async def triggered_tiers(self, guild_id: GuildID, user_id: UserID, include_expired: bool = False) -> Set[str]:
        """Tier names with an active escalation record for the member."""
        now = None if include_expired else self.now()
        try:
            async with self._db.read() as conn:
                return await InfractionRepo.triggered_tiers(conn, guild_id, user_id, now)
        except Exception:
            logger.exception("[INFRACTION LEDGER] Failed to read escalation history for user %s in guild %s", user_id, guild_id)
            return set()
