"""
Persistent storage for infractions.

Timestamps are INTEGER unix seconds (UTC). Rows are never deleted or
edited apart from flipping ``active`` to 0 when a member's record is cleared.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

import aiosqlite

from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID
from heimdall.datatypes.infraction_datatypes import (
    Infraction,
    InfractionSource,
    InfractionType,
    RecordInfractionData,
)

_COLUMNS = (
    "id, guild_id, user_id, moderator_id, source, type, reason, rule_id, rule_name, "
    "matched_content, matched_pattern, points_assigned, total_points_after, "
    "escalation_triggered, channel_id, message_id, duration, expires_at, active, created_at"
)

# Shared predicate for "counts toward active points".
_COUNTED = "active = 1 AND (expires_at IS NULL OR expires_at > ?)"


def to_unix(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def from_unix(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _row_to_infraction(row: Any) -> Infraction:
    return Infraction(
        infraction_id=row[0],
        guild_id=GuildID(row[1]),
        user_id=UserID(row[2]),
        moderator_id=UserID(row[3]) if row[3] else None,
        source=InfractionSource(row[4]),
        type=InfractionType(row[5]),
        reason=row[6],
        rule_id=row[7],
        rule_name=row[8],
        matched_content=row[9],
        matched_pattern=row[10],
        points_assigned=row[11],
        total_points_after=row[12],
        escalation_triggered=row[13],
        channel_id=ChannelID(row[14]) if row[14] is not None else None,
        message_id=MessageID(row[15]) if row[15] is not None else None,
        duration=row[16],
        expires_at=from_unix(row[17]),
        active=bool(row[18]),
        created_at=from_unix(row[19]),
    )


def _filters(
    guild_id: GuildID,
    user_id: Optional[UserID],
    source: Optional[InfractionSource],
    infraction_type: Optional[InfractionType],
) -> Tuple[str, List[Any]]:
    clauses = ["guild_id = ?"]
    params: List[Any] = [guild_id.to_int()]
    if user_id is not None:
        clauses.append("user_id = ?")
        params.append(str(user_id))
    if source is not None:
        clauses.append("source = ?")
        params.append(source.value)
    if infraction_type is not None:
        clauses.append("type = ?")
        params.append(infraction_type.value)
    return " AND ".join(clauses), params


class InfractionRepo:
    """Low-level SQL for the ``infractions`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        data: RecordInfractionData,
        total_points_after: int,
        expires_at: Optional[datetime],
        created_at: datetime,
    ) -> Infraction:
        """Insert a row and return it as an :class:`Infraction`."""
        cursor = await conn.execute(
            """
            INSERT INTO infractions (
                guild_id, user_id, moderator_id, source, type, reason, rule_id, rule_name,
                matched_content, matched_pattern, points_assigned, total_points_after,
                escalation_triggered, channel_id, message_id, duration, expires_at, active, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
            """,
            (
                data.guild_id.to_int(),
                str(data.user_id),
                str(data.moderator_id) if data.moderator_id is not None else None,
                data.source.value,
                data.type.value,
                data.reason,
                data.rule_id,
                data.rule_name,
                data.matched_content,
                data.matched_pattern,
                data.points_assigned,
                total_points_after,
                data.escalation_triggered,
                data.channel_id.to_int() if data.channel_id is not None else None,
                data.message_id.to_int() if data.message_id is not None else None,
                data.duration,
                to_unix(expires_at),
                to_unix(created_at),
            ),
        )
        infraction_id = cursor.lastrowid
        return Infraction(
            infraction_id=infraction_id,
            guild_id=data.guild_id,
            user_id=data.user_id,
            moderator_id=data.moderator_id,
            source=data.source,
            type=data.type,
            reason=data.reason,
            rule_id=data.rule_id,
            rule_name=data.rule_name,
            matched_content=data.matched_content,
            matched_pattern=data.matched_pattern,
            points_assigned=data.points_assigned,
            total_points_after=total_points_after,
            escalation_triggered=data.escalation_triggered,
            channel_id=data.channel_id,
            message_id=data.message_id,
            duration=data.duration,
            expires_at=from_unix(to_unix(expires_at)),
            active=True,
            created_at=from_unix(to_unix(created_at)),
        )

    @staticmethod
    async def deactivate_member(conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID) -> int:
        """Set ``active = 0`` on every active row for the member. Returns rows changed."""
        cursor = await conn.execute(
            "UPDATE infractions SET active = 0 WHERE guild_id = ? AND user_id = ? AND active = 1",
            (guild_id.to_int(), str(user_id)),
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def sum_active_points(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: UserID,
        now: datetime,
    ) -> int:
        cursor = await conn.execute(
            f"SELECT COALESCE(SUM(points_assigned), 0) FROM infractions "
            f"WHERE guild_id = ? AND user_id = ? AND {_COUNTED}",
            (guild_id.to_int(), str(user_id), to_unix(now)),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    async def count(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: Optional[UserID] = None,
        source: Optional[InfractionSource] = None,
        infraction_type: Optional[InfractionType] = None,
    ) -> int:
        where, params = _filters(guild_id, user_id, source, infraction_type)
        cursor = await conn.execute(f"SELECT COUNT(*) FROM infractions WHERE {where}", params)
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    async def list_newest(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: Optional[UserID] = None,
        source: Optional[InfractionSource] = None,
        infraction_type: Optional[InfractionType] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> List[Infraction]:
        where, params = _filters(guild_id, user_id, source, infraction_type)
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM infractions WHERE {where} "
            f"ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        rows = await cursor.fetchall()
        return [_row_to_infraction(row) for row in rows]

    @staticmethod
    async def count_active(conn: aiosqlite.Connection, guild_id: GuildID) -> int:
        cursor = await conn.execute(
            "SELECT COUNT(*) FROM infractions WHERE guild_id = ? AND active = 1",
            (guild_id.to_int(),),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    async def count_by(conn: aiosqlite.Connection, guild_id: GuildID, column: str) -> Dict[str, int]:
        """Group counts by ``source`` or ``type``."""
        if column not in ("source", "type"):
            raise ValueError(f"Cannot group infractions by {column!r}")
        cursor = await conn.execute(
            f"SELECT {column}, COUNT(*) FROM infractions WHERE guild_id = ? GROUP BY {column}",
            (guild_id.to_int(),),
        )
        rows = await cursor.fetchall()
        return {row[0]: int(row[1]) for row in rows}

    @staticmethod
    async def triggered_tiers(
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: UserID,
        now: Optional[datetime],
    ) -> Set[str]:
        """
        Names of tiers with an active escalation record for the member.

        When ``now`` is given, expired escalation records are ignored.
        """
        query = (
            "SELECT DISTINCT escalation_triggered FROM infractions "
            "WHERE guild_id = ? AND user_id = ? AND type = ? AND escalation_triggered IS NOT NULL AND active = 1"
        )
        params: List[Any] = [guild_id.to_int(), str(user_id), InfractionType.ESCALATION.value]
        if now is not None:
            query += " AND (expires_at IS NULL OR expires_at > ?)"
            params.append(to_unix(now))
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return {row[0] for row in rows}
