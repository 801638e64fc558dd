"""
Infraction ledger data structures.

Infractions are append-only. Only the ``active`` flag ever changes after a
record is written (via a manual clear); ``total_points_after`` is a snapshot
taken at write time and is never recomputed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID


class InfractionSource(Enum):
    AUTOMOD = "automod"
    MANUAL = "manual"

    def __str__(self) -> str:
        return self.value


class InfractionType(Enum):
    WARN = "warn"
    KICK = "kick"
    BAN = "ban"
    MUTE = "mute"
    AUTOMOD_DELETE = "automod_delete"
    AUTOMOD_REACTION = "automod_reaction"
    AUTOMOD_USERNAME = "automod_username"
    ESCALATION = "escalation"

    def __str__(self) -> str:
        return self.value


class InfractionPersistenceError(RuntimeError):
    """A ledger write failed; the moderation decision must not be reported as recorded."""


@dataclass(slots=True)
class RecordInfractionData:
    """Input to :meth:`InfractionLedger.record_infraction`."""

    guild_id: GuildID
    user_id: UserID
    source: InfractionSource
    type: InfractionType
    moderator_id: Optional[UserID] = None
    reason: Optional[str] = None
    rule_id: Optional[int] = None
    rule_name: Optional[str] = None
    matched_content: Optional[str] = None
    matched_pattern: Optional[str] = None
    points_assigned: int = 0
    channel_id: Optional[ChannelID] = None
    message_id: Optional[MessageID] = None
    duration: Optional[int] = None
    escalation_triggered: Optional[str] = None


@dataclass(slots=True)
class Infraction:
    """A persisted infraction row."""

    infraction_id: int
    guild_id: GuildID
    user_id: UserID
    source: InfractionSource
    type: InfractionType
    points_assigned: int
    total_points_after: int
    active: bool
    created_at: datetime
    expires_at: Optional[datetime] = None
    moderator_id: Optional[UserID] = None
    reason: Optional[str] = None
    rule_id: Optional[int] = None
    rule_name: Optional[str] = None
    matched_content: Optional[str] = None
    matched_pattern: Optional[str] = None
    channel_id: Optional[ChannelID] = None
    message_id: Optional[MessageID] = None
    duration: Optional[int] = None
    escalation_triggered: Optional[str] = None

    def is_counted(self, now: datetime) -> bool:
        """True if this infraction contributes to active points at ``now``."""
        return self.active and (self.expires_at is None or self.expires_at > now)


@dataclass(slots=True)
class RecordResult:
    infraction: Infraction
    active_points: int

    @property
    def previous_points(self) -> int:
        """Active points immediately before this infraction was recorded."""
        return self.active_points - self.infraction.points_assigned


@dataclass(slots=True)
class InfractionPage:
    infractions: List[Infraction] = field(default_factory=list)
    total: int = 0
    page: int = 1
    pages: int = 0


@dataclass(slots=True)
class GuildInfractionStats:
    total_infractions: int = 0
    active_infractions: int = 0
    by_source: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, int] = field(default_factory=dict)
    recent_infractions: List[Infraction] = field(default_factory=list)
