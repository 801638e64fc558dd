"""Escalation tier configuration types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from heimdall.datatypes.automod_datatypes import AutomodAction


class RearmPolicy(Enum):
    """
    When an escalation tier may fire again for the same member.

    CROSSING: whenever the total climbs from below the threshold to at or above it.
    DECAY: as CROSSING, but not while an unexpired escalation record for the
        tier is still active. Escalation records decay with the guild's decay
        window, so the tier re-arms once that record expires.
    NEVER: as CROSSING, but not while any active escalation record for the
        tier exists, expired or not. Only a clear re-arms the tier.
    """

    CROSSING = "crossing"
    DECAY = "decay"
    NEVER = "never"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class EscalationTier:
    """A points threshold mapped to supplemental actions.

    ``duration`` is the timeout length in seconds for tiers that time out.
    """

    name: str
    threshold: int
    actions: List[AutomodAction] = field(default_factory=list)
    duration: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "threshold": self.threshold,
            "actions": [action.value for action in self.actions],
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EscalationTier":
        # Older configs stored a single ``action`` string.
        raw_actions = data.get("actions")
        if raw_actions is None and data.get("action"):
            raw_actions = [data["action"]]
        return cls(
            name=str(data.get("name") or "Unknown"),
            threshold=int(data.get("threshold", data.get("pointsThreshold", 0))),
            actions=[AutomodAction(a) for a in (raw_actions or [])],
            duration=data.get("duration"),
        )
