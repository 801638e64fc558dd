"""
Automod data structures.

Defines the rule model consumed by the rule engine (targets, match modes,
compiled patterns, scoping filters), the content events fed into it, and the
result types produced by the pattern compiler and the regex engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, RoleID, UserID


class AutomodTarget(Enum):
    """The kind of content a rule inspects."""

    MESSAGE_CONTENT = "message_content"
    REACTION_EMOJI = "reaction_emoji"
    MESSAGE_EMOJI = "message_emoji"
    USERNAME = "username"
    NICKNAME = "nickname"
    STICKER = "sticker"
    LINK = "link"

    def __str__(self) -> str:
        return self.value


class AutomodAction(Enum):
    """Actions a rule (or escalation tier) may request."""

    DELETE = "delete"
    REMOVE_REACTION = "remove_reaction"
    DM = "dm"
    WARN = "warn"
    TIMEOUT = "timeout"
    KICK = "kick"
    BAN = "ban"
    LOG = "log"

    def __str__(self) -> str:
        return self.value


class MatchMode(Enum):
    """Whether any single pattern or every pattern must match."""

    ANY = "any"
    ALL = "all"

    def __str__(self) -> str:
        return self.value


class EventKind(Enum):
    """The Discord event a piece of content came from."""

    MESSAGE = "message"
    REACTION = "reaction"
    MEMBER_JOIN = "member_join"
    NICKNAME_CHANGE = "nickname_change"


EVENT_TARGETS: dict[EventKind, Tuple[AutomodTarget, ...]] = {
    EventKind.MESSAGE: (
        AutomodTarget.MESSAGE_CONTENT,
        AutomodTarget.MESSAGE_EMOJI,
        AutomodTarget.STICKER,
        AutomodTarget.LINK,
    ),
    EventKind.REACTION: (AutomodTarget.REACTION_EMOJI,),
    EventKind.MEMBER_JOIN: (AutomodTarget.USERNAME,),
    EventKind.NICKNAME_CHANGE: (AutomodTarget.NICKNAME,),
}


class PatternValidationError(ValueError):
    """Raised when staff-authored patterns or rule fields cannot be accepted.

    ``errors`` holds every message, verbatim, so the authoring flow can show
    staff exactly which pattern or field to fix.
    """

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid automod rule")


@dataclass(frozen=True, slots=True)
class AutomodPattern:
    """A compiled pattern. ``wildcard`` is empty for raw regex patterns."""

    regex: str
    flags: str = "i"
    label: str = ""
    wildcard: str = ""

    def to_dict(self) -> dict:
        return {"wildcard": self.wildcard, "regex": self.regex, "flags": self.flags, "label": self.label}

    @classmethod
    def from_dict(cls, data: dict) -> "AutomodPattern":
        return cls(
            regex=str(data["regex"]),
            flags=str(data.get("flags") or ""),
            label=str(data.get("label") or ""),
            wildcard=str(data.get("wildcard") or ""),
        )


@dataclass(frozen=True, slots=True)
class WildcardParseResult:
    """Outcome of compiling a comma-separated wildcard string."""

    patterns: Tuple[AutomodPattern, ...]
    errors: Tuple[str, ...]

    @property
    def success(self) -> bool:
        return not self.errors and bool(self.patterns)


@dataclass(frozen=True, slots=True)
class RegexValidation:
    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class RegexMatch:
    """Result of a single bounded regex search."""

    matched: bool
    match: str = ""
    index: int = -1


@dataclass(frozen=True, slots=True)
class PatternTestResult:
    """Result of running a pattern set under a match mode."""

    matched: bool
    pattern: Optional[AutomodPattern] = None
    match: str = ""
    index: int = -1


@dataclass(slots=True)
class AutomodRule:
    """
    A guild-configured content filter.

    Attributes:
        rule_id: Storage identifier (``None`` until persisted).
        guild_id: Guild the rule belongs to.
        name: Unique per guild.
        patterns: Compiled patterns; at least one.
        actions: Requested actions; at least one.
        warn_points: Points assigned when ``actions`` contains ``warn``.
        timeout_duration: Timeout length in seconds for the ``timeout`` action.
        wildcard_input: Original wildcard text, kept for editing.
    """

    guild_id: GuildID
    name: str
    patterns: List[AutomodPattern]
    actions: List[AutomodAction]
    target: AutomodTarget = AutomodTarget.MESSAGE_CONTENT
    match_mode: MatchMode = MatchMode.ANY
    enabled: bool = True
    priority: int = 0
    warn_points: int = 0
    timeout_duration: Optional[int] = None
    channel_include: List[ChannelID] = field(default_factory=list)
    channel_exclude: List[ChannelID] = field(default_factory=list)
    role_include: List[RoleID] = field(default_factory=list)
    role_exclude: List[RoleID] = field(default_factory=list)
    wildcard_input: str = ""
    dm_template: Optional[str] = None
    rule_id: Optional[int] = None

    def has_action(self, action: AutomodAction) -> bool:
        return action in self.actions

    @property
    def points(self) -> int:
        """Points this rule assigns when it triggers."""
        return self.warn_points if self.has_action(AutomodAction.WARN) else 0


@dataclass(frozen=True, slots=True)
class CustomEmoji:
    name: str
    id: str
    animated: bool
    raw: str


@dataclass(frozen=True, slots=True)
class EmojiInfo:
    unicode: Tuple[str, ...] = ()
    custom: Tuple[CustomEmoji, ...] = ()


@dataclass(frozen=True, slots=True)
class ContentEvent:
    """
    One evaluable piece of Discord activity.

    ``text`` is the message body, the member's username or nickname, or the
    reaction emoji name. Reactions on custom emoji also carry
    ``emoji_id`` so the evaluated content becomes ``name:id``.
    """

    kind: EventKind
    guild_id: GuildID
    author_id: UserID
    text: str = ""
    channel_id: Optional[ChannelID] = None
    message_id: Optional[MessageID] = None
    author_role_ids: FrozenSet[RoleID] = frozenset()
    sticker_names: Tuple[str, ...] = ()
    emoji_id: Optional[str] = None

    @property
    def targets(self) -> Tuple[AutomodTarget, ...]:
        return EVENT_TARGETS[self.kind]


@dataclass(frozen=True, slots=True)
class RuleMatch:
    """
    The triggering rule for an event.

    ``matched_content`` is the literal substring the reported pattern matched
    and ``index`` its start offset inside the extracted ``content``.
    """

    rule: AutomodRule
    target: AutomodTarget
    pattern: AutomodPattern
    matched_content: str
    index: int
    content: str

    @property
    def matched_pattern(self) -> str:
        return self.pattern.regex
