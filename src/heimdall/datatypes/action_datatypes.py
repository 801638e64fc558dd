"""
Moderation action variants and the executor interface.

Each action a rule or escalation tier can request is its own small dataclass.
The set is closed (:data:`ModerationAction`) and every variant knows which
:class:`ActionExecutor` method carries it out, so downstream code never
matches on action-name strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Iterable, List, Optional, Protocol, Union

from heimdall.datatypes.automod_datatypes import AutomodAction, RuleMatch
from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID

# Discord refuses timeouts longer than 28 days.
MAX_TIMEOUT_SECONDS = 28 * 24 * 60 * 60
DEFAULT_TIMEOUT_SECONDS = 60


@dataclass(frozen=True, slots=True)
class ActionContext:
    """Where and why an action is being applied."""

    guild_id: GuildID
    user_id: UserID
    reason: str
    channel_id: Optional[ChannelID] = None
    message_id: Optional[MessageID] = None
    match: Optional[RuleMatch] = None
    points: int = 0
    active_points: int = 0
    emoji: Optional[str] = None


class ActionExecutor(Protocol):
    """Carries out platform-side effects. One method per action variant."""

    async def delete_message(self, action: "DeleteMessage", context: ActionContext) -> None: ...

    async def remove_reaction(self, action: "RemoveReaction", context: ActionContext) -> None: ...

    async def send_dm(self, action: "SendDirectMessage", context: ActionContext) -> None: ...

    async def warn(self, action: "Warn", context: ActionContext) -> None: ...

    async def timeout(self, action: "Timeout", context: ActionContext) -> None: ...

    async def kick(self, action: "Kick", context: ActionContext) -> None: ...

    async def ban(self, action: "Ban", context: ActionContext) -> None: ...

    async def log(self, action: "LogAction", context: ActionContext) -> None: ...


@dataclass(frozen=True, slots=True)
class DeleteMessage:
    after_record: ClassVar[bool] = False

    async def apply(self, executor: ActionExecutor, context: ActionContext) -> None:
        await executor.delete_message(self, context)


@dataclass(frozen=True, slots=True)
class RemoveReaction:
    after_record: ClassVar[bool] = False

    async def apply(self, executor: ActionExecutor, context: ActionContext) -> None:
        await executor.remove_reaction(self, context)


@dataclass(frozen=True, slots=True)
class SendDirectMessage:
    # Sent once the infraction is recorded so the running total is known.
    after_record: ClassVar[bool] = True
    template: Optional[str] = None

    async def apply(self, executor: ActionExecutor, context: ActionContext) -> None:
        await executor.send_dm(self, context)


@dataclass(frozen=True, slots=True)
class Warn:
    after_record: ClassVar[bool] = False
    points: int = 0

    async def apply(self, executor: ActionExecutor, context: ActionContext) -> None:
        await executor.warn(self, context)


@dataclass(frozen=True, slots=True)
class Timeout:
    after_record: ClassVar[bool] = False
    duration_seconds: int = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        clamped = max(1, min(int(self.duration_seconds), MAX_TIMEOUT_SECONDS))
        object.__setattr__(self, "duration_seconds", clamped)

    async def apply(self, executor: ActionExecutor, context: ActionContext) -> None:
        await executor.timeout(self, context)


@dataclass(frozen=True, slots=True)
class Kick:
    after_record: ClassVar[bool] = False

    async def apply(self, executor: ActionExecutor, context: ActionContext) -> None:
        await executor.kick(self, context)


@dataclass(frozen=True, slots=True)
class Ban:
    after_record: ClassVar[bool] = False
    delete_message_seconds: int = 0

    async def apply(self, executor: ActionExecutor, context: ActionContext) -> None:
        await executor.ban(self, context)


@dataclass(frozen=True, slots=True)
class LogAction:
    after_record: ClassVar[bool] = True

    async def apply(self, executor: ActionExecutor, context: ActionContext) -> None:
        await executor.log(self, context)


ModerationAction = Union[DeleteMessage, RemoveReaction, SendDirectMessage, Warn, Timeout, Kick, Ban, LogAction]


def build_actions(
    actions: Iterable[AutomodAction],
    *,
    warn_points: int = 0,
    timeout_duration: Optional[int] = None,
    dm_template: Optional[str] = None,
) -> List[ModerationAction]:
    """
    Turn a configured action list into concrete variants, preserving order.

    Duplicate entries are collapsed. ``warn`` implies a DM to the member, as
    does ``dm``; a single :class:`SendDirectMessage` is emitted for either.
    """
    built: List[ModerationAction] = []
    seen: set[AutomodAction] = set()
    wants_dm = False

    for action in actions:
        if action in seen:
            continue
        seen.add(action)

        if action is AutomodAction.DELETE:
            built.append(DeleteMessage())
        elif action is AutomodAction.REMOVE_REACTION:
            built.append(RemoveReaction())
        elif action is AutomodAction.DM:
            wants_dm = True
        elif action is AutomodAction.WARN:
            built.append(Warn(points=warn_points))
            wants_dm = True
        elif action is AutomodAction.TIMEOUT:
            built.append(Timeout(duration_seconds=timeout_duration or DEFAULT_TIMEOUT_SECONDS))
        elif action is AutomodAction.KICK:
            built.append(Kick())
        elif action is AutomodAction.BAN:
            built.append(Ban())
        elif action is AutomodAction.LOG:
            built.append(LogAction())

    if wants_dm:
        # The member hears about it before the mod log is written.
        log_positions = [i for i, item in enumerate(built) if isinstance(item, LogAction)]
        built.insert(log_positions[0] if log_positions else len(built), SendDirectMessage(template=dm_template))

    return built
