"""Tests for moderation action variants."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from heimdall.datatypes.action_datatypes import (
    MAX_TIMEOUT_SECONDS,
    ActionContext,
    Ban,
    DeleteMessage,
    Kick,
    LogAction,
    RemoveReaction,
    SendDirectMessage,
    Timeout,
    Warn,
    build_actions,
)
from heimdall.datatypes.automod_datatypes import AutomodAction
from heimdall.datatypes.discord_datatypes import GuildID, UserID


def test_build_actions_preserves_order_and_inserts_dm_before_log():
    actions = build_actions(
        [AutomodAction.DELETE, AutomodAction.WARN, AutomodAction.LOG],
        warn_points=2,
        dm_template="hi {user}",
    )

    assert actions == [DeleteMessage(), Warn(points=2), SendDirectMessage(template="hi {user}"), LogAction()]


def test_build_actions_dedupes_and_emits_one_dm():
    actions = build_actions([AutomodAction.DM, AutomodAction.WARN, AutomodAction.WARN, AutomodAction.DM])

    assert actions == [Warn(points=0), SendDirectMessage()]


def test_build_actions_without_log_appends_dm():
    assert build_actions([AutomodAction.DM, AutomodAction.KICK]) == [Kick(), SendDirectMessage()]


def test_build_actions_timeout_and_ban():
    actions = build_actions([AutomodAction.TIMEOUT, AutomodAction.BAN, AutomodAction.REMOVE_REACTION], timeout_duration=300)

    assert actions == [Timeout(duration_seconds=300), Ban(), RemoveReaction()]


def test_build_actions_default_timeout():
    assert build_actions([AutomodAction.TIMEOUT]) == [Timeout(duration_seconds=60)]


@pytest.mark.parametrize(
    "requested, expected",
    [(0, 1), (-5, 1), (90, 90), (MAX_TIMEOUT_SECONDS + 1, MAX_TIMEOUT_SECONDS)],
)
def test_timeout_is_clamped(requested, expected):
    assert Timeout(duration_seconds=requested).duration_seconds == expected


def test_after_record_split():
    assert not DeleteMessage.after_record
    assert not Warn.after_record
    assert SendDirectMessage.after_record
    assert LogAction.after_record


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "action, method",
    [
        (DeleteMessage(), "delete_message"),
        (RemoveReaction(), "remove_reaction"),
        (SendDirectMessage(), "send_dm"),
        (Warn(points=1), "warn"),
        (Timeout(), "timeout"),
        (Kick(), "kick"),
        (Ban(), "ban"),
        (LogAction(), "log"),
    ],
)
async def test_apply_dispatches_to_executor(action, method):
    executor = MagicMock()
    setattr(executor, method, AsyncMock())
    context = ActionContext(guild_id=GuildID(1), user_id=UserID(2), reason="r")

    await action.apply(executor, context)

    getattr(executor, method).assert_awaited_once_with(action, context)
