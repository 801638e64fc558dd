"""Tests for escalation tier resolution and re-arm policies."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from heimdall.configuration.guild_settings import ModerationConfig, ModerationConfigManager
from heimdall.datatypes.automod_datatypes import AutomodAction
from heimdall.datatypes.discord_datatypes import GuildID, UserID
from heimdall.datatypes.escalation_datatypes import EscalationTier, RearmPolicy
from heimdall.services.escalation_resolver import EscalationResolver

GUILD = GuildID(10)
USER = UserID(20)

TIERS = [
    EscalationTier(name="Mute", threshold=3, actions=[AutomodAction.TIMEOUT], duration=600),
    EscalationTier(name="Kick", threshold=6, actions=[AutomodAction.KICK]),
    EscalationTier(name="Ban", threshold=10, actions=[AutomodAction.BAN]),
]


def make_resolver(policy=RearmPolicy.CROSSING, tiers=TIERS, triggered=()):
    config_manager = ModerationConfigManager(MagicMock())
    config_manager.configs[GUILD] = ModerationConfig(
        guild_id=GUILD, escalation_tiers=list(tiers), escalation_rearm=policy,
    )
    ledger = MagicMock()
    ledger.triggered_tiers = AsyncMock(return_value=set(triggered))
    return EscalationResolver(config_manager, ledger), ledger


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "previous, new, expected",
    [
        (0, 2, None),
        (2, 3, "Mute"),
        (0, 3, "Mute"),
        (3, 5, None),
        (5, 7, "Kick"),
        (2, 12, "Ban"),
        (10, 14, None),
        (4, 4, None),
    ],
)
async def test_threshold_crossing(previous, new, expected):
    resolver, _ = make_resolver()

    tier = await resolver.resolve(GUILD, USER, new, previous)

    assert (tier.name if tier else None) == expected


@pytest.mark.asyncio
async def test_no_tiers_configured():
    resolver, ledger = make_resolver(tiers=[])

    assert await resolver.resolve(GUILD, USER, 50, 0) is None
    ledger.triggered_tiers.assert_not_called()


@pytest.mark.asyncio
async def test_crossing_policy_ignores_history():
    resolver, ledger = make_resolver(RearmPolicy.CROSSING, triggered={"Mute"})

    tier = await resolver.resolve(GUILD, USER, 3, 2)

    assert tier.name == "Mute"
    ledger.triggered_tiers.assert_not_called()


@pytest.mark.asyncio
async def test_decay_policy_blocks_unexpired_tier():
    resolver, ledger = make_resolver(RearmPolicy.DECAY, triggered={"Mute"})

    assert await resolver.resolve(GUILD, USER, 3, 2) is None
    ledger.triggered_tiers.assert_awaited_once_with(GUILD, USER, include_expired=False)


@pytest.mark.asyncio
async def test_never_policy_counts_expired_records():
    resolver, ledger = make_resolver(RearmPolicy.NEVER, triggered={"Mute"})

    assert await resolver.resolve(GUILD, USER, 3, 2) is None
    ledger.triggered_tiers.assert_awaited_once_with(GUILD, USER, include_expired=True)


@pytest.mark.asyncio
async def test_blocked_tier_falls_back_to_next_crossed():
    resolver, _ = make_resolver(RearmPolicy.DECAY, triggered={"Kick"})

    tier = await resolver.resolve(GUILD, USER, 7, 2)

    assert tier.name == "Mute"


@pytest.mark.asyncio
async def test_policy_rearms_once_history_is_gone():
    resolver, _ = make_resolver(RearmPolicy.NEVER, triggered=set())

    tier = await resolver.resolve(GUILD, USER, 3, 0)

    assert tier.name == "Mute"
