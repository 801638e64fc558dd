"""Tests for the built-in automod presets."""

import pytest

from heimdall.automod import regex_engine
from heimdall.automod.presets import get_all_presets, get_preset, preset_to_rule
from heimdall.datatypes.automod_datatypes import AutomodAction, AutomodTarget, MatchMode
from heimdall.datatypes.discord_datatypes import GuildID


def test_preset_ids_are_unique():
    ids = [preset.id for preset in get_all_presets()]
    assert len(ids) == len(set(ids))


@pytest.mark.parametrize("preset", get_all_presets(), ids=lambda p: p.id)
def test_every_preset_pattern_validates(preset):
    assert preset.patterns
    for pattern in preset.patterns:
        assert regex_engine.validate_regex(pattern.regex, pattern.flags).valid, pattern.label


def test_get_unknown_preset():
    assert get_preset("does-not-exist") is None


def test_preset_to_rule_copies_definition():
    rule = preset_to_rule("invite-links", GuildID(42))

    assert rule.guild_id == GuildID(42)
    assert rule.rule_id is None
    assert rule.name == "Invite Links"
    assert rule.target is AutomodTarget.LINK
    assert rule.match_mode is MatchMode.ANY
    assert rule.actions == [AutomodAction.DELETE, AutomodAction.WARN, AutomodAction.LOG]
    assert rule.points == 2
    assert rule.enabled


def test_preset_to_rule_unknown_raises():
    with pytest.raises(KeyError):
        preset_to_rule("nope", GuildID(1))


@pytest.mark.parametrize(
    "preset_id, text, expected",
    [
        ("invite-links", "https://discord.gg/abc123", True),
        ("invite-links", "https://example.com", False),
        ("repeated-text", "aaaaaaaaaaaa", True),
        ("repeated-text", "aaaa", False),
        ("excessive-caps", "THIS IS SHOUTING", True),
        ("excessive-caps", "This is fine, really", False),
        ("phishing-links", "https://dlscord.gift/claim", True),
        ("external-links", "https://cdn.discordapp.com/a.png", False),
        ("external-links", "https://example.com", True),
        ("nickname-hoisting", "!Admin", True),
        ("nickname-hoisting", "Admin", False),
    ],
)
def test_preset_behaviour(preset_id, text, expected):
    preset = get_preset(preset_id)
    result = regex_engine.match_patterns(list(preset.patterns), text, preset.match_mode)
    assert result.matched is expected
