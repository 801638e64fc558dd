"""
Built-in automod rule presets.

Presets are disabled templates. Enabling one for a guild stores an editable
copy through :func:`preset_to_rule`; the guild can then change it freely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from heimdall.datatypes.automod_datatypes import (
    AutomodAction,
    AutomodPattern,
    AutomodRule,
    AutomodTarget,
    MatchMode,
)
from heimdall.datatypes.discord_datatypes import GuildID

_DELETE_WARN_LOG = (AutomodAction.DELETE, AutomodAction.WARN, AutomodAction.LOG)


@dataclass(frozen=True, slots=True)
class PresetDefinition:
    id: str
    name: str
    description: str
    target: AutomodTarget
    patterns: Tuple[AutomodPattern, ...]
    actions: Tuple[AutomodAction, ...] = _DELETE_WARN_LOG
    warn_points: int = 1
    match_mode: MatchMode = MatchMode.ANY


PRESETS: Tuple[PresetDefinition, ...] = (
    PresetDefinition(
        id="invite-links",
        name="Invite Links",
        description="Block Discord invite links (discord.gg, discordapp.com/invite)",
        target=AutomodTarget.LINK,
        patterns=(
            AutomodPattern(
                regex=r"(?:discord\.gg|discordapp\.com/invite|discord\.com/invite)/[\w-]+",
                flags="i",
                label="Discord invite URL",
            ),
        ),
        warn_points=2,
    ),
    PresetDefinition(
        id="mass-mention",
        name="Mass Mention",
        description="Detect messages with 5 or more user or role mentions",
        target=AutomodTarget.MESSAGE_CONTENT,
        patterns=(
            AutomodPattern(regex=r"(<@!?\d+>.*){5,}", flags="s", label="5+ user mentions"),
            AutomodPattern(regex=r"(<@&\d+>.*){5,}", flags="s", label="5+ role mentions"),
        ),
        warn_points=3,
    ),
    PresetDefinition(
        id="excessive-caps",
        name="Excessive Caps",
        description="Detect messages that are mostly uppercase (minimum 10 characters)",
        target=AutomodTarget.MESSAGE_CONTENT,
        patterns=(
            AutomodPattern(regex=r"(?=.{10,})(?:[^A-Za-z]*[A-Z]){7}[^a-z]*$", flags="", label="70%+ uppercase"),
        ),
    ),
    PresetDefinition(
        id="repeated-text",
        name="Repeated Characters",
        description="Detect messages with 10+ repeated characters in a row",
        target=AutomodTarget.MESSAGE_CONTENT,
        patterns=(AutomodPattern(regex=r"(.)\1{9,}", flags="", label="10+ repeated chars"),),
    ),
    PresetDefinition(
        id="external-links",
        name="External Links",
        description="Block all non-Discord links",
        target=AutomodTarget.LINK,
        patterns=(
            AutomodPattern(
                regex=(
                    r"https?://(?!(?:discord\.gg|discord\.com|discordapp\.com|cdn\.discordapp\.com"
                    r"|media\.discordapp\.net))[^\s]+"
                ),
                flags="i",
                label="Non-Discord URL",
            ),
        ),
    ),
    PresetDefinition(
        id="zalgo-text",
        name="Zalgo Text",
        description="Detect messages containing zalgo (combining character abuse)",
        target=AutomodTarget.MESSAGE_CONTENT,
        patterns=(AutomodPattern(regex="[\u0300-\u036f\u0489]{3,}", flags="", label="Zalgo combining chars"),),
    ),
    PresetDefinition(
        id="phishing-links",
        name="Phishing Links",
        description="Block known phishing domains and free-nitro scam text",
        target=AutomodTarget.LINK,
        patterns=(
            AutomodPattern(
                regex=r"https?://(?:[\w-]+\.)*(?:dlscord|disc0rd|discard|discorcl|dlsc0rd|d1scord|discorde)\.\w+",
                flags="i",
                label="Discord typosquat domain",
            ),
            AutomodPattern(
                regex=r"https?://(?:[\w-]+\.)*(?:grabify|iplogger|2no|ipgrabber|blasze|iplis)\.\w+",
                flags="i",
                label="IP logger domain",
            ),
        ),
        warn_points=5,
    ),
    PresetDefinition(
        id="spam-emote-flood",
        name="Emote Flood",
        description="Detect messages with 8 or more emoji",
        target=AutomodTarget.MESSAGE_EMOJI,
        patterns=(AutomodPattern(regex=r"(?:\S+\s*){8,}", flags="", label="8+ emoji"),),
    ),
    PresetDefinition(
        id="spam-newlines",
        name="Newline Spam",
        description="Detect messages with 10+ consecutive blank lines",
        target=AutomodTarget.MESSAGE_CONTENT,
        patterns=(AutomodPattern(regex=r"(\n\s*){10,}", flags="", label="10+ consecutive newlines"),),
    ),
    PresetDefinition(
        id="nickname-hoisting",
        name="Nickname Hoisting",
        description="Detect nicknames starting with special characters to sit at the top of the member list",
        target=AutomodTarget.NICKNAME,
        patterns=(
            AutomodPattern(regex=r"^[!\"#$%&'()*+,\-./:;<=>?@\[\\\]^_`{|}~\s]", flags="", label="Starts with special char"),
        ),
        actions=(AutomodAction.WARN, AutomodAction.LOG),
    ),
)

_BY_ID: Dict[str, PresetDefinition] = {preset.id: preset for preset in PRESETS}


def get_preset(preset_id: str) -> Optional[PresetDefinition]:
    return _BY_ID.get(preset_id)


def get_all_presets() -> List[PresetDefinition]:
    return list(PRESETS)


def preset_to_rule(preset_id: str, guild_id: GuildID, enabled: bool = True) -> AutomodRule:
    """
    Materialise a preset as an unsaved, editable rule for ``guild_id``.

    Raises:
        KeyError: If no preset has that id.
    """
    preset = _BY_ID.get(preset_id)
    if preset is None:
        raise KeyError(f"Unknown automod preset: {preset_id}")

    return AutomodRule(
        guild_id=guild_id,
        name=preset.name,
        patterns=list(preset.patterns),
        actions=list(preset.actions),
        target=preset.target,
        match_mode=preset.match_mode,
        enabled=enabled,
        warn_points=preset.warn_points,
    )
