"""
Rule authoring.

Turns staff input (wildcards, raw regexes, action names, scoping lists) into an
:class:`AutomodRule`. Every problem found is collected and raised together as
a :class:`PatternValidationError` so staff see exactly which input to fix.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Union

from heimdall.automod import regex_engine
from heimdall.automod.wildcard import parse_wildcard_patterns
from heimdall.configuration.automod_settings import AutomodSettings
from heimdall.datatypes.automod_datatypes import (
    AutomodAction,
    AutomodPattern,
    AutomodRule,
    AutomodTarget,
    MatchMode,
    PatternValidationError,
)
from heimdall.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from heimdall.util.logger import get_logger

logger = get_logger("rule_builder")

WildcardInput = Union[str, Sequence[str], None]


def _coerce_enum(enum_cls, value: Any, field_name: str, errors: List[str]):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value))
    except ValueError:
        errors.append(f"Unknown {field_name}: {value}")
        return None


def _raw_pattern(entry: Any) -> AutomodPattern:
    if isinstance(entry, AutomodPattern):
        return entry
    if isinstance(entry, str):
        return AutomodPattern(regex=entry, flags="i", label=entry)
    return AutomodPattern(
        regex=str(entry.get("regex") or ""),
        flags=str(entry.get("flags") if entry.get("flags") is not None else "i"),
        label=str(entry.get("label") or entry.get("regex") or ""),
    )


def compile_patterns(
    wildcard_patterns: WildcardInput,
    raw_patterns: Optional[Iterable[Any]],
    settings: AutomodSettings,
    errors: List[str],
) -> tuple[List[AutomodPattern], str]:
    """
    Merge wildcard and raw regex input, wildcards first.

    Returns the patterns and the normalised wildcard text; problems are
    appended to ``errors``.
    """
    patterns: List[AutomodPattern] = []
    wildcard_text = ""
    errors_before = len(errors)

    if wildcard_patterns:
        wildcard_text = wildcard_patterns if isinstance(wildcard_patterns, str) else ",".join(wildcard_patterns)
        if wildcard_text.strip():
            result = parse_wildcard_patterns(wildcard_text)
            errors.extend(result.errors)
            patterns.extend(result.patterns)

    for entry in raw_patterns or ():
        pattern = _raw_pattern(entry)
        if not pattern.regex:
            errors.append("Each pattern must have a regex field")
            continue
        validation = regex_engine.validate_regex(pattern.regex, pattern.flags, settings.max_regex_length)
        if not validation.valid:
            errors.append(f'Invalid pattern "{pattern.regex}": {validation.error}')
            continue
        patterns.append(pattern)

    if not patterns and len(errors) == errors_before:
        errors.append("At least one pattern is required")
    if len(patterns) > settings.max_patterns:
        errors.append(f"patterns cannot exceed {settings.max_patterns} entries")

    return patterns, wildcard_text.strip()


def build_rule(
    guild_id: GuildID,
    name: str,
    actions: Sequence[Union[str, AutomodAction]],
    *,
    wildcard_patterns: WildcardInput = None,
    patterns: Optional[Iterable[Any]] = None,
    target: Union[str, AutomodTarget] = AutomodTarget.MESSAGE_CONTENT,
    match_mode: Union[str, MatchMode] = MatchMode.ANY,
    warn_points: int = 0,
    priority: int = 0,
    enabled: bool = True,
    timeout_duration: Optional[int] = None,
    channel_include: Sequence[Any] = (),
    channel_exclude: Sequence[Any] = (),
    role_include: Sequence[Any] = (),
    role_exclude: Sequence[Any] = (),
    dm_template: Optional[str] = None,
    settings: Optional[AutomodSettings] = None,
) -> AutomodRule:
    """
    Validate staff input and build an unsaved rule.

    Raises:
        PatternValidationError: with every problem found, verbatim.
    """
    settings = settings or AutomodSettings()
    errors: List[str] = []

    name = (name or "").strip()
    if not name:
        errors.append("name is required")
    elif len(name) > settings.max_name_length:
        errors.append(f"name must be {settings.max_name_length} characters or less")

    if not actions:
        errors.append("actions (non-empty array) is required")
    elif len(actions) > settings.max_actions:
        errors.append(f"actions cannot exceed {settings.max_actions} entries")
    parsed_actions = [_coerce_enum(AutomodAction, a, "action", errors) for a in actions or ()]

    parsed_target = _coerce_enum(AutomodTarget, target, "target", errors)
    parsed_mode = _coerce_enum(MatchMode, match_mode, "match mode", errors)

    for label, ids in (
        ("channelInclude", channel_include),
        ("channelExclude", channel_exclude),
        ("roleInclude", role_include),
        ("roleExclude", role_exclude),
    ):
        if len(ids) > settings.max_id_array_length:
            errors.append(f"{label} cannot exceed {settings.max_id_array_length} entries")

    if warn_points < 0:
        errors.append("warnPoints cannot be negative")
    if timeout_duration is not None and timeout_duration <= 0:
        errors.append("timeoutDuration must be a positive number of seconds")

    compiled, wildcard_text = compile_patterns(wildcard_patterns, patterns, settings, errors)

    if errors:
        logger.debug("[RULE BUILDER] Rejected rule %r for guild %s: %s", name, guild_id, errors)
        raise PatternValidationError(errors)

    return AutomodRule(
        guild_id=guild_id,
        name=name,
        patterns=compiled,
        actions=[a for a in parsed_actions if a is not None],
        target=parsed_target,
        match_mode=parsed_mode,
        enabled=enabled,
        priority=int(priority),
        warn_points=int(warn_points),
        timeout_duration=timeout_duration,
        channel_include=[ChannelID(c) for c in channel_include],
        channel_exclude=[ChannelID(c) for c in channel_exclude],
        role_include=[RoleID(r) for r in role_include],
        role_exclude=[RoleID(r) for r in role_exclude],
        wildcard_input=wildcard_text,
        dm_template=dm_template,
    )
