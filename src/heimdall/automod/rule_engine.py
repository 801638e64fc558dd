"""
Rule evaluation engine.

Pure and synchronous: given a guild's rules and one content event, decide
which rule (if any) triggers. No I/O happens here; the enforcer loads rules
and carries out the resulting actions.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from heimdall.automod import regex_engine
from heimdall.configuration.automod_settings import AutomodSettings
from heimdall.datatypes.automod_datatypes import (
    AutomodRule,
    AutomodTarget,
    ContentEvent,
    EventKind,
    RuleMatch,
)
from heimdall.util.logger import get_logger

logger = get_logger("rule_engine")


class RuleEngine:
    """Scopes, orders and evaluates automod rules against content events."""

    def __init__(self, settings: Optional[AutomodSettings] = None) -> None:
        self.settings = settings or AutomodSettings()

    # ------------------------------------------------------------------
    # Scoping
    # ------------------------------------------------------------------

    @staticmethod
    def is_in_scope(rule: AutomodRule, event: ContentEvent) -> bool:
        """Whether ``rule`` applies to ``event`` before any pattern is run."""
        if not rule.enabled or rule.target not in event.targets:
            return False

        if event.channel_id is not None:
            if event.channel_id in rule.channel_exclude:
                return False
            if rule.channel_include and event.channel_id not in rule.channel_include:
                return False
        elif rule.channel_include:
            # Events without a channel (joins, nickname changes) skip channel-scoped rules.
            return False

        roles = event.author_role_ids
        if rule.role_include and not any(role in roles for role in rule.role_include):
            return False
        if rule.role_exclude and any(role in roles for role in rule.role_exclude):
            return False
        return True

    def candidate_rules(self, rules: Iterable[AutomodRule], event: ContentEvent) -> List[AutomodRule]:
        """In-scope rules, highest priority first, ties kept in input order."""
        in_scope = [rule for rule in rules if self.is_in_scope(rule, event)]
        # sorted() is stable, so equal priorities keep their input order.
        return sorted(in_scope, key=lambda rule: rule.priority, reverse=True)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    @staticmethod
    def extract_content(target: AutomodTarget, event: ContentEvent) -> str:
        """The text a rule of ``target`` should be matched against."""
        if target in (AutomodTarget.MESSAGE_CONTENT, AutomodTarget.USERNAME, AutomodTarget.NICKNAME):
            return event.text or ""

        if target is AutomodTarget.MESSAGE_EMOJI:
            return regex_engine.emoji_content(regex_engine.extract_emoji(event.text))

        if target is AutomodTarget.LINK:
            return " ".join(regex_engine.extract_urls(event.text))

        if target is AutomodTarget.STICKER:
            return " ".join(regex_engine.extract_sticker_names(event.sticker_names))

        if target is AutomodTarget.REACTION_EMOJI:
            if event.kind is not EventKind.REACTION or not event.text:
                return ""
            return f"{event.text}:{event.emoji_id}" if event.emoji_id else event.text

        return ""

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_rule(self, rule: AutomodRule, event: ContentEvent) -> Optional[RuleMatch]:
        """Run one rule's patterns against the event, ignoring scope."""
        content = self.extract_content(rule.target, event)
        if not content:
            return None

        result = regex_engine.match_patterns(
            rule.patterns,
            content,
            rule.match_mode,
            max_input_length=self.settings.max_input_length,
            timeout_seconds=self.settings.regex_timeout_seconds,
        )
        if not result.matched or result.pattern is None:
            return None

        return RuleMatch(
            rule=rule,
            target=rule.target,
            pattern=result.pattern,
            matched_content=result.match,
            index=result.index,
            content=content,
        )

    def evaluate(self, rules: Iterable[AutomodRule], event: ContentEvent) -> Optional[RuleMatch]:
        """
        Return the first triggering rule in priority order, or None.

        Args:
            rules: The guild's rules; disabled and out-of-scope rules are skipped.
            event: The content to evaluate.
        """
        for rule in self.candidate_rules(rules, event):
            match = self.evaluate_rule(rule, event)
            if match is not None:
                logger.debug(
                    "[RULE ENGINE] Rule %r matched %r at %d in guild %s",
                    rule.name, match.matched_content, match.index, event.guild_id,
                )
                return match
        return None

    def evaluate_all(self, rules: Iterable[AutomodRule], event: ContentEvent) -> List[RuleMatch]:
        """Every triggering rule in priority order, for callers that do not stop at the first."""
        matches = []
        for rule in self.candidate_rules(rules, event):
            match = self.evaluate_rule(rule, event)
            if match is not None:
                matches.append(match)
        return matches
