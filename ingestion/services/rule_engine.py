"""Priority-ordered keyword rules with a default action."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern

from ingestion.db.models import MatchType
from ingestion.models.domain import Decision, FilterRule, FilterSettings


@lru_cache(maxsize=512)
def _compile(pattern: str) -> Optional[Pattern[str]]:
    try:
        return re.compile(pattern)
    except re.error:
        return None


def order_rules(rules: Iterable[FilterRule]) -> List[FilterRule]:
    """Active rules by priority desc, most recently updated first on ties."""
    active = [r for r in rules if r.active]
    return sorted(active, key=lambda r: (r.priority, r.updated_at.timestamp()), reverse=True)


def rule_matches(rule: FilterRule, text: str) -> bool:
    if not text or not rule.keyword:
        return False
    if rule.match_type == MatchType.REGEX:
        compiled = _compile(rule.keyword)
        # malformed patterns never match
        return compiled is not None and compiled.search(text) is not None
    return rule.keyword in text


def decide(text: str, rules: Iterable[FilterRule], settings: FilterSettings) -> Decision:
    for rule in order_rules(rules):
        if rule_matches(rule, text):
            return Decision(action=rule.action, matched_rule_id=rule.id, note=rule.notes or rule.keyword)
    return Decision(action=settings.default_action)
