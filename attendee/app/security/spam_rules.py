"""Spam heuristics for free-text submissions.

Rules are an ordered sequence of predicates over already-sanitized text.
The validator only relies on the ``rule_id``/``message``/``matches``
interface, so a stricter moderation backend can be plugged in by passing
its own rule objects.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from attendee.app.core.logging import get_logger

logger = get_logger(__name__)


class SpamPredicate(Protocol):
    """Interface a spam rule has to provide."""
    rule_id: str
    message: str

    def matches(self, text: str) -> bool: ...


@dataclass(frozen=True)
class SpamRule:
    """Regex backed spam rule.

    ``full_match`` requires the whole text to match instead of any
    substring.
    """
    rule_id: str
    pattern: str
    message: str = "Question appears to contain spam or inappropriate content"
    flags: int = 0
    full_match: bool = False
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", re.compile(self.pattern, self.flags))

    def matches(self, text: str) -> bool:
        if self.full_match:
            return self._compiled.fullmatch(text) is not None
        return self._compiled.search(text) is not None


DEFAULT_SPAM_RULES: tuple[SpamRule, ...] = (
    # Any character repeated 5+ times in a row
    SpamRule("repeated_chars", r"(.)\1{4,}", flags=re.DOTALL),
    # Shouting: 20+ chars of capitals, whitespace and punctuation only
    SpamRule(
        "all_caps",
        r"(?=.*[A-Z])[A-Z\s!?.,;:()\-]{20,}",
        flags=re.DOTALL,
        full_match=True,
    ),
    # Links and @-mentions
    SpamRule("links_or_mentions", r"http|www\.|@", flags=re.IGNORECASE),
)

INAPPROPRIATE_CONTENT_RULES: tuple[SpamRule, ...] = (
    SpamRule("placeholder_words", r"\b(?:spam|test|fake|dummy)\b", flags=re.IGNORECASE),
    SpamRule("special_char_runs", r"[!@#$%^&*]{3,}"),
    SpamRule("stretched_words", r"\b\w*(\w)\1{3,}\w*\b"),
)


def find_spam_rule(
    text: str,
    rules: Sequence[SpamPredicate] = DEFAULT_SPAM_RULES,
) -> Optional[SpamPredicate]:
    """Return the first rule that matches ``text``, in rule order."""
    for rule in rules:
        if rule.matches(text):
            logger.debug(f"Spam rule matched: {rule.rule_id}")
            return rule
    return None


def contains_inappropriate_content(text: str) -> bool:
    """Check text against the stricter placeholder/profanity rule set."""
    if not isinstance(text, str):
        return False
    return find_spam_rule(text, INAPPROPRIATE_CONTENT_RULES) is not None
