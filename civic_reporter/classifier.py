"""
Rule-based report classifier.

Deterministic keyword rules for spam likelihood, category and priority,
combined with the image signals into a triage decision.
"""
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from civic_reporter import config
from civic_reporter.utils import normalize_text


@dataclass
class TriageDecision:
    spam_score: float
    category: str
    priority: str
    is_spam: bool
    status: str


def classify_text(description: str) -> Tuple[float, str, str]:
    """Return (spam_score, category, priority) for a report description."""
    text = normalize_text(description)

    spam_score = 0.0
    for indicator in config.SPAM_INDICATORS:
        if indicator in text:
            spam_score += config.SPAM_INDICATOR_WEIGHT
    spam_score = max(0.0, min(1.0, spam_score))

    category = config.CATEGORY_OTHER
    for name, pattern in config.CATEGORY_PATTERNS:
        if re.search(pattern, text):
            category = name
            break

    if re.search(config.HIGH_PRIORITY_PATTERN, text):
        priority = config.PRIORITY_HIGH
    elif re.search(config.MEDIUM_PRIORITY_PATTERN, text):
        priority = config.PRIORITY_MEDIUM
    else:
        priority = config.PRIORITY_LOW

    return spam_score, category, priority


def map_image_hint(hint: Optional[str]) -> Optional[str]:
    """Translate an image category hint into a report category, if it names one."""
    if not hint:
        return None
    hint = config.IMAGE_HINT_ALIASES.get(hint, hint)
    known = {name for name, _ in config.CATEGORY_PATTERNS}
    return hint if hint in known else None


def triage(description: str, is_likely_screen: bool = False, is_duplicate: bool = False,
           image_hint: Optional[str] = None) -> TriageDecision:
    spam_score, category, priority = classify_text(description)

    if is_likely_screen:
        spam_score = max(spam_score, config.SCREEN_SPAM_SCORE)
    if is_duplicate:
        spam_score = max(spam_score, config.DUPLICATE_SPAM_SCORE)

    if category == config.CATEGORY_OTHER:
        category = map_image_hint(image_hint) or category

    is_spam = spam_score > config.SPAM_THRESHOLD
    if is_spam:
        status = config.STATUS_SPAM
        priority = config.PRIORITY_LOW
    else:
        status = config.STATUS_QUEUED
        if category == 'road_damage':
            priority = config.PRIORITY_HIGH

    return TriageDecision(
        spam_score=spam_score,
        category=category,
        priority=priority,
        is_spam=is_spam,
        status=status,
    )
