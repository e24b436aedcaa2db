"""Decision extractor — turns recommendation language in a reply into a record.

Detection is purely pattern based:
- ``DECISION_PATTERNS`` is scanned in order and the first match wins
- ``CONFIDENCE_QUALIFIERS`` is scanned in order; strong qualifiers come first
  so they win over weak ones when a reply contains both
- the first dollar amount in the reply becomes the impact value

A reply with no decision marker yields ``None``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

# ── Tables ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DecisionPattern:
    """Marker phrase that qualifies a reply as a decision."""

    name: str
    pattern: re.Pattern[str]
    decision_type: str = "recommendation"


@dataclass(frozen=True)
class QualifierRule:
    """Wording that sets the confidence of a detected decision."""

    name: str
    pattern: re.Pattern[str]
    confidence: float


DECISION_PATTERNS: tuple[DecisionPattern, ...] = (
    DecisionPattern(
        "recommend_action",
        re.compile(r"recommend (investing|acquiring|purchasing|buying)", re.IGNORECASE),
    ),
    DecisionPattern(
        "advise_direction",
        re.compile(r"advise (against|proceeding with|moving forward)", re.IGNORECASE),
    ),
    DecisionPattern(
        "deal_directive",
        re.compile(r"the deal (should|should not|must|must not)", re.IGNORECASE),
    ),
    DecisionPattern(
        "explicit_recommendation",
        re.compile(r"my recommendation is to (\w+)", re.IGNORECASE),
    ),
    DecisionPattern(
        "optimal_strategy",
        re.compile(r"optimal strategy would be to (\w+)", re.IGNORECASE),
    ),
)

CONFIDENCE_QUALIFIERS: tuple[QualifierRule, ...] = (
    QualifierRule(
        "strong",
        re.compile(r"strongly|definitely|absolutely|certainly", re.IGNORECASE),
        0.9,
    ),
    QualifierRule(
        "weak",
        re.compile(r"potentially|possibly|might|could consider", re.IGNORECASE),
        0.6,
    ),
)

DEFAULT_CONFIDENCE = 0.75

_MONEY_RE = re.compile(
    r"\$([0-9][0-9,]*(?:\.[0-9]+)?)\s*(million|M|k|thousand)?",
    re.IGNORECASE,
)

_MAGNITUDES: dict[str, float] = {
    "million": 1_000_000,
    "m": 1_000_000,
    "k": 1_000,
    "thousand": 1_000,
}


# ── Result ──────────────────────────────────────────────────────────


@dataclass
class DecisionCandidate:
    """Decision found in a reply, ready to be persisted."""

    decision_type: str
    confidence: float
    reasoning: str
    decision: dict[str, Any] = field(default_factory=dict)
    impact_value: float | None = None
    pattern: str = ""

    def summary(self) -> dict[str, Any]:
        """Compact form stored in the assistant turn metadata."""
        return {
            "type": self.decision_type,
            "confidence": self.confidence,
            "impactValue": self.impact_value,
            "pattern": self.pattern,
        }


# ── Classification helpers ──────────────────────────────────────────


def match_decision_pattern(text: str) -> DecisionPattern | None:
    """Return the first decision marker found in ``text``."""
    for rule in DECISION_PATTERNS:
        if rule.pattern.search(text):
            return rule
    return None


def classify_confidence(text: str) -> float:
    for rule in CONFIDENCE_QUALIFIERS:
        if rule.pattern.search(text):
            return rule.confidence
    return DEFAULT_CONFIDENCE


def parse_impact_value(text: str) -> float | None:
    """Parse the first dollar amount in ``text``.

    Later amounts are ignored even when the first one is incidental.
    """
    match = _MONEY_RE.search(text)
    if not match:
        return None

    amount = float(match.group(1).replace(",", ""))
    suffix = (match.group(2) or "").lower()
    return amount * _MAGNITUDES.get(suffix, 1)


def extract_decision(text: str, *, reasoning_chars: int = 500) -> DecisionCandidate | None:
    """Classify a reply; ``None`` when it carries no decision marker."""
    rule = match_decision_pattern(text)
    if rule is None:
        return None

    return DecisionCandidate(
        decision_type=rule.decision_type,
        confidence=classify_confidence(text),
        reasoning=text[:reasoning_chars],
        decision={"fullResponse": text, "pattern": rule.name},
        impact_value=parse_impact_value(text),
        pattern=rule.name,
    )
