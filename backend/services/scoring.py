"""
Severity scoring: turn an incident extraction plus emotion statistics into a
0-100 severity score and its tier.

All numbers here are demo-calibrated tables, kept as module constants so they
can be overridden per call and unit-tested on their own.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from models import EmotionStatistics
from schemas import IncidentExtraction

# Score added for the call's top emotion, per point of intensity (0-1).
EMOTION_BOOST_WEIGHTS: Dict[str, float] = {
    "fear": 20,
    "distress": 20,
    "panic": 25,
    "anxiety": 15,
    "anger": 15,
    "sadness": 10,
}

# Base score when no extraction is available at all.
DEFAULT_BASE_SCORE = 50.0

# Score band per tier: (floor, width). An extraction without its own score
# lands inside its tier's band, positioned by the model's confidence.
SEVERITY_BANDS: Dict[str, Tuple[float, float]] = {
    "critical": (80.0, 20.0),
    "high": (60.0, 19.0),
    "medium": (40.0, 19.0),
    "low": (0.0, 39.0),
}

# Tier ladder, highest first. Used everywhere a tier is derived from a score.
SEVERITY_LADDER = ((80.0, "critical"), (60.0, "high"), (40.0, "medium"))

PRIORITY_BY_SEVERITY = {
    "critical": "Code 3",
    "high": "Code 2",
    "medium": "Code 2",
    "low": "Code 1",
}


@dataclass(frozen=True)
class SeverityAssessment:
    severity: str
    severity_score: float
    base_score: float
    emotion_boost: float


def clamp_score(score: float) -> float:
    """Clamp to [0, 100]; NaN counts as 0."""
    score = float(score)
    if math.isnan(score):
        return 0.0
    return min(max(score, 0.0), 100.0)


def severity_for_score(score: float) -> str:
    """>=80 critical, >=60 high, >=40 medium, else low."""
    for threshold, tier in SEVERITY_LADDER:
        if score >= threshold:
            return tier
    return "low"


def priority_for_severity(severity: str) -> str:
    return PRIORITY_BY_SEVERITY.get(severity, "Code 2")


def condition_for_score(score: float) -> str:
    """Caller condition guess when neither the model nor escalation set one."""
    if score >= 70:
        return "panicked"
    if score >= 50:
        return "distressed"
    if score >= 30:
        return "unclear"
    return "calm"


def base_score(extraction: Optional[IncidentExtraction]) -> float:
    if extraction is None:
        return DEFAULT_BASE_SCORE
    if extraction.severity_score is not None:
        return float(extraction.severity_score)
    floor, width = SEVERITY_BANDS[extraction.severity]
    return floor + extraction.confidence_score * width


def emotion_boost(stats: EmotionStatistics, weights: Dict[str, float] = EMOTION_BOOST_WEIGHTS) -> float:
    top = stats.top
    if top is None:
        return 0.0
    return weights.get(top.emotion.lower(), 0) * top.intensity


def score_severity(
    extraction: Optional[IncidentExtraction],
    stats: EmotionStatistics,
    weights: Dict[str, float] = EMOTION_BOOST_WEIGHTS,
) -> SeverityAssessment:
    """Base score (extraction or heuristic) plus top-emotion boost, clamped and tiered."""
    base = base_score(extraction)
    boost = emotion_boost(stats, weights)
    score = clamp_score(base + boost)
    return SeverityAssessment(
        severity=severity_for_score(score),
        severity_score=score,
        base_score=base,
        emotion_boost=boost,
    )
