"""Severity scoring: ladder, band mapping and the top-emotion boost."""

import pytest

from models import EmotionScore, EmotionStatistics
from schemas import IncidentExtraction
from services.scoring import (
    clamp_score,
    condition_for_score,
    emotion_boost,
    priority_for_severity,
    score_severity,
    severity_for_score,
)


def stats_with_top(emotion, intensity):
    return EmotionStatistics(top_emotions=[EmotionScore(emotion, intensity)])


@pytest.mark.parametrize("score,tier", [
    (100, "critical"), (80, "critical"), (79.9, "high"), (60, "high"),
    (59.99, "medium"), (40, "medium"), (39.9, "low"), (0, "low"),
])
def test_severity_ladder(score, tier):
    assert severity_for_score(score) == tier


def test_no_extraction_uses_default_base():
    result = score_severity(None, EmotionStatistics())
    assert result.severity_score == 50.0
    assert result.severity == "medium"
    assert result.emotion_boost == 0.0


def test_tier_without_score_maps_into_its_band():
    extraction = IncidentExtraction(incident_type="fire", severity="critical", confidence_score=0.5)
    assert score_severity(extraction, EmotionStatistics()).severity_score == pytest.approx(90.0)

    low = IncidentExtraction(incident_type="other", severity="low", confidence_score=1.0)
    assert score_severity(low, EmotionStatistics()).severity == "low"


def test_explicit_model_score_wins_over_band():
    extraction = IncidentExtraction(incident_type="crime", severity="low", severity_score=72)
    assert score_severity(extraction, EmotionStatistics()).base_score == 72.0


def test_top_emotion_boost_can_raise_the_tier():
    extraction = IncidentExtraction(incident_type="accident", severity="high", severity_score=70)
    result = score_severity(extraction, stats_with_top("fear", 0.9))
    assert result.emotion_boost == pytest.approx(18.0)
    assert result.severity_score == pytest.approx(88.0)
    assert result.severity == "critical"


def test_score_is_clamped():
    extraction = IncidentExtraction(incident_type="fire", severity="critical", severity_score=95)
    assert score_severity(extraction, stats_with_top("panic", 1.0)).severity_score == 100.0


def test_unweighted_emotion_adds_nothing():
    assert emotion_boost(stats_with_top("joy", 0.9)) == 0.0
    assert emotion_boost(stats_with_top("Anger", 0.5)) == pytest.approx(7.5)


def test_priority_and_condition_tables():
    assert priority_for_severity("critical") == "Code 3"
    assert priority_for_severity("medium") == "Code 2"
    assert priority_for_severity("low") == "Code 1"
    assert condition_for_score(75) == "panicked"
    assert condition_for_score(50) == "distressed"
    assert condition_for_score(30) == "unclear"
    assert condition_for_score(10) == "calm"


def test_clamp_treats_nan_as_zero():
    assert clamp_score(float("nan")) == 0.0
    assert clamp_score(float("inf")) == 100.0
    assert severity_for_score(clamp_score(float("nan"))) == "low"
