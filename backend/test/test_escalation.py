"""Keyword escalation over the call transcript."""

from models import AnalysisResult
from services.escalation import (
    ALS_UNIT,
    escalate,
    escalation_severity,
    matching_rules,
    normalize_transcript,
)


def test_heart_attack_forces_critical_code_3_with_als_first():
    analysis = AnalysisResult(severity="medium", severity_score=50, recommended_units=["Ambulance"])
    result = escalate(analysis, "my father is having a heart attack")

    assert result.severity_score == 95
    assert result.severity == "critical"
    assert result.priority_code == "Code 3"
    assert result.recommended_units == [ALS_UNIT, "Ambulance"]
    assert "MEDICAL_EMERGENCY" in result.labels
    assert "CARDIAC_EMERGENCY" in result.flags
    assert result.incident_type == "medical_emergency"
    assert result.incident_subtype == "cardiac emergency"
    assert result.caller_condition == "panicked"


def test_fire_with_people_trapped_raises_both_flags():
    result = escalate(AnalysisResult(), "the house is on fire and my kids are trapped upstairs")
    assert {"ACTIVE_FIRE", "PERSONS_TRAPPED"} <= set(result.flags)
    assert result.severity_score == 90
    assert result.incident_type == "fire"


def test_no_match_returns_the_same_object():
    analysis = AnalysisResult()
    assert escalate(analysis, "I lost my cat in the park") is analysis


def test_score_is_never_lowered():
    analysis = AnalysisResult(severity="critical", severity_score=98)
    assert escalate(analysis, "he has a heart attack").severity_score == 98


def test_known_incident_type_is_kept():
    analysis = AnalysisResult(incident_type="accident", incident_subtype="car accident")
    result = escalate(analysis, "the driver is bleeding badly")
    assert result.incident_type == "accident"
    assert result.incident_subtype == "car accident"
    assert "TRAUMA_EMERGENCY" in result.flags


def test_existing_labels_flags_and_units_are_not_duplicated():
    analysis = AnalysisResult(
        labels=["MEDICAL_EMERGENCY"],
        flags=["CARDIAC_EMERGENCY"],
        recommended_units=["Ambulance", ALS_UNIT],
    )
    result = escalate(analysis, "cardiac arrest, no pulse")
    assert result.labels.count("MEDICAL_EMERGENCY") == 1
    assert result.flags.count("CARDIAC_EMERGENCY") == 1
    assert result.recommended_units == [ALS_UNIT, "Ambulance"]
    # input untouched
    assert analysis.recommended_units == ["Ambulance", ALS_UNIT]


def test_curly_apostrophes_are_folded_before_matching():
    text = normalize_transcript("I can’t   breathe")
    assert text == "I can't breathe"
    assert [r.name for r in matching_rules(text)] == ["respiratory"]


def test_whole_words_only():
    assert matching_rules("I got fired today") == []
    assert matching_rules("he bought a shotgun shell lamp") == []


def test_escalated_tier_never_below_medium():
    assert escalation_severity(10) == "medium"
    assert escalation_severity(65) == "high"
    assert escalation_severity(85) == "critical"


def test_placeholder_incident_type_is_replaced():
    analysis = AnalysisResult(incident_type="other", incident_subtype="emergency")
    result = escalate(analysis, "someone was stabbed")
    assert result.incident_type == "medical_emergency"
    assert result.incident_subtype == "severe trauma"
