"""
Triage service: assembles one EmergencyCall from a transcript and Hume
emotion frames.

Pipeline for every call:
  1. Aggregate the caller's emotion frames.
  2. Extract the incident (Gemini, falling back to keywords) from the joined text.
  3. Score severity from the extraction plus the top-emotion boost.
  4. Build the call-level AnalysisResult and run keyword escalation over it.
  5. Resolve the caller location and produce the call record.
No persistence or notification here; routes/calls.py does that.
"""

import dataclasses
import uuid
from typing import Iterable, List, Optional, Sequence

import structlog

from models import (
    CALL_STATUSES,
    INCIDENT_TYPES,
    TERMINAL_STATUSES,
    AnalysisResult,
    EmergencyCall,
    EmotionStatistics,
    TranscriptSegment,
    utc_now_iso,
)
from schemas import IncidentExtraction
from services.ai import run_extraction_chain
from services.emotions import aggregate_emotions, coerce_frame
from services.escalation import (
    ALS_UNIT,
    UNSET_INCIDENT_SUBTYPES,
    UNSET_INCIDENT_TYPES,
    escalate,
    normalize_transcript,
)
from services.location import resolve_location
from services.scoring import (
    SeverityAssessment,
    condition_for_score,
    priority_for_severity,
    score_severity,
    severity_for_score,
)
from services.transcripts import join_transcript

log = structlog.get_logger(__name__)


class InvalidStatusTransition(ValueError):
    """Raised when a call is moved to a status its lifecycle does not allow."""


# Category label per incident type.
INCIDENT_LABELS = {
    "fire": "FIRE",
    "medical_emergency": "MEDICAL_EMERGENCY",
    "accident": "ACCIDENT",
    "crime": "CRIME",
    "public_safety": "PUBLIC_SAFETY",
    "other": "EMERGENCY_CALL",
}

# Default response package per incident type.
INCIDENT_UNITS = {
    "fire": ("Fire Engine", "Ladder Truck", "Ambulance"),
    "medical_emergency": ("Ambulance",),
    "accident": ("Police Unit", "Ambulance", "Tow Truck"),
    "crime": ("Police Unit",),
    "public_safety": ("Police Unit", "Fire Engine"),
    "other": ("Emergency Services",),
}
DEFAULT_UNITS = ("Emergency Services",)

# (emotion, label, flag): raised when the emotion is in the top three above the threshold.
EMOTION_SIGNALS = (
    ("fear", "HIGH_FEAR", "CALLER_AFRAID"),
    ("distress", "CALLER_DISTRESSED", "HIGH_DISTRESS"),
    ("anger", "POTENTIAL_VIOLENCE", "ANGER_DETECTED"),
)
EMOTION_SIGNAL_THRESHOLD = 0.6

PRIORITY_RANK = {"Code 1": 1, "Code 2": 2, "Code 3": 3}

# Allowed lifecycle moves. "closed" is final; "resolved" can only be archived.
STATUS_TRANSITIONS = {
    "active": {"processing", "pending_approval", "dispatched", "resolved", "closed"},
    "processing": {"pending_approval", "dispatched", "resolved", "closed"},
    "pending_approval": {"processing", "dispatched", "resolved", "closed"},
    "dispatched": {"processing", "resolved", "closed"},
    "resolved": {"closed"},
    "closed": set(),
}


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


def union(existing: Iterable[str], extra: Iterable[str]) -> List[str]:
    """Ordered set union: keeps first-seen order, drops duplicates and blanks."""
    out = []
    for item in list(existing) + list(extra):
        if item and item not in out:
            out.append(item)
    return out


def emotion_signals(stats: EmotionStatistics, threshold: float = EMOTION_SIGNAL_THRESHOLD):
    """(labels, flags) for strong fear/distress/anger among the top three emotions."""
    labels, flags = [], []
    for score in stats.top_emotions[:3]:
        for emotion, label, flag in EMOTION_SIGNALS:
            if score.emotion.lower() == emotion and score.intensity > threshold:
                labels.append(label)
                flags.append(flag)
    return labels, flags


def special_instructions(extraction: Optional[IncidentExtraction]) -> str:
    if extraction is None:
        return "No transcript available; confirm nature of emergency and location with caller."
    parts = []
    if extraction.immediate_threats:
        parts.append("Hazards: " + "; ".join(extraction.immediate_threats) + ".")
    if extraction.weapons_mentioned:
        parts.append("Weapons mentioned: " + ", ".join(extraction.weapons_mentioned) + ".")
    if extraction.location.confidence < 0.5:
        parts.append("Confirm exact location with caller.")
    if extraction.recommended_questions:
        parts.append("Ask: " + extraction.recommended_questions[0])
    return " ".join(parts) or "Proceed with standard protocol."


def severity_tags(severity: str):
    """(labels, flags) that follow from the tier alone."""
    labels = ["HIGH_PRIORITY"] if severity in ("critical", "high") else []
    flags = ["LIFE_THREATENING"] if severity == "critical" else []
    return labels, flags


def build_analysis(
    extraction: Optional[IncidentExtraction],
    stats: EmotionStatistics,
    assessment: SeverityAssessment,
) -> AnalysisResult:
    """Call-level analysis before escalation. Tier and score come from the scorer."""
    if extraction is None:
        labels = ["EMERGENCY_CALL", "NO_TRANSCRIPT"]
        units = list(DEFAULT_UNITS)
    else:
        labels = [INCIDENT_LABELS[extraction.incident_type]]
        units = list(INCIDENT_UNITS[extraction.incident_type])

    tier_labels, flags = severity_tags(assessment.severity)
    labels += tier_labels
    emotion_labels, emotion_flags = emotion_signals(stats)
    labels += emotion_labels
    flags += emotion_flags
    if extraction is not None and extraction.weapons_mentioned:
        flags.append("WEAPONS_INVOLVED")
    if extraction is not None and extraction.persons_involved.injuries:
        flags.append("INJURIES_REPORTED")

    return AnalysisResult(
        severity=assessment.severity,
        severity_score=assessment.severity_score,
        labels=union(labels, []),
        flags=union(flags, []),
        recommended_units=units,
        priority_code=priority_for_severity(assessment.severity),
        special_instructions=special_instructions(extraction),
        caller_condition=extraction.caller_condition if extraction else None,
        incident_type=extraction.incident_type if extraction else None,
        incident_subtype=(extraction.incident_subtype or None) if extraction else None,
        immediate_threats=list(extraction.immediate_threats) if extraction else [],
        summary=(
            extraction.summary if extraction and extraction.summary
            else "Emergency call received. Awaiting detailed analysis."
        ),
        confidence=extraction.confidence_score if extraction else 0.70,
        persons_involved=extraction.persons_involved.count if extraction else 1,
        location_mentioned=extraction.location.as_text() if extraction else None,
        emotion_analysis=stats.to_dict(),
    )


def _analysis_method(strategy: Optional[str]) -> str:
    if strategy == "gemini":
        return "Gemini extraction + Hume Emotion Detection"
    if strategy == "keyword":
        return "Keyword extraction + Hume Emotion Detection"
    return "Emotion-based (no transcript)"


async def assemble_call(
    phone_number: str,
    segments: Sequence[TranscriptSegment],
    frames: Iterable,
    conversation_id: Optional[str] = None,
) -> EmergencyCall:
    """Run the full triage pipeline for one call. Always completes."""
    frames = [f for f in (coerce_frame(raw) for raw in frames or ()) if f]
    stats = aggregate_emotions(frames)

    text = join_transcript(segments)
    extraction, strategy = (None, None)
    if text:
        extraction, strategy = await run_extraction_chain(text)

    assessment = score_severity(extraction, stats)
    analysis = build_analysis(extraction, stats, assessment)
    analysis.analysis_method = _analysis_method(strategy)
    analysis = escalate(analysis, normalize_transcript(text))
    tier_labels, tier_flags = severity_tags(analysis.severity)
    analysis.labels = union(analysis.labels, tier_labels)
    analysis.flags = union(analysis.flags, tier_flags)
    if not analysis.caller_condition:
        analysis.caller_condition = condition_for_score(analysis.severity_score)

    location = resolve_location(extraction.location.as_text() if extraction else None)
    top = stats.top
    now = utc_now_iso()

    call = EmergencyCall(
        id=conversation_id or new_call_id(),
        caller_number=phone_number,
        caller_location=location,
        incident_type=analysis.incident_type or "other",
        incident_subtype=analysis.incident_subtype or "Unknown",
        severity=analysis.severity,
        severity_score=analysis.severity_score,
        top_emotion=top.emotion if top else None,
        emotion_intensity=top.intensity if top else stats.average_intensity,
        caller_condition=analysis.caller_condition,
        emotion_data=frames,
        ai_summary=analysis.summary,
        ai_confidence=analysis.confidence,
        ai_recommendation=(
            f"Dispatch {', '.join(analysis.recommended_units)} ({analysis.priority_code})."
        ),
        persons_involved=analysis.persons_involved,
        immediate_threats=list(analysis.immediate_threats),
        labels=list(analysis.labels),
        flags=list(analysis.flags),
        recommended_units=list(analysis.recommended_units),
        priority_code=analysis.priority_code,
        special_instructions=analysis.special_instructions,
        analysis=analysis.to_dict(),
        transcript=[s.to_dict() for s in segments if s.text.strip()],
        created_at=now,
        updated_at=now,
    )
    log.info(
        "call_assembled",
        call_id=call.id,
        severity=call.severity,
        severity_score=round(call.severity_score, 1),
        incident_type=call.incident_type,
        top_emotion=call.top_emotion,
        strategy=strategy,
    )
    return call


def merge_analysis(call: EmergencyCall, analysis: AnalysisResult) -> EmergencyCall:
    """
    Fold a later analysis pass into a call. Additive only: labels, flags,
    units and threats are unioned, the score never goes down, and known
    incident/caller fields are never overwritten.
    """
    score = max(call.severity_score, analysis.severity_score)
    priority = max(call.priority_code, analysis.priority_code, key=lambda p: PRIORITY_RANK.get(p, 0))

    incident_type = call.incident_type
    if incident_type in UNSET_INCIDENT_TYPES and analysis.incident_type in INCIDENT_TYPES:
        incident_type = analysis.incident_type
    incident_subtype = call.incident_subtype
    if incident_subtype in UNSET_INCIDENT_SUBTYPES and analysis.incident_subtype:
        incident_subtype = analysis.incident_subtype

    units = union(call.recommended_units, analysis.recommended_units)
    # An ALS unit requested by either pass stays at the front
    if ALS_UNIT in units:
        units.remove(ALS_UNIT)
        units.insert(0, ALS_UNIT)

    return dataclasses.replace(
        call,
        severity_score=score,
        severity=severity_for_score(score),
        priority_code=priority,
        labels=union(call.labels, analysis.labels),
        flags=union(call.flags, analysis.flags),
        recommended_units=units,
        immediate_threats=union(call.immediate_threats, analysis.immediate_threats),
        caller_condition=call.caller_condition or analysis.caller_condition,
        incident_type=incident_type,
        incident_subtype=incident_subtype,
        special_instructions=call.special_instructions or analysis.special_instructions,
        analysis=analysis.to_dict(),
        updated_at=utc_now_iso(),
    )


def transition_status(call: EmergencyCall, status: str) -> EmergencyCall:
    """Move a call along its lifecycle; stamps resolved_at on resolve/close."""
    if status not in CALL_STATUSES:
        raise InvalidStatusTransition(f"Unknown status: {status}")
    if status == call.status:
        return call
    if status not in STATUS_TRANSITIONS[call.status]:
        raise InvalidStatusTransition(f"Cannot move call from {call.status} to {status}")

    now = utc_now_iso()
    resolved_at = call.resolved_at
    if status in TERMINAL_STATUSES and not resolved_at:
        resolved_at = now
    return dataclasses.replace(call, status=status, updated_at=now, resolved_at=resolved_at)
