"""
Conversation analysis: label and score a finished Hume conversation.

Strategies are tried in order until one answers:
  no_transcript -> nothing to analyse, fixed low-severity result
  gemini        -> model analysis, boosted by the caller's distress level
  emotion       -> emotion-only heuristic (always answers)
Keyword escalation then runs over the transcript for whichever answered.
"""

from typing import Awaitable, Callable, Optional, Sequence, Tuple

import structlog

from models import AnalysisResult
from services.ai import analyze_with_model
from services.escalation import escalate, normalize_transcript
from services.hume import ConversationData
from services.scoring import clamp_score, condition_for_score, priority_for_severity, severity_for_score
from services.transcripts import conversation_text, join_transcript
from services.triage import emotion_signals

log = structlog.get_logger(__name__)

# Share of the 0-100 distress level added on top of the model's score.
DISTRESS_BOOST_FACTOR = 0.2
EMOTION_ONLY_CONFIDENCE = 0.65

AnalysisStrategy = Callable[[ConversationData], Awaitable[Optional[AnalysisResult]]]


async def analyze_without_transcript(conversation: ConversationData) -> Optional[AnalysisResult]:
    if join_transcript(conversation.segments):
        return None
    return AnalysisResult(
        labels=["NO_TRANSCRIPT"],
        severity="low",
        severity_score=0.0,
        confidence=0.0,
        flags=[],
        summary="No conversation transcript available",
        priority_code=priority_for_severity("low"),
        special_instructions="Unable to analyze - no transcript data",
        emotion_analysis=conversation.stats.to_dict(),
        analysis_method="No transcript",
    )


async def analyze_with_gemini(conversation: ConversationData) -> Optional[AnalysisResult]:
    stats = conversation.stats
    payload = await analyze_with_model(conversation_text(conversation.segments), stats)
    if payload is None:
        return None

    score = clamp_score(payload.severity_score + stats.distress_level * DISTRESS_BOOST_FACTOR)
    severity = severity_for_score(score)
    return AnalysisResult(
        labels=list(dict.fromkeys(payload.labels)),
        severity=severity,
        severity_score=score,
        confidence=payload.confidence,
        flags=list(dict.fromkeys(payload.flags)),
        summary=payload.summary,
        incident_type=payload.incident_type,
        persons_involved=payload.persons_involved,
        immediate_threats=list(payload.immediate_threats),
        recommended_units=list(dict.fromkeys(payload.recommended_units)),
        priority_code=payload.priority_code,
        special_instructions=payload.special_instructions,
        location_mentioned=payload.location_mentioned,
        caller_condition=payload.caller_condition,
        emotion_analysis=stats.to_dict(),
        analysis_method="Gemini + Hume Emotion Detection",
    )


async def analyze_with_emotions(conversation: ConversationData) -> AnalysisResult:
    stats = conversation.stats
    distress = stats.distress_level
    emotion_labels, emotion_flags = emotion_signals(stats)
    severity = severity_for_score(distress)
    return AnalysisResult(
        labels=["EMERGENCY_CALL"] + emotion_labels,
        severity=severity,
        severity_score=distress,
        confidence=EMOTION_ONLY_CONFIDENCE,
        flags=emotion_flags,
        summary="Emergency call detected. Model analysis unavailable - using emotion-based assessment.",
        persons_involved=1,
        immediate_threats=list(emotion_flags),
        recommended_units=["Emergency Services"],
        priority_code="Code 3" if severity == "critical" else "Code 2",
        special_instructions="Analyze transcript manually for details",
        location_mentioned=None,
        caller_condition=condition_for_score(distress),
        emotion_analysis=stats.to_dict(),
        analysis_method="Emotion-based (model unavailable)",
    )


ANALYSIS_CHAIN: Sequence[Tuple[str, AnalysisStrategy]] = (
    ("no_transcript", analyze_without_transcript),
    ("gemini", analyze_with_gemini),
    ("emotion", analyze_with_emotions),
)


async def analyze_conversation(
    conversation: ConversationData,
    chain: Sequence[Tuple[str, AnalysisStrategy]] = ANALYSIS_CHAIN,
) -> AnalysisResult:
    """Run the strategy chain, then escalate on the transcript. Never raises for model failures."""
    result, used = None, None
    for name, strategy in chain:
        try:
            result = await strategy(conversation)
        except Exception as e:
            log.warning("analysis_strategy_failed", strategy=name,
                        error_type=type(e).__name__, error=str(e))
            continue
        if result is not None:
            used = name
            break
    if result is None:
        used = "emotion"
        result = await analyze_with_emotions(conversation)

    if used != "no_transcript":
        result = escalate(result, normalize_transcript(join_transcript(conversation.segments)))

    log.info("conversation_analyzed", chat_group_id=conversation.chat_group_id, strategy=used,
             severity=result.severity, severity_score=round(result.severity_score, 1),
             labels=result.labels, flags=result.flags)
    return result
