"""
AI service: Gemini calls for incident extraction and whole-conversation
analysis, plus the deterministic keyword extractor used when Gemini is not
configured or fails.

Extraction is an ordered chain of named strategies. Each strategy returns an
IncidentExtraction, returns None for "not available, try the next one", or
raises; the chain logs failures and moves on. The last strategy (keyword)
cannot fail, so extract_incident() always returns a usable record.
Uses the google-genai SDK (client.models.generate_content in a worker thread).
"""

import asyncio
import json
from typing import Awaitable, Callable, Optional, Sequence, Tuple

import structlog
from google import genai
from google.genai import types

# Import config so we can switch model and timeout in one place.
from config import GEMINI_API_KEY, GEMINI_MODEL, LLM_TIMEOUT_SECONDS
from models import EmotionStatistics
from schemas import ConversationAnalysisPayload, ExtractedLocation, IncidentExtraction, PersonsInvolved
from services.location import find_place
from services.system_prompt import ANALYSIS_SCHEMA, EXTRACTION_SCHEMA, SEVERITY_RUBRIC, SYSTEM_INSTRUCTION

log = structlog.get_logger(__name__)

# -----------------------------------------------------------------------------
# Gemini client (lazy init on first use so we don't fail if key is missing at import).
# -----------------------------------------------------------------------------
_client = None


def _get_client():
    """Return configured Gemini client; initializes on first call."""
    global _client
    if _client is None:
        if not GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY is not set")
        _client = genai.Client(api_key=GEMINI_API_KEY)
    return _client


def parse_json_object(text: str) -> dict:
    """
    Parse a JSON object out of model output. Tries the whole text first, then
    the slice between the first '{' and the last '}' (models sometimes wrap
    JSON in prose or code fences). Raises ValueError if neither works.
    """
    text = (text or "").strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError(f"Model did not return JSON. Raw output: {text[:200]!r}")
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Model returned malformed JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


async def _generate_json(prompt: str, temperature: float) -> dict:
    # Sync API in a worker thread; the shared client outlives each request's event loop
    client = _get_client()
    response = await asyncio.wait_for(
        asyncio.to_thread(
            client.models.generate_content,
            model=GEMINI_MODEL,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_INSTRUCTION,
                temperature=temperature,
                max_output_tokens=1500,
                response_mime_type="application/json",
            ),
        ),
        timeout=LLM_TIMEOUT_SECONDS,
    )
    return parse_json_object(response.text or "")


# =============================================================================
# Incident extraction
# =============================================================================

def build_extraction_prompt(transcript: str) -> str:
    return f"""You are an emergency dispatch AI system analyzing 112 call transcripts. Extract structured information to help dispatchers respond quickly.

## TRANSCRIPT:
{transcript}

## EXTRACTION TASKS:
Analyze the above transcript and extract the following in strict JSON format:

{EXTRACTION_SCHEMA}

{SEVERITY_RUBRIC}

Return ONLY the JSON object, no additional text."""


async def extract_with_model(transcript: str) -> Optional[IncidentExtraction]:
    """Gemini extraction. None when no key is configured; raises on any failure."""
    if not GEMINI_API_KEY:
        log.warning("gemini_not_configured", strategy="gemini")
        return None
    data = await _generate_json(build_extraction_prompt(transcript), temperature=0.1)
    return IncidentExtraction.model_validate(data)


# Keyword groups for the offline extractor, checked in order; first hit wins.
# (needles, incident_type, incident_subtype, severity)
MOCK_KEYWORDS = (
    (("fire", "burning"), "fire", "house fire", "critical"),
    (("accident", "crash", "collision"), "accident", "car accident", "high"),
    (("medical", "heart", "injury"), "medical_emergency", "medical emergency", "high"),
    (("theft", "robbery", "burglary"), "crime", "theft", "medium"),
)
MOCK_CONFIDENCE = 0.75


def mock_extraction(transcript: str) -> IncidentExtraction:
    """Deterministic substring-based extraction. Never raises."""
    lowered = (transcript or "").lower()

    incident_type, incident_subtype, severity = "other", "emergency", "medium"
    for needles, kind, subtype, tier in MOCK_KEYWORDS:
        if any(n in lowered for n in needles):
            incident_type, incident_subtype, severity = kind, subtype, tier
            break

    place = find_place(lowered)
    location = (
        ExtractedLocation(address=place.title(), confidence=0.6)
        if place else ExtractedLocation(confidence=0.0)
    )
    serious = severity in ("critical", "high")

    return IncidentExtraction(
        incident_type=incident_type,
        incident_subtype=incident_subtype,
        severity=severity,
        location=location,
        persons_involved=PersonsInvolved(count=1, injuries=serious, descriptions=[]),
        immediate_threats=["active emergency"] if severity == "critical" else [],
        caller_condition="panicked" if severity == "critical" else "distressed",
        summary=f"{incident_subtype} reported. {severity} severity situation requiring immediate attention.",
        confidence_score=MOCK_CONFIDENCE,
        missing_critical_info=[] if place else ["exact address"],
        recommended_questions=["Can you confirm the exact address?"],
    )


async def extract_with_keywords(transcript: str) -> IncidentExtraction:
    return mock_extraction(transcript)


ExtractionStrategy = Callable[[str], Awaitable[Optional[IncidentExtraction]]]

EXTRACTION_CHAIN: Sequence[Tuple[str, ExtractionStrategy]] = (
    ("gemini", extract_with_model),
    ("keyword", extract_with_keywords),
)


async def run_extraction_chain(
    transcript: str,
    chain: Sequence[Tuple[str, ExtractionStrategy]] = EXTRACTION_CHAIN,
) -> Tuple[IncidentExtraction, str]:
    """Return (extraction, name of the strategy that produced it)."""
    for name, strategy in chain:
        try:
            extraction = await strategy(transcript)
        except Exception as e:
            # Falling through to the next strategy is the recovery path
            log.warning("extraction_strategy_failed", strategy=name,
                        error_type=type(e).__name__, error=str(e))
            continue
        if extraction is not None:
            log.info("incident_extracted", strategy=name,
                     incident_type=extraction.incident_type, severity=extraction.severity)
            return extraction, name
    return mock_extraction(transcript), "keyword"


async def extract_incident(transcript: str) -> IncidentExtraction:
    extraction, _ = await run_extraction_chain(transcript)
    return extraction


# =============================================================================
# Whole-conversation analysis
# =============================================================================

def build_analysis_prompt(conversation_text: str, stats: EmotionStatistics) -> str:
    top = ", ".join(f"{e.emotion}: {e.intensity * 100:.1f}%" for e in stats.top_emotions[:5])
    return f"""You are an expert emergency dispatcher AI analyzing 112 calls.

Analyze the conversation transcript and emotion data, then provide emergency
category labels, overall severity (critical/high/medium/low), a 0-100 severity
score, your confidence (0-1), critical flags (e.g. LIFE_THREATENING,
WEAPONS_INVOLVED, CHILDREN_AT_RISK), a brief summary, the specific incident
type, persons involved, immediate threats, units to dispatch, the priority code
(Code 3 lights/sirens, Code 2 urgent, Code 1 routine), special instructions for
responders, any location mentioned and the caller's condition.

{SEVERITY_RUBRIC}

CONVERSATION TRANSCRIPT:
{conversation_text}

EMOTION DATA:
- Top Emotions: {top or "none"}
- Distress Level: {stats.distress_level:.1f}%
- Average Intensity: {stats.average_intensity * 100:.1f}%

Respond ONLY with valid JSON matching this structure:
{ANALYSIS_SCHEMA}"""


async def analyze_with_model(
    conversation_text: str, stats: EmotionStatistics
) -> Optional[ConversationAnalysisPayload]:
    """Gemini conversation analysis. None when no key is configured; raises on any failure."""
    if not GEMINI_API_KEY:
        log.warning("gemini_not_configured", strategy="gemini")
        return None
    data = await _generate_json(build_analysis_prompt(conversation_text, stats), temperature=0.3)
    return ConversationAnalysisPayload.model_validate(data)
