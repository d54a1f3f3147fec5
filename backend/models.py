"""
Domain records for the triage pipeline: transcript segments, emotion
statistics, the call-level analysis and the emergency call itself.
Plain dataclasses; pydantic is only used at the model boundary (schemas.py).
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

CALL_STATUSES = ("active", "processing", "pending_approval", "dispatched", "resolved", "closed")
TERMINAL_STATUSES = ("resolved", "closed")
INCIDENT_TYPES = ("fire", "medical_emergency", "accident", "crime", "public_safety", "other")
SEVERITIES = ("critical", "high", "medium", "low")
CALLER_CONDITIONS = ("calm", "distressed", "injured", "panicked", "unclear")
PRIORITY_CODES = ("Code 3", "Code 2", "Code 1")

# emotion name -> intensity in [0, 1]
EmotionFrame = Dict[str, float]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TranscriptSegment:
    """One utterance of the conversation. Never mutated once produced."""

    speaker: str                                  # "caller" or "assistant"
    text: str
    timestamp: str                                # ISO-8601
    emotions: Optional[EmotionFrame] = None       # Prosody scores for caller turns
    top_emotion: Optional[str] = None
    emotion_intensity: Optional[float] = None
    segment_index: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None}


@dataclass(frozen=True)
class EmotionScore:
    emotion: str
    intensity: float


@dataclass(frozen=True)
class EmotionStatistics:
    """Derived, read-only aggregate over a conversation's emotion frames."""

    top_emotions: List[EmotionScore] = field(default_factory=list)  # Top 10, descending
    average_intensity: float = 0.0
    distress_level: float = 0.0                                      # Always within [0, 100]

    @property
    def top(self) -> Optional[EmotionScore]:
        return self.top_emotions[0] if self.top_emotions else None

    def to_dict(self) -> dict:
        return {
            "top_emotions": [asdict(e) for e in self.top_emotions],
            "average_intensity": self.average_intensity,
            "distress_level": self.distress_level,
        }


@dataclass
class Location:
    address: Optional[str] = None
    cross_streets: List[str] = field(default_factory=list)
    landmarks: List[str] = field(default_factory=list)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v not in (None, [])}


@dataclass
class AnalysisResult:
    """
    Call-level assessment. severity must always equal the ladder tier of
    severity_score; every pipeline stage that touches the score re-derives it.
    """

    severity: str = "medium"
    severity_score: float = 50.0
    labels: List[str] = field(default_factory=list)              # Ordered, no duplicates
    flags: List[str] = field(default_factory=list)               # Ordered, no duplicates
    recommended_units: List[str] = field(default_factory=list)
    priority_code: str = "Code 2"
    special_instructions: str = ""
    caller_condition: Optional[str] = None
    incident_type: Optional[str] = None
    incident_subtype: Optional[str] = None
    immediate_threats: List[str] = field(default_factory=list)
    summary: str = ""
    confidence: float = 0.0
    persons_involved: int = 1
    location_mentioned: Optional[str] = None
    emotion_analysis: Optional[dict] = None
    analyzed_at: str = field(default_factory=utc_now_iso)
    analysis_method: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EmergencyCall:
    """The externally visible call record; what the dashboard and MongoDB see."""

    id: str
    caller_number: str
    status: str = "active"
    call_status: str = "in-progress"
    caller_location: Optional[Location] = None

    incident_type: str = "other"
    incident_subtype: str = "Unknown"
    severity: str = "medium"
    severity_score: float = 50.0

    top_emotion: Optional[str] = None
    emotion_intensity: float = 0.0
    caller_condition: Optional[str] = None
    emotion_data: List[dict] = field(default_factory=list)

    ai_summary: str = ""
    ai_confidence: float = 0.0
    ai_recommendation: str = ""
    persons_involved: int = 1
    immediate_threats: List[str] = field(default_factory=list)

    labels: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)
    recommended_units: List[str] = field(default_factory=list)
    priority_code: str = "Code 2"
    special_instructions: str = ""
    analysis: Optional[dict] = None

    transcript: List[dict] = field(default_factory=list)

    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    resolved_at: Optional[str] = None
    revision: int = 0                      # Bumped on every stored update (compare-and-swap)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["caller_location"] = self.caller_location.to_dict() if self.caller_location else None
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "EmergencyCall":
        """Rebuild from a stored document; unknown keys (e.g. Mongo _id) are dropped."""
        known = {f for f in cls.__dataclass_fields__}
        values = {k: v for k, v in data.items() if k in known}
        loc = values.get("caller_location")
        if isinstance(loc, dict):
            values["caller_location"] = Location(**{
                k: v for k, v in loc.items() if k in Location.__dataclass_fields__
            })
        return cls(**values)
