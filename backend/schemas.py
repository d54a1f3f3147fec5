"""
Strict schemas for JSON coming back from the language model.

Everything Gemini returns is validated here once; a ValidationError means
"this strategy failed" and the caller moves on to its fallback.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

IncidentType = Literal["fire", "medical_emergency", "accident", "crime", "public_safety", "other"]
Severity = Literal["critical", "high", "medium", "low"]
CallerCondition = Literal["calm", "distressed", "injured", "panicked", "unclear"]
PriorityCode = Literal["Code 3", "Code 2", "Code 1"]


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


class ExtractedLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: Optional[str] = None
    cross_streets: List[str] = Field(default_factory=list)
    landmarks: List[str] = Field(default_factory=list)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    def as_text(self) -> Optional[str]:
        """Flatten the mentioned location into one line for gazetteer lookup."""
        parts = [self.address, *self.landmarks, *self.cross_streets, self.city, self.state]
        text = ", ".join(p.strip() for p in parts if isinstance(p, str) and p.strip())
        return text or None


class PersonsInvolved(BaseModel):
    model_config = ConfigDict(extra="ignore")

    count: int = Field(default=1, ge=0)
    injuries: bool = False
    descriptions: List[str] = Field(default_factory=list)


class IncidentExtraction(BaseModel):
    """Structured incident record; the /api/triage/extract response contract."""

    model_config = ConfigDict(extra="ignore")

    incident_type: IncidentType
    incident_subtype: str = ""
    severity: Severity = "medium"
    severity_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    location: ExtractedLocation = Field(default_factory=ExtractedLocation)
    persons_involved: PersonsInvolved = Field(default_factory=PersonsInvolved)
    immediate_threats: List[str] = Field(default_factory=list)
    time_sensitive_factors: List[str] = Field(default_factory=list)
    vehicles_involved: List[str] = Field(default_factory=list)
    weapons_mentioned: List[str] = Field(default_factory=list)
    caller_condition: CallerCondition = "unclear"
    summary: str = ""
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    missing_critical_info: List[str] = Field(default_factory=list)
    recommended_questions: List[str] = Field(default_factory=list)

    @field_validator("incident_type", "severity", "caller_condition", mode="before")
    @classmethod
    def _normalize_enum(cls, value):
        return _lower(value)

    @field_validator("severity", mode="before")
    @classmethod
    def _default_severity(cls, value):
        return "medium" if value in (None, "") else value


class ConversationAnalysisPayload(BaseModel):
    """What the model returns for a whole-conversation analysis."""

    model_config = ConfigDict(extra="ignore")

    labels: List[str] = Field(default_factory=list)
    severity: Severity = "medium"
    severity_score: float = Field(ge=0.0, le=100.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    flags: List[str] = Field(default_factory=list)
    summary: str = ""
    incident_type: Optional[str] = None
    persons_involved: int = Field(default=1, ge=0)
    immediate_threats: List[str] = Field(default_factory=list)
    recommended_units: List[str] = Field(default_factory=list)
    priority_code: PriorityCode = "Code 2"
    special_instructions: str = ""
    location_mentioned: Optional[str] = None
    caller_condition: Optional[CallerCondition] = None

    @field_validator("severity", "caller_condition", mode="before")
    @classmethod
    def _normalize_enum(cls, value):
        return _lower(value)
