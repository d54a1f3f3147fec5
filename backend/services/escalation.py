"""
Keyword escalation: a safety layer on top of whatever the model or the
heuristics concluded. Certain phrases in the transcript force the call up to
a minimum severity, whatever the earlier stages said.

Escalation only ever raises the score and only ever adds labels, flags,
threats and units. Rules are plain data; add a row to ESCALATION_RULES and a
test for it.
"""

import dataclasses
import re
from dataclasses import dataclass
from typing import Optional, Sequence

import structlog

from models import AnalysisResult

log = structlog.get_logger(__name__)

ALS_UNIT = "Advanced Life Support Ambulance"
ESCALATED_PRIORITY = "Code 3"

# Placeholder values from the keyword extractor and the call defaults count as unknown
UNSET_INCIDENT_TYPES = (None, "", "other")
UNSET_INCIDENT_SUBTYPES = (None, "", "emergency", "Unknown")


@dataclass(frozen=True)
class EscalationRule:
    name: str
    pattern: "re.Pattern[str]"
    min_severity_score: float
    label: str
    flag: str
    threat: str
    incident_type: str
    incident_subtype: str


def _rule(name, phrases, floor, label, flag, threat, incident_type, subtype) -> EscalationRule:
    pattern = re.compile(r"\b(?:" + "|".join(phrases) + r")\b", re.IGNORECASE)
    return EscalationRule(name, pattern, floor, label, flag, threat, incident_type, subtype)


# Order matters: the first matching rule decides incident type/subtype when
# the analysis does not have one yet.
ESCALATION_RULES = (
    _rule("cardiac", [r"heart attack", r"cardiac arrest", r"chest pains?", r"no pulse"],
          95, "MEDICAL_EMERGENCY", "CARDIAC_EMERGENCY", "Possible cardiac arrest",
          "medical_emergency", "cardiac emergency"),
    _rule("respiratory", [r"not breathing", r"stopped breathing", r"can'?t breathe", r"choking",
                          r"unconscious", r"unresponsive"],
          95, "MEDICAL_EMERGENCY", "RESPIRATORY_EMERGENCY", "Patient not breathing or unresponsive",
          "medical_emergency", "respiratory emergency"),
    _rule("trauma", [r"bleeding", r"gunshots?", r"(?:been|got|was|is|being) shot", r"stabbed",
                     r"stabbing", r"stab wounds?"],
          92, "MEDICAL_EMERGENCY", "TRAUMA_EMERGENCY", "Severe bleeding or penetrating trauma",
          "medical_emergency", "severe trauma"),
    _rule("weapon", [r"guns?", r"knife", r"knives", r"weapons?", r"shooter", r"shooting", r"armed"],
          90, "VIOLENCE", "WEAPONS_INVOLVED", "Weapon reported at scene",
          "crime", "armed threat"),
    _rule("fire", [r"fire", r"on fire", r"burning", r"smoke", r"flames?"],
          90, "FIRE_EMERGENCY", "ACTIVE_FIRE", "Active fire",
          "fire", "structure fire"),
    _rule("trapped", [r"trapped", r"stuck inside", r"can'?t get out"],
          90, "RESCUE", "PERSONS_TRAPPED", "Persons trapped",
          "public_safety", "entrapment"),
)

_QUOTES = str.maketrans({"’": "'", "‘": "'", "“": '"', "”": '"'})


def normalize_transcript(text: Optional[str]) -> str:
    """Fold typographic quotes (can’t -> can't) and collapse whitespace."""
    if not text:
        return ""
    return " ".join(text.translate(_QUOTES).split())


def escalation_severity(score: float) -> str:
    """Tier after escalation fired: never below medium."""
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    return "medium"


def _append_unique(items, value) -> None:
    if value and value not in items:
        items.append(value)


def matching_rules(text: str, rules: Sequence[EscalationRule] = ESCALATION_RULES):
    return [rule for rule in rules if rule.pattern.search(text)]


def escalate(
    analysis: AnalysisResult,
    normalized_text: str,
    rules: Sequence[EscalationRule] = ESCALATION_RULES,
) -> AnalysisResult:
    """
    Apply every matching rule to a copy of `analysis`. Returns the input object
    unchanged when nothing matches.
    """
    fired = matching_rules(normalized_text or "", rules)
    if not fired:
        return analysis

    result = dataclasses.replace(
        analysis,
        labels=list(analysis.labels),
        flags=list(analysis.flags),
        immediate_threats=list(analysis.immediate_threats),
        recommended_units=list(analysis.recommended_units),
    )
    for rule in fired:
        result.severity_score = max(result.severity_score, rule.min_severity_score)
        result.priority_code = ESCALATED_PRIORITY
        if not result.caller_condition:
            result.caller_condition = "panicked"
        if result.incident_type in UNSET_INCIDENT_TYPES:
            result.incident_type = rule.incident_type
        if result.incident_subtype in UNSET_INCIDENT_SUBTYPES:
            result.incident_subtype = rule.incident_subtype
        _append_unique(result.labels, rule.label)
        _append_unique(result.flags, rule.flag)
        _append_unique(result.immediate_threats, rule.threat)

    result.severity = escalation_severity(result.severity_score)
    if ALS_UNIT in result.recommended_units:
        result.recommended_units.remove(ALS_UNIT)
    result.recommended_units.insert(0, ALS_UNIT)

    log.info(
        "keyword_escalation",
        rules=[r.name for r in fired],
        severity=result.severity,
        severity_score=result.severity_score,
    )
    return result
