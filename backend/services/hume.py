"""
Hume EVI client: fetches chat events and chat-group summaries over the REST
API and normalises vendor events into transcript segments and caller emotion
frames.

Without HUME_API_KEY every call returns an empty, well-formed result instead
of failing, so the rest of the pipeline still runs.
"""

import json
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import requests
import structlog

from config import HUME_API_BASE, HUME_API_KEY, HUME_TIMEOUT_SECONDS
from models import EmotionFrame, EmotionStatistics, TranscriptSegment, utc_now_iso
from services.emotions import aggregate_emotions
from services.transcripts import frames_from_segments, make_segment

log = structlog.get_logger(__name__)

CHAT_GROUP_PAGE_SIZE = 25


class HumeAPIError(Exception):
    """Non-2xx answer from Hume. `status` is passed through by the proxy routes."""

    def __init__(self, status: int, details: str = ""):
        super().__init__(f"Hume API error: {status}")
        self.status = status
        self.details = details


@dataclass
class ConversationData:
    chat_group_id: str
    config_id: Optional[str] = None
    segments: List[TranscriptSegment] = field(default_factory=list)
    frames: List[EmotionFrame] = field(default_factory=list)
    stats: EmotionStatistics = field(default_factory=EmotionStatistics)
    event_count: int = 0
    mock: bool = False

    def to_dict(self) -> dict:
        return {
            "chat_group_id": self.chat_group_id,
            "config_id": self.config_id,
            "transcript": [s.to_dict() for s in self.segments],
            "emotions": self.frames,
            "emotion_stats": self.stats.to_dict(),
            "event_count": self.event_count,
        }


# =============================================================================
# Event normalisation
# =============================================================================

def _event_role(event: dict) -> Optional[str]:
    kind = event.get("type")
    role = event.get("role")
    if kind == "USER_MESSAGE" or role == "user":
        return "caller"
    if kind == "AGENT_MESSAGE" or role in ("assistant", "agent"):
        return "assistant"
    return None


def _event_text(event: dict) -> str:
    message = event.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    for key in ("message_text", "text"):
        if isinstance(event.get(key), str):
            return event[key]
    return ""


def _event_emotions(event: dict):
    """Prosody scores live in different places depending on the endpoint."""
    models = event.get("models")
    if isinstance(models, dict):
        scores = (models.get("prosody") or {}).get("scores")
        if isinstance(scores, dict):
            return scores
    if isinstance(event.get("emotions"), dict):
        return event["emotions"]
    features = event.get("emotion_features")
    if isinstance(features, str):
        try:
            features = json.loads(features)
        except json.JSONDecodeError:
            return None
    return features if isinstance(features, dict) else None


def normalize_events(events) -> Tuple[List[TranscriptSegment], List[EmotionFrame]]:
    """Vendor events -> (ordered segments, caller emotion frames). Other event types are ignored."""
    segments = []
    for event in events or ():
        if not isinstance(event, dict):
            continue
        role = _event_role(event)
        if role is None:
            continue
        segment = make_segment(
            role,
            _event_text(event),
            event.get("timestamp") or utc_now_iso(),
            _event_emotions(event) if role == "caller" else None,
            index=len(segments),
        )
        if segment:
            segments.append(segment)
    return segments, frames_from_segments(segments)


# =============================================================================
# REST calls
# =============================================================================

def _get(path: str, params: Optional[dict] = None) -> dict:
    resp = requests.get(
        f"{HUME_API_BASE}/{path}",
        params=params,
        headers={"X-Hume-Api-Key": HUME_API_KEY, "Content-Type": "application/json"},
        timeout=HUME_TIMEOUT_SECONDS,
    )
    if not resp.ok:
        log.error("hume_api_error", path=path, status=resp.status_code, body=resp.text[:500])
        raise HumeAPIError(resp.status_code, resp.text)
    return resp.json()


def fetch_chat_events(chat_group_id: str, config_id: Optional[str] = None) -> ConversationData:
    """Chat events for one chat group, normalised and with emotion statistics."""
    if not HUME_API_KEY:
        log.warning("hume_not_configured", chat_group_id=chat_group_id)
        return ConversationData(chat_group_id=chat_group_id, config_id=config_id, mock=True)

    params = {"chat_group_id": chat_group_id}
    if config_id:
        params["config_id"] = config_id
    data = _get("chat_events", params)

    events = data.get("events") or data.get("events_page") or []
    segments, frames = normalize_events(events)
    log.info("hume_events_fetched", chat_group_id=chat_group_id,
             event_count=len(events), segment_count=len(segments))
    return ConversationData(
        chat_group_id=chat_group_id,
        config_id=config_id,
        segments=segments,
        frames=frames,
        stats=aggregate_emotions(frames),
        event_count=len(events),
    )


def _latest_chat_group(groups: list, requested_id: Optional[str]) -> Optional[dict]:
    for group in groups:
        if requested_id and group.get("id") == requested_id:
            return group
    timed = [g for g in groups if isinstance(g.get("most_recent_start_timestamp"), (int, float))]
    if timed:
        return max(timed, key=lambda g: g["most_recent_start_timestamp"])
    return groups[0] if groups else None


def fetch_chat_summary(config_id: str, chat_group_id: Optional[str] = None) -> dict:
    """
    Config details, the recent chat groups for a config, and the events of the
    requested (or most recent) group.
    """
    fetched_at = utc_now_iso()
    if not HUME_API_KEY:
        log.warning("hume_not_configured", config_id=config_id)
        return {"configId": config_id, "config": None, "chatGroups": [], "latestChat": None,
                "latestEvents": [], "fetchedAt": fetched_at,
                "message": "Mock data - configure HUME_API_KEY for real data"}

    try:
        config_data = _get(f"configs/{config_id}")
    except (HumeAPIError, requests.RequestException) as e:
        # Config details are informational only
        log.warning("hume_config_fetch_failed", config_id=config_id, error=str(e))
        config_data = None

    chats = _get("chat_groups", {"config_id": config_id, "page_size": CHAT_GROUP_PAGE_SIZE})
    groups = [g for g in chats.get("chat_groups_page") or [] if isinstance(g, dict)]
    latest = _latest_chat_group(groups, chat_group_id)

    events = []
    if latest and latest.get("id"):
        events = _get(f"chat_groups/{latest['id']}/events").get("events_page") or []

    return {"configId": config_id, "config": config_data, "chatGroups": groups,
            "latestChat": latest, "latestEvents": events, "fetchedAt": fetched_at}
