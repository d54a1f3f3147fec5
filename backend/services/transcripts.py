"""
Transcript normalisation: turn whatever the client or Hume sent into ordered
TranscriptSegment records, and pull the caller's emotion frames out of them.
"""

from typing import Iterable, List, Optional

from models import EmotionFrame, TranscriptSegment, utc_now_iso
from services.emotions import coerce_frame, top_emotion

_SPEAKER_ALIASES = {
    "user": "caller",
    "caller": "caller",
    "assistant": "assistant",
    "agent": "assistant",
    "dispatcher": "assistant",
}


def normalize_speaker(role: Optional[str]) -> str:
    return _SPEAKER_ALIASES.get(str(role or "").strip().lower(), "caller")


def make_segment(speaker, text, timestamp=None, emotions=None, index=0) -> Optional[TranscriptSegment]:
    """Build one segment; None for blank text. Only caller turns keep emotions."""
    if not isinstance(text, str) or not text.strip():
        return None
    speaker = normalize_speaker(speaker)
    frame = coerce_frame(emotions) if speaker == "caller" else None
    top = top_emotion(frame) if frame else None
    return TranscriptSegment(
        speaker=speaker,
        text=text.strip(),
        timestamp=timestamp or utc_now_iso(),
        emotions=frame,
        top_emotion=top[0] if top else None,
        emotion_intensity=top[1] if top else None,
        segment_index=index,
    )


def segments_from_payload(transcript) -> List[TranscriptSegment]:
    """
    Accepts the call-creation `transcript` field: a list of segment objects
    ({text, role|speaker, timestamp?, emotions?}) or a newline-separated
    string (every line is a caller line). Anything else yields [].
    """
    segments = []
    if isinstance(transcript, list):
        for index, item in enumerate(transcript):
            if not isinstance(item, dict):
                continue
            segment = make_segment(
                item.get("role") or item.get("speaker"),
                item.get("text"),
                item.get("timestamp"),
                item.get("emotions"),
                index,
            )
            if segment:
                segments.append(segment)
    elif isinstance(transcript, str):
        for index, line in enumerate(transcript.split("\n")):
            segment = make_segment("caller", line, index=index)
            if segment:
                segments.append(segment)
    return segments


def frames_from_segments(segments: Iterable[TranscriptSegment]) -> List[EmotionFrame]:
    return [dict(s.emotions) for s in segments if s.speaker == "caller" and s.emotions]


def join_transcript(segments: Iterable[TranscriptSegment]) -> str:
    """Segment texts joined with single spaces; blank segments dropped."""
    return " ".join(s.text.strip() for s in segments if s.text and s.text.strip())


def conversation_text(segments: Iterable[TranscriptSegment]) -> str:
    """Speaker-tagged transcript for model prompts ("CALLER: ...")."""
    return "\n".join(f"{s.speaker.upper()}: {s.text}" for s in segments)
