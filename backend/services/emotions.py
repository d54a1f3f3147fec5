"""
Emotion aggregation: reduce per-utterance prosody frames from Hume into
top emotions, an average intensity and a 0-100 distress level.
Pure functions; malformed frames and scores are skipped, never raised on.
"""

import math
from typing import Iterable, List, Optional, Tuple

from models import EmotionFrame, EmotionScore, EmotionStatistics

TOP_EMOTION_LIMIT = 10

# Emotions that count towards the distress level, and how much each point of
# mean intensity (0-1) is worth on the 0-100 distress scale.
STRESS_EMOTIONS = frozenset({"anxiety", "fear", "distress", "panic", "anger", "sadness"})
DISTRESS_WEIGHT = 20.0


def _is_score(value) -> bool:
    # bool is an int subclass; True is not an intensity
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False


def coerce_frame(raw) -> Optional[EmotionFrame]:
    """
    Normalise one incoming frame. Accepts an emotion->score map, or the
    {"emotion": name, "intensity": x} object form the call simulator posts.
    Returns None when nothing usable is left.
    """
    if not isinstance(raw, dict):
        return None
    if isinstance(raw.get("emotion"), str) and _is_score(raw.get("intensity")):
        return {raw["emotion"]: float(raw["intensity"])}
    frame = {k: float(v) for k, v in raw.items() if isinstance(k, str) and _is_score(v)}
    return frame or None


def top_emotion(frame) -> Optional[Tuple[str, float]]:
    """Strongest (emotion, intensity) of a single frame, first one wins on ties."""
    if not isinstance(frame, dict):
        return None
    best = None
    for emotion, score in frame.items():
        if not _is_score(score):
            continue
        if best is None or score > best[1]:
            best = (emotion, float(score))
    return best


def aggregate_emotions(
    frames: Iterable,
    limit: int = TOP_EMOTION_LIMIT,
    distress_weight: float = DISTRESS_WEIGHT,
) -> EmotionStatistics:
    """
    Mean intensity per emotion over the frames it appears in (not over all
    frames), sorted descending with ties kept in first-seen order, cut to
    `limit`. distress_level sums weighted means of stress emotions in that
    top list and is clamped to [0, 100].
    """
    totals = {}   # insertion order == first-seen order
    counts = {}

    for frame in frames or ():
        if not isinstance(frame, dict):
            continue
        for emotion, score in frame.items():
            if not isinstance(emotion, str) or not _is_score(score):
                continue
            totals[emotion] = totals.get(emotion, 0.0) + float(score)
            counts[emotion] = counts.get(emotion, 0) + 1

    means: List[EmotionScore] = [
        EmotionScore(emotion=e, intensity=totals[e] / counts[e]) for e in totals
    ]
    # sorted() is stable, so equal means keep first-seen order
    top = sorted(means, key=lambda s: s.intensity, reverse=True)[:limit]

    distress = sum(
        s.intensity * distress_weight for s in top if s.emotion.lower() in STRESS_EMOTIONS
    )
    distress = min(100.0, max(0.0, distress))

    average = sum(s.intensity for s in top) / len(top) if top else 0.0

    return EmotionStatistics(top_emotions=top, average_intensity=average, distress_level=distress)
