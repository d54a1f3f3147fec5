"""
Caller location resolution against a small fixed gazetteer.

No network geocoding here: mentioned place names are matched against known
coverage-area entries, everything else gets a low-confidence default pin the
dispatcher has to verify.
"""

import re
from typing import Optional

from models import Location

# Known places -> (latitude, longitude)
GAZETTEER = {
    "noida": (28.5355, 77.391),
    "greater noida": (28.4744, 77.503),
    "uttar pradesh": (26.8467, 80.9462),
    "delhi": (28.6139, 77.209),
    "new delhi": (28.6139, 77.209),
    "rohini sector 16": (28.7196, 77.1186),
}

# Text naming the coverage region at all; a hit resolves with high confidence.
COVERAGE_REGION = re.compile(r"india|delhi|noida|uttar pradesh", re.IGNORECASE)

REGION_CENTER = (28.6139, 77.209)
UNRESOLVED_PIN = (37.7749, -122.4194)
PENDING_ADDRESS = "Location pending verification"

RESOLVED_CONFIDENCE = 0.85
UNRESOLVED_CONFIDENCE = 0.4
PENDING_CONFIDENCE = 0.25


def find_place(text: Optional[str]) -> Optional[str]:
    """Longest gazetteer name contained in text ("greater noida" before "noida")."""
    if not text:
        return None
    lowered = text.lower()
    for name in sorted(GAZETTEER, key=len, reverse=True):
        if name in lowered:
            return name
    return None


def resolve_location(text: Optional[str]) -> Location:
    """
    Three outcomes:
      - text naming a gazetteer place or the coverage region -> gazetteer
        pin (region center if no place matched), confidence 0.85
      - any other text -> default pin, confidence 0.4
      - no text -> placeholder address at the region center, confidence 0.25
    """
    normalized = (text or "").strip()
    if not normalized:
        lat, lng = REGION_CENTER
        return Location(address=PENDING_ADDRESS, latitude=lat, longitude=lng,
                        confidence=PENDING_CONFIDENCE)

    place = find_place(normalized)
    if place or COVERAGE_REGION.search(normalized):
        lat, lng = GAZETTEER[place] if place else REGION_CENTER
        return Location(address=normalized, latitude=lat, longitude=lng,
                        confidence=RESOLVED_CONFIDENCE)

    lat, lng = UNRESOLVED_PIN
    return Location(address=normalized, latitude=lat, longitude=lng,
                    confidence=UNRESOLVED_CONFIDENCE)
