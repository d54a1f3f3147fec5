"""
Centralized MongoDB connection and call persistence.
Import the helpers below from routes; they all go through `calls_collection`.

Calls are one document each, keyed by `id`. Updates are compare-and-swap on
the `revision` counter, so two analysis passes finishing together cannot
overwrite each other's changes.
"""
from typing import Callable, List, Optional

import structlog
from pymongo import ASCENDING, DESCENDING, MongoClient

from config import MONGODB_DB, MONGODB_URI
from models import EmergencyCall, utc_now_iso

log = structlog.get_logger(__name__)

# MongoClient connects lazily, so importing this module never blocks.
mongo_client = MongoClient(MONGODB_URI, serverSelectionTimeoutMS=3000)
db = mongo_client[MONGODB_DB]
calls_collection = db["calls"]

CAS_ATTEMPTS = 5


class ConcurrentUpdateError(Exception):
    """A call kept changing underneath us for CAS_ATTEMPTS tries."""


def ensure_indexes() -> None:
    calls_collection.create_index([("id", ASCENDING)], unique=True)
    calls_collection.create_index([("created_at", DESCENDING)])


def serialize_call(call: dict) -> Optional[dict]:
    """Convert MongoDB document to JSON-serializable format."""
    if call is None:
        return None
    call_dict = dict(call)
    call_dict.pop("_id", None)
    return call_dict


def save_call(call: EmergencyCall) -> dict:
    """Insert a new call document; returns the stored (serialized) form."""
    doc = call.to_dict()
    calls_collection.insert_one(dict(doc))
    log.info("call_saved", call_id=call.id)
    return doc


def get_call(call_id: str) -> Optional[EmergencyCall]:
    doc = calls_collection.find_one({"id": call_id}, {"_id": 0})
    return EmergencyCall.from_dict(doc) if doc else None


def list_calls(limit: int = 200) -> List[dict]:
    """Stored calls, newest first."""
    cursor = calls_collection.find({}, {"_id": 0}).sort("created_at", DESCENDING).limit(limit)
    return [serialize_call(c) for c in cursor]


def update_call(
    call_id: str,
    mutate: Callable[[EmergencyCall], EmergencyCall],
    attempts: int = CAS_ATTEMPTS,
) -> Optional[EmergencyCall]:
    """
    Read-modify-write one call atomically. `mutate` gets the current call and
    returns the new one; it may run more than once, so it must be pure.
    Returns None if the call does not exist.
    """
    for attempt in range(1, attempts + 1):
        current = get_call(call_id)
        if current is None:
            return None
        updated = mutate(current)
        updated.revision = current.revision + 1
        updated.updated_at = utc_now_iso()

        result = calls_collection.replace_one(
            {"id": call_id, "revision": current.revision}, updated.to_dict()
        )
        if result.matched_count == 1:
            log.info("call_updated", call_id=call_id, revision=updated.revision)
            return updated
        log.warning("call_update_conflict", call_id=call_id, attempt=attempt)

    raise ConcurrentUpdateError(f"Call {call_id} changed concurrently {attempts} times")
