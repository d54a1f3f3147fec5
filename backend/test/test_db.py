"""Call persistence against an in-memory collection."""

import pytest

import db
from models import EmergencyCall, Location
from services.triage import transition_status


def make_call(call_id="call_db", created_at="2026-01-01T00:00:00+00:00"):
    return EmergencyCall(id=call_id, caller_number="+91 90000 00005", created_at=created_at,
                         caller_location=Location(address="Noida", latitude=28.5, longitude=77.3,
                                                  confidence=0.85))


class RacingCollection:
    """Another writer bumps the stored revision right before our first `conflicts` writes."""

    def __init__(self, inner, conflicts):
        self.inner = inner
        self.conflicts = conflicts

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def replace_one(self, query, replacement):
        if self.conflicts:
            self.conflicts -= 1
            for doc in self.inner.docs:
                if doc["id"] == query["id"]:
                    doc["revision"] += 1
        return self.inner.replace_one(query, replacement)


def test_save_and_get_round_trip(calls_collection):
    db.save_call(make_call())

    call = db.get_call("call_db")

    assert isinstance(call.caller_location, Location)
    assert call.caller_location.address == "Noida"
    assert "_id" not in call.to_dict()


def test_list_calls_newest_first(calls_collection):
    db.save_call(make_call("old", "2026-01-01T00:00:00+00:00"))
    db.save_call(make_call("new", "2026-01-02T00:00:00+00:00"))

    calls = db.list_calls()

    assert [c["id"] for c in calls] == ["new", "old"]
    assert all("_id" not in c for c in calls)


def test_update_bumps_revision(calls_collection):
    db.save_call(make_call())

    updated = db.update_call("call_db", lambda c: transition_status(c, "dispatched"))

    assert updated.revision == 1
    assert db.get_call("call_db").status == "dispatched"


def test_update_retries_after_a_concurrent_write(calls_collection, monkeypatch):
    db.save_call(make_call())
    monkeypatch.setattr(db, "calls_collection", RacingCollection(calls_collection, conflicts=1))

    updated = db.update_call("call_db", lambda c: transition_status(c, "processing"))

    assert updated.revision == 2
    assert db.get_call("call_db").status == "processing"


def test_update_gives_up_when_always_racing(calls_collection, monkeypatch):
    db.save_call(make_call())
    monkeypatch.setattr(db, "calls_collection", RacingCollection(calls_collection, conflicts=100))

    with pytest.raises(db.ConcurrentUpdateError):
        db.update_call("call_db", lambda c: transition_status(c, "processing"), attempts=3)


def test_update_missing_call_returns_none(calls_collection):
    assert db.update_call("nope", lambda c: c) is None


def test_ensure_indexes(calls_collection):
    db.ensure_indexes()
    assert any(kwargs.get("unique") for _, kwargs in calls_collection.indexes)
