"""
HTTP API tests through Flask's test client. MongoDB is the in-memory
collection from conftest; Gemini and Hume are unconfigured unless patched.
"""

from pymongo.errors import PyMongoError

import db
import events
import routes.analyze
import routes.hume
from services.escalation import ALS_UNIT
from services.hume import ConversationData, HumeAPIError
from services.transcripts import make_segment

FIRE_CALL = {
    "phoneNumber": "+91 98765 43210",
    "transcript": [
        {"role": "user", "text": "There is a fire in my kitchen, Sector 18 Noida",
         "emotions": {"fear": 0.9, "distress": 0.4}},
        {"role": "assistant", "text": "Is everyone out of the house?"},
    ],
}


def create(client, body=FIRE_CALL):
    r = client.post("/api/calls/create", json=body)
    assert r.status_code == 201, r.get_json()
    return r.get_json()["call"]


def test_create_call_triages_and_persists(client, calls_collection):
    q = events.subscribe()
    try:
        r = client.post("/api/calls/create", json=FIRE_CALL)
    finally:
        events.unsubscribe(q)

    assert r.status_code == 201
    data = r.get_json()
    assert data["success"] is True
    assert data["persisted"] is True
    call = data["call"]
    assert call["severity"] == "critical"
    assert call["incident_type"] == "fire"
    assert call["priority_code"] == "Code 3"
    assert call["recommended_units"][0] == ALS_UNIT
    assert call["caller_location"]["confidence"] == 0.85
    assert [d["id"] for d in calls_collection.docs] == [call["id"]]

    event = q.get_nowait()
    assert event["type"] == "call_created"
    assert event["call"]["id"] == call["id"]


def test_create_call_on_collection_root(client):
    r = client.post("/api/calls", json={"phoneNumber": "+91 90000 00006"})
    assert r.status_code == 201
    assert r.get_json()["call"]["labels"] == ["EMERGENCY_CALL", "NO_TRANSCRIPT"]


def test_create_requires_phone_number(client):
    r = client.post("/api/calls/create", json={"transcript": "fire!"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Phone number is required"


def test_create_still_answers_when_storage_fails(client, monkeypatch):
    def broken_save(call):
        raise PyMongoError("connection refused")

    monkeypatch.setattr(db, "save_call", broken_save)

    r = client.post("/api/calls/create", json=FIRE_CALL)

    assert r.status_code == 201
    assert r.get_json()["persisted"] is False


def test_duplicate_conversation_id_conflicts(client):
    body = {"phoneNumber": "+91 90000 00007", "conversationId": "conv-1"}
    assert client.post("/api/calls/create", json=body).status_code == 201
    assert client.post("/api/calls/create", json=body).status_code == 409


def test_get_and_list_calls(client):
    call = create(client)

    r = client.get(f"/api/calls/{call['id']}")
    assert r.status_code == 200
    assert r.get_json()["id"] == call["id"]

    r = client.get("/api/calls")
    assert r.status_code == 200
    assert [c["id"] for c in r.get_json()] == [call["id"]]

    assert client.get("/api/calls/call_missing").status_code == 404


def test_status_updates_follow_the_lifecycle(client):
    call = create(client)
    url = f"/api/calls/{call['id']}"

    r = client.patch(url, json={"status": "dispatched"})
    assert r.status_code == 200
    assert r.get_json()["call"]["status"] == "dispatched"
    assert r.get_json()["call"]["revision"] == 1

    assert client.patch(url, json={"status": "active"}).status_code == 409
    assert client.patch(url, json={"status": "bogus"}).status_code == 400
    assert client.patch("/api/calls/call_missing", json={"status": "closed"}).status_code == 404


def test_triage_extract_uses_mock_without_key(client):
    r = client.post("/api/triage/extract", json={"transcript": "car crash on the highway near Delhi"})
    assert r.status_code == 200
    data = r.get_json()
    assert data["model"] == "mock_extraction"
    assert data["extraction"]["incident_type"] == "accident"
    assert data["extraction"]["location"]["address"] == "Delhi"


def test_triage_extract_requires_transcript(client):
    r = client.post("/api/triage/extract", json={})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Transcript is required"


def test_analyze_conversation_merges_into_call(client, monkeypatch):
    call = create(client, {"phoneNumber": "+91 90000 00008"})
    segments = [make_segment("caller", "He has a gun and he is threatening us", "2026-01-01T00:00:00Z")]
    monkeypatch.setattr(routes.analyze, "fetch_chat_events",
                        lambda chat_group_id, config_id=None: ConversationData(chat_group_id, config_id, segments))

    r = client.post("/api/analyze/conversation", json={"chat_group_id": "cg-1", "call_id": call["id"]})

    assert r.status_code == 200
    data = r.get_json()
    assert data["analysis"]["severity"] == "critical"
    assert "WEAPONS_INVOLVED" in data["analysis"]["flags"]
    assert data["call_updated"] is True
    assert data["call"]["severity_score"] == 90
    assert "VIOLENCE" in data["call"]["labels"]
    assert "NO_TRANSCRIPT" in data["call"]["labels"]
    assert data["call"]["incident_type"] == "crime"


def test_analyze_conversation_degrades_when_hume_fails(client, monkeypatch):
    def failing_fetch(chat_group_id, config_id=None):
        raise HumeAPIError(503, "upstream unavailable")

    monkeypatch.setattr(routes.analyze, "fetch_chat_events", failing_fetch)

    r = client.post("/api/analyze/conversation", json={"chat_group_id": "cg-2"})

    assert r.status_code == 200
    data = r.get_json()
    assert data["analysis"]["labels"] == ["NO_TRANSCRIPT"]
    assert "503" in data["hume_error"]


def test_analyze_requires_chat_group_id(client):
    assert client.post("/api/analyze/conversation", json={}).status_code == 400


def test_hume_chat_events_proxy(client, monkeypatch):
    assert client.get("/api/hume/chat-events").status_code == 400

    r = client.get("/api/hume/chat-events?chat_group_id=cg-1")
    assert r.status_code == 200
    assert "HUME_API_KEY" in r.get_json()["message"]

    def missing(chat_group_id, config_id=None):
        raise HumeAPIError(404, "chat group not found")

    monkeypatch.setattr(routes.hume, "fetch_chat_events", missing)
    r = client.get("/api/hume/chat-events?chat_group_id=cg-404")
    assert r.status_code == 404
    assert r.get_json()["details"] == "chat group not found"


def test_hume_chat_summary_needs_a_config(client, monkeypatch):
    monkeypatch.setattr(routes.hume, "HUME_CONFIG_ID", None)
    assert client.get("/api/hume/chat-summary").status_code == 400

    r = client.get("/api/hume/chat-summary?config_id=cfg-1")
    assert r.status_code == 200
    assert r.get_json()["configId"] == "cfg-1"


def test_health_and_unknown_routes(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json()["status"] == "ok"
    assert set(r.get_json()["integrations"]) == {"gemini", "hume"}

    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert "error" in r.get_json()


def test_create_ignores_non_finite_emotion_scores(client):
    body = {
        "phoneNumber": "+91 90000 00014",
        "transcript": "there was a robbery",
        "emotions": [{"fear": float("nan")}, {"anger": 0.5}],
    }

    r = client.post("/api/calls/create", json=body)

    assert r.status_code == 201
    call = r.get_json()["call"]
    assert call["top_emotion"] == "anger"
    assert call["emotion_data"] == [{"anger": 0.5}]
    assert b"NaN" not in r.data
