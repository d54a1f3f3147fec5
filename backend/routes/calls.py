"""
Call-related API routes: create a triaged call, list/fetch stored calls,
and move a call along its lifecycle.
"""
import structlog
from flask import Blueprint, jsonify, request
from pymongo.errors import DuplicateKeyError, PyMongoError

import db
from events import publish
from models import CALL_STATUSES
from services.transcripts import frames_from_segments, segments_from_payload
from services.triage import InvalidStatusTransition, assemble_call, transition_status

log = structlog.get_logger(__name__)

calls_bp = Blueprint("calls", __name__, url_prefix="/api/calls")


@calls_bp.route("", methods=["GET"])
def get_calls():
    """Fetch stored calls from MongoDB, newest first."""
    try:
        return jsonify(db.list_calls())
    except PyMongoError:
        log.exception("calls_list_failed")
        return jsonify({"error": "Call storage unavailable"}), 503


@calls_bp.route("", methods=["POST"])
@calls_bp.route("/create", methods=["POST"])
async def create_call():
    """
    Create a new emergency call with AI triage and emotion analysis.

    Request body (JSON):
        - phoneNumber (required): caller's number
        - transcript (optional): list of {text, role, timestamp?, emotions?} or a string
        - emotions (optional): list of emotion frames; defaults to the caller
          segments' emotion scores
        - conversationId (optional): becomes the call id, otherwise one is generated

    Returns {"success", "call", "persisted", "message"} with status 201.
    """
    data = request.get_json(silent=True) or {}

    phone_number = data.get("phoneNumber")
    if not isinstance(phone_number, str) or not phone_number.strip():
        return jsonify({"error": "Phone number is required"}), 400

    segments = segments_from_payload(data.get("transcript"))
    emotions = data.get("emotions")
    frames = emotions if isinstance(emotions, list) else frames_from_segments(segments)
    conversation_id = data.get("conversationId") or None

    call = await assemble_call(phone_number.strip(), segments, frames, conversation_id=conversation_id)
    structlog.contextvars.bind_contextvars(call_id=call.id)

    persisted = True
    try:
        db.save_call(call)
    except DuplicateKeyError:
        return jsonify({"error": f"Call {call.id} already exists"}), 409
    except PyMongoError:
        # The dispatcher still gets the triaged call
        log.exception("call_persist_failed")
        persisted = False

    payload = call.to_dict()
    publish("call_created", call=payload)
    return jsonify({
        "success": True,
        "call": payload,
        "persisted": persisted,
        "message": "Emergency call created successfully",
    }), 201


@calls_bp.route("/<call_id>", methods=["GET"])
def get_call(call_id: str):
    """Fetch a single call by ID."""
    try:
        call = db.get_call(call_id)
    except PyMongoError:
        log.exception("call_fetch_failed", call_id=call_id)
        return jsonify({"error": "Call storage unavailable"}), 503
    if call is None:
        return jsonify({"error": "Call not found"}), 404
    return jsonify(call.to_dict())


@calls_bp.route("/<call_id>", methods=["PATCH"])
def update_call_status(call_id: str):
    """Body: {"status": "..."}. 400 for unknown statuses, 409 for illegal moves."""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if status not in CALL_STATUSES:
        return jsonify({"error": f"status must be one of {', '.join(CALL_STATUSES)}"}), 400

    try:
        call = db.update_call(call_id, lambda c: transition_status(c, status))
    except InvalidStatusTransition as e:
        return jsonify({"error": str(e)}), 409
    except (PyMongoError, db.ConcurrentUpdateError):
        log.exception("call_status_update_failed", call_id=call_id, status=status)
        return jsonify({"error": "Call storage unavailable"}), 503
    if call is None:
        return jsonify({"error": "Call not found"}), 404

    payload = call.to_dict()
    publish("call_updated", call=payload)
    return jsonify({"success": True, "call": payload})
