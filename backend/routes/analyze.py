"""
Post-call analysis: pull a finished Hume conversation, label and score it,
and optionally fold the result into a stored call.
"""
import requests
import structlog
from flask import Blueprint, jsonify, request
from pymongo.errors import PyMongoError

import db
from events import publish
from services.conversation import analyze_conversation
from services.hume import ConversationData, HumeAPIError, fetch_chat_events
from services.triage import merge_analysis

log = structlog.get_logger(__name__)

analyze_bp = Blueprint("analyze", __name__, url_prefix="/api/analyze")


@analyze_bp.route("/conversation", methods=["POST"])
async def analyze_hume_conversation():
    """
    Body: {"chat_group_id", "config_id"?, "phone_number"?, "call_id"?}.

    A Hume outage degrades to an empty conversation (low severity, NO_TRANSCRIPT)
    and the vendor error is reported under "hume_error".
    """
    data = request.get_json(silent=True) or {}
    chat_group_id = data.get("chat_group_id")
    if not chat_group_id:
        return jsonify({"error": "chat_group_id is required"}), 400
    config_id = data.get("config_id")
    call_id = data.get("call_id")
    structlog.contextvars.bind_contextvars(chat_group_id=chat_group_id, call_id=call_id,
                                           phone_number=data.get("phone_number"))

    hume_error = None
    try:
        conversation = fetch_chat_events(chat_group_id, config_id)
    except (HumeAPIError, requests.RequestException) as e:
        log.warning("hume_fetch_failed", error_type=type(e).__name__, error=str(e))
        hume_error = str(e)
        conversation = ConversationData(chat_group_id=chat_group_id, config_id=config_id)

    analysis = await analyze_conversation(conversation)

    body = {
        "success": True,
        "chat_group_id": chat_group_id,
        "config_id": config_id,
        "analysis": analysis.to_dict(),
        "transcript": [s.to_dict() for s in conversation.segments],
    }
    if hume_error:
        body["hume_error"] = hume_error

    if call_id:
        try:
            call = db.update_call(call_id, lambda c: merge_analysis(c, analysis))
        except (PyMongoError, db.ConcurrentUpdateError):
            log.exception("call_analysis_merge_failed")
            call = None
        body["call_updated"] = call is not None
        if call is not None:
            body["call"] = call.to_dict()
            publish("call_updated", call=body["call"])

    return jsonify(body)
