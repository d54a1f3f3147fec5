"""
Thin proxies over the Hume EVI REST API for the dashboard.
"""
import requests
import structlog
from flask import Blueprint, jsonify, request

from config import HUME_CONFIG_ID
from services.hume import HumeAPIError, fetch_chat_events, fetch_chat_summary

log = structlog.get_logger(__name__)

hume_bp = Blueprint("hume", __name__, url_prefix="/api/hume")


@hume_bp.route("/chat-events", methods=["GET"])
def chat_events():
    chat_group_id = request.args.get("chat_group_id")
    if not chat_group_id:
        return jsonify({"error": "chat_group_id is required"}), 400

    try:
        conversation = fetch_chat_events(chat_group_id, request.args.get("config_id"))
    except HumeAPIError as e:
        return jsonify({"error": str(e), "details": e.details, "chat_group_id": chat_group_id}), e.status
    except requests.RequestException as e:
        log.warning("hume_unreachable", chat_group_id=chat_group_id, error=str(e))
        return jsonify({"error": "Hume API unreachable", "chat_group_id": chat_group_id}), 502

    body = {"success": True, **conversation.to_dict()}
    if conversation.mock:
        body["message"] = "Mock data - configure HUME_API_KEY for real data"
    return jsonify(body)


@hume_bp.route("/chat-summary", methods=["GET"])
def chat_summary():
    """Config details plus the recent chat groups; config_id defaults to HUME_CONFIG_ID."""
    config_id = request.args.get("config_id") or HUME_CONFIG_ID
    if not config_id:
        return jsonify({"error": "config_id is required"}), 400

    try:
        summary = fetch_chat_summary(config_id, request.args.get("chat_group_id"))
    except HumeAPIError as e:
        return jsonify({"error": str(e), "details": e.details, "config_id": config_id}), e.status
    except requests.RequestException as e:
        log.warning("hume_unreachable", config_id=config_id, error=str(e))
        return jsonify({"error": "Hume API unreachable", "config_id": config_id}), 502

    return jsonify({"success": True, **summary})
