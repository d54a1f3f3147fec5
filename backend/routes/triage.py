"""
Incident extraction endpoint: structured triage from a raw caller transcript.
"""
from flask import Blueprint, jsonify, request

from config import GEMINI_MODEL
from services.ai import run_extraction_chain

triage_bp = Blueprint("triage", __name__, url_prefix="/api/triage")


@triage_bp.route("/extract", methods=["POST"])
async def extract():
    """
    Body: {"transcript": "..."}.
    Returns {"success", "extraction", "model"}; "model" is "mock_extraction"
    whenever the keyword fallback produced the result.
    """
    data = request.get_json(silent=True) or {}
    transcript = data.get("transcript")
    if not isinstance(transcript, str) or not transcript:
        return jsonify({"error": "Transcript is required"}), 400

    extraction, strategy = await run_extraction_chain(transcript)
    body = {
        "success": True,
        "extraction": extraction.model_dump(exclude_none=True),
        "model": GEMINI_MODEL if strategy == "gemini" else "mock_extraction",
    }
    if strategy != "gemini":
        body["note"] = "Using mock extraction - configure GEMINI_API_KEY for model triage"
    return jsonify(body)
