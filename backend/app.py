"""
Dispatch backend: Flask app for AI-assisted 112 emergency call triage.

Flow:
  1. The voice front end (Hume EVI) finishes or streams a call and POSTs the
     transcript + emotion frames to /api/calls/create
  2. We extract the incident (Gemini, keyword fallback), score severity with
     the caller's emotions, apply keyword escalation and resolve a map pin
  3. The triaged call is stored in MongoDB and pushed to dashboards over SSE
  4. /api/analyze/conversation re-analyses a whole Hume conversation and
     merges the result into the stored call
"""

import json
import os
import queue

import structlog
from flask import Flask, Response, jsonify
from flask_cors import CORS
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException

import config
from db import ensure_indexes
from events import client_count, subscribe, unsubscribe
from logger import configure_logging
from routes.analyze import analyze_bp
from routes.calls import calls_bp
from routes.hume import hume_bp
from routes.triage import triage_bp

configure_logging()
log = structlog.get_logger(__name__)

SSE_KEEPALIVE_SECONDS = 30

app = Flask(__name__)
CORS(app)

# Register blueprints
app.register_blueprint(calls_bp)
app.register_blueprint(triage_bp)
app.register_blueprint(analyze_bp)
app.register_blueprint(hume_bp)


@app.before_request
def reset_log_context():
    structlog.contextvars.clear_contextvars()


# ═══════════════════════════════════════════════════════════════════════════════
# Global error handler: JSON for every API path, never a bare stack trace
# ═══════════════════════════════════════════════════════════════════════════════

@app.errorhandler(Exception)
def handle_any_error(e):
    """Last-resort safety net. HTTP errors keep their status; anything else is a logged 500."""
    if isinstance(e, HTTPException):
        return jsonify({"error": e.description}), e.code
    log.exception("unhandled_error", error_type=type(e).__name__)
    return jsonify({"error": "Internal server error"}), 500


@app.route("/api/events")
def events():
    """Server-Sent Events: real-time call_created and call_updated."""
    def gen():
        q = subscribe()
        log.info("sse_client_connected", clients=client_count())
        try:
            while True:
                try:
                    event = q.get(timeout=SSE_KEEPALIVE_SECONDS)
                    yield f"data: {json.dumps(event)}\n\n"
                except queue.Empty:
                    yield ": keepalive\n\n"
        finally:
            unsubscribe(q)
            log.info("sse_client_disconnected", clients=client_count())

    return Response(
        gen(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@app.route("/api/health")
def health():
    return jsonify({
        "status": "ok",
        "message": "Backend connected",
        "integrations": {
            "gemini": bool(config.GEMINI_API_KEY),
            "hume": bool(config.HUME_API_KEY),
        },
    })


@app.route("/api")
def index():
    return jsonify({"message": "Dispatch triage API"})


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5001))
    debug = os.environ.get("FLASK_DEBUG", "0").lower() in ("1", "true", "yes")

    try:
        ensure_indexes()
    except PyMongoError:
        # Calls are still triaged and broadcast; persistence reports persisted=false
        log.exception("mongo_index_setup_failed", uri=config.MONGODB_URI)

    log.info("server_starting", host="0.0.0.0", port=port, debug=debug,
             gemini=bool(config.GEMINI_API_KEY), hume=bool(config.HUME_API_KEY))
    app.run(
        host="0.0.0.0",
        port=port,
        debug=debug,
        use_reloader=debug,
    )
