"""
Flask surface for list import and compare.

Every route answers HTTP 200 with a ``success`` flag; domain failures and
malformed requests are reported in the body.
"""
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from core import pipeline
from core.config import HOST, PORT, Settings
from core.logger import get_logger
from fetchers.orchestrator import FetchOrchestrator

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, orchestrator: Optional[FetchOrchestrator] = None) -> Flask:
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    CORS(
        app,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
        supports_credentials=False,
    )

    def _orchestrator() -> FetchOrchestrator:
        # Fresh per request unless one was injected; each run owns its session.
        return orchestrator or FetchOrchestrator(settings)

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "providers": _orchestrator().available_providers()})

    @app.route("/api/scrape-wishlist", methods=["POST"])
    def scrape_wishlist():
        payload = request.get_json(silent=True)
        try:
            return jsonify(pipeline.scrape_request(payload, settings, _orchestrator()))
        except Exception:
            logger.exception("Unexpected error importing %r", payload)
            return jsonify({
                "success": False,
                "message": "Something went wrong while importing this list. Please try again or use Manual Upload.",
                "requiresManualUpload": True,
            })

    @app.route("/api/compare-merge", methods=["POST"])
    def compare_merge():
        payload = request.get_json(silent=True)
        try:
            return jsonify(pipeline.compare_request(payload, settings))
        except Exception:
            logger.exception("Unexpected error comparing list")
            return jsonify({"success": False, "message": "Something went wrong while comparing this list."})

    return app


if __name__ == "__main__":
    create_app().run(host=HOST, port=PORT)
