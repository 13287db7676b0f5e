"""
HTTP Microservice
=================
Flask-based HTTP API for the exam parser.

The exam-management front end uploads a .docx and receives the structured
exam back; persistence and scoring stay on the caller's side.

Endpoints:
    POST   /api/parse         → Parse an uploaded .docx synchronously
    POST   /api/validate      → Validate an ExamData JSON body
    GET    /api/health        → Health check
    GET    /api/info          → Parser version info
"""

from __future__ import annotations

import json
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError

from . import __version__
from .engine import ParserConfig, ParserEngine
from .exceptions import ExamParseError
from .models import ExamData
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    if config:
        app.config.update(config)

    app.config.setdefault("MAX_CONTENT_LENGTH", 50 * 1024 * 1024)  # 50MB
    app.config.setdefault("LOG_LEVEL", "INFO")
    return app


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "docx-exam-parser",
        "version": __version__,
    })


@app.route("/api/info", methods=["GET"])
def info():
    """Parser version and capability info."""
    return jsonify({
        "version": __version__,
        "engine": "lxml",
        "capabilities": [
            "section_detection",
            "reading_passages",
            "inline_options",
            "highlight_answer_key",
            "underline_bold_rendering",
            "validation",
        ],
        "supported_formats": ["docx"],
    })


# ─── Parse Endpoint ──────────────────────────────────────────────────────────


@app.route("/api/parse", methods=["POST"])
def parse_docx():
    """
    Parse an uploaded .docx and return the result immediately.

    Accepts multipart/form-data with a `file` field and optional
    `title` / `time_limit` fields.
    """
    if "file" not in request.files:
        return jsonify({"error": "Provide a .docx file upload in field 'file'"}), 400

    file = request.files["file"]
    if not file.filename:
        return jsonify({"error": "No file selected"}), 400

    config = ParserConfig(log_level=app.config.get("LOG_LEVEL", "INFO"))
    if request.form.get("title"):
        config.title = request.form["title"]
    if request.form.get("time_limit"):
        try:
            config.time_limit = int(request.form["time_limit"])
        except ValueError:
            return jsonify({"error": "time_limit must be an integer"}), 400

    data = file.read()
    try:
        result = ParserEngine(config).parse_bytes(data, source_name=file.filename)
    except ExamParseError as e:
        logger.warning(f"Rejected upload {file.filename}: {e}")
        return jsonify({"error": str(e), "type": type(e).__name__}), 422

    return jsonify(result.model_dump(mode="json")), 200


@app.route("/api/validate", methods=["POST"])
def validate_exam():
    """Validate an ExamData JSON body and return the report."""
    payload = request.get_json(silent=True)
    if payload is None:
        return jsonify({"error": "Expected a JSON body"}), 400

    try:
        exam = ExamData.model_validate(payload)
    except ValidationError as e:
        return jsonify({"error": "Invalid exam data", "details": json.loads(e.json(include_url=False))}), 400

    report = ValidationEngine().validate(exam)
    return jsonify(report.model_dump(mode="json")), 200


# ─── Run Server ──────────────────────────────────────────────────────────────


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    debug: bool = False,
):
    """Start the microservice server."""
    create_app()
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    run_server(debug=True)
