"""
Schema Anomaly Auditor - Audit API Routes
=========================================

Endpoints for uploading a schema script and auditing it.

Endpoints:
    POST   /db-audit/upload     - Reset the database and apply a script
    GET    /db-audit/anomalies  - Run an analysis pass and return its anomalies
    GET    /db-audit/report     - Plain-text report of the recorded anomalies
    DELETE /db-audit/anomalies  - Clear the anomaly log

The script is either a multipart ``file`` field or a ``script`` field in a
JSON or form body.
"""

from flask import Blueprint, Response, current_app, jsonify, request

from database.audit import (
    EmptyScriptError, ExecutionError, ResetFailed, SchemaAuditService, summarize
)
from utils.logger import logger

audit_bp = Blueprint("audit", __name__)

SERVICE_EXTENSION_KEY = "schema_audit"


def get_audit_service() -> SchemaAuditService:
    """Return the audit service registered on the current app."""
    return current_app.extensions[SERVICE_EXTENSION_KEY]


def _read_script_from_request():
    upload = request.files.get("file")
    if upload is not None:
        return upload.read().decode("utf-8")

    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and payload.get("script"):
        return payload["script"]

    return request.form.get("script")


@audit_bp.route("/db-audit/upload", methods=["POST"])
def upload_script():
    """
    Reset the audited database and apply the uploaded script.

    Returns:
        {"success": true, "message": "...", "statements_executed": 12}

    Status Codes:
        200: Script applied
        400: No script, an empty script, or a file that is not UTF-8
        500: Reset failed or a statement failed
    """
    try:
        script = _read_script_from_request()
    except UnicodeDecodeError:
        return jsonify({
            "success": False,
            "error": "Uploaded file is not valid UTF-8"
        }), 400

    if not script:
        return jsonify({
            "success": False,
            "error": "No file or script received"
        }), 400

    service = get_audit_service()

    try:
        executed = service.upload_script(script)
    except EmptyScriptError as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400
    except ExecutionError as e:
        logger.error(f"Script upload failed at statement {e.statement_index}: {e.cause}")
        return jsonify({
            "success": False,
            "error": "Error applying the database script",
            "details": str(e.cause),
            "statement_index": e.statement_index
        }), 500
    except ResetFailed as e:
        logger.error(f"Script upload failed during reset: {e}")
        return jsonify({
            "success": False,
            "error": "Error resetting the database",
            "details": str(e.cause),
            "attempts": e.attempts
        }), 500

    return jsonify({
        "success": True,
        "message": "Database script applied successfully",
        "statements_executed": executed
    }), 200


@audit_bp.route("/db-audit/anomalies", methods=["GET"])
def analyze_database():
    """
    Run one analysis pass and return the anomalies it recorded.

    Returns:
        {
            "success": true,
            "message": "Analysis completed",
            "summary": {"FK_MISSING": 2, ...},
            "anomalies": [{"id": 1, "type": "FK_MISSING", ...}, ...]
        }
    """
    service = get_audit_service()

    try:
        service.analyze()
        anomalies = service.list_anomalies()
    except Exception as e:
        logger.error(f"Error analyzing database: {e}", exc_info=True)
        return jsonify({
            "success": False,
            "error": "Error analyzing the database",
            "details": str(e)
        }), 500

    return jsonify({
        "success": True,
        "message": "Analysis completed",
        "summary": summarize(anomalies),
        "anomalies": [anomaly.to_dict() for anomaly in anomalies]
    }), 200


@audit_bp.route("/db-audit/report", methods=["GET"])
def get_report():
    """Plain-text report of the anomalies from the last analysis."""
    report = get_audit_service().generate_report()
    return Response(report, status=200, mimetype="text/plain")


@audit_bp.route("/db-audit/anomalies", methods=["DELETE"])
def clear_anomalies():
    """Delete every recorded anomaly."""
    removed = get_audit_service().clear_anomalies()
    return jsonify({
        "success": True,
        "removed": removed
    }), 200
