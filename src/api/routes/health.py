"""
Schema Anomaly Auditor - Health Check Endpoint
Provides API health status and connectivity of the audited database.
"""

from flask import Blueprint, jsonify
from datetime import datetime
from sqlalchemy import text

from api.routes.audit import get_audit_service
from utils.logger import logger

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON with API health status and database connectivity

    Response:
        200 OK: Database reachable
        503 Service Unavailable: Database connection failed
    """
    service = get_audit_service()
    health_data = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + 'Z',
        "api_version": "1.0.0",
        "checks": {}
    }

    try:
        with service.engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()

        health_data["checks"]["database"] = {
            "status": "healthy",
            "dialect": service.engine.dialect.name,
            "message": "Database connection successful"
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)

        health_data["status"] = "unhealthy"
        health_data["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}"
        }

        return jsonify(health_data), 503

    return jsonify(health_data), 200
