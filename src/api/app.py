"""
Schema Anomaly Auditor - Flask API Application
Main API application with Blueprints, CORS, and middleware.
"""

import time
from typing import Optional

from flask import Flask, jsonify, g, request
from flask_cors import CORS

from database.audit import SchemaAuditService
from database.connection import db
from utils.config import FLASK_ENV, FLASK_DEBUG, SECRET_KEY, MAX_SCRIPT_BYTES
from utils.logger import logger, log_api_request
from api.routes.health import health_bp
from api.routes.audit import audit_bp, SERVICE_EXTENSION_KEY
from api.middleware.error_handler import register_error_handlers


def create_app(service: Optional[SchemaAuditService] = None) -> Flask:
    """
    Create and configure Flask application.

    Args:
        service: Audit service to expose (default: one bound to the
            configured database)

    Returns:
        Configured Flask app instance
    """
    app = Flask(__name__)

    # Configuration
    app.config['ENV'] = FLASK_ENV
    app.config['DEBUG'] = FLASK_DEBUG
    app.config['SECRET_KEY'] = SECRET_KEY
    app.config['JSON_SORT_KEYS'] = False  # Preserve JSON key order
    app.config['MAX_CONTENT_LENGTH'] = MAX_SCRIPT_BYTES

    # CORS configuration
    CORS(app, resources={
        r"/api/*": {
            "origins": "*",  # Configure for production
            "methods": ["GET", "POST", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type"]
        }
    })

    if service is None:
        service = SchemaAuditService(db.get_engine(), db.get_session_factory())
    app.extensions[SERVICE_EXTENSION_KEY] = service

    # Register blueprints
    app.register_blueprint(health_bp, url_prefix='/api')
    app.register_blueprint(audit_bp, url_prefix='/api')

    # Register error handlers
    register_error_handlers(app)

    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response):
        started = g.pop("request_started", None)
        if started is not None:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            log_api_request(request.method, request.path, response.status_code, duration_ms)
        return response

    logger.info(f"Flask app created (env={FLASK_ENV}, debug={FLASK_DEBUG}, dialect={service.engine.dialect.name})")

    # Root endpoint
    @app.route('/')
    def index():
        """Root endpoint with API information."""
        return jsonify({
            "name": "Schema Anomaly Auditor API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "health": "/api/health",
                "upload": "/api/db-audit/upload",
                "anomalies": "/api/db-audit/anomalies",
                "report": "/api/db-audit/report"
            }
        })

    return app


if __name__ == '__main__':
    # Development server
    app = create_app()
    app.run(
        host='0.0.0.0',
        port=5000,
        debug=FLASK_DEBUG
    )
