"""
Schema Anomaly Auditor - Error Handler Middleware
Standardized error responses for all API endpoints.
"""

from flask import jsonify, Flask
from werkzeug.exceptions import HTTPException

from database.audit.errors import AuditError
from utils.logger import logger


def register_error_handlers(app: Flask):
    """
    Register error handlers for Flask app.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        logger.warning(f"Bad request: {error}")
        return jsonify({
            "error": "Bad Request",
            "message": str(error.description) if hasattr(error, 'description') else "Invalid request"
        }), 400

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        logger.info(f"Not found: {error}")
        return jsonify({
            "error": "Not Found",
            "message": "The requested resource was not found"
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle 405 Method Not Allowed errors."""
        logger.info(f"Method not allowed: {error}")
        return jsonify({
            "error": "Method Not Allowed",
            "message": "The method is not allowed for the requested URL"
        }), 405

    @app.errorhandler(AuditError)
    def audit_error(error):
        """Handle audit engine failures that escape a route."""
        logger.error(f"Audit error: {error}", exc_info=True)
        return jsonify({
            "error": "Audit Error",
            "error_type": type(error).__name__,
            "message": str(error)
        }), 500

    @app.errorhandler(500)
    def internal_server_error(error):
        """Handle 500 Internal Server Error."""
        logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify({
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please try again later."
        }), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        """Handle all unhandled exceptions."""
        # If it's an HTTP exception, pass through to specific handler
        if isinstance(error, HTTPException):
            return error

        # Log unexpected error
        logger.error(f"Unexpected error: {error}", exc_info=True)

        return jsonify({
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please try again later."
        }), 500

    logger.info("Error handlers registered")
