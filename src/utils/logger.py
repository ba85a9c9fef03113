"""
Schema Anomaly Auditor - Structured Logging
Provides JSON-formatted logging so audit runs can be queried by event type.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

from .config import LOG_LEVEL, config


def setup_logger(name: str = __name__) -> logging.Logger:
    """
    Configure structured JSON logger.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logger(__name__)
        >>> logger.info("Reset completed", extra={
        ...     "attempts": 1,
        ...     "tables_dropped": 12
        ... })
    """
    logger = logging.getLogger(name)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S'
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    return logger


# Global logger instance
logger = setup_logger('schema_auditor')


def log_reset_attempt(attempt: int, max_attempts: int, log: Optional[logging.Logger] = None):
    """Log the start of one schema reset attempt."""
    (log or logger).info("Schema reset attempt started", extra={
        "event_type": "reset_attempt",
        "attempt": attempt,
        "max_attempts": max_attempts,
        "environment": config.environment
    })


def log_reset_complete(attempts: int, tables_dropped: int, log: Optional[logging.Logger] = None):
    """Log successful schema reset."""
    (log or logger).info("Schema reset completed", extra={
        "event_type": "reset_complete",
        "attempts": attempts,
        "tables_dropped": tables_dropped
    })


def log_anomaly_recorded(anomaly_type: str, description: str, table: str,
                         details: Optional[str] = None, log: Optional[logging.Logger] = None):
    """Log a recorded anomaly."""
    (log or logger).warning(f"[{anomaly_type}] {description}", extra={
        "event_type": "anomaly_recorded",
        "anomaly_type": anomaly_type,
        "affected_table": table,
        "details": details
    })


def log_audit_phase_error(error: Exception, phase: str, target: Optional[str] = None,
                          log: Optional[logging.Logger] = None):
    """Log a detector failure that the audit pass continues past."""
    (log or logger).error("Audit phase step failed", extra={
        "event_type": "audit_phase_error",
        "phase": phase,
        "target": target,
        "error_type": type(error).__name__,
        "error_message": str(error)
    })


def log_script_error(error: Exception, statement_index: int, log: Optional[logging.Logger] = None):
    """Log a failed script statement."""
    (log or logger).error("Script statement failed", extra={
        "event_type": "script_error",
        "statement_index": statement_index,
        "error_type": type(error).__name__,
        "error_message": str(error)
    })


def log_api_request(method: str, path: str, status_code: int, duration_ms: float):
    """Log API request metrics."""
    logger.info("API request", extra={
        "event_type": "api_request",
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms
    })


def log_database_error(error: Exception, query_context: str = None):
    """Log database error with context."""
    logger.error("Database error", extra={
        "event_type": "database_error",
        "error_type": type(error).__name__,
        "error_message": str(error),
        "query_context": query_context
    }, exc_info=True)
