"""
Error types raised by the schema audit engine.

Anomalies are never raised; they are recorded. These exceptions describe
failures of the engine itself.
"""

from typing import Optional

from sqlalchemy.exc import DBAPIError

from database.connection import DatabaseConnectionError


class AuditError(Exception):
    """Base class for audit engine failures."""
    pass


class IntrospectionError(AuditError):
    """Raised when a catalog metadata query fails."""
    pass


class EmptyScriptError(AuditError):
    """Raised when an uploaded script has nothing to execute."""
    pass


class ExecutionError(AuditError):
    """
    Raised when a script statement fails.

    Statements before ``statement_index`` have already been committed.
    """

    def __init__(self, statement_index: int, cause: BaseException, statement: Optional[str] = None):
        self.statement_index = statement_index
        self.statement = statement
        self.cause = cause
        super().__init__(f"Statement {statement_index} failed: {cause}")


class ResetFailed(AuditError):
    """Raised when the schema reset exhausts its retry budget."""

    def __init__(self, attempts: int, cause: Optional[BaseException] = None):
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Schema reset failed after {attempts} attempt(s): {cause}"
        )


def is_fatal(error: BaseException) -> bool:
    """
    True when ``error`` (or anything in its cause chain) means the database
    connection is gone, so later audit phases cannot run either.
    """
    seen = set()
    current = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, DatabaseConnectionError):
            return True
        if isinstance(current, DBAPIError) and current.connection_invalidated:
            return True
        current = current.__cause__
    return False
