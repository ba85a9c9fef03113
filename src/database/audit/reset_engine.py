"""
Schema Reset Engine
===================

Drops every table of the audited schema except the anomaly log, so a new
script can be applied to a clean slate.

One attempt runs inside a single transaction:

    START -> LOCK_ACQUIRED -> CONSTRAINTS_DISABLED -> TABLES_DROPPED
          -> CONSTRAINTS_RESTORED -> COMMITTED
    (any state) -> ROLLED_BACK

Foreign keys and triggers are disabled before the drops because dropping
interdependent tables one by one is not order-safe otherwise. The deadlock
priority and catalog lock reduce contention with concurrent audits but
cannot rule it out, so a failed attempt is rolled back and the whole attempt
is retried, up to a fixed budget.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine
from tenacity import wait_exponential

from utils.config import ANOMALY_TABLE, RESET_MAX_ATTEMPTS, RESET_RETRY_BACKOFF_SECONDS
from utils.logger import logger as default_logger, log_reset_attempt, log_reset_complete
from utils.retry import with_retries
from .dialects import SchemaDialect, get_dialect_for_engine
from .errors import ResetFailed


class ResetState(str, enum.Enum):
    """Progress of one reset attempt."""
    START = "START"
    LOCK_ACQUIRED = "LOCK_ACQUIRED"
    CONSTRAINTS_DISABLED = "CONSTRAINTS_DISABLED"
    TABLES_DROPPED = "TABLES_DROPPED"
    CONSTRAINTS_RESTORED = "CONSTRAINTS_RESTORED"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass
class ResetResult:
    """Outcome of a successful reset."""

    attempts: int
    dropped_tables: List[str] = field(default_factory=list)


class ResetEngine:
    """Transactional, retrying drop of every table except the anomaly log."""

    def __init__(
        self,
        engine: Engine,
        dialect: Optional[SchemaDialect] = None,
        anomaly_table: str = ANOMALY_TABLE,
        schema: Optional[str] = None,
        max_attempts: int = RESET_MAX_ATTEMPTS,
        retry_wait=None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            engine: Engine bound to the audited database
            dialect: Dialect adapter (resolved from the engine if omitted)
            anomaly_table: Table that survives the reset
            schema: Schema to clear (None = default schema)
            max_attempts: Total attempts before ResetFailed
            retry_wait: tenacity wait strategy between attempts
                (default: exponential backoff capped at 10 seconds)
            logger: Logger for progress messages
        """
        self.engine = engine
        self.dialect = dialect or get_dialect_for_engine(engine)
        self.anomaly_table = anomaly_table
        self.schema = schema
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait if retry_wait is not None else wait_exponential(
            multiplier=RESET_RETRY_BACKOFF_SECONDS, max=10
        )
        self.logger = logger or default_logger
        self.state_history: List[ResetState] = []
        self.attempts = 0

    @property
    def last_state(self) -> Optional[ResetState]:
        """State reached by the most recent attempt."""
        return self.state_history[-1] if self.state_history else None

    def reset(self) -> ResetResult:
        """
        Drop every table except the anomaly log.

        Returns:
            ResetResult with the attempt count and the dropped tables

        Raises:
            ResetFailed: If every attempt failed
        """
        self.logger.warning(f'Dropping all tables except "{self.anomaly_table}"...')
        self.state_history = []
        self.attempts = 0

        try:
            dropped = with_retries(
                self._attempt,
                max_attempts=self.max_attempts,
                wait=self.retry_wait,
                before_attempt=self._before_attempt,
                after_failure=self._after_failure,
            )
        except Exception as e:
            self.logger.error(
                f"Schema reset failed after {self.attempts} attempt(s)",
                extra={"event_type": "reset_failed", "attempts": self.attempts},
            )
            raise ResetFailed(self.attempts, e) from e

        log_reset_complete(self.attempts, len(dropped), log=self.logger)
        return ResetResult(attempts=self.attempts, dropped_tables=dropped)

    def _before_attempt(self, attempt: int) -> None:
        self.attempts = attempt
        log_reset_attempt(attempt, self.max_attempts, log=self.logger)

    def _after_failure(self, attempt: int, error: BaseException) -> None:
        self.logger.error(f"Reset attempt {attempt} failed: {error}", extra={
            "event_type": "reset_attempt_failed",
            "attempt": attempt,
            "error_type": type(error).__name__,
        })

    def _enter(self, state: ResetState) -> None:
        self.state_history.append(state)

    def _execute_all(self, conn: Connection, statements: List[str]) -> None:
        for statement in statements:
            conn.exec_driver_sql(statement)

    def list_droppable_tables(self, conn: Connection) -> List[str]:
        """Base tables of the schema except the anomaly log."""
        names = inspect(conn).get_table_names(schema=self.schema)
        return [name for name in names if name != self.anomaly_table]

    def _attempt(self) -> List[str]:
        self._enter(ResetState.START)
        with self.engine.connect() as conn:
            try:
                with conn.begin():
                    self._execute_all(conn, self.dialect.deadlock_priority_statements())
                    self._execute_all(conn, self.dialect.catalog_lock_statements())
                    self._enter(ResetState.LOCK_ACQUIRED)

                    tables = self.list_droppable_tables(conn)
                    if tables:
                        self._drop_tables(conn, tables)
                    else:
                        self.logger.info("No tables to drop")
            except BaseException:
                self._enter(ResetState.ROLLED_BACK)
                raise

        self._enter(ResetState.COMMITTED)
        return tables

    def _drop_tables(self, conn: Connection, tables: List[str]) -> None:
        self.logger.info("Disabling foreign key constraints and triggers...")
        self._execute_all(conn, self.dialect.disable_constraints_statements())
        self._enter(ResetState.CONSTRAINTS_DISABLED)

        for table in tables:
            self.logger.info(f"Dropping table: {table}")
            conn.exec_driver_sql(self.dialect.drop_table_statement(table))
        self._enter(ResetState.TABLES_DROPPED)

        self.logger.info("Re-enabling foreign key constraints and triggers...")
        self._execute_all(conn, self.dialect.enable_constraints_statements())
        self._enter(ResetState.CONSTRAINTS_RESTORED)
