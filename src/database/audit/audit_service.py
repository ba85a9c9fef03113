"""
Schema Audit Service
====================

Sequences one audit of a user-supplied schema script:

    upload_script(script):
        clear anomalies -> reset schema -> sanitize script -> execute statements
        -> clear anomalies
    analyze():
        clear anomalies -> relationship discovery -> referential integrity
        -> CRUD probe

Batches are split into single statements by the dialect (SQL Server runs
each batch whole) and committed one at a time. A failing statement aborts the
upload with ExecutionError and leaves the statements before it applied;
scripts mixing DDL and batches cannot be wrapped in a single transaction on
every backend.

Only one upload or analysis runs at a time per service instance.

Usage:
    from database.audit import SchemaAuditService

    service = SchemaAuditService(engine, session_factory)
    service.upload_script(open("schema.sql").read())
    service.analyze()
    for anomaly in service.list_anomalies():
        print(anomaly.type, anomaly.description)
"""

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Anomaly, Base
from utils.config import SCRIPT_BATCH_SEPARATOR
from utils.logger import logger as default_logger, log_audit_phase_error, log_script_error
from .anomaly_collector import AnomalyCollector
from .crud_probe import CrudAnomalyProber
from .dialects import SchemaDialect, get_dialect_for_engine
from .errors import EmptyScriptError, ExecutionError, is_fatal
from .introspector import SchemaIntrospector
from .referential_integrity import ReferentialIntegrityChecker
from .relationship_discovery import RelationshipDiscoverer
from .report import generate_text_report
from .reset_engine import ResetEngine, ResetResult
from .script_loader import prepare_statements


class SchemaAuditService:
    """Entry point used by the API and the command line."""

    def __init__(
        self,
        engine: Engine,
        session_factory: Callable[[], Session],
        dialect: Optional[SchemaDialect] = None,
        schema: Optional[str] = None,
        reset_engine: Optional[ResetEngine] = None,
        prober: Optional[CrudAnomalyProber] = None,
        batch_separator: str = SCRIPT_BATCH_SEPARATOR,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            engine: Engine bound to the audited database
            session_factory: Callable returning ORM sessions on the same database
            dialect: Dialect adapter (resolved from the engine if omitted)
            schema: Schema to audit (None = default schema)
            reset_engine: Custom reset engine (e.g. with a different retry budget)
            prober: Custom CRUD prober (e.g. a different probe table)
            batch_separator: Line that separates script batches
            logger: Logger shared by every component
        """
        self.engine = engine
        self.dialect = dialect or get_dialect_for_engine(engine)
        self.logger = logger or default_logger
        self.batch_separator = batch_separator

        self.collector = AnomalyCollector(session_factory, logger=self.logger)
        self.introspector = SchemaIntrospector(engine, schema=schema)
        self.reset_engine = reset_engine or ResetEngine(
            engine, dialect=self.dialect, schema=schema, logger=self.logger
        )
        self.discoverer = RelationshipDiscoverer(self.introspector, self.collector, logger=self.logger)
        self.integrity_checker = ReferentialIntegrityChecker(
            engine, self.introspector, self.collector, dialect=self.dialect, logger=self.logger
        )
        self.prober = prober or CrudAnomalyProber(
            engine, self.collector, dialect=self.dialect, logger=self.logger
        )

        self._lock = threading.Lock()
        self._anomaly_table_ready = False

    # =========================================================================
    # Script upload
    # =========================================================================

    def upload_script(self, script: str) -> int:
        """
        Replace the audited schema with the one built by ``script``.

        Returns:
            Number of statements executed

        Raises:
            EmptyScriptError: If the script has nothing to execute
            ResetFailed: If the old schema could not be cleared
            ExecutionError: If a statement failed (earlier ones stay applied)
        """
        if not script or not script.strip():
            raise EmptyScriptError("No script received")

        with self._lock:
            self.logger.info("Starting script execution...")
            self._ensure_anomaly_table()
            self.collector.clear()

            result: ResetResult = self.reset_engine.reset()
            self.logger.info(f"Reset dropped {len(result.dropped_tables)} tables in {result.attempts} attempt(s)")

            statements = [
                statement
                for batch in prepare_statements(script, self.batch_separator)
                for statement in self.dialect.split_batch(batch)
            ]
            if not statements:
                raise EmptyScriptError("Script contains no executable statements after cleaning")

            self._execute_statements(statements)
            self.logger.info(f"Script executed successfully ({len(statements)} statements)")

            self.collector.clear()
            return len(statements)

    def upload_file(self, path) -> int:
        """Read a UTF-8 script file and upload it."""
        script = Path(path).read_text(encoding="utf-8")
        self.logger.info(f"Uploading script file: {path}")
        return self.upload_script(script)

    def _execute_statements(self, statements: List[str]) -> None:
        with self.engine.connect() as conn:
            for index, statement in enumerate(statements):
                try:
                    with conn.begin():
                        conn.exec_driver_sql(statement)
                except SQLAlchemyError as e:
                    log_script_error(e, index, log=self.logger)
                    raise ExecutionError(index, e, statement) from e

    def _ensure_anomaly_table(self) -> None:
        if not self._anomaly_table_ready:
            Base.metadata.create_all(self.engine, tables=[Anomaly.__table__])
            self._anomaly_table_ready = True

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze(self) -> None:
        """
        Run one audit pass over the current schema.

        Each phase runs even if the previous one failed, unless the failure
        means the database connection is gone.
        """
        with self._lock:
            self._ensure_anomaly_table()
            self.collector.clear()

            self._run_phase("relationship_discovery", self.discoverer.discover)
            self._run_phase("referential_integrity", self.integrity_checker.check)
            self._run_phase("crud_probe", self.prober.probe)

            self.logger.info("Analysis finished", extra={
                "event_type": "analysis_complete",
                "anomaly_counts": self.collector.count_by_type(),
            })

    def _run_phase(self, phase: str, step: Callable[[], object]) -> None:
        try:
            step()
        except Exception as e:
            if is_fatal(e):
                self.logger.error(f"Audit pass aborted in {phase}: connection lost")
                raise
            log_audit_phase_error(e, phase, log=self.logger)

    # =========================================================================
    # Anomalies
    # =========================================================================

    def list_anomalies(self) -> List[Anomaly]:
        """Anomalies recorded by the last pass, oldest first."""
        return self.collector.list()

    def clear_anomalies(self) -> int:
        """Delete every recorded anomaly."""
        return self.collector.clear()

    def generate_report(self) -> str:
        """Plain-text report of the recorded anomalies."""
        return generate_text_report(self.list_anomalies())
