"""
CRUD Anomaly Prober
===================

Runs one sacrificial INSERT that should violate a foreign key when
constraints are enforced, inside a transaction that is always rolled back.

Outcomes:
- INSERT raises: expected signal; recorded as CRUD_ANOMALY with the
  driver's error text.
- INSERT succeeds: inconclusive; nothing recorded. Still rolled back.
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from models import AnomalyType
from utils.config import CRUD_PROBE_TABLE, CRUD_PROBE_COLUMN, CRUD_PROBE_VALUE
from utils.logger import logger as default_logger
from .anomaly_collector import AnomalyCollector
from .dialects import SchemaDialect, get_dialect_for_engine
from .errors import is_fatal


class CrudAnomalyProber:
    """Checks whether constraint enforcement is active."""

    def __init__(
        self,
        engine: Engine,
        collector: AnomalyCollector,
        dialect: Optional[SchemaDialect] = None,
        table: str = CRUD_PROBE_TABLE,
        column: str = CRUD_PROBE_COLUMN,
        value: int = CRUD_PROBE_VALUE,
        logger: Optional[logging.Logger] = None,
    ):
        self.engine = engine
        self.collector = collector
        self.dialect = dialect or get_dialect_for_engine(engine)
        self.table = table
        self.column = column
        self.value = value
        self.logger = logger or default_logger

    def probe(self) -> bool:
        """
        Run the probe.

        Returns:
            True if the INSERT failed and a CRUD_ANOMALY was recorded,
            False if it succeeded (inconclusive)
        """
        self.logger.info("Checking CRUD anomalies...")
        statement = self.dialect.probe_insert_statement(self.table, self.column, self.value)

        with self.engine.connect() as conn:
            trans = conn.begin()
            try:
                conn.exec_driver_sql(statement)
            except SQLAlchemyError as e:
                if is_fatal(e):
                    self._rollback_after_lost_connection(trans)
                    raise
                error_text = str(getattr(e, "orig", None) or e)
                trans.rollback()
            else:
                error_text = None
                self.logger.info(
                    f"Probe INSERT into {self.table} succeeded; constraint enforcement inconclusive"
                )
                trans.rollback()

        if error_text is None:
            return False

        self.collector.add(
            AnomalyType.CRUD_ANOMALY,
            description="INSERT failed (possible missing FK target).",
            affected_table=self.table,
            affected_data=error_text,
        )
        return True

    def _rollback_after_lost_connection(self, trans) -> None:
        # The connection error being raised must not be replaced by this one
        try:
            trans.rollback()
        except SQLAlchemyError as rollback_error:
            self.logger.warning(f"Probe rollback failed after lost connection: {rollback_error}")
