"""
Anomaly Collector
=================

Append-only, clearable store the detectors write their findings to and the
reporting layer reads from. Each call runs in its own short session that is
committed before returning, so records are durable as soon as they are added.

Returned Anomaly objects are detached from their session and safe to read
after the call.
"""

import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from database.repositories.anomaly_repository import AnomalyRepository
from models import Anomaly, AnomalyType
from utils.logger import logger as default_logger, log_anomaly_recorded


class AnomalyCollector:
    """Records anomalies for the current audit pass."""

    def __init__(self, session_factory: Callable[[], Session],
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            session_factory: Callable returning a new ORM Session
                (e.g. a sessionmaker bound to the audited database)
            logger: Logger for recorded anomalies (defaults to module logger)
        """
        self.session_factory = session_factory
        self.logger = logger or default_logger

    def add(
        self,
        anomaly_type: AnomalyType,
        description: str,
        affected_table: str,
        affected_data: Optional[str] = None,
    ) -> Anomaly:
        """Append one anomaly and return the stored record."""
        type_value = anomaly_type.value if isinstance(anomaly_type, AnomalyType) else str(anomaly_type)

        with self.session_factory() as session:
            with session.begin():
                anomaly = AnomalyRepository(session).add(
                    type_value, description, affected_table, affected_data
                )
                session.expunge(anomaly)

        log_anomaly_recorded(type_value, description, affected_table, affected_data, log=self.logger)
        return anomaly

    def list(self) -> List[Anomaly]:
        """All anomalies in insertion order."""
        with self.session_factory() as session:
            anomalies = AnomalyRepository(session).list_all()
            session.expunge_all()
        return anomalies

    def clear(self) -> int:
        """Delete every anomaly. Returns the number removed."""
        with self.session_factory() as session:
            with session.begin():
                removed = AnomalyRepository(session).delete_all()
        if removed:
            self.logger.info(f"Cleared {removed} anomalies")
        return removed

    def count_by_type(self) -> Dict[str, int]:
        """Return {anomaly type: count} for the stored anomalies."""
        with self.session_factory() as session:
            return AnomalyRepository(session).count_by_type()
