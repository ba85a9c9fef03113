"""
Referential Integrity Checker
=============================

For every declared foreign key, finds child rows whose (non-null) key value
has no matching row in the referenced table, grouped by the orphan value.

Each orphan group becomes one REFERENTIAL_INTEGRITY anomaly carrying the
value and how many child rows hold it. Foreign keys are read fresh from the
catalog on every run.
"""

import logging
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from models import AnomalyType
from utils.logger import logger as default_logger, log_audit_phase_error
from .anomaly_collector import AnomalyCollector
from .dialects import SchemaDialect, get_dialect_for_engine
from .errors import IntrospectionError, is_fatal
from .introspector import ForeignKey, SchemaIntrospector


class ReferentialIntegrityChecker:
    """Emits REFERENTIAL_INTEGRITY anomalies for orphaned foreign key values."""

    def __init__(
        self,
        engine: Engine,
        introspector: SchemaIntrospector,
        collector: AnomalyCollector,
        dialect: Optional[SchemaDialect] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.engine = engine
        self.introspector = introspector
        self.collector = collector
        self.dialect = dialect or get_dialect_for_engine(engine)
        self.logger = logger or default_logger

    def check(self) -> int:
        """
        Check every declared foreign key.

        A failing orphan query is logged and the remaining keys are still
        checked. Only a lost connection propagates.

        Returns:
            Number of REFERENTIAL_INTEGRITY anomalies recorded
        """
        self.logger.info("Checking referential integrity...")

        try:
            foreign_keys = self.introspector.list_all_foreign_keys()
        except IntrospectionError as e:
            if is_fatal(e):
                raise
            log_audit_phase_error(e, "referential_integrity", log=self.logger)
            return 0

        recorded = 0
        for fk in foreign_keys:
            try:
                recorded += self._check_foreign_key(fk)
            except SQLAlchemyError as e:
                if is_fatal(e):
                    raise
                log_audit_phase_error(
                    e, "referential_integrity",
                    target=f"{fk.table}.{fk.column}", log=self.logger
                )

        self.logger.info(
            f"Referential integrity check found {recorded} orphan groups "
            f"across {len(foreign_keys)} foreign key columns"
        )
        return recorded

    def find_orphans(self, fk: ForeignKey) -> List[tuple]:
        """Return (orphan value, occurrence count) pairs for one foreign key."""
        query = self.dialect.orphan_values_query(
            fk.table, fk.column, fk.referenced_table, fk.referenced_column
        )
        with self.engine.connect() as conn:
            rows = conn.exec_driver_sql(query).mappings().fetchall()
        return [(row["orphan_value"], int(row["count_orphans"])) for row in rows]

    def _check_foreign_key(self, fk: ForeignKey) -> int:
        orphans = self.find_orphans(fk)

        for value, count in orphans:
            self.collector.add(
                AnomalyType.REFERENTIAL_INTEGRITY,
                description=(
                    f"Orphan value in {fk.table}.{fk.column} "
                    f"(no match in {fk.referenced_table}.{fk.referenced_column})"
                ),
                affected_table=fk.table,
                affected_data=f"Value: {value}, Occurrences: {count}",
            )

        return len(orphans)
