"""
Heuristic Relationship Discovery
================================

Flags columns that look like foreign keys but are not declared as such.

Naming convention used:
    <Stem>ID  ->  table <Stem>s       (e.g. Orders.CustomerID -> Customers)

The suffix match is case-sensitive and the candidate table name must match
exactly. This is a heuristic: false positives are expected and accepted.
"""

import logging
from typing import Optional

from models import AnomalyType
from utils.logger import logger as default_logger, log_audit_phase_error
from .anomaly_collector import AnomalyCollector
from .errors import IntrospectionError, is_fatal
from .introspector import SchemaIntrospector

FK_COLUMN_SUFFIX = "ID"
TABLE_PLURAL_SUFFIX = "s"


def candidate_table_for(column: str) -> Optional[str]:
    """
    Return the table a column name points to by convention, or None.

    >>> candidate_table_for("UserID")
    'Users'
    >>> candidate_table_for("UserName") is None
    True
    """
    if not column.endswith(FK_COLUMN_SUFFIX):
        return None
    return column[:-len(FK_COLUMN_SUFFIX)] + TABLE_PLURAL_SUFFIX


class RelationshipDiscoverer:
    """Emits FK_MISSING anomalies for undeclared, convention-named references."""

    def __init__(self, introspector: SchemaIntrospector, collector: AnomalyCollector,
                 logger: Optional[logging.Logger] = None):
        self.introspector = introspector
        self.collector = collector
        self.logger = logger or default_logger

    def discover(self) -> int:
        """
        Scan every user table. Catalog failures are logged, not raised.

        Returns:
            Number of FK_MISSING anomalies recorded
        """
        self.logger.info("Discovering potential relationships...")

        try:
            tables = self.introspector.list_user_tables()
        except IntrospectionError as e:
            if is_fatal(e):
                raise
            log_audit_phase_error(e, "relationship_discovery", log=self.logger)
            return 0

        table_names = set(tables)
        recorded = 0

        for table in tables:
            try:
                recorded += self._discover_in_table(table, table_names)
            except IntrospectionError as e:
                if is_fatal(e):
                    raise
                log_audit_phase_error(e, "relationship_discovery", target=table, log=self.logger)

        self.logger.info(f"Relationship discovery found {recorded} potential missing FKs")
        return recorded

    def _discover_in_table(self, table: str, table_names: set) -> int:
        fk_columns = self.introspector.list_existing_foreign_key_columns(table)
        recorded = 0

        for column in self.introspector.list_columns(table):
            if column in fk_columns:
                continue
            candidate = candidate_table_for(column)
            if candidate is None or candidate not in table_names:
                continue

            self.collector.add(
                AnomalyType.FK_MISSING,
                description=f"Possible missing FK: {table}.{column} -> {candidate}",
                affected_table=table,
                affected_data=f"Column: {column}, Reference: {candidate}",
            )
            recorded += 1

        return recorded

