"""
Schema Anomaly Auditor - Anomaly Repository
Append-only, clearable store for anomaly records.
"""

from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, delete, func

from models import Anomaly


class AnomalyRepository:
    """
    Repository for the anomaly log table.

    Implements:
    - Appending anomaly records
    - Listing records in insertion order
    - Deleting every record (between audit passes)
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy ORM session
        """
        self.session = session

    def add(
        self,
        anomaly_type: str,
        description: str,
        affected_table: str,
        affected_data: Optional[str] = None,
    ) -> Anomaly:
        """
        Append an anomaly record.

        Returns:
            The persisted Anomaly (id and timestamp populated)
        """
        anomaly = Anomaly(
            type=anomaly_type,
            description=description,
            affected_table=affected_table,
            affected_data=affected_data,
        )
        self.session.add(anomaly)
        self.session.flush()  # Flush to get the id
        return anomaly

    def list_all(self) -> List[Anomaly]:
        """Return every anomaly, oldest first."""
        stmt = select(Anomaly).order_by(Anomaly.id)
        return list(self.session.scalars(stmt).all())

    def delete_all(self) -> int:
        """Delete every anomaly. Returns the number of rows removed."""
        result = self.session.execute(delete(Anomaly))
        return result.rowcount or 0

    def count_by_type(self) -> Dict[str, int]:
        """Return {anomaly type: count}."""
        stmt = select(Anomaly.type, func.count()).group_by(Anomaly.type)
        return {row[0]: int(row[1]) for row in self.session.execute(stmt).all()}
