"""
SQLAlchemy ORM Models: Anomaly
One row per finding recorded by an audit pass.
"""

from sqlalchemy import Integer, String, DateTime, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional
import enum

from utils.config import ANOMALY_TABLE
from .base import Base


class AnomalyType(str, enum.Enum):
    """Kinds of findings an audit pass can record."""
    FK_MISSING = "FK_MISSING"
    REFERENTIAL_INTEGRITY = "REFERENTIAL_INTEGRITY"
    CRUD_ANOMALY = "CRUD_ANOMALY"


class Anomaly(Base):
    """
    Anomaly log entry.

    This table survives every schema reset; all other tables in the
    audited schema are dropped before a new script is applied.
    """
    __tablename__ = ANOMALY_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    affected_table: Mapped[str] = mapped_column(String(255), nullable=False)
    affected_data: Mapped[Optional[str]] = mapped_column(Text)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.now,
        server_default=func.now()
    )

    def to_dict(self) -> dict:
        """JSON-serializable representation for the API and CLI."""
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "affected_table": self.affected_table,
            "affected_data": self.affected_data,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self) -> str:
        return f"<Anomaly(id={self.id}, type={self.type}, table={self.affected_table})>"
