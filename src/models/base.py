"""
SQLAlchemy ORM Base Configuration
Provides the declarative base for ORM models.

Sessions are created from database.connection.DatabaseConnection so the
anomaly log always shares the audited database's engine.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass
