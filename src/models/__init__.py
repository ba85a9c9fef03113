# Schema Anomaly Auditor - Models Package

# Import all ORM models to register them with SQLAlchemy's declarative base
from .base import Base
from .orm_anomaly import Anomaly, AnomalyType

__all__ = [
    'Base',
    'Anomaly',
    'AnomalyType',
]
