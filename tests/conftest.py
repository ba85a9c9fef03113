"""
Schema Anomaly Auditor - pytest Configuration and Fixtures

Provides shared test fixtures for:
- In-memory SQLite engines (with and without foreign key enforcement)
- ORM session factory, anomaly collector and audit service
- Sample schema scripts
- A mock logger for asserting log calls

SQLite engines use a StaticPool, so every component shares one in-memory
database for the duration of a test.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm import sessionmaker

# Add src to path for imports
backend_src = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(backend_src.absolute()))

from database.connection import create_sqlite_engine
from database.audit import AnomalyCollector, ResetEngine, SchemaAuditService
from models import Base
from tenacity import wait_none


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite engine with foreign keys enforced."""
    engine = create_sqlite_engine("sqlite://", foreign_keys=True)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def lenient_engine():
    """
    In-memory SQLite engine without foreign key enforcement.

    Lets tests insert orphan rows behind declared foreign keys.
    """
    engine = create_sqlite_engine("sqlite://", foreign_keys=False)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def lenient_session_factory(lenient_engine):
    return sessionmaker(bind=lenient_engine, expire_on_commit=False)


# ============================================================================
# Component Fixtures
# ============================================================================

@pytest.fixture
def mock_logger():
    """Logger double for asserting on log calls."""
    return MagicMock()


@pytest.fixture
def collector(session_factory, mock_logger):
    return AnomalyCollector(session_factory, logger=mock_logger)


@pytest.fixture
def lenient_collector(lenient_session_factory, mock_logger):
    return AnomalyCollector(lenient_session_factory, logger=mock_logger)


@pytest.fixture
def service(engine, session_factory, mock_logger):
    """Audit service on the strict engine with no wait between reset attempts."""
    reset_engine = ResetEngine(engine, retry_wait=wait_none(), logger=mock_logger)
    return SchemaAuditService(engine, session_factory, reset_engine=reset_engine, logger=mock_logger)


@pytest.fixture
def lenient_service(lenient_engine, lenient_session_factory, mock_logger):
    """Audit service on the lenient engine (orphan rows allowed)."""
    reset_engine = ResetEngine(lenient_engine, retry_wait=wait_none(), logger=mock_logger)
    return SchemaAuditService(
        lenient_engine, lenient_session_factory, reset_engine=reset_engine, logger=mock_logger
    )


# ============================================================================
# Sample Scripts
# ============================================================================

@pytest.fixture
def orders_script():
    """
    Export-style script with a declared foreign key and an orphan order.

    Orders.CustomerID -> Customers.CustomerID is declared; CustomerID 999
    has no matching customer.
    """
    return """
CREATE DATABASE Shop;
GO
USE Shop;
GO
-- customers
CREATE TABLE Customers (
    CustomerID INTEGER PRIMARY KEY,
    Name VARCHAR(100)
);
GO
CREATE TABLE Orders (
    OrderID INTEGER PRIMARY KEY,
    CustomerID INTEGER REFERENCES Customers(CustomerID)
);
GO
INSERT INTO Customers (CustomerID, Name) VALUES (1, 'Ada');
GO
INSERT INTO Orders (OrderID, CustomerID) VALUES (10, 1);
GO
INSERT INTO Orders (OrderID, CustomerID) VALUES (11, 999);
GO
"""


@pytest.fixture
def undeclared_fk_script():
    """Products.CategoryID matches table Categorys but has no constraint."""
    return """
CREATE TABLE Categorys (
    CategoryID INTEGER PRIMARY KEY
);
GO
CREATE TABLE Products (
    ProductID INTEGER PRIMARY KEY,
    CategoryID INTEGER
);
GO
"""
