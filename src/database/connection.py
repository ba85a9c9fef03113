"""
Schema Anomaly Auditor - Database Connection Management
Provides the pooled SQLAlchemy engine for the audited database, plus
connection and ORM session context managers.

The audited database and the anomaly log share one engine: the reset
procedure drops every table except the anomaly table, so both live in
the same schema.
"""

from contextlib import contextmanager
from sqlalchemy import create_engine, event, text
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.engine import Engine, Connection, URL, make_url
from sqlalchemy.orm import Session, sessionmaker
from typing import Generator, Optional

from utils.config import (
    DATABASE_URL, DB_DRIVER, DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD,
    DB_POOL_SIZE, DB_POOL_MAX_OVERFLOW, DB_POOL_RECYCLE, DB_POOL_PRE_PING,
    config
)
from utils.logger import logger, log_database_error


class DatabaseConnection:
    """
    Manages connections to the audited database.

    Features:
    - Connection pooling for server databases (5 connections + 10 overflow)
    - Single shared connection for in-memory SQLite (StaticPool)
    - Health checks before connection use (pool_pre_ping)
    """

    def __init__(self, database_url: Optional[str] = None):
        self._database_url = database_url
        self._engine: Engine = None
        self._session_factory: sessionmaker = None

    def _build_url(self):
        url = self._database_url or DATABASE_URL
        if url:
            return make_url(url)
        # URL.create() keeps the password out of logs and reprs
        return URL.create(
            drivername=DB_DRIVER,
            username=DB_USER,
            password=DB_PASSWORD,
            host=DB_HOST,
            port=DB_PORT,
            database=DB_NAME,
        )

    def get_engine(self) -> Engine:
        """
        Get or create the SQLAlchemy engine.

        Returns:
            SQLAlchemy Engine instance

        Raises:
            DatabaseConnectionError: If the engine cannot be created
        """
        if self._engine is None:
            try:
                url = self._build_url()

                if url.get_backend_name() == "sqlite":
                    self._engine = create_sqlite_engine(url)
                else:
                    self._engine = create_engine(
                        url,
                        poolclass=QueuePool,
                        pool_size=DB_POOL_SIZE,
                        max_overflow=DB_POOL_MAX_OVERFLOW,
                        pool_recycle=DB_POOL_RECYCLE,
                        pool_pre_ping=DB_POOL_PRE_PING,
                        echo=False,
                        hide_parameters=True,
                    )

                logger.info("Database engine initialized", extra={
                    "dialect": self._engine.dialect.name,
                    "database": url.database,
                    "environment": config.environment
                })

            except Exception as e:
                log_database_error(e, "Failed to create database engine")
                raise DatabaseConnectionError(f"Failed to create database engine: {e}") from e

        return self._engine

    def get_session_factory(self) -> sessionmaker:
        """Return the ORM session factory bound to this engine."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.get_engine(),
                expire_on_commit=False,  # Allow access to objects after commit
                autoflush=True,
            )
        return self._session_factory

    @contextmanager
    def get_connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success, rolls back on error.

        Example:
            >>> with db.get_connection() as conn:
            ...     conn.execute(text("SELECT 1"))
        """
        engine = self.get_engine()
        connection = engine.connect()
        try:
            yield connection
            connection.commit()
        except Exception as e:
            connection.rollback()
            log_database_error(e, "Transaction failed, rolled back")
            raise
        finally:
            connection.close()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Context manager for ORM sessions.

        Sessions are committed on success or rolled back on error.
        """
        session = self.get_session_factory()()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            log_database_error(e, "ORM transaction failed, rolled back")
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create the anomaly log table if it does not exist yet."""
        from models import Base

        Base.metadata.create_all(self.get_engine())

    def test_connection(self) -> bool:
        """
        Test database connectivity.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            with self.get_connection() as conn:
                result = conn.execute(text("SELECT 1"))
                result.fetchone()
            logger.info("Database connection test successful")
            return True
        except Exception as e:
            logger.error("Database connection test failed", extra={
                "error": str(e)
            })
            return False

    def close(self):
        """Close all connections in the pool."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection pool closed")


class DatabaseConnectionError(Exception):
    """Raised when database connection fails."""
    pass


# Global database connection instance
db = DatabaseConnection()


def get_db_connection():
    """
    Get database connection context manager.

    Example:
        >>> with get_db_connection() as conn:
        ...     result = conn.execute(text("SELECT 1"))
    """
    return db.get_connection()


def test_database_connection() -> bool:
    """Test database connectivity of the global connection."""
    return db.test_connection()


def create_sqlite_engine(url="sqlite://", foreign_keys: bool = True) -> Engine:
    """
    Create a SQLite engine whose transactions also cover DDL.

    pysqlite only opens a transaction before DML on its own, so a DROP TABLE
    would commit immediately. The driver's implicit handling is turned off
    and BEGIN is emitted whenever SQLAlchemy starts a transaction.

    Args:
        url: SQLite URL (default: in-memory database)
        foreign_keys: Enforce foreign keys on every connection
    """
    engine = create_engine(
        url,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
        hide_parameters=True,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        if foreign_keys:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine
