"""
Schema Audit Engine
===================

Applies a schema script to a clean database and audits the result for
structural anomalies. Findings are recorded, never raised.

Components:
- dialects.py: Identifier quoting and per-backend SQL for the reset
- introspector.py: Tables, columns and declared foreign keys from the catalog
- relationship_discovery.py: Naming heuristic for undeclared foreign keys
- referential_integrity.py: Orphan values behind declared foreign keys
- crud_probe.py: Sacrificial INSERT that checks constraint enforcement
- anomaly_collector.py: Durable, clearable anomaly log
- reset_engine.py: Transactional, retrying drop of every user table
- script_loader.py: Script cleaning and batch splitting
- audit_service.py: Upload and analysis orchestration
- report.py: Plain-text anomaly report

Usage:
    from database.audit import SchemaAuditService

    service = SchemaAuditService(engine, session_factory)
    service.upload_script(script)
    service.analyze()
    print(service.generate_report())

Anomaly types:
- FK_MISSING: column named like a foreign key without a declared constraint
- REFERENTIAL_INTEGRITY: child value with no matching parent row
- CRUD_ANOMALY: probe INSERT rejected by the database
"""

from .errors import (
    AuditError, IntrospectionError, EmptyScriptError, ExecutionError, ResetFailed, is_fatal
)
from .dialects import SchemaDialect, get_dialect, get_dialect_for_engine, supported_dialects
from .introspector import ForeignKey, SchemaIntrospector
from .anomaly_collector import AnomalyCollector
from .relationship_discovery import RelationshipDiscoverer
from .referential_integrity import ReferentialIntegrityChecker
from .crud_probe import CrudAnomalyProber
from .reset_engine import ResetEngine, ResetResult, ResetState
from .script_loader import clean_script, split_batches, prepare_statements
from .report import generate_text_report, summarize
from .audit_service import SchemaAuditService

__all__ = [
    "AuditError",
    "IntrospectionError",
    "EmptyScriptError",
    "ExecutionError",
    "ResetFailed",
    "is_fatal",
    "SchemaDialect",
    "get_dialect",
    "get_dialect_for_engine",
    "supported_dialects",
    "ForeignKey",
    "SchemaIntrospector",
    "AnomalyCollector",
    "RelationshipDiscoverer",
    "ReferentialIntegrityChecker",
    "CrudAnomalyProber",
    "ResetEngine",
    "ResetResult",
    "ResetState",
    "clean_script",
    "split_batches",
    "prepare_statements",
    "generate_text_report",
    "summarize",
    "SchemaAuditService",
]
