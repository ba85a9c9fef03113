"""
Schema Anomaly Auditor - Audit Service Unit Tests

Tests SchemaAuditService orchestration:
- upload_script(): empty scripts, reset, execution, partial application
- upload_file(): UTF-8 file delegation
- analyze(): phase order, isolation of ordinary errors, fatal errors
"""

import pytest
from unittest.mock import MagicMock, patch
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from database.audit.errors import EmptyScriptError, ExecutionError, ResetFailed
from database.audit.reset_engine import ResetEngine
from database.connection import DatabaseConnectionError
from models import AnomalyType


def _tables(engine):
    return sorted(inspect(engine).get_table_names())


class TestUploadScript:
    """Test upload_script()."""

    @pytest.mark.parametrize("script", ["", "   ", "\n\t\n"])
    def test_empty_script_is_rejected_before_reset(self, service, script):
        with patch.object(service.reset_engine, "reset") as mock_reset:
            with pytest.raises(EmptyScriptError):
                service.upload_script(script)

        mock_reset.assert_not_called()

    def test_script_with_nothing_executable_is_rejected(self, service):
        with pytest.raises(EmptyScriptError):
            service.upload_script("-- only a comment\nGO\nUSE Shop\nGO\n")

    def test_applies_statements_and_returns_count(self, service, engine):
        executed = service.upload_script(
            "CREATE TABLE Customers (CustomerID INTEGER PRIMARY KEY);\nGO\n"
            "CREATE TABLE Orders (OrderID INTEGER PRIMARY KEY);\nGO\n"
        )

        assert executed == 2
        assert _tables(engine) == ["Anomaly", "Customers", "Orders"]

    def test_replaces_previous_schema(self, service, engine):
        service.upload_script("CREATE TABLE Old (OldKey INTEGER);")

        service.upload_script("CREATE TABLE New (NewKey INTEGER);")

        assert _tables(engine) == ["Anomaly", "New"]

    def test_clears_anomalies_after_upload(self, service):
        service.collector.add(AnomalyType.FK_MISSING, "stale", "Old")

        service.upload_script("CREATE TABLE Things (ThingKey INTEGER);")

        assert service.list_anomalies() == []

    def test_failing_statement_raises_execution_error(self, service, engine):
        script = (
            "CREATE TABLE First (FirstKey INTEGER);\nGO\n"
            "CREATE TABLE Broken (;\nGO\n"
            "CREATE TABLE Third (ThirdKey INTEGER);\nGO\n"
        )

        with pytest.raises(ExecutionError) as exc_info:
            service.upload_script(script)

        assert exc_info.value.statement_index == 1
        assert "Broken" in exc_info.value.statement
        assert isinstance(exc_info.value.__cause__, OperationalError)
        # Earlier statements stay applied
        assert _tables(engine) == ["Anomaly", "First"]

    def test_failed_upload_leaves_no_anomalies_from_previous_pass(self, service, undeclared_fk_script):
        service.upload_script(undeclared_fk_script)
        service.analyze()
        assert service.list_anomalies()

        with pytest.raises(ExecutionError):
            service.upload_script("CREATE TABLE Ok (OkKey INTEGER);\nGO\nCREATE TABLE (;\nGO\n")

        assert service.list_anomalies() == []

    def test_failed_reset_leaves_no_anomalies_from_previous_pass(self, service):
        service.collector.add(AnomalyType.FK_MISSING, "stale", "Old")

        with patch.object(service.reset_engine, "reset", side_effect=ResetFailed(3, RuntimeError("locked"))):
            with pytest.raises(ResetFailed):
                service.upload_script("CREATE TABLE Things (ThingKey INTEGER);")

        assert service.list_anomalies() == []

    def test_script_without_batch_separators_runs_each_statement(self, service, engine):
        executed = service.upload_script(
            "CREATE TABLE A (x INTEGER);\n"
            "CREATE TABLE B (y INTEGER);\n"
            "INSERT INTO A (x) VALUES (1);\n"
        )

        assert executed == 3
        assert _tables(engine) == ["A", "Anomaly", "B"]

    def test_statement_index_counts_statements_within_a_batch(self, service):
        with pytest.raises(ExecutionError) as exc_info:
            service.upload_script("CREATE TABLE A (x INTEGER);\nCREATE TABLE (;\n")

        assert exc_info.value.statement_index == 1

    def test_reset_failure_propagates(self, service):
        with patch.object(service.reset_engine, "reset", side_effect=ResetFailed(3, RuntimeError("locked"))):
            with pytest.raises(ResetFailed) as exc_info:
                service.upload_script("CREATE TABLE Things (ThingKey INTEGER);")

        assert exc_info.value.attempts == 3

    def test_creates_anomaly_table_when_missing(self, engine, session_factory, mock_logger):
        from database.audit import SchemaAuditService
        from models import Anomaly
        from tenacity import wait_none

        Anomaly.__table__.drop(engine)
        service = SchemaAuditService(
            engine, session_factory,
            reset_engine=ResetEngine(engine, retry_wait=wait_none(), logger=mock_logger),
            logger=mock_logger,
        )

        service.upload_script("CREATE TABLE Things (ThingKey INTEGER);")

        assert "Anomaly" in _tables(engine)


class TestUploadFile:
    """Test upload_file()."""

    def test_reads_utf8_file(self, service, engine, tmp_path):
        script_file = tmp_path / "schema.sql"
        script_file.write_text(
            "-- Café schema\nCREATE TABLE Cafés (CaféID INTEGER);\nGO\n", encoding="utf-8"
        )

        assert service.upload_file(script_file) == 1
        assert "Cafés" in _tables(engine)

    def test_missing_file_raises(self, service, tmp_path):
        with pytest.raises(FileNotFoundError):
            service.upload_file(tmp_path / "missing.sql")


class TestAnalyze:
    """Test analyze()."""

    def test_runs_phases_in_order(self, service):
        calls = []
        service.discoverer = MagicMock(discover=lambda: calls.append("discover"))
        service.integrity_checker = MagicMock(check=lambda: calls.append("check"))
        service.prober = MagicMock(probe=lambda: calls.append("probe"))

        service.analyze()

        assert calls == ["discover", "check", "probe"]

    def test_clears_previous_pass(self, service):
        service.collector.add(AnomalyType.FK_MISSING, "stale", "Old")
        service.prober = MagicMock()

        service.analyze()

        assert [a.description for a in service.list_anomalies()] == []

    def test_ordinary_phase_error_does_not_stop_later_phases(self, service, mock_logger):
        service.discoverer = MagicMock()
        service.discoverer.discover.side_effect = RuntimeError("unexpected")
        service.integrity_checker = MagicMock()
        service.prober = MagicMock()

        service.analyze()

        service.integrity_checker.check.assert_called_once()
        service.prober.probe.assert_called_once()
        mock_logger.error.assert_called()

    def test_lost_connection_stops_the_pass(self, service):
        error = OperationalError("SELECT", {}, Exception("server has gone away"), connection_invalidated=True)
        service.discoverer = MagicMock()
        service.discoverer.discover.side_effect = error
        service.integrity_checker = MagicMock()
        service.prober = MagicMock()

        with pytest.raises(OperationalError):
            service.analyze()

        service.integrity_checker.check.assert_not_called()
        service.prober.probe.assert_not_called()

    def test_connection_error_in_cause_chain_is_fatal(self, service):
        error = RuntimeError("wrapped")
        error.__cause__ = DatabaseConnectionError("no route to host")
        service.discoverer = MagicMock()
        service.integrity_checker = MagicMock()
        service.integrity_checker.check.side_effect = error
        service.prober = MagicMock()

        with pytest.raises(RuntimeError):
            service.analyze()

        service.prober.probe.assert_not_called()


class TestAnomalyAccess:
    """Test list_anomalies(), clear_anomalies() and generate_report()."""

    def test_clear_anomalies(self, service):
        service.collector.add(AnomalyType.FK_MISSING, "one", "A")

        assert service.clear_anomalies() == 1
        assert service.list_anomalies() == []

    def test_generate_report_lists_anomalies(self, service):
        service.collector.add(AnomalyType.CRUD_ANOMALY, "INSERT failed (possible missing FK target).", "SomeTable")

        report = service.generate_report()

        assert "===== DATABASE ANOMALIES REPORT =====" in report
        assert "Type: CRUD_ANOMALY" in report
        assert "Table: SomeTable" in report
