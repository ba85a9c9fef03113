"""
Schema Anomaly Auditor - End-to-End Audit Flow

Upload -> analyze -> report against in-memory SQLite, covering:
- An export-style script with an orphaned order
- Undeclared convention-named references
- Back-to-back audits replacing the previous schema and findings
- Anomaly log surviving resets
"""

from sqlalchemy import inspect

from models import AnomalyType


def _by_type(anomalies, anomaly_type):
    return [a for a in anomalies if a.type == anomaly_type]


class TestOrdersAudit:
    """Customers/Orders script with one orphaned order."""

    def test_full_audit(self, lenient_service, orders_script):
        executed = lenient_service.upload_script(orders_script)
        lenient_service.analyze()
        anomalies = lenient_service.list_anomalies()

        # CREATE DATABASE and USE batches are removed before execution
        assert executed == 5

        orphans = _by_type(anomalies, "REFERENTIAL_INTEGRITY")
        assert len(orphans) == 1
        assert orphans[0].description == (
            "Orphan value in Orders.CustomerID (no match in Customers.CustomerID)"
        )
        assert orphans[0].affected_data == "Value: 999, Occurrences: 1"

        missing = {a.description for a in _by_type(anomalies, "FK_MISSING")}
        assert missing == {
            "Possible missing FK: Customers.CustomerID -> Customers",
            "Possible missing FK: Orders.OrderID -> Orders",
        }

        crud = _by_type(anomalies, "CRUD_ANOMALY")
        assert len(crud) == 1
        assert crud[0].affected_table == "SomeTable"

    def test_phases_record_in_order(self, lenient_service, orders_script):
        lenient_service.upload_script(orders_script)
        lenient_service.analyze()

        types = [a.type for a in lenient_service.list_anomalies()]

        assert types == ["FK_MISSING", "FK_MISSING", "REFERENTIAL_INTEGRITY", "CRUD_ANOMALY"]

    def test_report_contains_every_anomaly(self, lenient_service, orders_script):
        lenient_service.upload_script(orders_script)
        lenient_service.analyze()

        report = lenient_service.generate_report()

        assert "Total anomalies: 4" in report
        assert "4) [" in report
        assert "Details: Value: 999, Occurrences: 1" in report


class TestUndeclaredReferences:
    """Convention-named columns without declared constraints."""

    def test_flags_each_convention_match(self, service, undeclared_fk_script):
        service.upload_script(undeclared_fk_script)
        service.analyze()

        missing = {a.description for a in _by_type(service.list_anomalies(), "FK_MISSING")}

        assert missing == {
            "Possible missing FK: Categorys.CategoryID -> Categorys",
            "Possible missing FK: Products.ProductID -> Products",
            "Possible missing FK: Products.CategoryID -> Categorys",
        }


class TestConsecutiveAudits:
    """Second upload replaces the first schema and its findings."""

    def test_second_upload_replaces_schema_and_findings(self, lenient_service, lenient_engine,
                                                        orders_script, undeclared_fk_script):
        lenient_service.upload_script(orders_script)
        lenient_service.analyze()
        assert lenient_service.list_anomalies()

        lenient_service.upload_script(undeclared_fk_script)

        assert sorted(inspect(lenient_engine).get_table_names()) == ["Anomaly", "Categorys", "Products"]
        assert lenient_service.list_anomalies() == []

        lenient_service.analyze()
        tables = {a.affected_table for a in lenient_service.list_anomalies()}
        assert "Orders" not in tables

    def test_analyze_twice_does_not_duplicate(self, service, undeclared_fk_script):
        service.upload_script(undeclared_fk_script)

        service.analyze()
        first = len(service.list_anomalies())
        service.analyze()

        assert len(service.list_anomalies()) == first


class TestConstraintEnforcement:
    """CRUD probe against a schema that declares the probe table."""

    def test_enforced_foreign_key_is_reported(self, service):
        service.upload_script(
            "CREATE TABLE Targets (TargetKey INTEGER PRIMARY KEY);\nGO\n"
            "CREATE TABLE SomeTable (SomeForeignKeyID INTEGER REFERENCES Targets(TargetKey));\nGO\n"
        )
        service.analyze()

        [crud] = _by_type(service.list_anomalies(), AnomalyType.CRUD_ANOMALY.value)
        assert "FOREIGN KEY constraint failed" in crud.affected_data

    def test_unenforced_schema_is_inconclusive(self, service, engine):
        service.upload_script("CREATE TABLE SomeTable (SomeForeignKeyID INTEGER);\nGO\n")
        service.analyze()

        assert _by_type(service.list_anomalies(), "CRUD_ANOMALY") == []
        with engine.connect() as conn:
            assert conn.exec_driver_sql("SELECT COUNT(*) FROM SomeTable").scalar() == 0
