"""
Schema Anomaly Auditor - Schema Introspector Unit Tests

Runs against in-memory SQLite; the catalog is read through SQLAlchemy's
Inspector so the same calls cover every supported backend.
"""

import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from database.audit.errors import IntrospectionError
from database.audit.introspector import ForeignKey, SchemaIntrospector


def _run(engine, *statements):
    with engine.begin() as conn:
        for statement in statements:
            conn.exec_driver_sql(statement)


@pytest.fixture
def shop_engine(engine):
    _run(
        engine,
        "CREATE TABLE Customers (CustomerID INTEGER PRIMARY KEY, Name TEXT)",
        "CREATE TABLE Orders (OrderID INTEGER PRIMARY KEY, "
        "CustomerID INTEGER REFERENCES Customers(CustomerID), Note TEXT)",
    )
    return engine


class TestListUserTables:
    """Test list_user_tables()."""

    def test_excludes_anomaly_table(self, shop_engine):
        tables = SchemaIntrospector(shop_engine).list_user_tables()

        assert tables == ["Customers", "Orders"]

    def test_tables_sorted_by_name_not_creation_order(self, engine):
        _run(
            engine,
            "CREATE TABLE Zones (ZoneKey INTEGER)",
            "CREATE TABLE Accounts (AccountKey INTEGER)",
            "CREATE TABLE Middle (MiddleKey INTEGER)",
        )

        assert SchemaIntrospector(engine).list_user_tables() == ["Accounts", "Middle", "Zones"]

    def test_empty_schema(self, engine):
        assert SchemaIntrospector(engine).list_user_tables() == []

    def test_custom_anomaly_table_name(self, shop_engine):
        tables = SchemaIntrospector(shop_engine, anomaly_table="Orders").list_user_tables()

        assert "Orders" not in tables
        assert "Anomaly" in tables

    def test_catalog_failure_raises_introspection_error(self, engine):
        introspector = SchemaIntrospector(engine)

        with patch.object(introspector, "_inspector") as mock_inspector:
            mock_inspector.return_value.get_table_names.side_effect = OperationalError(
                "SELECT name", {}, Exception("disk I/O error")
            )
            with pytest.raises(IntrospectionError) as exc_info:
                introspector.list_user_tables()

        assert isinstance(exc_info.value.__cause__, OperationalError)


class TestListColumns:
    """Test list_columns()."""

    def test_columns_in_ordinal_order(self, shop_engine):
        columns = SchemaIntrospector(shop_engine).list_columns("Orders")

        assert columns == ["OrderID", "CustomerID", "Note"]

    def test_missing_table_raises_introspection_error(self, engine):
        with pytest.raises(IntrospectionError):
            SchemaIntrospector(engine).list_columns("NoSuchTable")


class TestForeignKeys:
    """Test list_existing_foreign_key_columns() and list_all_foreign_keys()."""

    def test_existing_foreign_key_columns(self, shop_engine):
        introspector = SchemaIntrospector(shop_engine)

        assert introspector.list_existing_foreign_key_columns("Orders") == {"CustomerID"}
        assert introspector.list_existing_foreign_key_columns("Customers") == set()

    def test_list_all_foreign_keys(self, shop_engine):
        foreign_keys = SchemaIntrospector(shop_engine).list_all_foreign_keys()

        assert len(foreign_keys) == 1
        fk = foreign_keys[0]
        assert isinstance(fk, ForeignKey)
        assert (fk.table, fk.column, fk.referenced_table, fk.referenced_column) == (
            "Orders", "CustomerID", "Customers", "CustomerID"
        )

    def test_composite_foreign_key_yields_one_entry_per_column_pair(self, engine):
        _run(
            engine,
            "CREATE TABLE Rooms (Building INTEGER, Number INTEGER, "
            "PRIMARY KEY (Building, Number))",
            "CREATE TABLE Bookings (BookingID INTEGER PRIMARY KEY, Building INTEGER, Number INTEGER, "
            "FOREIGN KEY (Building, Number) REFERENCES Rooms (Building, Number))",
        )

        foreign_keys = SchemaIntrospector(engine).list_all_foreign_keys()

        pairs = sorted((fk.column, fk.referenced_column) for fk in foreign_keys)
        assert pairs == [("Building", "Building"), ("Number", "Number")]
        assert all(fk.table == "Bookings" for fk in foreign_keys)
