"""
Schema introspection for the audit engine.

Read-only catalog queries built on SQLAlchemy's Inspector. A fresh
Inspector is created for every call: the schema may have been replaced
since the last audit pass, so nothing is cached between calls.
"""

from dataclasses import dataclass
from typing import List, Optional, Set

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from utils.config import ANOMALY_TABLE
from .errors import IntrospectionError


@dataclass(frozen=True)
class ForeignKey:
    """One column pair of a declared foreign key."""

    constraint_name: str
    table: str
    column: str
    referenced_table: str
    referenced_column: str


class SchemaIntrospector:
    """
    Lists user tables, columns and declared foreign keys of one schema.

    Every method raises IntrospectionError when the metadata query itself
    fails (e.g. the connection was lost). There is no retry here.
    """

    def __init__(self, engine: Engine, schema: Optional[str] = None,
                 anomaly_table: str = ANOMALY_TABLE):
        """
        Args:
            engine: Engine bound to the audited database
            schema: Schema to inspect (None = the connection's default schema)
            anomaly_table: Anomaly log table, left out of the user tables
        """
        self.engine = engine
        self.schema = schema
        self.anomaly_table = anomaly_table

    def _inspector(self):
        return inspect(self.engine)

    def list_user_tables(self) -> List[str]:
        """User tables of the audited schema, sorted by name."""
        try:
            names = self._inspector().get_table_names(schema=self.schema)
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Failed to list tables: {e}") from e
        return [name for name in names if name != self.anomaly_table]

    def list_columns(self, table: str) -> List[str]:
        """Column names of ``table`` in ordinal order."""
        try:
            columns = self._inspector().get_columns(table, schema=self.schema)
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Failed to list columns of {table}: {e}") from e
        return [str(col["name"]) for col in columns]

    def list_existing_foreign_key_columns(self, table: str) -> Set[str]:
        """Columns of ``table`` that take part in a declared foreign key."""
        try:
            foreign_keys = self._inspector().get_foreign_keys(table, schema=self.schema)
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Failed to list foreign keys of {table}: {e}") from e

        columns: Set[str] = set()
        for fk in foreign_keys:
            columns.update(c for c in (fk.get("constrained_columns") or []) if c)
        return columns

    def list_all_foreign_keys(self) -> List[ForeignKey]:
        """
        Every declared foreign key of the schema, one entry per column pair.

        Composite keys therefore yield several entries sharing a constraint
        name.
        """
        result: List[ForeignKey] = []
        try:
            inspector = self._inspector()
            for table in inspector.get_table_names(schema=self.schema):
                for fk in inspector.get_foreign_keys(table, schema=self.schema):
                    referred_table = fk.get("referred_table")
                    constrained = fk.get("constrained_columns") or []
                    referred = fk.get("referred_columns") or []
                    if not referred_table or not constrained:
                        continue
                    for column, referenced_column in zip(constrained, referred):
                        result.append(
                            ForeignKey(
                                constraint_name=str(fk.get("name") or ""),
                                table=table,
                                column=column,
                                referenced_table=referred_table,
                                referenced_column=referenced_column,
                            )
                        )
        except SQLAlchemyError as e:
            raise IntrospectionError(f"Failed to list foreign keys: {e}") from e
        return result
