"""
Dialect adapters for the schema audit engine.

Identifiers in generated SQL (table and column names read from catalog
metadata) cannot be bound as parameters, so every generated statement goes
through ``quote_identifier`` of the active dialect. Each adapter also
supplies the reset-procedure statements that differ between databases.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import sqlparse
from sqlalchemy.engine import Engine


class SchemaDialect(ABC):
    """Abstract base for database dialect adapters."""

    name: str = ""

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Quote a single identifier (table, column, schema)."""
        pass

    def quote_table(self, table: str, schema: Optional[str] = None) -> str:
        """Quote schema.table for use in FROM/JOIN clauses."""
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    def deadlock_priority_statements(self) -> List[str]:
        """Statements that make this session the preferred deadlock victim."""
        return []

    def catalog_lock_statements(self) -> List[str]:
        """Statements that lock the table catalog against concurrent DDL."""
        return []

    @abstractmethod
    def disable_constraints_statements(self) -> List[str]:
        """Statements that disable foreign keys and triggers schema-wide."""
        pass

    @abstractmethod
    def enable_constraints_statements(self) -> List[str]:
        """Statements that restore foreign keys and triggers schema-wide."""
        pass

    def drop_table_statement(self, table: str) -> str:
        """DROP TABLE guarded by an existence check."""
        return f"DROP TABLE IF EXISTS {self.quote_table(table)}"

    def split_batch(self, batch: str) -> List[str]:
        """
        Split one script batch into statements the driver runs one per call.

        Semicolons inside string literals, comments and trigger bodies do not
        end a statement.
        """
        statements = []
        for statement in sqlparse.split(batch):
            statement = statement.strip()
            if statement and statement != ";":
                statements.append(statement)
        return statements

    def orphan_values_query(
        self,
        table: str,
        column: str,
        referenced_table: str,
        referenced_column: str,
    ) -> str:
        """
        Anti-join returning (orphan_value, count_orphans) for one FK column:
        non-null child values with no matching parent row.
        """
        child_col = f"child.{self.quote_identifier(column)}"
        parent_col = f"parent.{self.quote_identifier(referenced_column)}"
        return (
            f"SELECT {child_col} AS orphan_value, COUNT(*) AS count_orphans\n"
            f"FROM {self.quote_table(table)} child\n"
            f"LEFT JOIN {self.quote_table(referenced_table)} parent\n"
            f"  ON {child_col} = {parent_col}\n"
            f"WHERE {child_col} IS NOT NULL\n"
            f"  AND {parent_col} IS NULL\n"
            f"GROUP BY {child_col}\n"
            f"ORDER BY {child_col}"
        )

    def probe_insert_statement(self, table: str, column: str, value: int) -> str:
        """Single-column INSERT used by the CRUD probe."""
        return (
            f"INSERT INTO {self.quote_table(table)} ({self.quote_identifier(column)}) "
            f"VALUES ({int(value)})"
        )


class MssqlDialect(SchemaDialect):
    """Microsoft SQL Server / Azure SQL."""

    name = "mssql"

    def quote_identifier(self, name: str) -> str:
        return "[" + str(name).replace("]", "]]") + "]"

    def split_batch(self, batch: str) -> List[str]:
        # T-SQL batches run whole; procedures and triggers span many statements
        batch = batch.strip()
        return [batch] if batch else []

    def deadlock_priority_statements(self) -> List[str]:
        return ["SET DEADLOCK_PRIORITY LOW"]

    def catalog_lock_statements(self) -> List[str]:
        return ["SELECT 1 FROM INFORMATION_SCHEMA.TABLES WITH (TABLOCKX)"]

    def disable_constraints_statements(self) -> List[str]:
        return [
            "EXEC sp_MSforeachtable 'ALTER TABLE ? NOCHECK CONSTRAINT ALL'",
            "EXEC sp_MSforeachtable 'DISABLE TRIGGER ALL ON ?'",
        ]

    def enable_constraints_statements(self) -> List[str]:
        return [
            "EXEC sp_MSforeachtable 'ALTER TABLE ? WITH CHECK CHECK CONSTRAINT ALL'",
            "EXEC sp_MSforeachtable 'ENABLE TRIGGER ALL ON ?'",
        ]

    def drop_table_statement(self, table: str) -> str:
        quoted = self.quote_table(table)
        literal = quoted.replace("'", "''")
        return f"IF OBJECT_ID(N'{literal}', 'U') IS NOT NULL DROP TABLE {quoted}"


class MysqlDialect(SchemaDialect):
    """
    MySQL / MariaDB.

    DDL causes an implicit commit in MySQL, so a failed reset attempt cannot
    undo tables that were already dropped; the retry picks up the rest.
    MySQL has no switch for triggers, and they are dropped with their table.
    """

    name = "mysql"

    def quote_identifier(self, name: str) -> str:
        return "`" + str(name).replace("`", "``") + "`"

    def disable_constraints_statements(self) -> List[str]:
        return ["SET FOREIGN_KEY_CHECKS = 0"]

    def enable_constraints_statements(self) -> List[str]:
        return ["SET FOREIGN_KEY_CHECKS = 1"]


class SqliteDialect(SchemaDialect):
    """
    SQLite.

    ``PRAGMA foreign_keys`` cannot change inside a transaction, so foreign
    key checks are deferred to commit instead; by then every referencing
    table is gone. The deferral ends with the transaction.
    """

    name = "sqlite"

    def quote_identifier(self, name: str) -> str:
        return '"' + str(name).replace('"', '""') + '"'

    def disable_constraints_statements(self) -> List[str]:
        return ["PRAGMA defer_foreign_keys = ON"]

    def enable_constraints_statements(self) -> List[str]:
        return []


_DIALECTS = {
    "mssql": MssqlDialect,
    "mysql": MysqlDialect,
    "mariadb": MysqlDialect,
    "sqlite": SqliteDialect,
}


def get_dialect(dialect_name: str) -> SchemaDialect:
    """
    Get the dialect adapter for a SQLAlchemy dialect name.

    Raises:
        ValueError: If the dialect is not supported
    """
    dialect_cls = _DIALECTS.get(dialect_name)
    if dialect_cls is None:
        raise ValueError(
            f"Unsupported database dialect '{dialect_name}'. "
            f"Supported: {', '.join(supported_dialects())}"
        )
    return dialect_cls()


def get_dialect_for_engine(engine: Engine) -> SchemaDialect:
    """Get the dialect adapter for the given engine."""
    return get_dialect(engine.dialect.name)


def supported_dialects() -> tuple:
    """Return tuple of supported dialect names."""
    return tuple(_DIALECTS.keys())
