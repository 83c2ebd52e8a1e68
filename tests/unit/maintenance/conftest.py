"""Maintenance-specific test configuration and fixtures."""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from tablekeeper.config.models import CredentialConfig, DatabaseConfig
from tablekeeper.core.exceptions import ErrorCodes, QueryError
from tablekeeper.database.base import BaseDatabaseConnector, QueryParams
from tablekeeper.database.models import QueryResult
from tablekeeper.maintenance.actions import HISTOGRAM_EXCLUDED_TYPES
from tablekeeper.maintenance.models import CapabilitySet
from tablekeeper.maintenance.policy import Policy, PolicyBuilder


class FakeServer(BaseDatabaseConnector):
    """In-memory stand-in for a MySQL/MariaDB server.

    Answers the information_schema and variable queries the maintenance
    core issues, records every other statement, and lets tests inject
    failures and side effects per statement fragment.
    """

    component_name = "FakeServer"
    platform = "fake"

    def __init__(
        self,
        *,
        version: str = "8.0.36",
        file_per_table: Optional[str] = "ON",
        file_format: Optional[str] = None,
        privileges: int = 1,
        temporary_column: bool = True,
    ) -> None:
        super().__init__(DatabaseConfig(credentials=CredentialConfig(username="tester")))
        self.version_string = version
        self.file_per_table = file_per_table
        self.file_format = file_format
        self.privileges = privileges
        self.temporary_column = temporary_column
        self.tables: Dict[str, Dict[str, Any]] = {}
        self.columns: Dict[str, List[Dict[str, Any]]] = {}
        self.executed: List[str] = []
        self.queries: List[str] = []
        self.params: List[QueryParams] = []
        self._failures: Dict[str, str] = {}
        self._effects: Dict[str, Callable[["FakeServer"], None]] = {}

    async def _async_initialize(self) -> None:
        pass

    def add_table(
        self,
        name: str,
        *,
        engine: str = "InnoDB",
        row_format: str = "Dynamic",
        rows: int = 100,
        data_length: int = 16384,
        index_length: int = 0,
        data_free: int = 0,
        fulltext: int = 0,
        columns: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.tables[name] = {
            "TABLE_NAME": name,
            "ENGINE": engine,
            "ROW_FORMAT": row_format,
            "TABLE_ROWS": rows,
            "DATA_LENGTH": data_length,
            "INDEX_LENGTH": index_length,
            "DATA_FREE": data_free,
            "FULLTEXT_INDEXES": fulltext,
        }
        self.columns[name] = columns if columns is not None else [column("value")]

    def fail_on(self, fragment: str, message: str = "Lock wait timeout exceeded") -> None:
        self._failures[fragment] = message

    def on_execute(self, fragment: str, effect: Callable[["FakeServer"], None]) -> None:
        self._effects[fragment] = effect

    def statements_like(self, fragment: str) -> List[str]:
        return [statement for statement in self.executed if fragment in statement]

    async def _execute_query_impl(self, query: str, params: QueryParams) -> QueryResult:
        self.queries.append(query)
        self.params.append(params)
        for fragment, message in self._failures.items():
            if fragment in query:
                raise QueryError(
                    f"MySQL query failed: {message}",
                    code=ErrorCodes.QUERY_EXECUTION_FAILED,
                    context={"query": query},
                )

        if "innodb_file_per_table" in query:
            return _variable("innodb_file_per_table", self.file_per_table)
        if "innodb_file_format" in query:
            return _variable("innodb_file_format", self.file_format)
        if query.startswith("SELECT VERSION()"):
            return _result([{"VERSION()": self.version_string}])
        if "USER_PRIVILEGES" in query:
            return _result([{"count": self.privileges}])
        if "`COLUMN_NAME`='TEMPORARY'" in query:
            return _result([{"COLUMN_NAME": "TEMPORARY"}] if self.temporary_column else [])
        if "FROM `information_schema`.`TABLES`" in query:
            return _result([dict(self.tables[name]) for name in sorted(self.tables)])
        if "GENERATION_EXPRESSION" in query:
            return _result(self._histogram_columns(params))

        self.executed.append(query)
        for fragment, effect in self._effects.items():
            if fragment in query:
                effect(self)
        return QueryResult(rows=[], row_count=0, columns=[], execution_time=0.0)

    def _histogram_columns(self, params: QueryParams) -> List[Dict[str, Any]]:
        _schema, table, *excluded = params
        return [
            {"COLUMN_NAME": col["COLUMN_NAME"]}
            for col in self.columns.get(table, [])
            if not col["GENERATION_EXPRESSION"]
            and col["COLUMN_KEY"] in ("", "MUL")
            and col["DATA_TYPE"].upper() not in HISTOGRAM_EXCLUDED_TYPES
            and col["COLUMN_NAME"] not in excluded
        ]


def column(
    name: str, data_type: str = "varchar", key: str = "", generated: Optional[str] = ""
) -> Dict[str, Any]:
    return {
        "COLUMN_NAME": name,
        "DATA_TYPE": data_type,
        "COLUMN_KEY": key,
        "GENERATION_EXPRESSION": generated,
    }


def _result(rows: List[Dict[str, Any]]) -> QueryResult:
    columns = list(rows[0].keys()) if rows else []
    return QueryResult(rows=rows, row_count=len(rows), columns=columns, execution_time=0.0)


def _variable(name: str, value: Optional[str]) -> QueryResult:
    if value is None:
        return QueryResult(
            rows=[], row_count=0, columns=["Variable_name", "Value"], execution_time=0.0
        )
    return _result([{"Variable_name": name, "Value": value}])


@pytest.fixture
def fake_server() -> FakeServer:
    """MySQL 8 server with file-per-table and SUPER privilege."""
    return FakeServer()


@pytest.fixture
def make_server():
    """Factory for servers with a custom version, variables or privileges."""
    return FakeServer


@pytest.fixture
def make_column():
    """Factory for information_schema.COLUMNS rows."""
    return column


@pytest.fixture
def mysql_capabilities() -> CapabilitySet:
    return CapabilitySet(histogram=True, compress=True, set_global=True)


@pytest.fixture
def mariadb_capabilities() -> CapabilitySet:
    return CapabilitySet(
        defragment=True,
        alter_algorithm=True,
        analyze_persistent=True,
        compress=False,
        set_global=True,
    )


@pytest.fixture
def ledger_path(temp_dir: Path) -> Path:
    return temp_dir / "tables.json"


@pytest.fixture
def policy(ledger_path: Path) -> Policy:
    """Default policy writing its ledger into a temporary directory."""
    return PolicyBuilder().set_ledger_path(ledger_path).build()


@pytest.fixture
def no_compress_policy(ledger_path: Path) -> Policy:
    return (
        PolicyBuilder()
        .set_ledger_path(ledger_path)
        .set_suggest("compress", False)
        .build()
    )
