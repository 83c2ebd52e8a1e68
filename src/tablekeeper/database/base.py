"""Database boundary for TableKeeper.

The maintenance core needs exactly one capability from the database: run a
SQL statement, optionally with bound parameters, and get rows, a column or a
scalar back. ``SqlExecutor`` describes that capability; connectors derive
from ``BaseDatabaseConnector`` and only implement the raw execution.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

from ..config.models import DatabaseConfig
from ..core import AsyncComponent
from ..logging import get_logger
from .models import QueryResult

QueryParams = Optional[Union[Sequence[Any], Dict[str, Any]]]


@runtime_checkable
class SqlExecutor(Protocol):
    """Anything that can run SQL for the maintenance core.

    Implementations raise ``QueryError`` for statement failures.
    """

    async def execute_query(self, query: str, params: QueryParams = None) -> QueryResult:
        ...

    async def fetch_all(self, query: str, params: QueryParams = None) -> List[Dict[str, Any]]:
        ...

    async def fetch_column(
        self, query: str, params: QueryParams = None, *, index: int = 0
    ) -> List[Any]:
        ...

    async def fetch_scalar(self, query: str, params: QueryParams = None) -> Any:
        ...


class BaseDatabaseConnector(AsyncComponent[DatabaseConfig], ABC):
    """Abstract base class for database connectors.

    Provides the row/column/scalar helpers of ``SqlExecutor`` on top of a
    single platform-specific ``_execute_query_impl``.
    """

    platform: str = "unknown"

    def __init__(self, config: DatabaseConfig) -> None:
        super().__init__(config)
        self.logger = get_logger(f"connector.{self.platform}.{config.id}")
        self._server_version: Optional[str] = None

    async def connect(self) -> None:
        """Establish database connection via component initialization."""
        await self.initialize()

    async def disconnect(self) -> None:
        """Close database connection via component cleanup."""
        await self.cleanup()

    @property
    def server_version(self) -> Optional[str]:
        return self._server_version

    def get_connection_info(self) -> Dict[str, Any]:
        """Get current connection details for diagnostics."""
        return {
            "platform": self.platform,
            "host": self.config.host,
            "port": self.config.port,
            "database": self.config.database,
            "connected": self.is_initialized,
            "server_version": self._server_version,
        }

    async def execute_query(self, query: str, params: QueryParams = None) -> QueryResult:
        """Execute a statement and return a standardized result."""
        return await self._execute_query_impl(query, params)

    async def fetch_all(self, query: str, params: QueryParams = None) -> List[Dict[str, Any]]:
        result = await self.execute_query(query, params)
        return result.rows

    async def fetch_column(
        self, query: str, params: QueryParams = None, *, index: int = 0
    ) -> List[Any]:
        result = await self.execute_query(query, params)
        return result.column(index)

    async def fetch_scalar(self, query: str, params: QueryParams = None) -> Any:
        result = await self.execute_query(query, params)
        return result.scalar()

    @abstractmethod
    async def _execute_query_impl(self, query: str, params: QueryParams) -> QueryResult:
        """Execute the query using a raw connection. Return standardized result."""
