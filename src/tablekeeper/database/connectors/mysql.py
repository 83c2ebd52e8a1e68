"""MySQL/MariaDB database connector for TableKeeper."""

import time
from typing import Optional

import aiomysql

from ...config.models import DatabaseConfig
from ...core.exceptions import (
    AuthenticationError,
    DatabaseConnectionError,
    ErrorCodes,
    QueryError,
)
from ..base import BaseDatabaseConnector, QueryParams
from ..models import QueryResult


class MySQLConnector(BaseDatabaseConnector):
    """MySQL/MariaDB connector built on an aiomysql pool.

    The pool holds exactly one connection: session variables such as
    ``old_alter_table`` and ``alter_algorithm`` must be set on the same
    connection that later runs the maintenance statements.
    """

    component_name = "MySQLConnector"
    version = "1.0.0"
    platform = "mysql"

    def __init__(self, config: DatabaseConfig) -> None:
        super().__init__(config)
        self._connection_pool: Optional[aiomysql.Pool] = None

    @property
    def is_connected(self) -> bool:
        return self.is_initialized and self._connection_pool is not None

    async def _async_initialize(self) -> None:
        """Create the connection pool and read the server version."""
        self.logger.info(
            "Initializing MySQL connector", host=self.config.host, port=self.config.port
        )

        try:
            self._connection_pool = await aiomysql.create_pool(
                host=self.config.host,
                port=self.config.port,
                db=self.config.database,
                user=self.config.credentials.username,
                password=self.config.credentials.password.get_secret_value(),
                charset=self.config.charset,
                connect_timeout=self.config.connection_timeout,
                minsize=1,
                maxsize=1,
                autocommit=True,
                **self.config.options,
            )

            async with self._connection_pool.acquire() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute("SELECT VERSION()")
                    result = await cursor.fetchone()
                    self._server_version = result[0] if result else "unknown"

        except aiomysql.OperationalError as e:
            error_code = e.args[0] if e.args else 0
            context = {"host": self.config.host, "port": self.config.port}

            if error_code == 1045:  # Access denied
                raise AuthenticationError(
                    f"MySQL authentication failed: {e}",
                    code=ErrorCodes.AUTH_FAILED,
                    context=context,
                    cause=e,
                ) from e
            raise DatabaseConnectionError(
                f"MySQL connection failed: {e}",
                code=ErrorCodes.CONNECTION_REFUSED,
                context=context,
                cause=e,
            ) from e

        self.logger.info("MySQL connector initialized", server_version=self._server_version)

    async def _async_cleanup(self) -> None:
        """Close the connection pool."""
        if self._connection_pool:
            self._connection_pool.close()
            await self._connection_pool.wait_closed()
            self._connection_pool = None
            self.logger.info("MySQL connection pool closed")

    async def _execute_query_impl(self, query: str, params: QueryParams) -> QueryResult:
        if not self.is_connected:
            raise DatabaseConnectionError(
                "MySQL connector not connected",
                code=ErrorCodes.NOT_CONNECTED,
            )

        start_time = time.perf_counter()

        try:
            async with self._connection_pool.acquire() as conn:
                async with conn.cursor(aiomysql.DictCursor) as cursor:
                    if params:
                        await cursor.execute(query, params)
                    else:
                        await cursor.execute(query)

                    # Maintenance statements (CHECK, OPTIMIZE, ...) return result sets too
                    if cursor.description:
                        rows = await cursor.fetchall()
                        columns = [desc[0] for desc in cursor.description]
                        return QueryResult(
                            rows=list(rows) if rows else [],
                            row_count=len(rows) if rows else 0,
                            columns=columns,
                            execution_time=time.perf_counter() - start_time,
                        )
                    return QueryResult(
                        rows=[],
                        row_count=cursor.rowcount,
                        columns=[],
                        execution_time=time.perf_counter() - start_time,
                    )

        except aiomysql.Error as e:
            error_code = e.args[0] if e.args else 0
            self.logger.debug("Query execution failed", mysql_error_code=error_code, error=str(e))

            if error_code in (1142, 1227):  # Command denied / needs SUPER
                code = ErrorCodes.INSUFFICIENT_PERMISSIONS
            else:
                code = ErrorCodes.QUERY_EXECUTION_FAILED
            raise QueryError(
                f"MySQL query failed: {e}",
                code=code,
                context={"mysql_error_code": error_code, "query": query},
                cause=e,
            ) from e
