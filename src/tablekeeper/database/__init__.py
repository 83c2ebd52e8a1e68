"""TableKeeper database layer.

This package provides the database boundary used by the maintenance core:
the ``SqlExecutor`` protocol and the MySQL/MariaDB connector (aiomysql).

Example:
    >>> from tablekeeper.database import MySQLConnector
    >>> async with MySQLConnector(config.database) as connector:
    ...     version = await connector.fetch_scalar("SELECT VERSION()")
"""

from .base import BaseDatabaseConnector, QueryParams, SqlExecutor
from .connectors import MySQLConnector
from .models import QueryResult

__all__ = [
    "BaseDatabaseConnector",
    "MySQLConnector",
    "QueryParams",
    "QueryResult",
    "SqlExecutor",
]
