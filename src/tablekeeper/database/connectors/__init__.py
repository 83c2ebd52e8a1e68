"""Platform-specific database connectors."""

from .mysql import MySQLConnector

__all__ = ["MySQLConnector"]
