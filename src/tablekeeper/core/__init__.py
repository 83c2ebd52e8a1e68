"""TableKeeper core infrastructure.

This package provides the foundational components for the TableKeeper system
including base classes, exception handling and utilities.

Modules:
    base: Base component classes
    exceptions: Exception hierarchy
    utils: Utility functions

Example:
    >>> from tablekeeper.core import AsyncComponent
    >>> from tablekeeper.core.exceptions import ValidationError
    >>> from tablekeeper.core.utils import StringUtils
"""

from .base import (
    AsyncComponent,
    BaseComponent,
    ConfigurableComponent,
)
from .exceptions import (
    ActionExecutionError,
    AnalysisError,
    AuthenticationError,
    CapabilityError,
    ConfigurationError,
    ConnectionError,
    DatabaseConnectionError,
    ErrorCodes,
    LedgerError,
    MaintenanceError,
    MetadataError,
    QueryError,
    TableKeeperException,
    ValidationError,
    create_error_from_exception,
)
from .utils import (
    StringUtils,
    ValidationUtils,
)

__all__ = [
    # Base classes
    "BaseComponent",
    "ConfigurableComponent",
    "AsyncComponent",

    # Exceptions
    "TableKeeperException",
    "ConfigurationError",
    "ValidationError",
    "ConnectionError",
    "DatabaseConnectionError",
    "AuthenticationError",
    "AnalysisError",
    "CapabilityError",
    "MetadataError",
    "QueryError",
    "MaintenanceError",
    "ActionExecutionError",
    "LedgerError",
    "ErrorCodes",
    "create_error_from_exception",

    # Utilities
    "ValidationUtils",
    "StringUtils",
]
