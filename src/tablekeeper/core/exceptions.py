"""TableKeeper exception hierarchy.

This module defines the exception hierarchy for TableKeeper operations,
providing structured error handling with context and error codes. The
hierarchy follows how each failure is handled during a maintenance run:

* capability and privilege detection failures abort construction
* metadata failures abort a single run
* failures of a single maintenance statement are logged and isolated
* unreadable ledgers are treated as "no history" and never raised
* invalid action names and parameters are raised to the caller at once

Classes:
    TableKeeperException: Base exception for all TableKeeper operations
    ConfigurationError: Configuration related errors
    ValidationError: Invalid action names, parameters or identifiers
    ConnectionError: Database connection errors
    AnalysisError: Metadata and capability inspection errors
    MaintenanceError: Maintenance statement execution errors
    LedgerError: Ledger persistence errors

Example:
    >>> try:
    ...     await connector.connect()
    ... except DatabaseConnectionError as e:
    ...     logger.error("Connection failed", error_code=e.code, context=e.context)
"""

from typing import Any, Dict, Optional


class TableKeeperException(Exception):
    """Base exception for all TableKeeper operations.

    Attributes:
        code: Unique error code for categorization
        context: Additional context information about the error
        cause: Original exception that caused this error (if any)

    Example:
        >>> raise TableKeeperException(
        ...     "Operation failed",
        ...     code="OPERATION_FAILED",
        ...     context={"schema": "shop", "table": "orders"}
        ... )
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        """Initialize TableKeeper exception.

        Args:
            message: Human-readable error description
            code: Unique error code for categorization (defaults to class name)
            context: Additional context information
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message: str = message
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[Exception] = cause

    def __str__(self) -> str:
        """Return formatted error message with code."""
        return f"{self.code}: {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation of the exception."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r}, "
            f"cause={self.cause!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(TableKeeperException):
    """Configuration related errors.

    Raised when configuration is invalid, missing, or cannot be processed.
    """
    pass


class ValidationError(ConfigurationError):
    """Data validation errors.

    Raised immediately to the caller when an unsupported action name,
    defragmentation parameter or value is passed to a policy setter or getter.
    """
    pass


class ConnectionError(TableKeeperException):
    """Database connection related errors."""
    pass


class DatabaseConnectionError(ConnectionError):
    """Raised when unable to establish or use a connection to the server."""
    pass


class AuthenticationError(ConnectionError):
    """Raised when the server rejects the configured credentials."""
    pass


class AnalysisError(TableKeeperException):
    """Base class for errors while inspecting server or schema state."""
    pass


class CapabilityError(AnalysisError):
    """Server capability detection errors.

    Raised when the server version, relevant global variables or the
    current user's privileges cannot be read. Without this knowledge no
    decision can be made safely, so construction is aborted.
    """
    pass


class MetadataError(AnalysisError):
    """Schema metadata extraction errors.

    Raised when the tables of a schema cannot be enumerated. Aborts the
    current run.
    """
    pass


class QueryError(AnalysisError):
    """SQL statement execution errors raised by the database boundary."""
    pass


class MaintenanceError(TableKeeperException):
    """Base class for errors during maintenance execution."""
    pass


class ActionExecutionError(MaintenanceError):
    """A single maintenance statement failed for a single table.

    Never propagated out of a run; the orchestrator logs it and moves on.
    """
    pass


class LedgerError(TableKeeperException):
    """Raised when the run ledger cannot be written to storage."""
    pass


# Error code constants for common scenarios
class ErrorCodes:
    """Common error codes for TableKeeper exceptions."""

    # Configuration errors
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"
    UNSUPPORTED_ACTION = "UNSUPPORTED_ACTION"
    UNSUPPORTED_DEFRAG_PARAM = "UNSUPPORTED_DEFRAG_PARAM"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"

    # Connection errors
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    AUTH_FAILED = "AUTH_FAILED"
    NOT_CONNECTED = "NOT_CONNECTED"

    # Analysis errors
    CAPABILITY_DETECTION_FAILED = "CAPABILITY_DETECTION_FAILED"
    METADATA_EXTRACTION_FAILED = "METADATA_EXTRACTION_FAILED"
    QUERY_EXECUTION_FAILED = "QUERY_EXECUTION_FAILED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Maintenance errors
    ACTION_FAILED = "ACTION_FAILED"
    SETTING_FAILED = "SETTING_FAILED"
    MAINTENANCE_FLAG_FAILED = "MAINTENANCE_FLAG_FAILED"
    RUN_FAILED = "RUN_FAILED"

    # Ledger errors
    LEDGER_WRITE_FAILED = "LEDGER_WRITE_FAILED"


def create_error_from_exception(
    exc: Exception,
    message: Optional[str] = None,
    code: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> TableKeeperException:
    """Create TableKeeper exception from generic exception.

    Args:
        exc: Original exception to convert
        message: Override message (uses original if not provided)
        code: Error code to assign
        context: Additional context information

    Returns:
        Appropriate TableKeeper exception type

    Example:
        >>> try:
        ...     path.write_text(payload)
        ... except OSError as e:
        ...     raise create_error_from_exception(e, code=ErrorCodes.LEDGER_WRITE_FAILED)
    """
    if isinstance(exc, TableKeeperException):
        return exc

    error_message = message or str(exc)
    error_context = context or {}

    # Map common exception types to TableKeeper exceptions
    exception_mapping = {
        ConnectionRefusedError: DatabaseConnectionError,
        FileNotFoundError: ConfigurationError,
        PermissionError: LedgerError,
        OSError: LedgerError,
        ValueError: ValidationError,
        TypeError: ValidationError,
    }

    exception_class = exception_mapping.get(type(exc), TableKeeperException)

    return exception_class(
        error_message,
        code=code,
        context=error_context,
        cause=exc,
    )
