"""TableKeeper structured logging framework.

This package provides structlog-based logging for TableKeeper including
context binding and timing of maintenance statements.

Classes:
    StructuredLogger: Main structured logging interface
    PerformanceLogger: Operation timing
    LoggerFactory: Logger creation and configuration

Example:
    >>> from tablekeeper.logging import get_logger, get_performance_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Run started", schema="shop")
    >>>
    >>> perf_logger = get_performance_logger("maintenance.actions")
    >>> with perf_logger.measure("optimize", table="orders"):
    ...     pass
"""

from .factory import (
    LoggerConfig,
    LoggerFactory,
    configure_logging,
    get_factory,
    get_logger,
    get_performance_logger,
    shutdown_logging,
)
from .performance import PerformanceLogger, TimingContext, TimingMetrics
from .structured import LogContext, StructuredLogger

__all__ = [
    # Factory and configuration
    "LoggerConfig",
    "LoggerFactory",
    "configure_logging",
    "get_factory",
    "get_logger",
    "get_performance_logger",
    "shutdown_logging",

    # Performance logging
    "PerformanceLogger",
    "TimingContext",
    "TimingMetrics",

    # Structured logging
    "StructuredLogger",
    "LogContext",
]
