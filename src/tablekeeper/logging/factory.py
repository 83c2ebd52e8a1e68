"""Logger factory and configuration for TableKeeper.

This module provides centralized logger creation and configuration
management for the TableKeeper logging system.

Classes:
    LoggerFactory: Logger factory and configuration manager
    LoggerConfig: Configuration for logger instances

Functions:
    get_logger: Convenience function for getting loggers
    get_performance_logger: Convenience function for getting timing loggers
    configure_logging: Configure logging system globally

Example:
    >>> from tablekeeper.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", format="text")
    >>> logger = get_logger(__name__)
    >>> logger.info("Maintenance run started", schema="shop")
"""

import logging
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

import structlog

from ..config.models import LoggingConfig
from .performance import PerformanceLogger
from .structured import StructuredLogger


@dataclass
class LoggerConfig:
    """Configuration for logger instances."""
    level: str = "INFO"
    format: str = "json"
    console_output: bool = True
    file_path: Optional[str] = None
    max_file_size: int = 10485760  # 10MB
    backup_count: int = 5
    correlation_ids: bool = True


class LoggerFactory:
    """Factory for creating and configuring TableKeeper loggers.

    Loggers are cached per name. The factory only touches global logging
    state when ``configure`` is called, so library users keep control of
    their own logging setup.
    """

    def __init__(self, config: Optional[LoggerConfig] = None) -> None:
        self.config = config or LoggerConfig()
        self.initialized = False
        self._loggers: Dict[str, StructuredLogger] = {}
        self._performance_loggers: Dict[str, PerformanceLogger] = {}
        self._handlers: list[logging.Handler] = []

    def configure_from_config(self, logging_config: LoggingConfig) -> None:
        """Configure factory from a LoggingConfig model."""
        self.configure(
            LoggerConfig(
                level=logging_config.level,
                format=logging_config.format,
                console_output=logging_config.console_output,
                file_path=str(logging_config.file_path) if logging_config.file_path else None,
                max_file_size=logging_config.max_file_size,
                backup_count=logging_config.backup_count,
            )
        )

    def configure(self, config: LoggerConfig) -> None:
        """Apply configuration to stdlib logging and structlog."""
        self.config = config
        self._configure_stdlib_logging()
        self._configure_structlog()
        self.initialized = True

    def _configure_stdlib_logging(self) -> None:
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()

        if self.config.console_output:
            self._handlers.append(logging.StreamHandler(sys.stderr))
        if self.config.file_path:
            self._handlers.append(
                RotatingFileHandler(
                    self.config.file_path,
                    maxBytes=self.config.max_file_size,
                    backupCount=self.config.backup_count,
                    encoding="utf-8",
                )
            )

        for handler in self._handlers:
            handler.setLevel(level)
            handler.setFormatter(logging.Formatter("%(message)s"))
            root_logger.addHandler(handler)

        for logger in self._loggers.values():
            logger.set_level(self.config.level)

    def _configure_structlog(self) -> None:
        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
        ]

        if self.config.format.lower() == "json":
            processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
        else:
            processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    def get_logger(self, name: str, *, level: Optional[str] = None) -> StructuredLogger:
        """Get or create a structured logger."""
        if name not in self._loggers:
            self._loggers[name] = StructuredLogger(
                name,
                level=level or self.config.level,
                enable_correlation=self.config.correlation_ids,
            )
        return self._loggers[name]

    def get_performance_logger(self, name: str, *, auto_log: bool = True) -> PerformanceLogger:
        """Get or create a performance logger."""
        if name not in self._performance_loggers:
            self._performance_loggers[name] = PerformanceLogger(
                name,
                auto_log=auto_log,
                logger=self.get_logger(f"perf.{name}"),
            )
        return self._performance_loggers[name]

    def shutdown(self) -> None:
        """Detach handlers and forget cached loggers."""
        root_logger = logging.getLogger()
        for handler in self._handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self._loggers.clear()
        self._performance_loggers.clear()
        self.initialized = False

    def __repr__(self) -> str:
        return (
            f"LoggerFactory(initialized={self.initialized}, "
            f"loggers={len(self._loggers)}, "
            f"level={self.config.level!r})"
        )


# Global logger factory instance
_global_factory = LoggerFactory()


def configure_logging(
    *,
    level: str = "INFO",
    format: str = "json",
    console_output: bool = True,
    file_path: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """Configure TableKeeper logging system globally.

    Example:
        >>> configure_logging(level="DEBUG", format="text")
    """
    _global_factory.configure(
        LoggerConfig(
            level=level,
            format=format,
            console_output=console_output,
            file_path=file_path,
            **kwargs,
        )
    )


def get_logger(name: str, *, level: Optional[str] = None) -> StructuredLogger:
    """Get or create a structured logger using the global factory.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Capabilities detected", histogram=True)
    """
    return _global_factory.get_logger(name, level=level)


def get_performance_logger(name: str, *, auto_log: bool = True) -> PerformanceLogger:
    """Get or create a performance logger using the global factory."""
    return _global_factory.get_performance_logger(name, auto_log=auto_log)


def get_factory() -> LoggerFactory:
    """Get the global logger factory instance."""
    return _global_factory


def shutdown_logging() -> None:
    """Shutdown the global logging system and clean up resources."""
    _global_factory.shutdown()
