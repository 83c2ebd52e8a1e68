"""Logging-specific test configuration and fixtures."""

import logging

import pytest
import structlog

from tablekeeper.config.models import LoggingConfig
from tablekeeper.logging.factory import LoggerConfig, LoggerFactory


@pytest.fixture
def temp_log_file(temp_dir):
    """Log file path inside a temporary directory."""
    return temp_dir / "tablekeeper.log"


@pytest.fixture
def sample_logging_config(temp_log_file):
    """Create sample logging configuration."""
    return LoggingConfig(
        level="INFO",
        format="json",
        file_path=temp_log_file,
        console_output=False,
        max_file_size=1048576,  # 1MB
        backup_count=3
    )


@pytest.fixture
def logger_factory():
    """Create clean logger factory for testing."""
    factory = LoggerFactory()
    yield factory
    factory.shutdown()


@pytest.fixture(autouse=True)
def cleanup_global_logging():
    """Restore structlog, stdlib and global factory state after each test."""
    structlog_config = structlog.get_config()
    root_logger = logging.getLogger()
    root_level = root_logger.level
    root_handlers = list(root_logger.handlers)

    yield

    from tablekeeper.logging.factory import _global_factory
    _global_factory.shutdown()
    _global_factory.config = LoggerConfig()

    structlog.configure(**structlog_config)
    root_logger.handlers[:] = root_handlers
    root_logger.setLevel(root_level)
