"""Pytest configuration and shared fixtures.

This module provides pytest configuration and shared fixtures for all tests
in the TableKeeper test suite.
"""

import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest
import structlog

# Configure test logging to suppress noise during tests
structlog.configure(
    processors=[structlog.testing.LogCapture()],
    wrapper_class=structlog.BoundLogger,
    logger_factory=structlog.testing.ReturnLoggerFactory(),
    cache_logger_on_first_use=False,
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def mock_logger():
    """Mock structured logger for testing."""
    logger = MagicMock()
    logger.bind.return_value = logger
    logger.info = MagicMock()
    logger.error = MagicMock()
    logger.warning = MagicMock()
    logger.debug = MagicMock()
    return logger


@pytest.fixture
def sample_config_data(temp_dir: Path) -> dict:
    """Sample configuration data for testing."""
    return {
        "app_name": "TableKeeper",
        "database": {
            "id": "primary",
            "host": "localhost",
            "port": 3306,
            "database": "shop",
            "credentials": {
                "username": "maint",
                "password": "test_password",
            },
        },
        "logging": {
            "level": "DEBUG",
            "format": "json",
            "console_output": True,
        },
        "policy": {
            "threshold": 7.5,
            "suggest": {"compress": False},
            "days": {"analyze": 7},
            "exclude": {"optimize": ["sessions"]},
            "exclude_all": ["cache"],
            "histogram_columns": {"orders": ["notes"]},
            "maintenance_flag": {
                "table": "settings",
                "setting_column": "name",
                "setting_name": "maintenance",
                "value_column": "value",
            },
            "ledger_path": str(temp_dir),
        },
        "schemas": ["shop"],
    }


@pytest.fixture
def config_file(temp_dir: Path, sample_config_data: dict) -> Path:
    """Create temporary configuration file."""
    import yaml

    config_path = temp_dir / "tablekeeper.yaml"
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(sample_config_data, f)
    return config_path


# Pytest markers for different test categories
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (real MySQL/MariaDB server)"
    )
    config.addinivalue_line(
        "markers", "database: marks tests exercising the database boundary"
    )


# Auto-mark tests based on their location
def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(config.rootdir) / "tests")

        if test_path.parts[0] == "unit":
            item.add_marker(pytest.mark.unit)
        elif test_path.parts[0] == "integration":
            item.add_marker(pytest.mark.integration)

        if "database" in str(test_path):
            item.add_marker(pytest.mark.database)
