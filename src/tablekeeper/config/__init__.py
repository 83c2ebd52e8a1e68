"""TableKeeper configuration management.

This package provides type-safe configuration models for TableKeeper:
database connection, logging and the maintenance policy.

Classes:
    BaseConfig: Base configuration class
    DatabaseConfig: Database connection configuration
    LoggingConfig: Logging configuration
    PolicyConfig: Maintenance policy configuration
    SystemConfig: Top-level configuration

Example:
    >>> from tablekeeper.config import SystemConfig
    >>> config = SystemConfig.from_file("tablekeeper.yaml")
    >>> policy = config.policy.to_policy()
"""

from .models import (
    BaseConfig,
    CredentialConfig,
    DatabaseConfig,
    DefragConfig,
    LoggingConfig,
    MaintenanceFlagConfig,
    PolicyConfig,
    SystemConfig,
)

__all__ = [
    "BaseConfig",
    "CredentialConfig",
    "DatabaseConfig",
    "DefragConfig",
    "LoggingConfig",
    "MaintenanceFlagConfig",
    "PolicyConfig",
    "SystemConfig",
]
