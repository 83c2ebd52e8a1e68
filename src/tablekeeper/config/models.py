"""Configuration models for TableKeeper.

This module defines Pydantic models for all configuration objects used
throughout TableKeeper: the database connection, logging, and the
maintenance policy that drives the decision engine. These models provide
validation, type safety and loading from YAML files.

Classes:
    BaseConfig: Base configuration class
    CredentialConfig: Database credentials
    DatabaseConfig: Database connection configuration
    LoggingConfig: Logging configuration
    MaintenanceFlagConfig: Application maintenance-mode flag location
    DefragConfig: innodb_defragment parameter overrides
    PolicyConfig: Maintenance policy as it appears in a config file
    SystemConfig: Top-level configuration

Example:
    >>> config = SystemConfig.from_file("tablekeeper.yaml")
    >>> policy = config.policy.to_policy()
    >>> print(config.database.connection_string)
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

from ..core.exceptions import ConfigurationError, ErrorCodes

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


class BaseConfig(BaseModel):
    """Base configuration class with common functionality.

    Supports ``${VAR_NAME}`` and ``${VAR_NAME:default}`` environment
    references in any string value.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def resolve_environment_variables(cls, values: Any) -> Any:
        """Resolve environment variables in configuration values."""
        def resolve_value(value: Any) -> Any:
            if isinstance(value, str):
                def replace_env_var(match: "re.Match[str]") -> str:
                    var_spec = match.group(1)
                    if ":" in var_spec:
                        var_name, default = var_spec.split(":", 1)
                    else:
                        var_name, default = var_spec, ""
                    return os.getenv(var_name, default)

                return _ENV_PATTERN.sub(replace_env_var, value)
            elif isinstance(value, dict):
                return {k: resolve_value(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [resolve_value(item) for item in value]
            return value

        if isinstance(values, dict):
            return {key: resolve_value(value) for key, value in values.items()}
        return values

    def to_dict(self, *, mask_secrets: bool = True) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Args:
            mask_secrets: Whether to mask secret values

        Returns:
            Dictionary representation of configuration
        """
        data = self.model_dump()

        def mask_value(value: Any) -> Any:
            if isinstance(value, dict):
                return {k: mask_value(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [mask_value(item) for item in value]
            elif isinstance(value, SecretStr):
                return "***MASKED***" if mask_secrets else value.get_secret_value()
            return value

        return mask_value(data)


class CredentialConfig(BaseConfig):
    """Credential configuration with secure handling."""

    username: str = Field(..., min_length=1, description="Database username")
    password: SecretStr = Field(SecretStr(""), description="Database password")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Username cannot be empty or whitespace")
        return v.strip()


class DatabaseConfig(BaseConfig):
    """MySQL/MariaDB connection configuration.

    Example:
        >>> config = DatabaseConfig(
        ...     id="primary",
        ...     host="db.example.com",
        ...     database="shop",
        ...     credentials=CredentialConfig(username="maint", password="secret"),
        ... )
    """

    id: str = Field("primary", min_length=1, description="Unique database identifier")
    host: str = Field("localhost", min_length=1, description="Database host")
    port: int = Field(3306, gt=0, lt=65536, description="Database port")
    database: Optional[str] = Field(None, description="Default schema for the connection")
    credentials: CredentialConfig = Field(..., description="Database credentials")
    charset: str = Field("utf8mb4", description="Connection character set")
    connection_timeout: int = Field(30, gt=0, description="Connection timeout in seconds")
    options: Dict[str, Any] = Field(default_factory=dict, description="Extra aiomysql options")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Host cannot be empty")
        return v.strip()

    @property
    def connection_string(self) -> str:
        """Connection string with masked password."""
        return (
            f"mysql://{self.credentials.username}:***@"
            f"{self.host}:{self.port}/{self.database or ''}"
        )


class LoggingConfig(BaseConfig):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Logging level"
    )
    format: Literal["json", "text"] = Field("json", description="Log format")
    file_path: Optional[Path] = Field(None, description="Log file path")
    max_file_size: int = Field(10485760, gt=0, description="Max file size in bytes (10MB)")
    backup_count: int = Field(5, ge=0, description="Number of backup files")
    console_output: bool = Field(True, description="Enable console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class MaintenanceFlagConfig(BaseConfig):
    """Location of an application-level "maintenance mode" flag.

    The flag is toggled with
    ``UPDATE `schema`.`table` SET `value_column` = true
    WHERE `table`.`setting_column` = 'setting_name';``
    """

    table: str = Field(..., min_length=1)
    setting_column: str = Field(..., min_length=1)
    setting_name: str = Field(..., min_length=1)
    value_column: str = Field(..., min_length=1)


class DefragConfig(BaseConfig):
    """Overrides for MariaDB ``innodb_defragment_*`` variables."""

    n_pages: Optional[int] = None
    stats_accuracy: Optional[int] = None
    fill_factor_n_recs: Optional[int] = None
    fill_factor: Optional[float] = None
    frequency: Optional[int] = None


class PolicyConfig(BaseConfig):
    """Maintenance policy as it appears in a configuration file.

    Converted into an immutable ``Policy`` with :meth:`to_policy`, which
    applies the same clamping and validation as the programmatic setters.
    """

    threshold: float = Field(5.0, description="Minimum fragmentation percentage for OPTIMIZE")
    suggest: Dict[str, bool] = Field(default_factory=dict, description="Per-action enable flags")
    days: Dict[str, int] = Field(default_factory=dict, description="Per-action staleness windows")
    exclude: Dict[str, List[str]] = Field(
        default_factory=dict, description="Per-action excluded tables"
    )
    exclude_all: List[str] = Field(
        default_factory=list, description="Tables excluded from every action"
    )
    histogram_columns: Dict[str, List[str]] = Field(
        default_factory=dict, description="Per-table columns excluded from histograms"
    )
    maintenance_flag: Optional[MaintenanceFlagConfig] = None
    defrag: DefragConfig = Field(default_factory=DefragConfig)
    ledger_path: Optional[Path] = Field(None, description="Run ledger JSON file or directory")

    def to_policy(self) -> "Policy":
        """Build the immutable policy used by the decision engine.

        Raises:
            ValidationError: If an action or defragmentation parameter is unknown
        """
        from ..maintenance.policy import Policy, PolicyBuilder

        builder = PolicyBuilder().set_threshold(self.threshold)
        for action, flag in self.suggest.items():
            builder.set_suggest(action, flag)
        for action, days in self.days.items():
            builder.set_days(action, days)
        for table in self.exclude_all:
            builder.set_exclusions(None, table)
        for action, tables in self.exclude.items():
            for table in tables:
                builder.set_exclusions(action, table)
        for table, columns in self.histogram_columns.items():
            builder.set_exclusions("histogram", table, columns)
        if self.maintenance_flag is not None:
            flag = self.maintenance_flag
            builder.set_maintenance(
                flag.table, flag.setting_column, flag.setting_name, flag.value_column
            )
        for param, value in self.defrag.model_dump(exclude_none=True).items():
            builder.set_defrag_param(param, value)
        if self.ledger_path is not None:
            builder.set_ledger_path(self.ledger_path)
        result: Policy = builder.build()
        return result


class SystemConfig(BaseConfig):
    """Top-level TableKeeper configuration.

    Example:
        >>> config = SystemConfig.from_file("tablekeeper.yaml")
        >>> config.schemas
        ['shop', 'forum']
    """

    app_name: str = Field("TableKeeper", description="Application name")
    database: DatabaseConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    schemas: List[str] = Field(default_factory=list, description="Schemas to maintain")

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SystemConfig":
        """Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file is missing or not a YAML mapping
        """
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                code=ErrorCodes.CONFIG_NOT_FOUND,
                context={"path": str(config_path)},
            )
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in {config_path}: {e}",
                code=ErrorCodes.CONFIG_INVALID,
                context={"path": str(config_path)},
                cause=e,
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {config_path}",
                code=ErrorCodes.CONFIG_INVALID,
                context={"path": str(config_path)},
            )
        return cls(**data)
