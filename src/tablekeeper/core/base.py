"""Base classes for TableKeeper components.

This module provides the foundational abstract base classes that TableKeeper
components inherit from, ensuring consistent configuration handling and
lifecycle behavior across the database boundary and the maintenance facade.

Classes:
    BaseComponent: Generic base class for all TableKeeper components
    ConfigurableComponent: Base class for components whose configuration changes
    AsyncComponent: Base class for components with async initialization

Example:
    >>> class MySQLConnector(AsyncComponent[DatabaseConfig]):
    ...     async def _async_initialize(self) -> None:
    ...         self._pool = await aiomysql.create_pool(...)
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Generic, TypeVar

import structlog

from .exceptions import (
    ConfigurationError,
    TableKeeperException,
    ValidationError,
)

T = TypeVar("T")


class BaseComponent(Generic[T], ABC):
    """Base class for all TableKeeper components.

    Type Parameters:
        T: Type of configuration object this component accepts

    Attributes:
        component_name: Name of the component for logging and identification
        version: Component version
    """

    component_name: ClassVar[str] = "BaseComponent"
    version: ClassVar[str] = "1.0.0"

    def __init__(self, config: T) -> None:
        """Initialize base component.

        Args:
            config: Configuration object for this component

        Raises:
            ValidationError: If configuration is None
            ConfigurationError: If configuration is invalid
        """
        if config is None:
            raise ValidationError(
                "Configuration cannot be None",
                code="CONFIG_NULL",
                context={"component": self.component_name},
            )

        self._config: T = config
        self._initialized: bool = False
        self._creation_time: float = time.time()
        self._logger = structlog.get_logger(self.__class__.__name__)

        if not self.validate_config():
            raise ConfigurationError(
                f"Invalid configuration for {self.component_name}",
                code="CONFIG_INVALID",
                context={"component": self.component_name},
            )

    @property
    def config(self) -> T:
        """Get component configuration."""
        return self._config

    @property
    def is_initialized(self) -> bool:
        """Check if component is initialized."""
        return self._initialized

    @property
    def uptime(self) -> float:
        """Get component uptime in seconds."""
        return time.time() - self._creation_time

    def validate_config(self) -> bool:
        """Validate component configuration.

        Subclasses override this to implement component-specific checks.
        """
        return self._config is not None

    def get_health_status(self) -> Dict[str, Any]:
        """Get component health status."""
        return {
            "component": self.component_name,
            "version": self.version,
            "initialized": self._initialized,
            "uptime_seconds": self.uptime,
            "status": "healthy" if self._initialized else "not_initialized",
        }

    def __repr__(self) -> str:
        """Return string representation of component."""
        return (
            f"{self.__class__.__name__}("
            f"name={self.component_name!r}, "
            f"initialized={self._initialized}, "
            f"uptime={self.uptime:.2f}s)"
        )


class ConfigurableComponent(BaseComponent[T]):
    """Base class for components whose configuration is replaced over time.

    Configuration objects are treated as immutable values: an update swaps
    the whole object. The last ``max_config_history`` configurations,
    the current one included, are kept for rollback.
    """

    max_config_history: int = 10

    def __init__(self, config: T) -> None:
        super().__init__(config)
        self._config_version: int = 1
        self._config_history: list[T] = [config]

    def update_config(self, new_config: T, *, validate: bool = True) -> None:
        """Replace component configuration.

        Args:
            new_config: New configuration to apply
            validate: Whether to validate new configuration

        Raises:
            ValidationError: If new configuration is invalid
        """
        if validate and not self._validate_config_update(new_config):
            raise ValidationError(
                "New configuration is invalid",
                code="CONFIG_UPDATE_INVALID",
                context={
                    "component": self.component_name,
                    "version": self._config_version,
                },
            )

        self._config_history.append(new_config)
        del self._config_history[:-self.max_config_history]
        self._config = new_config
        self._config_version += 1

        self._logger.debug(
            "Configuration updated",
            component=self.component_name,
            version=self._config_version,
        )

    def rollback_config(self) -> bool:
        """Rollback to previous configuration.

        Returns:
            True if rollback was successful
        """
        if len(self._config_history) < 2:
            return False

        self._config_history.pop()
        self._config = self._config_history[-1]
        self._config_version += 1

        self._logger.debug(
            "Configuration rolled back",
            component=self.component_name,
            version=self._config_version,
        )
        return True

    def _validate_config_update(self, config: T) -> bool:
        """Validate configuration update."""
        return config is not None

    @property
    def config_version(self) -> int:
        """Get current configuration version."""
        return self._config_version


class AsyncComponent(ConfigurableComponent[T]):
    """Base class for components that perform I/O during initialization.

    Initialization and cleanup are serialized with locks so repeated calls
    are harmless. Errors from the TableKeeper hierarchy propagate unchanged;
    anything else is wrapped.
    """

    def __init__(self, config: T) -> None:
        super().__init__(config)
        self._initialization_lock = asyncio.Lock()
        self._cleanup_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize component asynchronously.

        Raises:
            TableKeeperException: If initialization fails
        """
        async with self._initialization_lock:
            if self._initialized:
                return

            self._logger.debug("Initializing component", component=self.component_name)

            try:
                await self._async_initialize()
            except TableKeeperException as e:
                self._logger.error(
                    "Component initialization failed",
                    component=self.component_name,
                    error=str(e),
                )
                raise
            except Exception as e:
                self._logger.error(
                    "Component initialization failed",
                    component=self.component_name,
                    error=str(e),
                )
                raise TableKeeperException(
                    f"Failed to initialize {self.component_name}",
                    code="INIT_FAILED",
                    context={"component": self.component_name},
                    cause=e,
                ) from e

            self._initialized = True
            self._logger.debug("Component initialized", component=self.component_name)

    async def cleanup(self) -> None:
        """Clean up component resources asynchronously.

        Cleanup failures are logged, never raised, so they cannot mask the
        error that led to cleanup.
        """
        async with self._cleanup_lock:
            if not self._initialized:
                return

            try:
                await self._async_cleanup()
            except Exception as e:
                self._logger.error(
                    "Component cleanup failed",
                    component=self.component_name,
                    error=str(e),
                )
            finally:
                self._initialized = False

    @abstractmethod
    async def _async_initialize(self) -> None:
        """Perform async initialization work."""

    async def _async_cleanup(self) -> None:
        """Perform async cleanup work."""

    async def __aenter__(self) -> "AsyncComponent[T]":
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.cleanup()
