"""TableKeeper - MySQL/MariaDB table maintenance advisor and runner.

TableKeeper decides which maintenance statements (OPTIMIZE, ANALYZE, CHECK,
REPAIR, histogram creation, row compression) the tables of a schema actually
need, based on their current metadata, the previous run and a configurable
policy, and runs them in a safe order with the right settings around them.

Modules:
    core: Base classes, exceptions and utilities
    config: Configuration models
    logging: Structured logging
    database: Database boundary and MySQL connector
    maintenance: Decision engine, orchestrator and run ledger

Example:
    >>> from tablekeeper.config import SystemConfig
    >>> from tablekeeper.database import MySQLConnector
    >>> from tablekeeper.logging import configure_logging
    >>> from tablekeeper.maintenance import TableMaintainer
    >>>
    >>> config = SystemConfig.from_file("tablekeeper.yaml")
    >>> configure_logging(level=config.logging.level)
    >>> async with MySQLConnector(config.database) as connector:
    ...     maintainer = TableMaintainer(connector, config.policy.to_policy())
    ...     for schema in config.schemas:
    ...         print(await maintainer.optimize(schema, show_stats=True))
"""

from . import config, core, database, logging, maintenance

__version__ = "0.1.0"
__title__ = "TableKeeper"
__description__ = "MySQL/MariaDB table maintenance advisor and runner"

__all__ = [
    "config",
    "core",
    "database",
    "logging",
    "maintenance",
    "__version__",
    "__title__",
    "__description__",
]
