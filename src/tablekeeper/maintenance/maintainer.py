"""Public entry point for table maintenance."""

import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..core import AsyncComponent
from ..core.exceptions import ErrorCodes, MaintenanceError
from ..database.base import SqlExecutor
from ..logging import get_logger
from .capabilities import FeatureDetector
from .engine import DecisionEngine
from .ledger import LedgerStore, compute_statistics
from .metadata import MetadataReader
from .models import CapabilitySet
from .orchestrator import RunOrchestrator, RunResult
from .policy import ActionName, Policy, PolicyBuilder


class TableMaintainer(AsyncComponent[Policy]):
    """Suggests and runs maintenance statements for the tables of a schema.

    Server capabilities are detected once, on initialization. The policy is
    an immutable value; every setter replaces it with an updated copy.

    Example:
        >>> async with MySQLConnector(config.database) as connector:
        ...     maintainer = TableMaintainer(connector, config.policy.to_policy())
        ...     await maintainer.initialize()
        ...     for commands in await maintainer.get_commands("shop"):
        ...         print("\\n".join(commands))
        ...     logs = await maintainer.optimize("shop")
    """

    component_name = "TableMaintainer"
    version = "1.0.0"

    def __init__(
        self,
        executor: SqlExecutor,
        policy: Optional[Policy] = None,
        *,
        capabilities: Optional[CapabilitySet] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(policy or Policy())
        self.executor = executor
        self.metadata = MetadataReader(executor)
        self.clock = clock
        self.logger = get_logger("maintenance.maintainer")
        self._capabilities = capabilities

    def validate_config(self) -> bool:
        return isinstance(self._config, Policy)

    async def _async_initialize(self) -> None:
        if self._capabilities is None:
            self._capabilities = await FeatureDetector(self.executor).detect()

    @property
    def capabilities(self) -> CapabilitySet:
        if self._capabilities is None:
            raise MaintenanceError(
                "Server capabilities are not known before initialization",
                code=ErrorCodes.CAPABILITY_DETECTION_FAILED,
                context={"component": self.component_name},
            )
        return self._capabilities

    @property
    def policy(self) -> Policy:
        return self._config

    # Operations

    async def analyze(self, schema: str, auto: bool = False) -> Dict[str, Dict[str, Any]]:
        """Decide which actions each table of ``schema`` needs.

        Args:
            schema: Schema to inspect
            auto: Give each pending action its own statement instead of a
                combined ``COMMANDS`` list per table

        Returns:
            Per-table records keyed by table name

        Raises:
            MetadataError: If the schema's metadata cannot be read
        """
        await self.initialize()
        history = LedgerStore(self.policy.ledger_path).load().previous
        engine = DecisionEngine(self.capabilities, self.metadata)
        snapshots = await self.metadata.fetch_tables(schema)
        evaluations = await engine.evaluate(
            schema, snapshots, history, self.policy, auto=auto, now=int(self.clock())
        )
        return {evaluation.name: evaluation.to_dict(auto=auto) for evaluation in evaluations}

    async def get_commands(self, schema: str) -> List[List[str]]:
        """Command lists of every table that needs work, smallest tables first."""
        tables = await self.analyze(schema)
        ordered = sorted(tables.values(), key=lambda record: record["TOTAL_LENGTH"])
        return [record["COMMANDS"] for record in ordered if record["COMMANDS"]]

    async def run(self, schema: str) -> RunResult:
        """Run maintenance on ``schema`` and return the full result."""
        await self.initialize()
        orchestrator = RunOrchestrator(
            self.executor,
            self.capabilities,
            self.policy,
            metadata=self.metadata,
            clock=self.clock,
        )
        return await orchestrator.run(schema)

    async def optimize(
        self, schema: str, show_stats: bool = False, silent: bool = False
    ) -> Union[bool, Dict[str, Any], str]:
        """Run maintenance on ``schema``.

        Returns:
            With ``silent``, whether the run completed. Otherwise the run's
            statistics (``show_stats``) or its logs. A failed run yields its
            error message and traceback instead.

        Raises:
            CapabilityError: If server capabilities cannot be detected
        """
        result = await self.run(schema)
        if silent:
            return result.success
        if not result.success:
            return result.describe()
        if show_stats:
            return result.statistics
        return result.logs

    def show_stats(self) -> Dict[str, Dict[str, Any]]:
        """Statistics of the last completed run, read from the ledger file."""
        stored = LedgerStore(self.policy.ledger_path).read_raw()
        return compute_statistics(stored.get("before", {}), stored.get("after", {}))

    # Setters

    def _update(self, builder: PolicyBuilder) -> "TableMaintainer":
        self.update_config(builder.build())
        return self

    def set_threshold(self, threshold: float) -> "TableMaintainer":
        return self._update(PolicyBuilder(self.policy).set_threshold(threshold))

    def set_suggest(self, action: ActionName, flag: bool) -> "TableMaintainer":
        return self._update(PolicyBuilder(self.policy).set_suggest(action, flag))

    def set_days(self, action: ActionName, days: int) -> "TableMaintainer":
        return self._update(PolicyBuilder(self.policy).set_days(action, days))

    def set_exclusions(
        self,
        action: Optional[ActionName],
        table: str,
        columns: Union[str, Iterable[str], None] = None,
    ) -> "TableMaintainer":
        return self._update(PolicyBuilder(self.policy).set_exclusions(action, table, columns))

    def set_maintenance(
        self, table: str, setting_column: str, setting_name: str, value_column: str
    ) -> "TableMaintainer":
        return self._update(
            PolicyBuilder(self.policy).set_maintenance(
                table, setting_column, setting_name, value_column
            )
        )

    def set_defrag_param(self, param: str, value: float) -> "TableMaintainer":
        """Override an ``innodb_defragment_*`` variable.

        The parameter name is always validated; the value is dropped when the
        server is known not to support in-place defragmentation.
        """
        builder = PolicyBuilder(self.policy).set_defrag_param(param, value)
        if self._capabilities is not None and not self._capabilities.defragment:
            self.logger.debug("Defragmentation unsupported, parameter ignored", param=param)
            return self
        return self._update(builder)

    def set_ledger_path(self, path: Union[str, Path]) -> "TableMaintainer":
        return self._update(PolicyBuilder(self.policy).set_ledger_path(path))

    # Getters

    @property
    def threshold(self) -> float:
        return self.policy.threshold

    def get_suggest(self, action: ActionName) -> bool:
        return self.policy.get_suggest(action)

    def get_days(self, action: ActionName) -> Optional[int]:
        return self.policy.get_days(action)

    def get_exclusions(self, action: Optional[ActionName] = None) -> Dict[str, Any]:
        return self.policy.get_exclusions(action)

    def get_maintenance(self, schema: str) -> Optional[str]:
        """Statement that enables maintenance mode on ``schema``, if configured."""
        return self.policy.maintenance_query(schema)

    @property
    def defrag_params(self) -> Dict[str, Union[int, float]]:
        return dict(self.policy.defrag_params)

    @property
    def ledger_path(self) -> Path:
        return self.policy.ledger_path
