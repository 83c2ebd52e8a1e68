"""Run orchestrator: executes the engine's decisions for one schema.

A run moves through fixed phases, each finished before the next starts::

    SNAPSHOT -> GATE -> [EARLY_EXIT] | SORT -> SETTINGS_ON -> COMPRESS_PASS
    -> FULLTEXT_OPTIMIZE_PASS -> REMAINING_ACTIONS_PASS -> SETTINGS_OFF
    -> PERSIST -> DONE

Statements run strictly one after another. A failing maintenance or
setting statement is logged and the run goes on; a failure to read
metadata ends the run. Either way ``run()`` returns a ``RunResult``.
"""

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..core.exceptions import (
    ActionExecutionError,
    ErrorCodes,
    TableKeeperException,
    create_error_from_exception,
)
from ..database.base import SqlExecutor
from ..logging import get_logger, get_performance_logger
from .actions import EXECUTION_ORDER, Action
from .engine import DecisionEngine
from .ledger import LedgerStore, RunLedger, compute_statistics
from .metadata import MetadataReader
from .models import CapabilitySet, TableEvaluation
from .policy import Policy
from .settings import (
    FULLTEXT_ONLY_OFF,
    FULLTEXT_ONLY_ON,
    build_postsettings,
    build_presettings,
    maintenance_statement,
)


class RunPhase(str, Enum):
    """Phases of a maintenance run."""

    INIT = "init"
    SNAPSHOT = "snapshot"
    GATE = "gate"
    EARLY_EXIT = "early_exit"
    SORT = "sort"
    SETTINGS_ON = "settings_on"
    COMPRESS_PASS = "compress_pass"
    FULLTEXT_OPTIMIZE_PASS = "fulltext_optimize_pass"
    REMAINING_ACTIONS_PASS = "remaining_actions_pass"
    SETTINGS_OFF = "settings_off"
    PERSIST = "persist"
    DONE = "done"


@dataclass
class RunResult:
    """Terminal outcome of a run.

    Attributes:
        schema: Schema that was processed
        success: False only when the run was aborted by an error
        phase: Last phase entered
        logs: Events of the run, keyed by microsecond timestamp
        statistics: Before/after deltas of compressed or optimized tables
        early_exit: True when no table needed any action
        error: Error message of an aborted run
        trace: Formatted traceback of an aborted run
    """
    schema: str
    success: bool
    phase: RunPhase
    logs: Dict[str, str] = field(default_factory=dict)
    statistics: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    early_exit: bool = False
    error: Optional[str] = None
    trace: Optional[str] = None

    def describe(self) -> str:
        """Error message followed by the traceback, or "" for a successful run."""
        if self.success:
            return ""
        return f"{self.error}\n{self.trace or ''}".rstrip()


class RunOrchestrator:
    """Sequences one maintenance run over a schema.

    Example:
        >>> orchestrator = RunOrchestrator(connector, capabilities, policy)
        >>> result = await orchestrator.run("shop")
        >>> result.statistics["orders"]
        {'DATA_SAVED': 16384, 'FREE_RECLAIM': 4194304, ...}
    """

    def __init__(
        self,
        executor: SqlExecutor,
        capabilities: CapabilitySet,
        policy: Policy,
        *,
        metadata: Optional[MetadataReader] = None,
        store: Optional[LedgerStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.executor = executor
        self.capabilities = capabilities
        self.policy = policy
        self.metadata = metadata or MetadataReader(executor)
        self.engine = DecisionEngine(capabilities, self.metadata)
        self.store = store or LedgerStore(policy.ledger_path)
        self.clock = clock
        self.logger = get_logger("maintenance.orchestrator")
        self.perf_logger = get_performance_logger("maintenance.actions")
        self.phase = RunPhase.INIT

        self._ledger = RunLedger()
        self._done: Set[Tuple[str, Action]] = set()
        self._now = 0

    async def run(self, schema: str) -> RunResult:
        """Run every warranted maintenance action on ``schema``."""
        self.phase = RunPhase.INIT
        self._done = set()
        self._now = int(self.clock())
        self._ledger = self.store.load(logger=self.logger.bind(schema=schema))

        try:
            return await self._run(schema)
        except Exception as e:
            error = create_error_from_exception(e)
            if error.code == error.__class__.__name__:
                error.code = ErrorCodes.RUN_FAILED
            self.logger.exception(
                "Maintenance run failed",
                schema=schema,
                phase=self.phase.value,
                error=error.to_dict(),
            )
            return RunResult(
                schema=schema,
                success=False,
                phase=self.phase,
                logs=self._ledger.logs.entries,
                error=error.message,
                trace=traceback.format_exc(),
            )

    async def _run(self, schema: str) -> RunResult:
        ledger = self._ledger
        log = ledger.logs

        self.phase = RunPhase.SNAPSHOT
        log.add("Getting list of tables...")
        evaluations = await self._evaluate(schema)
        ledger.before = {evaluation.name: evaluation.to_record() for evaluation in evaluations}

        self.phase = RunPhase.GATE
        if not any(evaluation.has_pending_actions for evaluation in evaluations):
            self.phase = RunPhase.EARLY_EXIT
            log.add("No tables to process were returned. Skipping...")
            self.store.save_logs(ledger)
            stored = self.store.read_raw()
            return RunResult(
                schema=schema,
                success=True,
                phase=self.phase,
                logs=log.entries,
                statistics=compute_statistics(stored.get("before", {}), stored.get("after", {})),
                early_exit=True,
            )

        self.phase = RunPhase.SORT
        evaluations = self._sorted(evaluations)

        self.phase = RunPhase.SETTINGS_ON
        await self._settings_on(schema)
        try:
            self.phase = RunPhase.COMPRESS_PASS
            compressed = False
            for evaluation in evaluations:
                if evaluation.should_run(Action.COMPRESS):
                    compressed = await self._run_action(evaluation, Action.COMPRESS) or compressed
            if compressed:
                log.add("Updating tables list after compression...")
                evaluations = self._sorted(await self._evaluate(schema))

            self.phase = RunPhase.FULLTEXT_OPTIMIZE_PASS
            optimized = False
            for evaluation in evaluations:
                if evaluation.snapshot.has_fulltext and evaluation.should_run(Action.OPTIMIZE):
                    optimized = (
                        await self._run_action(evaluation, Action.OPTIMIZE, fulltext=True)
                        or optimized
                    )
            if optimized:
                log.add("Updating tables list after FULLTEXT optimization...")
                evaluations = self._sorted(await self._evaluate(schema))

            self.phase = RunPhase.REMAINING_ACTIONS_PASS
            for evaluation in evaluations:
                for action in EXECUTION_ORDER:
                    if (evaluation.name, action) in self._done:
                        continue
                    if evaluation.should_run(action):
                        await self._run_action(evaluation, action)
        finally:
            self.phase = RunPhase.SETTINGS_OFF
            await self._settings_off(schema)

        self.phase = RunPhase.PERSIST
        log.add("Collecting statistics after maintenance...")
        after = await self._evaluate(schema)
        ledger.after = {evaluation.name: evaluation.to_record() for evaluation in after}
        ledger.merge_action_history()
        statistics = compute_statistics(ledger.before, ledger.after)
        self.store.save(ledger)

        self.phase = RunPhase.DONE
        self.logger.info(
            "Maintenance run completed",
            schema=schema,
            actions=len(self._done),
            tables=len(ledger.before),
        )
        return RunResult(
            schema=schema,
            success=True,
            phase=self.phase,
            logs=log.entries,
            statistics=statistics,
        )

    async def _evaluate(self, schema: str) -> List[TableEvaluation]:
        snapshots = await self.metadata.fetch_tables(schema)
        return await self.engine.evaluate(
            schema, snapshots, self._ledger.previous, self.policy, auto=True, now=self._now
        )

    @staticmethod
    def _sorted(evaluations: List[TableEvaluation]) -> List[TableEvaluation]:
        return sorted(evaluations, key=lambda evaluation: evaluation.snapshot.total_length)

    async def _run_action(
        self, evaluation: TableEvaluation, action: Action, *, fulltext: bool = False
    ) -> bool:
        """Execute one action on one table; failures are logged, never raised."""
        log = self._ledger.logs
        name = evaluation.name
        verbs = action.verbs
        decision = evaluation.decisions[action]

        if fulltext and self.capabilities.set_global:
            log.add(f"Enabling FULLTEXT optimization for `{name}`...")
            await self._execute_quietly(
                FULLTEXT_ONLY_ON, f"Failed to enable `innodb_optimize_fulltext_only` on `{name}`"
            )

        log.add(f"{verbs['start']} `{name}`...")
        failure: Optional[ActionExecutionError] = None
        with self.perf_logger.measure(action.value, table=name) as timer:
            try:
                await self.executor.execute_query(decision.command)
            except TableKeeperException as e:
                failure = ActionExecutionError(
                    e.message,
                    code=ErrorCodes.ACTION_FAILED,
                    context={"table": name, "action": action.value, "command": decision.command},
                    cause=e,
                )

        if fulltext and self.capabilities.set_global:
            log.add(f"Disabling FULLTEXT optimization for `{name}`...")
            await self._execute_quietly(
                FULLTEXT_ONLY_OFF, f"Failed to disable `innodb_optimize_fulltext_only` on `{name}`"
            )

        if failure is None:
            log.add(f"Successfully {verbs['success']} `{name}`.")
        else:
            log.add(
                f"Failed to {verbs['failure']} `{name}` with error: {failure.message}", failed=True
            )

        # The attempt counts as a run even when the statement failed
        decision.executed_at = self._now
        decision.duration = timer.duration_us or 0
        record = self._ledger.before.setdefault(name, evaluation.to_record())
        record[action.date_field] = decision.executed_at
        record[action.time_field] = decision.duration
        self._done.add((name, action))
        return failure is None

    async def _settings_on(self, schema: str) -> None:
        if not await self._toggle_maintenance(schema, True):
            return
        self._log("Updating settings for optimization...")
        for statement in build_presettings(self.capabilities, self.policy):
            await self._apply_setting(statement)

    async def _settings_off(self, schema: str) -> None:
        self._log("Reverting settings after optimization...")
        for statement in build_postsettings(self.capabilities, self.policy):
            await self._apply_setting(statement)
        await self._toggle_maintenance(schema, False)

    async def _apply_setting(self, statement: str) -> None:
        self._log(f"Attempting to update setting '{statement}'...")
        if await self._execute_quietly(statement, "Failed to update setting"):
            self._log("Successfully updated setting.")

    async def _toggle_maintenance(self, schema: str, enabled: bool) -> bool:
        statement = maintenance_statement(self.policy, schema, enabled)
        if statement is None:
            return True
        verb = "enable" if enabled else "disable"
        self._log(f"Attempting to {verb} maintenance mode using '{statement}'...")
        failure_message = f"Failed to {verb} maintenance mode using '{statement}'"
        if await self._execute_quietly(statement, failure_message):
            self._log(f"Maintenance mode {verb}d.")
            return True
        return False

    async def _execute_quietly(self, statement: str, failure_message: str) -> bool:
        try:
            await self.executor.execute_query(statement)
        except TableKeeperException as e:
            self._log(f"{failure_message} with error: {e.message}", failed=True)
            return False
        return True

    def _log(self, message: str, *, failed: bool = False) -> None:
        self._ledger.logs.add(message, failed=failed)
