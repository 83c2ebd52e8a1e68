"""Decision engine: which maintenance actions each table needs, and their SQL.

For every table the engine combines the current snapshot, the previous
run's record of the table, the policy and the server capabilities. The
evaluation order is fixed: COMPRESS first (and, when chosen, nothing else
for that table), then CHECK, HISTOGRAM, OPTIMIZE, ANALYZE and REPAIR.
ANALYZE must see the OPTIMIZE decision, since OPTIMIZE refreshes index
statistics itself.
"""

import time
from typing import Any, List, Mapping, Optional

from ..core.utils import StringUtils
from ..logging import get_logger
from .actions import OPTIMIZE_ENGINES, REPAIR_ENGINES, Action
from .metadata import MetadataReader
from .models import ActionDecision, CapabilitySet, TableEvaluation, TableSnapshot
from .policy import Policy
from .settings import build_postsettings, build_presettings, fulltext_toggle

SECONDS_PER_DAY = 86400

History = Mapping[str, Mapping[str, Any]]


def check_age(previous_timestamp: Optional[int], days: Optional[int], now: int) -> bool:
    """Staleness check.

    A table never processed before, or an action whose window is 0 days, is
    always stale. Otherwise at least ``days`` full days must have passed.
    """
    previous_timestamp = int(previous_timestamp or 0)
    if previous_timestamp <= 0:
        return True
    if not days:
        return True
    return now - previous_timestamp >= days * SECONDS_PER_DAY


def check_change(
    snapshot: TableSnapshot,
    previous: Optional[Mapping[str, Any]],
    zero_matters: bool = False,
) -> bool:
    """Change-detection check against the previous run's record of the table.

    ``zero_matters`` marks actions (ANALYZE, HISTOGRAM, OPTIMIZE) that may
    still pay off on an empty table or when sizes did not move; CHECK and
    REPAIR use the strict mode.
    """
    if previous is None:
        # Nothing to compare with: act on tables that hold rows
        return snapshot.rows > 0 or zero_matters

    if int(previous.get("TABLE_ROWS") or 0) != snapshot.rows:
        return snapshot.rows > 0 or zero_matters

    # Same row count does not mean same data: rows may have been updated or replaced
    if (
        int(previous.get("DATA_LENGTH") or 0) != snapshot.data_length
        or int(previous.get("INDEX_LENGTH") or 0) != snapshot.index_length
        or int(previous.get("TOTAL_LENGTH") or 0) != snapshot.total_length
    ):
        return True
    return zero_matters


class DecisionEngine:
    """Evaluates tables of one schema against a policy.

    The engine is stateless between calls; schema, history and policy are
    passed in explicitly every time.
    """

    def __init__(self, capabilities: CapabilitySet, metadata: MetadataReader) -> None:
        self.capabilities = capabilities
        self.metadata = metadata
        self.logger = get_logger("maintenance.engine")

    async def evaluate(
        self,
        schema: str,
        snapshots: List[TableSnapshot],
        history: History,
        policy: Policy,
        *,
        auto: bool = False,
        now: Optional[int] = None,
    ) -> List[TableEvaluation]:
        """Decide the actions for every table of ``schema``.

        Args:
            schema: Schema the snapshots belong to
            snapshots: Current table snapshots
            history: Previous run's ``after`` records keyed by table name
            policy: Policy to apply
            auto: If True, only per-action statements are produced; otherwise
                each table also gets its combined ``commands`` list
            now: Reference Unix time for staleness checks

        Raises:
            MetadataError: If histogram candidate columns cannot be read
        """
        now = int(time.time()) if now is None else now
        presettings = build_presettings(self.capabilities, policy)
        postsettings = build_postsettings(self.capabilities, policy)

        evaluations = []
        for snapshot in snapshots:
            evaluation = await self._evaluate_table(
                schema, snapshot, history.get(snapshot.name), policy, auto, now
            )
            if not auto:
                actions = evaluation.action_commands()
                evaluation.commands = [*presettings, *actions, *postsettings] if actions else []
            evaluations.append(evaluation)

        self.logger.debug(
            "Schema evaluated",
            schema=schema,
            tables=len(evaluations),
            pending=sum(1 for e in evaluations if e.has_pending_actions),
        )
        return evaluations

    async def _evaluate_table(
        self,
        schema: str,
        snapshot: TableSnapshot,
        previous: Optional[Mapping[str, Any]],
        policy: Policy,
        auto: bool,
        now: int,
    ) -> TableEvaluation:
        evaluation = TableEvaluation(snapshot=snapshot)
        decisions = evaluation.decisions
        target = StringUtils.qualified_name(schema, snapshot.name)

        if self._should_compress(snapshot, policy):
            algorithm = ""
            # InnoDB cannot rebuild in place with more than one FULLTEXT index
            if self.capabilities.alter_algorithm and snapshot.fulltext_indexes > 1:
                algorithm = " ALGORITHM=COPY"
            decisions[Action.COMPRESS] = ActionDecision(
                Action.COMPRESS, True, f"ALTER TABLE {target} ROW_FORMAT=COMPRESSED{algorithm};"
            )
            return evaluation

        def last_run(action: Action) -> Optional[int]:
            if not previous:
                return None
            if action is Action.ANALYZE:
                # OPTIMIZE refreshes index statistics as well
                return max(
                    int(previous.get(Action.ANALYZE.date_field) or 0),
                    int(previous.get(Action.OPTIMIZE.date_field) or 0),
                )
            return previous.get(action.date_field)

        def eligible(action: Action, zero_matters: bool) -> bool:
            if not policy.suggest[action] or policy.is_excluded(action, snapshot.name):
                return False
            return check_age(last_run(action), policy.days.get(action), now) and check_change(
                snapshot, previous, zero_matters
            )

        if eligible(Action.CHECK, False):
            decisions[Action.CHECK] = ActionDecision(
                Action.CHECK, True, f"CHECK TABLE {target} FOR UPGRADE EXTENDED;"
            )

        if eligible(Action.HISTOGRAM, True):
            command = await self._histogram_command(schema, snapshot, policy)
            if command:
                decisions[Action.HISTOGRAM] = ActionDecision(Action.HISTOGRAM, True, command)

        engine = snapshot.engine.lower()
        if (
            eligible(Action.OPTIMIZE, True)
            and snapshot.fragmentation >= policy.threshold
            and engine in OPTIMIZE_ENGINES
        ):
            decisions[Action.OPTIMIZE] = ActionDecision(
                Action.OPTIMIZE, True, f"OPTIMIZE TABLE {target};"
            )
            if not auto and self.capabilities.set_global:
                evaluation.fulltext_toggle = fulltext_toggle(snapshot.has_fulltext)

        if not decisions[Action.OPTIMIZE].should_run and eligible(Action.ANALYZE, True):
            decisions[Action.ANALYZE] = ActionDecision(
                Action.ANALYZE, True, f"ANALYZE TABLE {target};"
            )

        if eligible(Action.REPAIR, False) and engine in REPAIR_ENGINES:
            decisions[Action.REPAIR] = ActionDecision(
                Action.REPAIR, True, f"REPAIR TABLE {target} EXTENDED;"
            )

        return evaluation

    def _should_compress(self, snapshot: TableSnapshot, policy: Policy) -> bool:
        return (
            policy.suggest[Action.COMPRESS]
            and not policy.is_excluded(Action.COMPRESS, snapshot.name)
            and self.capabilities.compress
            and snapshot.engine.lower() == "innodb"
            and snapshot.row_format.lower() != "compressed"
        )

    async def _histogram_command(
        self, schema: str, snapshot: TableSnapshot, policy: Policy
    ) -> Optional[str]:
        target = StringUtils.qualified_name(schema, snapshot.name)
        if self.capabilities.histogram:
            columns = await self.metadata.fetch_histogram_columns(
                schema, snapshot.name, policy.excluded_columns(snapshot.name)
            )
            if not columns:
                return None
            quoted = ", ".join(StringUtils.quote_identifier(column) for column in columns)
            return f"ANALYZE TABLE {target} UPDATE HISTOGRAM ON {quoted};"
        if self.capabilities.analyze_persistent:
            return f"ANALYZE TABLE {target} PERSISTENT FOR ALL;"
        return None


