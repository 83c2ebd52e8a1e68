"""Data models for the maintenance core.

Classes:
    TableSnapshot: Metadata of one table at a point in time
    CapabilitySet: Server capabilities resolved once per session
    ActionDecision: Whether one action should run for one table, and how
    TableEvaluation: Snapshot plus the six decisions for one table
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .actions import COMMAND_ORDER, Action

SNAPSHOT_FIELDS = (
    "TABLE_NAME",
    "ENGINE",
    "ROW_FORMAT",
    "TABLE_ROWS",
    "DATA_LENGTH",
    "INDEX_LENGTH",
    "DATA_FREE",
    "TOTAL_LENGTH",
    "FRAGMENTATION",
    "FULLTEXT",
)


def _as_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(value)


@dataclass(frozen=True)
class TableSnapshot:
    """One row of table metadata, immutable once captured.

    ``total_length`` and ``fragmentation`` are derived from the three
    size columns; ``fragmentation`` is ``data_free / total_length * 100``
    and 0.0 for an empty table.
    """
    name: str
    engine: str
    row_format: str
    rows: int
    data_length: int
    index_length: int
    data_free: int
    fulltext_indexes: int = 0

    @property
    def total_length(self) -> int:
        return self.data_length + self.index_length + self.data_free

    @property
    def fragmentation(self) -> float:
        total = self.total_length
        if total <= 0:
            return 0.0
        return self.data_free / total * 100

    @property
    def has_fulltext(self) -> bool:
        return self.fulltext_indexes > 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TableSnapshot":
        """Build a snapshot from an information_schema row or a ledger record."""
        fulltext = row.get("FULLTEXT_INDEXES", row.get("FULLTEXT", 0))
        if isinstance(fulltext, bool):
            fulltext = int(fulltext)
        return cls(
            name=str(row["TABLE_NAME"]),
            engine=str(row.get("ENGINE") or ""),
            row_format=str(row.get("ROW_FORMAT") or ""),
            rows=_as_int(row.get("TABLE_ROWS")),
            data_length=_as_int(row.get("DATA_LENGTH")),
            index_length=_as_int(row.get("INDEX_LENGTH")),
            data_free=_as_int(row.get("DATA_FREE")),
            fulltext_indexes=_as_int(fulltext),
        )

    def to_record(self) -> Dict[str, Any]:
        """Ledger representation using the upper-case field names."""
        return {
            "TABLE_NAME": self.name,
            "ENGINE": self.engine,
            "ROW_FORMAT": self.row_format,
            "TABLE_ROWS": self.rows,
            "DATA_LENGTH": self.data_length,
            "INDEX_LENGTH": self.index_length,
            "DATA_FREE": self.data_free,
            "TOTAL_LENGTH": self.total_length,
            "FRAGMENTATION": self.fragmentation,
            "FULLTEXT": self.has_fulltext,
        }


@dataclass(frozen=True)
class CapabilitySet:
    """Optional server features, resolved once and never recomputed mid-run."""
    defragment: bool = False
    alter_algorithm: bool = False
    analyze_persistent: bool = False
    histogram: bool = False
    compress: bool = False
    set_global: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "defragment": self.defragment,
            "alter_algorithm": self.alter_algorithm,
            "analyze_persistent": self.analyze_persistent,
            "histogram": self.histogram,
            "compress": self.compress,
            "set_global": self.set_global,
        }


@dataclass
class ActionDecision:
    """Decision for one action on one table.

    ``executed_at`` (Unix seconds) and ``duration`` (microseconds) are
    filled in by the orchestrator once the statement has been run.
    """
    action: Action
    should_run: bool = False
    command: Optional[str] = None
    executed_at: Optional[int] = None
    duration: Optional[int] = None


@dataclass
class TableEvaluation:
    """A table snapshot together with its six action decisions.

    ``commands`` is only populated in inspection mode (``auto=False``):
    setup statements, the per-action statements in a fixed order, then
    the statements reverting the setup.
    """
    snapshot: TableSnapshot
    decisions: Dict[Action, ActionDecision] = field(default_factory=dict)
    fulltext_toggle: Optional[str] = None
    commands: Optional[List[str]] = None

    def __post_init__(self) -> None:
        for action in Action:
            self.decisions.setdefault(action, ActionDecision(action))

    @property
    def name(self) -> str:
        return self.snapshot.name

    def should_run(self, action: Action) -> bool:
        return self.decisions[action].should_run

    def command(self, action: Action) -> Optional[str]:
        return self.decisions[action].command

    @property
    def has_pending_actions(self) -> bool:
        return any(decision.should_run for decision in self.decisions.values())

    def action_commands(self) -> List[str]:
        """Per-action statements in inspection order, without setup/teardown."""
        if self.should_run(Action.COMPRESS):
            return [self.command(Action.COMPRESS)]
        commands: List[str] = []
        for action in COMMAND_ORDER:
            decision = self.decisions[action]
            if not decision.should_run or not decision.command:
                continue
            if action is Action.OPTIMIZE and self.fulltext_toggle:
                commands.append(self.fulltext_toggle)
            commands.append(decision.command)
        return commands

    def to_record(self) -> Dict[str, Any]:
        """Ledger record: snapshot fields, TO_* flags and executed date/time."""
        record = self.snapshot.to_record()
        for action in Action:
            record[action.flag_field] = self.decisions[action].should_run
        for action in Action:
            decision = self.decisions[action]
            if decision.executed_at is not None:
                record[action.date_field] = decision.executed_at
                record[action.time_field] = decision.duration or 0
        return record

    def to_dict(self, *, auto: bool = False) -> Dict[str, Any]:
        """Flat representation returned by ``TableMaintainer.analyze``.

        With ``auto`` every pending action carries its own statement under
        its upper-case name; otherwise a single ``COMMANDS`` list is given.
        """
        data = self.to_record()
        if auto:
            for action in Action:
                decision = self.decisions[action]
                if decision.should_run and decision.command:
                    data[action.key] = decision.command
        else:
            data["COMMANDS"] = list(self.commands or [])
        return data
