"""Maintenance policy: thresholds, enable flags, staleness windows and exclusions.

A ``Policy`` is an immutable value handed to the decision engine on every
call. It is produced by ``PolicyBuilder``, which owns all clamping and
validation rules, so configuration files and programmatic setters behave
the same way.

Example:
    >>> policy = (
    ...     PolicyBuilder()
    ...     .set_threshold(10)
    ...     .set_days("analyze", 7)
    ...     .set_exclusions("optimize", "sessions")
    ...     .build()
    ... )
    >>> policy.is_excluded(Action.OPTIMIZE, "sessions")
    True
"""

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Set,
    Tuple,
    Union,
)

from ..core.exceptions import ErrorCodes, ValidationError
from ..core.utils import StringUtils, ValidationUtils
from .actions import Action

DEFAULT_THRESHOLD = 5.0
LEDGER_FILENAME = "tables.json"
DEFRAG_PARAMS = ("n_pages", "stats_accuracy", "fill_factor_n_recs", "fill_factor", "frequency")
DEFRAG_PREFIX = "innodb_defragment_"

ActionName = Union[Action, str]


class MaintenanceFlag(NamedTuple):
    """Where the application keeps its "maintenance mode" switch."""
    table: str
    setting_column: str
    setting_name: str
    value_column: str

    def statement(self, schema: str, enabled: bool) -> str:
        """``UPDATE`` statement flipping the flag on or off."""
        quote = StringUtils.quote_identifier
        return (
            f"UPDATE {StringUtils.qualified_name(schema, self.table)} "
            f"SET {quote(self.value_column)} = {'true' if enabled else 'false'} "
            f"WHERE {quote(self.table)}.{quote(self.setting_column)} = "
            f"{StringUtils.quote_literal(self.setting_name)};"
        )


def default_ledger_path() -> Path:
    return Path(tempfile.gettempdir()) / LEDGER_FILENAME


def _freeze(mapping: Dict[Any, Any]) -> Mapping[Any, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class Policy:
    """Immutable maintenance policy.

    Attributes:
        threshold: Minimum fragmentation percentage for OPTIMIZE
        suggest: Per-action enable flags
        days: Per-action staleness windows (COMPRESS has none)
        exclusions: Per-action excluded table names
        histogram_columns: Per-table columns removed from histogram candidates
        maintenance_flag: Optional maintenance-mode switch
        defrag_params: Overrides for ``innodb_defragment_*`` variables
        ledger_path: Run ledger file
    """
    threshold: float = DEFAULT_THRESHOLD
    suggest: Mapping[Action, bool] = field(
        default_factory=lambda: _freeze({action: True for action in Action})
    )
    days: Mapping[Action, int] = field(
        default_factory=lambda: _freeze(
            {action: action.default_days for action in Action if action.default_days is not None}
        )
    )
    exclusions: Mapping[Action, FrozenSet[str]] = field(
        default_factory=lambda: _freeze({action: frozenset() for action in Action})
    )
    histogram_columns: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: _freeze({}))
    maintenance_flag: Optional[MaintenanceFlag] = None
    defrag_params: Mapping[str, Union[int, float]] = field(default_factory=lambda: _freeze({}))
    ledger_path: Path = field(default_factory=default_ledger_path)

    def get_suggest(self, action: ActionName) -> bool:
        return self.suggest[Action.parse(action)]

    def get_days(self, action: ActionName) -> Optional[int]:
        """Staleness window in days, or None for COMPRESS."""
        return self.days.get(Action.parse(action))

    def is_excluded(self, action: Action, table: str) -> bool:
        return table in self.exclusions[action]

    def excluded_columns(self, table: str) -> Tuple[str, ...]:
        return self.histogram_columns.get(table, ())

    def get_exclusions(self, action: Optional[ActionName] = None) -> Dict[str, Any]:
        """Exclusions as plain data.

        For HISTOGRAM the value maps each table to its excluded columns, or
        to None when the table is excluded from histograms entirely.
        """
        actions = list(Action) if action is None else [Action.parse(action)]
        result: Dict[str, Any] = {}
        for item in actions:
            if item is Action.HISTOGRAM:
                histogram: Dict[str, Optional[List[str]]] = {
                    table: list(columns) for table, columns in self.histogram_columns.items()
                }
                for table in self.exclusions[item]:
                    histogram[table] = None
                result[item.value] = histogram
            else:
                result[item.value] = sorted(self.exclusions[item])
        return result

    def maintenance_query(self, schema: str) -> Optional[str]:
        """Statement enabling maintenance mode, or None when not configured."""
        if self.maintenance_flag is None:
            return None
        return self.maintenance_flag.statement(schema, True)


class PolicyBuilder:
    """Mutable builder producing ``Policy`` values.

    Every setter returns the builder so calls can be chained. Unknown
    action names raise ``ValidationError``; out-of-range numbers are
    clamped; malformed table or column names are ignored.
    """

    def __init__(self, base: Optional[Policy] = None) -> None:
        base = base or Policy()
        self._threshold = base.threshold
        self._suggest: Dict[Action, bool] = dict(base.suggest)
        self._days: Dict[Action, int] = dict(base.days)
        self._exclusions: Dict[Action, Set[str]] = {
            action: set(tables) for action, tables in base.exclusions.items()
        }
        self._histogram_columns: Dict[str, List[str]] = {
            table: list(columns) for table, columns in base.histogram_columns.items()
        }
        self._maintenance_flag = base.maintenance_flag
        self._defrag_params: Dict[str, Union[int, float]] = dict(base.defrag_params)
        self._ledger_path = base.ledger_path

    def set_threshold(self, threshold: float) -> "PolicyBuilder":
        """Set the fragmentation threshold.

        Negative values become 0; values above 99 fall back to the default.
        """
        threshold = float(threshold)
        if threshold < 0:
            threshold = 0.0
        if threshold > 99:
            threshold = DEFAULT_THRESHOLD
        self._threshold = threshold
        return self

    def set_suggest(self, action: ActionName, flag: bool) -> "PolicyBuilder":
        self._suggest[Action.parse(action)] = bool(flag)
        return self

    def set_days(self, action: ActionName, days: int) -> "PolicyBuilder":
        """Set the staleness window; negative values become 0 (always stale)."""
        parsed = Action.parse(action)
        if parsed is Action.COMPRESS:
            return self
        self._days[parsed] = max(int(days), 0)
        return self

    def set_exclusions(
        self,
        action: Optional[ActionName],
        table: str,
        columns: Union[str, Iterable[str], None] = None,
    ) -> "PolicyBuilder":
        """Exclude a table from one action, or from all of them.

        Args:
            action: Action name, or None/"" for every action
            table: Table name (without schema)
            columns: For HISTOGRAM only: columns to drop from the candidate
                list instead of excluding the whole table
        """
        if not ValidationUtils.validate_object_name(table):
            return self
        if action is None or action == "":
            for item in Action:
                if item is not Action.HISTOGRAM:
                    self._exclusions[item].add(table)
            self._exclude_histogram(table, columns)
            return self

        parsed = Action.parse(action)
        if parsed is Action.HISTOGRAM:
            self._exclude_histogram(table, columns)
        else:
            self._exclusions[parsed].add(table)
        return self

    def _exclude_histogram(self, table: str, columns: Union[str, Iterable[str], None]) -> None:
        if columns is None:
            self._exclusions[Action.HISTOGRAM].add(table)
            return
        if isinstance(columns, str):
            columns = [columns]
        existing = self._histogram_columns.setdefault(table, [])
        for column in columns:
            if ValidationUtils.validate_object_name(column) and column not in existing:
                existing.append(column)

    def set_maintenance(
        self, table: str, setting_column: str, setting_name: str, value_column: str
    ) -> "PolicyBuilder":
        self._maintenance_flag = MaintenanceFlag(table, setting_column, setting_name, value_column)
        return self

    def clear_maintenance(self) -> "PolicyBuilder":
        self._maintenance_flag = None
        return self

    def set_defrag_param(self, param: str, value: float) -> "PolicyBuilder":
        """Override an ``innodb_defragment_*`` variable.

        The prefix is optional and names are case-insensitive. ``fill_factor``
        keeps its fractional part; every other parameter is truncated to int.

        Raises:
            ValidationError: If the parameter is not a defragmentation setting
        """
        name = param.lower().replace(DEFRAG_PREFIX, "")
        if name not in DEFRAG_PARAMS:
            raise ValidationError(
                f"Unsupported innodb_defragment_* parameter provided ({param}).",
                code=ErrorCodes.UNSUPPORTED_DEFRAG_PARAM,
                context={"param": param, "allowed": list(DEFRAG_PARAMS)},
            )
        self._defrag_params[name] = float(value) if name == "fill_factor" else int(value)
        return self

    def set_ledger_path(self, path: Union[str, Path]) -> "PolicyBuilder":
        """Set the ledger file; a directory gets ``tables.json`` appended."""
        raw = str(path)
        if raw.endswith(("/", "\\")) or Path(raw).is_dir():
            self._ledger_path = Path(raw.rstrip("/\\") or "/") / LEDGER_FILENAME
        else:
            self._ledger_path = Path(raw)
        return self

    def build(self) -> Policy:
        return Policy(
            threshold=self._threshold,
            suggest=_freeze(self._suggest),
            days=_freeze(self._days),
            exclusions=_freeze(
                {action: frozenset(tables) for action, tables in self._exclusions.items()}
            ),
            histogram_columns=_freeze(
                {table: tuple(columns) for table, columns in self._histogram_columns.items()}
            ),
            maintenance_flag=self._maintenance_flag,
            defrag_params=_freeze(
                {
                    name: self._defrag_params[name]
                    for name in DEFRAG_PARAMS
                    if name in self._defrag_params
                }
            ),
            ledger_path=self._ledger_path,
        )
