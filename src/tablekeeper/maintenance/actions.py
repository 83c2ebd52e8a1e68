"""Maintenance actions understood by TableKeeper."""

from enum import Enum
from typing import Dict, Optional, Union

from ..core.exceptions import ErrorCodes, ValidationError


class Action(str, Enum):
    """The six table maintenance actions.

    Member values are the lower-case names accepted at configuration
    boundaries; ``key`` is the upper-case form used in ledger fields
    (``TO_OPTIMIZE``, ``OPTIMIZE_DATE``, ...).
    """

    COMPRESS = "compress"
    ANALYZE = "analyze"
    CHECK = "check"
    HISTOGRAM = "histogram"
    OPTIMIZE = "optimize"
    REPAIR = "repair"

    @classmethod
    def parse(cls, value: Union["Action", str]) -> "Action":
        """Convert a user-supplied action name into an ``Action``.

        Raises:
            ValidationError: If the name is not one of the six actions
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(action.key for action in cls)
        raise ValidationError(
            f"Wrong action type provided ({value}). Only {allowed} are supported.",
            code=ErrorCodes.UNSUPPORTED_ACTION,
            context={"action": value, "allowed": [action.value for action in cls]},
        )

    @property
    def key(self) -> str:
        return self.name

    @property
    def flag_field(self) -> str:
        return f"TO_{self.name}"

    @property
    def date_field(self) -> str:
        return f"{self.name}_DATE"

    @property
    def time_field(self) -> str:
        return f"{self.name}_TIME"

    @property
    def verbs(self) -> Dict[str, str]:
        """Phrases used in run log lines: start, success and failure."""
        return _VERBS[self]

    @property
    def default_days(self) -> Optional[int]:
        """Default staleness window; COMPRESS has none."""
        return _DEFAULT_DAYS.get(self)


_VERBS: Dict[Action, Dict[str, str]] = {
    Action.COMPRESS: {"start": "Compressing", "success": "compressed", "failure": "compress"},
    Action.CHECK: {"start": "Checking", "success": "checked", "failure": "check"},
    Action.REPAIR: {"start": "Repairing", "success": "repaired", "failure": "repair"},
    Action.ANALYZE: {"start": "Analyzing", "success": "analyzed", "failure": "analyze"},
    Action.OPTIMIZE: {"start": "Optimizing", "success": "optimized", "failure": "optimize"},
    Action.HISTOGRAM: {
        "start": "Creating histograms for",
        "success": "created histograms for",
        "failure": "create histograms for",
    },
}

_DEFAULT_DAYS: Dict[Action, int] = {
    Action.ANALYZE: 14,
    Action.CHECK: 30,
    Action.HISTOGRAM: 14,
    Action.OPTIMIZE: 30,
    Action.REPAIR: 30,
}

# Order of per-action commands in the combined inspection list
COMMAND_ORDER = (Action.CHECK, Action.REPAIR, Action.OPTIMIZE, Action.ANALYZE, Action.HISTOGRAM)

# Order in which the remaining-actions pass executes statements
EXECUTION_ORDER = (Action.OPTIMIZE, Action.CHECK, Action.REPAIR, Action.ANALYZE, Action.HISTOGRAM)

# Engines eligible for OPTIMIZE and REPAIR respectively
OPTIMIZE_ENGINES = frozenset({"innodb", "aria", "myisam", "archive"})
REPAIR_ENGINES = frozenset({"csv", "aria", "myisam", "archive"})

# Column types MySQL cannot build histograms for
HISTOGRAM_EXCLUDED_TYPES = (
    "JSON",
    "GEOMETRY",
    "POINT",
    "LINESTRING",
    "POLYGON",
    "MULTIPOINT",
    "MULTILINESTRING",
    "MULTIPOLYGON",
    "GEOMETRYCOLLECTION",
)
