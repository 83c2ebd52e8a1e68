"""Run ledger: the JSON file carrying history between maintenance runs.

On disk the ledger is one JSON object::

    {
        "logs":   {"1718000000123456": "Getting list of tables...", ...},
        "before": {"orders": {"TABLE_NAME": "orders", ..., "TO_OPTIMIZE": true}},
        "after":  {"orders": {"TABLE_NAME": "orders", ..., "OPTIMIZE_DATE": 1718000001}}
    }

In memory the append-only log (``RunLog``) and the keyed table history
(``RunLedger``) are kept apart and only combined when saved. The ``after``
section of the previous file becomes ``previous`` for the next run and is
never written back itself.
"""

import json
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from ..core.exceptions import ErrorCodes, LedgerError
from ..logging import StructuredLogger, get_logger
from .actions import Action

TableRecords = Dict[str, Dict[str, Any]]

# (statistic name, ledger field) pairs reported as before-minus-after deltas
STATISTIC_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("DATA_SAVED", "DATA_LENGTH"),
    ("INDEX_SAVED", "INDEX_LENGTH"),
    ("FREE_RECLAIM", "DATA_FREE"),
    ("TOTAL_RECLAIM", "TOTAL_LENGTH"),
    ("FRAG_CHANGE", "FRAGMENTATION"),
)


def _now_us() -> int:
    return time.time_ns() // 1000


class RunLog:
    """Append-only sequence of human-readable events of one run.

    Keys are microsecond Unix timestamps, strictly increasing so that two
    events in the same microsecond never collide. Every event is mirrored to
    the structured logger.
    """

    def __init__(
        self,
        entries: Optional[Mapping[str, str]] = None,
        *,
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], int] = _now_us,
    ) -> None:
        self._entries: Dict[str, str] = dict(entries or {})
        self._clock = clock
        self._last = max((int(key) for key in self._entries), default=0)
        self.logger = logger

    def add(self, message: str, *, failed: bool = False) -> int:
        """Append ``message`` and return its key."""
        key = max(self._clock(), self._last + 1)
        self._last = key
        self._entries[str(key)] = message
        if self.logger is not None:
            if failed:
                self.logger.warning(message, log_key=key)
            else:
                self.logger.info(message, log_key=key)
        return key

    @property
    def last_key(self) -> int:
        return self._last

    @property
    def entries(self) -> Dict[str, str]:
        return dict(self._entries)

    def messages(self) -> List[str]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class RunLedger:
    """In-memory state of one run.

    Attributes:
        logs: Events of the current run
        previous: ``after`` records of the prior run (input only)
        before: Pre-action records with decision flags and executed dates
        after: Post-action records
    """
    logs: RunLog = field(default_factory=RunLog)
    previous: TableRecords = field(default_factory=dict)
    before: TableRecords = field(default_factory=dict)
    after: TableRecords = field(default_factory=dict)

    def merge_action_history(self) -> None:
        """Carry ``<ACTION>_DATE``/``_TIME`` into ``after``.

        An action run in this pass contributes its own date and duration; an
        action that did not run keeps what the previous run recorded. Nothing
        is written when neither exists.
        """
        for name in self.before:
            record = self.after.get(name)
            if record is None:
                continue
            executed = self.before[name]
            carried = self.previous.get(name, {})
            for action in Action:
                for key in (action.date_field, action.time_field):
                    if key in executed:
                        record[key] = executed[key]
                    elif key in carried:
                        record[key] = carried[key]

    def to_dict(self) -> Dict[str, Any]:
        return {"logs": self.logs.entries, "before": self.before, "after": self.after}


def compute_statistics(before: TableRecords, after: TableRecords) -> Dict[str, Dict[str, Any]]:
    """Before/after deltas for tables that were due for compression or optimization.

    ``COMPRESSED`` is reported when the row format changed; every delta
    (before minus after, so positive means space saved) only when the
    field actually changed.
    """
    statistics: Dict[str, Dict[str, Any]] = {}
    for name, record in before.items():
        if not (record.get("TO_COMPRESS") or record.get("TO_OPTIMIZE")):
            continue
        post = after.get(name)
        if post is None:
            continue
        table_stats: Dict[str, Any] = {}
        if record.get("ROW_FORMAT") != post.get("ROW_FORMAT"):
            table_stats["COMPRESSED"] = True
        for statistic, key in STATISTIC_FIELDS:
            delta = (record.get(key) or 0) - (post.get(key) or 0)
            if delta:
                table_stats[statistic] = delta
        statistics[name] = table_stats
    return statistics


class LedgerStore:
    """Reads and writes the ledger file.

    A missing, empty or malformed file is treated as "no history". Writes
    go through a temporary file in the same directory and ``os.replace``.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.logger = get_logger("maintenance.ledger")

    def read_raw(self) -> Dict[str, Any]:
        """Ledger file contents with every section guaranteed to be a mapping."""
        try:
            text = self.path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return {}
        except OSError as e:
            self.logger.warning(
                "Ledger unreadable, starting without history", path=str(self.path), error=str(e)
            )
            return {}
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except ValueError as e:
            self.logger.warning(
                "Ledger corrupt, starting without history", path=str(self.path), error=str(e)
            )
            return {}
        if not isinstance(data, dict):
            return {}
        for section in ("logs", "before", "after"):
            if not isinstance(data.get(section), dict):
                data[section] = {}
        data.pop("previous", None)
        return data

    def load(self, *, logger: Optional[StructuredLogger] = None) -> RunLedger:
        """Start a new run: the stored ``after`` becomes ``previous``."""
        data = self.read_raw()
        previous = {
            name: record
            for name, record in data.get("after", {}).items()
            if isinstance(record, dict)
        }
        return RunLedger(logs=RunLog(logger=logger), previous=previous)

    def save(self, ledger: RunLedger) -> None:
        """Persist ``before``, ``after`` and the logs of a completed run."""
        self._write(ledger.to_dict())

    def save_logs(self, ledger: RunLedger) -> None:
        """Persist only the logs, keeping the stored before/after sections."""
        data = self.read_raw()
        data.setdefault("before", {})
        data.setdefault("after", {})
        data["logs"] = ledger.logs.entries
        self._write(data)

    def _write(self, data: Dict[str, Any]) -> None:
        payload = json.dumps(data, indent=4, ensure_ascii=False)
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(directory))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise LedgerError(
                f"Failed to write ledger {self.path}: {e}",
                code=ErrorCodes.LEDGER_WRITE_FAILED,
                context={"path": str(self.path)},
                cause=e,
            ) from e
        self.logger.debug("Ledger saved", path=str(self.path), bytes=len(payload))
