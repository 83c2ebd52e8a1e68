"""Performance logging for TableKeeper operations.

This module provides timing of maintenance statements. Every OPTIMIZE,
ANALYZE, CHECK, REPAIR, histogram or compression statement is executed
inside ``PerformanceLogger.measure`` so that its wall-clock duration is
logged and can be stored in the run ledger.

Classes:
    PerformanceLogger: Main performance logging interface
    TimingContext: Context manager for operation timing
    TimingMetrics: A single timing measurement

Example:
    >>> perf_logger = PerformanceLogger("maintenance.actions")
    >>> with perf_logger.measure("optimize", table="orders") as timer:
    ...     await executor.execute("OPTIMIZE TABLE `shop`.`orders`;")
    >>> timer.duration
    2.45
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional

from .structured import StructuredLogger


@dataclass
class TimingMetrics:
    """Metrics for a single timing measurement."""
    operation: str
    start_time: float
    end_time: Optional[float] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: Optional[str] = None

    def complete(self, success: bool = True, error: Optional[str] = None) -> None:
        """Mark timing as complete."""
        self.end_time = time.perf_counter()
        self.duration = self.end_time - self.start_time
        self.success = success
        self.error = error

    @property
    def duration_ms(self) -> Optional[float]:
        return self.duration * 1000 if self.duration is not None else None

    @property
    def duration_us(self) -> Optional[int]:
        return int(round(self.duration * 1_000_000)) if self.duration is not None else None


class TimingContext:
    """Context manager for measuring operation timing.

    Example:
        >>> with TimingContext("check") as timer:
        ...     run_check()
        >>> print(f"Check took {timer.duration_ms:.2f}ms")
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[StructuredLogger] = None,
        metadata: Optional[Dict[str, Any]] = None,
        auto_log: bool = True,
    ) -> None:
        self.operation = operation
        self.logger = logger
        self.metadata = metadata or {}
        self.auto_log = auto_log
        self._timing: Optional[TimingMetrics] = None

    @property
    def timing(self) -> Optional[TimingMetrics]:
        return self._timing

    @property
    def duration(self) -> Optional[float]:
        """Operation duration in seconds, or None while running."""
        return self._timing.duration if self._timing else None

    @property
    def duration_ms(self) -> Optional[float]:
        return self._timing.duration_ms if self._timing else None

    @property
    def duration_us(self) -> Optional[int]:
        return self._timing.duration_us if self._timing else None

    def __enter__(self) -> "TimingContext":
        self._timing = TimingMetrics(
            operation=self.operation,
            start_time=time.perf_counter(),
            metadata=self.metadata,
        )
        if self.logger and self.auto_log:
            self.logger.debug("Operation started", operation=self.operation, **self.metadata)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._timing is None:
            return

        success = exc_type is None
        error = str(exc_val) if exc_val else None
        self._timing.complete(success=success, error=error)

        if self.logger and self.auto_log:
            if success:
                self.logger.debug(
                    "Operation completed",
                    operation=self.operation,
                    duration_ms=self._timing.duration_ms,
                    **self.metadata,
                )
            else:
                self.logger.debug(
                    "Operation failed",
                    operation=self.operation,
                    duration_ms=self._timing.duration_ms,
                    error=error,
                    **self.metadata,
                )


class PerformanceLogger:
    """Performance logger that times operations and aggregates durations.

    Attributes:
        name: Logger name
        logger: Underlying structured logger
    """

    def __init__(
        self,
        name: str,
        *,
        auto_log: bool = True,
        track_metrics: bool = True,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.name = name
        self.auto_log = auto_log
        self.track_metrics = track_metrics
        self.logger = logger or StructuredLogger(f"perf.{name}")
        self._timings: Dict[str, List[TimingMetrics]] = defaultdict(list)

    @contextmanager
    def measure(self, operation: str, **metadata: Any) -> Generator[TimingContext, None, None]:
        """Context manager for measuring operation performance.

        Example:
            >>> with perf_logger.measure("analyze", table="orders") as timer:
            ...     await executor.execute(command)
            >>> timer.duration_us
            18342
        """
        timing_context = TimingContext(
            operation=operation,
            logger=self.logger if self.auto_log else None,
            metadata=metadata,
            auto_log=self.auto_log,
        )
        try:
            with timing_context as ctx:
                yield ctx
        finally:
            if self.track_metrics and timing_context.timing:
                self._timings[operation].append(timing_context.timing)

    def get_summary(self) -> Dict[str, Dict[str, Any]]:
        """Summarize recorded timings per operation.

        Returns:
            Mapping of operation name to count, failures and total/max seconds
        """
        summary: Dict[str, Dict[str, Any]] = {}
        for operation, timings in self._timings.items():
            durations = [t.duration for t in timings if t.duration is not None]
            summary[operation] = {
                "count": len(timings),
                "failures": sum(1 for t in timings if not t.success),
                "total_seconds": sum(durations),
                "max_seconds": max(durations) if durations else 0.0,
            }
        return summary

    def reset_metrics(self) -> None:
        """Drop all recorded timings."""
        self._timings.clear()

    def __repr__(self) -> str:
        return f"PerformanceLogger(name={self.name!r}, operations={len(self._timings)})"
