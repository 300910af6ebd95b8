"""
Stage timing for generation runs.

Provides:
- A process-wide timing log the pipeline stages append to
- A context manager that times one stage
- Progress logging for long frame loops
"""

from __future__ import annotations

import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger("photo3d.timing")


@dataclass
class TimingResult:
    """Result of a timed stage."""
    operation: str
    elapsed_seconds: float
    success: bool
    error: Optional[str] = None

    def __str__(self) -> str:
        status = "OK" if self.success else "ERROR"
        return f"{self.operation}: {self.elapsed_seconds:.3f}s [{status}]"


@dataclass
class TimingLog:
    """Accumulated timing information for a generation run."""
    entries: list[TimingResult] = field(default_factory=list)
    start_time: float = field(default_factory=time.perf_counter)

    def add(self, result: TimingResult):
        self.entries.append(result)
        logger.debug(str(result))

    def total_time(self) -> float:
        """Wall time since the log was created."""
        return time.perf_counter() - self.start_time

    def as_rows(self) -> list[tuple[str, str, str]]:
        """(stage, seconds, status) rows for table rendering."""
        return [
            (e.operation, f"{e.elapsed_seconds:.3f}", "OK" if e.success else "ERROR")
            for e in self.entries
        ]

    def summary(self) -> str:
        """One line per stage with its share of the run, then the total."""
        total = self.total_time()
        width = max((len(e.operation) for e in self.entries), default=0)
        lines = []
        for stage, seconds, status in self.as_rows():
            share = 100.0 * float(seconds) / total if total > 0 else 0.0
            lines.append(f"{stage:<{width}}  {seconds}s {share:5.1f}%  {status}")
        lines.append(f"{'total':<{width}}  {total:.3f}s")
        return "\n".join(lines)

    def get_slowest(self, n: int = 3) -> list[TimingResult]:
        ranked = sorted(self.entries, key=lambda e: e.elapsed_seconds)
        return ranked[::-1][:n]


# Timing log of the current generation run
_current_timing_log: Optional[TimingLog] = None


def get_timing_log() -> TimingLog:
    """Get or create the current timing log."""
    global _current_timing_log
    if _current_timing_log is None:
        _current_timing_log = TimingLog()
    return _current_timing_log


def reset_timing_log() -> TimingLog:
    """Start a fresh timing log for a new run."""
    global _current_timing_log
    _current_timing_log = TimingLog()
    return _current_timing_log


@contextmanager
def timed_operation(name: str, log: bool = True):
    """
    Time the enclosed block.

    Args:
        name: Stage name
        log: Whether to append the result to the current timing log

    Yields:
        TimingResult that is populated on exit
    """
    result = TimingResult(operation=name, elapsed_seconds=0.0, success=False)
    start = time.perf_counter()

    try:
        yield result
        result.success = True
    except Exception as e:
        result.error = str(e)
        raise
    finally:
        result.elapsed_seconds = time.perf_counter() - start
        if log:
            get_timing_log().add(result)


class ProgressTimer:
    """Logs progress of an iterative operation at a fixed interval."""

    def __init__(self, total: Optional[int] = None, operation_name: str = "Processing",
                 log_interval: float = 5.0):
        self.total = total
        self.operation_name = operation_name
        self.log_interval = log_interval
        self.current = 0
        self.start_time = time.perf_counter()
        self.last_log_time = self.start_time

    def update(self, n: int = 1):
        self.current += n

        now = time.perf_counter()
        if now - self.last_log_time >= self.log_interval:
            self._log_progress()
            self.last_log_time = now

    def _log_progress(self):
        elapsed = time.perf_counter() - self.start_time
        if self.total:
            pct = 100 * self.current / self.total
            logger.info(f"{self.operation_name}: {self.current}/{self.total} ({pct:.0f}%) after {elapsed:.1f}s")
        else:
            logger.info(f"{self.operation_name}: {self.current} after {elapsed:.1f}s")

    def finish(self):
        elapsed = time.perf_counter() - self.start_time
        logger.info(f"{self.operation_name}: {self.current} in {elapsed:.3f}s")
