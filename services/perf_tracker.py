"""Timing of case-generation stages.

Usage:
    from services.perf_tracker import perf

    with perf.track("story.victim"):
        victim = generate_victim()

    print(perf.get_summary())
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class TimingEntry:
    """A single timing measurement."""
    name: str
    start_time: float
    end_time: Optional[float] = None
    duration_ms: Optional[float] = None
    parallel_count: int = 1
    status: str = "running"
    details: str = ""

    def complete(self, status: str = "success", details: str = ""):
        self.end_time = time.perf_counter()
        self.duration_ms = (self.end_time - self.start_time) * 1000
        self.status = status
        if details:
            self.details = details


class PerformanceTracker:
    """Collects stage timings for the current generation run."""

    def __init__(self):
        self._entries: List[TimingEntry] = []
        self._active: Dict[str, TimingEntry] = {}
        self._run_start: Optional[float] = None
        self._run_id: str = ""
        self._lock = threading.Lock()

    def reset(self, run_id: str = ""):
        with self._lock:
            self._entries = []
            self._active = {}
            self._run_start = time.perf_counter()
            self._run_id = run_id
        logger.info("[PERF] Tracker reset for run %s", run_id or "unknown")

    def start(self, name: str, parallel_count: int = 1, details: str = "") -> TimingEntry:
        entry = TimingEntry(
            name=name,
            start_time=time.perf_counter(),
            parallel_count=parallel_count,
            details=details,
        )
        with self._lock:
            self._active[name] = entry
        logger.debug("[PERF] Started: %s", name)
        return entry

    def end(self, name: str, status: str = "success", details: str = ""):
        with self._lock:
            entry = self._active.pop(name, None)
            if entry is None:
                logger.warning("[PERF] Tried to end unknown stage: %s", name)
                return
            entry.complete(status, details)
            self._entries.append(entry)
        logger.info(
            "[PERF] %s %s - %.0fms%s",
            name, status, entry.duration_ms, f" ({details})" if details else "",
        )

    @contextmanager
    def track(self, name: str, details: str = ""):
        """Context manager timing one stage; exceptions mark it as error."""
        self.start(name, details=details)
        try:
            yield
        except Exception as e:
            self.end(name, status="error", details=str(e))
            raise
        self.end(name)

    def get_entries(self) -> List[TimingEntry]:
        with self._lock:
            return list(self._entries)

    def get_summary(self) -> str:
        entries = self.get_entries()
        if not entries:
            return "No performance data captured yet."

        total_ms = (time.perf_counter() - self._run_start) * 1000 if self._run_start else 0
        lines = [f"Run {self._run_id or '-'}: {total_ms:.0f}ms elapsed"]
        for entry in sorted(entries, key=lambda e: e.duration_ms or 0, reverse=True):
            parallel = f" x{entry.parallel_count}" if entry.parallel_count > 1 else ""
            pct = (entry.duration_ms / total_ms * 100) if total_ms > 0 else 0
            lines.append(
                f"  {entry.name}{parallel}: {entry.duration_ms:.0f}ms ({pct:.1f}%) [{entry.status}]"
            )
        return "\n".join(lines)


# Global tracker instance
perf = PerformanceTracker()


def get_perf_summary() -> str:
    return perf.get_summary()
