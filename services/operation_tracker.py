"""Tracking for slow background work (dialogue, audio, images).

A caller starts an operation, gets its id back immediately and polls
`get` until the status is terminal. Workers run on daemon threads and keep
going whether or not anyone is still polling.

The registry sits behind `OperationStore` so it can live in memory (the
default) or in an external key-value store.
"""

import logging
import threading
import time
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from config.settings import get_env_settings
from game.errors import CaseError

logger = logging.getLogger(__name__)

INITIAL_PROGRESS = 10


class OperationStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (OperationStatus.COMPLETED, OperationStatus.FAILED)


class Operation(BaseModel):
    id: str
    type: str
    status: OperationStatus = OperationStatus.PROCESSING
    progress: int = Field(default=INITIAL_PROGRESS, ge=0, le=100)
    message: str = ""
    result: Any = None
    error: Optional[str] = None
    start_time: float
    end_time: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class OperationNotFound(CaseError):
    """No operation with this id (never created, or already swept)."""


class OperationAbandoned(CaseError):
    """Polling gave up before the operation reached a terminal status."""

    def __init__(self, operation: Operation):
        super().__init__(f"Operation {operation.id} still {operation.status.value} at {operation.progress}%")
        self.operation = operation


class OperationStore(Protocol):
    def put(self, operation: Operation) -> None:
        ...

    def get(self, operation_id: str) -> Optional[Operation]:
        ...

    def delete(self, operation_id: str) -> None:
        ...

    def all(self) -> List[Operation]:
        ...


class InMemoryOperationStore:
    def __init__(self):
        self._operations: Dict[str, Operation] = {}
        self._lock = threading.Lock()

    def put(self, operation: Operation) -> None:
        with self._lock:
            self._operations[operation.id] = operation.model_copy(deep=True)

    def get(self, operation_id: str) -> Optional[Operation]:
        with self._lock:
            op = self._operations.get(operation_id)
            return op.model_copy(deep=True) if op else None

    def delete(self, operation_id: str) -> None:
        with self._lock:
            self._operations.pop(operation_id, None)

    def all(self) -> List[Operation]:
        with self._lock:
            return [op.model_copy(deep=True) for op in self._operations.values()]


ProgressCallback = Callable[[int, str], None]


class OperationTracker:
    """Create, update, read and expire operations."""

    def __init__(
        self,
        store: Optional[OperationStore] = None,
        retention_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or InMemoryOperationStore()
        if retention_seconds is None:
            retention_seconds = get_env_settings().operation_retention_seconds
        self.retention_seconds = retention_seconds
        self.clock = clock
        self._update_lock = threading.Lock()
        self._sweeper: Optional[threading.Thread] = None
        self._stop_sweeper = threading.Event()

    def create(self, op_type: str, message: str = "") -> str:
        now = self.clock()
        operation_id = f"{op_type}_{int(now * 1000)}_{uuid.uuid4().hex[:9]}"
        self.store.put(
            Operation(id=operation_id, type=op_type, message=message, start_time=now)
        )
        logger.info("[OPS] Created %s (%s)", operation_id, message)
        return operation_id

    def update(
        self,
        operation_id: str,
        progress: Optional[int] = None,
        message: Optional[str] = None,
        status: Optional[OperationStatus] = None,
        result: Any = None,
        error: Optional[str] = None,
    ) -> Optional[Operation]:
        """Apply a partial update and return the new record.

        Unknown ids return None. Terminal records are left as they are.
        Progress is clamped to 0..100 and never moves backwards.
        """
        with self._update_lock:
            op = self.store.get(operation_id)
            if op is None:
                logger.warning("[OPS] Update for unknown operation %s", operation_id)
                return None
            if op.is_terminal:
                logger.warning("[OPS] Ignoring update to %s operation %s", op.status.value, operation_id)
                return op

            if progress is not None:
                op.progress = max(op.progress, min(100, max(0, int(progress))))
            if message is not None:
                op.message = message
            if result is not None:
                op.result = result
            if error is not None:
                op.error = error
            if status is not None:
                op.status = OperationStatus(status)
                if op.is_terminal:
                    op.end_time = self.clock()
                    logger.info(
                        "[OPS] %s %s after %.1fs",
                        operation_id, op.status.value, op.end_time - op.start_time,
                    )
            self.store.put(op)
            return op

    def get(self, operation_id: str) -> Optional[Operation]:
        return self.store.get(operation_id)

    def sweep(self) -> int:
        """Remove every operation started more than the retention window ago."""
        cutoff = self.clock() - self.retention_seconds
        expired = [op.id for op in self.store.all() if op.start_time < cutoff]
        for operation_id in expired:
            self.store.delete(operation_id)
        if expired:
            logger.info("[OPS] Swept %d expired operations", len(expired))
        return len(expired)

    def start_sweeper(self, interval_seconds: Optional[float] = None) -> threading.Thread:
        """Run `sweep` periodically on a daemon thread (idempotent)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return self._sweeper
        if interval_seconds is None:
            interval_seconds = get_env_settings().operation_sweep_seconds
        self._stop_sweeper.clear()

        def loop():
            while not self._stop_sweeper.wait(interval_seconds):
                try:
                    self.sweep()
                except Exception:
                    logger.exception("[OPS] Sweep failed")

        self._sweeper = threading.Thread(target=loop, name="operation-sweeper", daemon=True)
        self._sweeper.start()
        return self._sweeper

    def stop_sweeper(self) -> None:
        self._stop_sweeper.set()

    def run_in_background(
        self,
        op_type: str,
        message: str,
        worker: Callable[[ProgressCallback], Any],
    ) -> str:
        """Start `worker(report)` on a daemon thread and return the operation id.

        `report(progress, message)` updates the operation. The worker's return
        value becomes the result; any exception marks the operation failed.
        """
        operation_id = self.create(op_type, message)

        def report(progress: int, msg: str) -> None:
            self.update(operation_id, progress=progress, message=msg)

        def run():
            try:
                result = worker(report)
            except Exception as e:
                logger.exception("[OPS] %s failed", operation_id)
                self.update(
                    operation_id,
                    status=OperationStatus.FAILED,
                    message="Operation failed",
                    error=str(e) or e.__class__.__name__,
                )
                return
            self.update(
                operation_id,
                progress=100,
                status=OperationStatus.COMPLETED,
                message="Completed",
                result=result,
            )

        thread = threading.Thread(target=run, name=operation_id, daemon=True)
        thread.start()
        return operation_id


def wait_for_operation(
    tracker: OperationTracker,
    operation_id: str,
    attempts: int = 60,
    interval: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Operation:
    """Poll until the operation is terminal.

    Raises:
        OperationNotFound: the id is unknown.
        OperationAbandoned: still processing after `attempts` polls. The
            background work itself keeps running.
    """
    op = None
    for attempt in range(attempts):
        op = tracker.get(operation_id)
        if op is None:
            raise OperationNotFound(operation_id)
        if op.is_terminal:
            return op
        if attempt < attempts - 1:
            sleep(interval)
    if op is None:
        op = tracker.get(operation_id)
        if op is None:
            raise OperationNotFound(operation_id)
    logger.warning("[OPS] Gave up waiting for %s after %d polls", operation_id, attempts)
    raise OperationAbandoned(op)


# Global operation tracker instance
_operation_tracker: Optional[OperationTracker] = None


def get_operation_tracker() -> OperationTracker:
    """Get or create the process-wide tracker (with its sweeper running)."""
    global _operation_tracker
    if _operation_tracker is None:
        _operation_tracker = OperationTracker()
        _operation_tracker.start_sweeper()
    return _operation_tracker
