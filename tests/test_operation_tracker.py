import threading

import pytest

from services.operation_tracker import (
    OperationAbandoned,
    OperationNotFound,
    OperationStatus,
    OperationTracker,
    wait_for_operation,
)


class FakeTime:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeTime()


@pytest.fixture
def tracker(clock):
    return OperationTracker(retention_seconds=3600, clock=clock)


def test_create_update_complete(tracker, clock):
    op_id = tracker.create("audio", "Generating audio")
    assert op_id.startswith("audio_1700000000000_")

    op = tracker.get(op_id)
    assert op.status == OperationStatus.PROCESSING
    assert op.progress == 10

    for pct in (30, 60, 90):
        tracker.update(op_id, progress=pct, message=f"{pct}%")
    clock.now += 12
    tracker.update(op_id, progress=100, status=OperationStatus.COMPLETED, result={"audioUrl": "x"})

    op = tracker.get(op_id)
    assert op.status == OperationStatus.COMPLETED
    assert op.progress == 100
    assert op.result == {"audioUrl": "x"}
    assert op.end_time - op.start_time == 12


def test_progress_is_clamped_and_monotonic(tracker):
    op_id = tracker.create("images")
    tracker.update(op_id, progress=50)
    tracker.update(op_id, progress=20)
    assert tracker.get(op_id).progress == 50
    tracker.update(op_id, progress=250)
    assert tracker.get(op_id).progress == 100


def test_terminal_operations_are_immutable(tracker):
    op_id = tracker.create("images")
    tracker.update(op_id, status=OperationStatus.FAILED, error="no images")
    tracker.update(op_id, progress=100, status=OperationStatus.COMPLETED, message="late")

    op = tracker.get(op_id)
    assert op.status == OperationStatus.FAILED
    assert op.error == "no images"
    assert op.message != "late"


def test_update_unknown_operation_returns_none(tracker):
    assert tracker.update("missing", progress=50) is None


def test_sweep_removes_only_expired(tracker, clock):
    old = tracker.create("audio")
    clock.now += 3000
    fresh = tracker.create("audio")
    clock.now += 700

    assert tracker.sweep() == 1
    assert tracker.get(old) is None
    assert tracker.get(fresh) is not None


def test_run_in_background_completes():
    tracker = OperationTracker(retention_seconds=3600)
    release = threading.Event()

    def worker(report):
        report(40, "halfway")
        release.wait(5)
        return {"value": 42}

    op_id = tracker.run_in_background("conversation", "Starting", worker)
    release.set()
    op = wait_for_operation(tracker, op_id, attempts=100, interval=0.05)

    assert op.status == OperationStatus.COMPLETED
    assert op.progress == 100
    assert op.result == {"value": 42}


def test_run_in_background_records_failure():
    tracker = OperationTracker(retention_seconds=3600)

    def worker(report):
        raise RuntimeError("backend down")

    op_id = tracker.run_in_background("images", "Starting", worker)
    op = wait_for_operation(tracker, op_id, attempts=100, interval=0.05)

    assert op.status == OperationStatus.FAILED
    assert op.error == "backend down"


def test_wait_for_unknown_operation(tracker):
    with pytest.raises(OperationNotFound):
        wait_for_operation(tracker, "nope", attempts=3, sleep=lambda s: None)


def test_wait_gives_up_without_cancelling(tracker):
    op_id = tracker.create("audio")
    naps = []

    with pytest.raises(OperationAbandoned) as excinfo:
        wait_for_operation(tracker, op_id, attempts=3, interval=2.0, sleep=naps.append)

    assert naps == [2.0, 2.0]
    assert excinfo.value.operation.id == op_id
    assert tracker.get(op_id).status == OperationStatus.PROCESSING
