"""Tests for CPU state aggregation and ranking."""

import pytest
from helpers import record, snapshot

from ticktop.aggregate import Order, ProcessUsage, aggregate, rank
from ticktop.models import IDLE, KERNEL, CycleCategory, ProcessSummary, Snapshot
from ticktop.source import ProcessKind

TASKS = 4


def _table():
    """Idle, kernel, one other task, a system process and a user process."""
    return snapshot(
        12,
        record(IDLE, IDLE, kind=ProcessKind.TASK, name="idle"),
        record(KERNEL, KERNEL, kind=ProcessKind.TASK, name="kernel"),
        record(-2, -2, kind=ProcessKind.TASK, name="system"),
        record(1, 20, kind=ProcessKind.SYSTEM, memory=4096, name="pm"),
        record(5, 77, kind=ProcessKind.USER, memory=8192, running=False, name="sh"),
        tasks=TASKS,
    )


def test_cpu_states_percentages():
    """Test buckets are divided by the total ticks."""
    curr = _table()
    ticks = {0: 50, 3: 50, 5: 200, 9: 700}

    report = aggregate(curr, ticks)

    assert report is not None
    assert report.total_ticks == 1000
    assert report.cpu.system == pytest.approx(20.0)
    assert report.cpu.user == pytest.approx(70.0)
    assert report.cpu.kernel == pytest.approx(5.0)
    assert report.cpu.idle == pytest.approx(5.0)
    assert sum(
        (report.cpu.user, report.cpu.system, report.cpu.kernel, report.cpu.idle)
    ) == pytest.approx(100.0)


def test_other_tasks_fall_in_no_bucket():
    """Test a task that is neither idle nor kernel makes the states under-sum."""
    curr = _table()
    ticks = {0: 100, 2: 100, 3: 100, 5: 100, 9: 100}

    report = aggregate(curr, ticks)

    states = (report.cpu.user, report.cpu.system, report.cpu.kernel, report.cpu.idle)
    assert sum(states) == pytest.approx(80.0)


def test_zero_total_gives_no_report():
    """Test nothing is reported when no ticks elapsed."""
    curr = _table()

    assert aggregate(curr, {0: 0, 3: 0, 5: 0, 9: 0}) is None
    assert aggregate(Snapshot.empty(4), {}) is None


def test_unused_slots_are_ignored():
    """Test ticks for slots not used in the snapshot are not counted."""
    curr = _table()

    report = aggregate(curr, {9: 10, 11: 1000})

    assert report.total_ticks == 10
    assert all(row.process.slot != 11 for row in report.processes)


def test_buckets_use_selected_ticks():
    """Test the breakdown uses the selected categories over the full total."""
    curr = _table()
    totals = {5: 100, 9: 300}
    selected = {5: 10, 9: 30}

    report = aggregate(curr, totals, selected, categories=frozenset({CycleCategory.IPC}))

    assert report.cpu.system == pytest.approx(2.5)
    assert report.cpu.user == pytest.approx(7.5)
    assert report.categories == {CycleCategory.IPC}
    row = next(r for r in report.processes if r.process.slot == 9)
    assert row.ticks == 300
    assert row.selected_ticks == 30
    assert row.cpu_percent == pytest.approx(7.5)


def test_state_counts():
    """Test running and blocked processes are counted."""
    report = aggregate(_table(), {9: 1})

    assert report.counts.total == 5
    assert report.counts.blocked == 1
    assert report.counts.running == 4


def test_cpu_order_ranking():
    """Test CPU order sorts by descending ticks, then by slot."""
    curr = _table()
    report = aggregate(curr, {0: 5, 2: 50, 3: 5, 5: 50, 9: 90})

    slots = [row.process.slot for row in report.processes]
    assert slots == [9, 2, 5, 0, 3]
    assert report.order is Order.CPU


def test_memory_order_ranking():
    """Test memory order sorts by descending memory, then by slot."""
    curr = _table()
    report = aggregate(curr, {0: 5, 2: 50, 3: 5, 5: 50, 9: 90}, order=Order.MEMORY)

    slots = [row.process.slot for row in report.processes]
    assert slots == [9, 5, 0, 2, 3]


def test_rank_is_stable_on_ties():
    """Test equal keys keep ascending slot order regardless of input order."""
    rows = [
        ProcessUsage(
            process=ProcessSummary.from_slot(index, snapshot(8, record(index, 100 + index))[index]),
            ticks=10,
            selected_ticks=10,
            cpu_percent=0.0,
        )
        for index in (6, 2, 4)
    ]

    assert [r.process.slot for r in rank(rows)] == [2, 4, 6]
    assert [r.process.slot for r in rank(rows, Order.MEMORY)] == [2, 4, 6]


def test_order_toggle():
    """Test the two orders toggle into each other."""
    assert Order.CPU.toggle() is Order.MEMORY
    assert Order.MEMORY.toggle() is Order.CPU
