"""Aggregation of per-process ticks into CPU states and a ranked table."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from ticktop.accounting import Selector
from ticktop.models import ALL_CATEGORIES, IDLE, KERNEL, MemoryInfo, ProcessSummary, SlotFlag, Snapshot


class Order(Enum):
    """Ranking orders for the process table."""

    CPU = "cpu"
    MEMORY = "memory"

    def toggle(self) -> "Order":
        return Order.MEMORY if self is Order.CPU else Order.CPU


@dataclass(slots=True, frozen=True)
class CpuStates:
    """Share of the interval spent in each CPU state, in percent."""

    user: float
    system: float
    kernel: float
    idle: float


@dataclass(slots=True, frozen=True)
class StateCounts:
    """How many processes were seen, and in which run state."""

    total: int
    running: int
    blocked: int


@dataclass(slots=True, frozen=True)
class ProcessUsage:
    """One ranked row: a process and what it consumed in the interval."""

    process: ProcessSummary
    ticks: int  # All categories
    selected_ticks: int  # Selected categories only
    cpu_percent: float


@dataclass(slots=True, frozen=True)
class Report:
    """Everything the display needs for one refresh."""

    processes: tuple[ProcessUsage, ...]
    cpu: CpuStates
    counts: StateCounts
    total_ticks: int
    categories: Selector = ALL_CATEGORIES
    order: Order = Order.CPU
    memory: MemoryInfo | None = None
    clock_hz: int = 60


def rank(rows: Iterable[ProcessUsage], order: Order = Order.CPU) -> list[ProcessUsage]:
    """Sort rows by descending CPU ticks or memory, then by slot."""
    if order is Order.MEMORY:
        return sorted(rows, key=lambda r: (-r.process.memory, r.process.slot))
    return sorted(rows, key=lambda r: (-r.ticks, r.process.slot))


def aggregate(
    curr: Snapshot,
    total_ticks: Mapping[int, int],
    selected_ticks: Mapping[int, int] | None = None,
    *,
    order: Order = Order.CPU,
    categories: Selector = ALL_CATEGORIES,
) -> Report | None:
    """
    Turn per-slot ticks into a Report.

    ``total_ticks`` holds the all-categories delta and is the denominator;
    the CPU state buckets are summed from ``selected_ticks``. Tasks other
    than the idle and kernel tasks land in no bucket, so the four states can
    add up to less than 100%.

    Returns None when no ticks elapsed, e.g. on the first refresh.
    """
    if selected_ticks is None:
        selected_ticks = total_ticks

    total = 0
    buckets = {"user": 0, "system": 0, "kernel": 0, "idle": 0}
    rows: list[tuple[int, int, int]] = []
    running = blocked = 0

    for index, slot in curr.used():
        ticks = total_ticks.get(index, 0)
        selected = selected_ticks.get(index, 0)
        total += ticks
        rows.append((index, ticks, selected))

        if SlotFlag.BLOCKED in slot.flags:
            blocked += 1
        else:
            running += 1

        if SlotFlag.IS_TASK in slot.flags:
            if slot.endpoint == KERNEL:
                buckets["kernel"] += selected
            elif slot.endpoint == IDLE:
                buckets["idle"] += selected
        elif SlotFlag.IS_SYSTEM in slot.flags:
            buckets["system"] += selected
        else:
            buckets["user"] += selected

    if total == 0:
        return None

    usage = [
        ProcessUsage(
            process=ProcessSummary.from_slot(index, curr[index]),
            ticks=ticks,
            selected_ticks=selected,
            cpu_percent=100.0 * selected / total,
        )
        for index, ticks, selected in rows
    ]

    return Report(
        processes=tuple(rank(usage, order)),
        cpu=CpuStates(**{name: 100.0 * value / total for name, value in buckets.items()}),
        counts=StateCounts(total=len(rows), running=running, blocked=blocked),
        total_ticks=total,
        categories=frozenset(categories),
        order=order,
    )
