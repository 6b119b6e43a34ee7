"""Shared builders for ticktop tests."""

from ticktop.errors import SourceUnavailableError
from ticktop.models import MemoryInfo, Snapshot, TableSize
from ticktop.snapshot import fill_slot
from ticktop.source import ProcessKind, ProcessRecord


def record(
    endpoint: int,
    pid: int,
    cycles: tuple[int, int, int] = (0, 0, 0),
    kind: ProcessKind = ProcessKind.USER,
    memory: int = 0,
    running: bool = True,
    name: str = "proc",
    owner_uid: int = 1000,
) -> ProcessRecord:
    return ProcessRecord(
        endpoint=endpoint,
        pid=pid,
        kind=kind,
        name=name,
        running=running,
        blocked_on=None if running else 0,
        priority=7,
        user_time=0,
        cycles=cycles,
        memory=memory,
        owner_uid=owner_uid,
        nice=0,
    )


def snapshot(size: int, *records: ProcessRecord, tasks: int = 0) -> Snapshot:
    """A snapshot with each record placed at the slot of its endpoint."""
    snap = Snapshot.empty(size)
    for rec in records:
        fill_slot(snap[rec.endpoint + tasks], rec)
    return snap


class FakeSource:
    """In-memory process table that replays a list of enumerations."""

    def __init__(
        self,
        batches: list[list[ProcessRecord]],
        size: TableSize = TableSize(tasks=4, procs=8),
        memory: MemoryInfo | None = None,
    ) -> None:
        self._batches = list(batches)
        self._size = size
        self._memory = memory
        self.calls = 0
        self.fail = False

    @property
    def clock_hz(self) -> int:
        return 60

    def table_size(self) -> TableSize:
        return self._size

    def enumerate(self) -> list[ProcessRecord]:
        if self.fail:
            raise SourceUnavailableError("gone")
        index = min(self.calls, len(self._batches) - 1)
        self.calls += 1
        return self._batches[index]

    def memory_info(self) -> MemoryInfo | None:
        return self._memory
