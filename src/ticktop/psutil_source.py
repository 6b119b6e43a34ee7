"""Process table source backed by psutil, for hosts without MINIX procfs."""

import heapq
import logging
import mmap

import psutil

from ticktop.errors import SourceUnavailableError
from ticktop.models import IDLE, KERNEL, CycleCategory, MemoryInfo, TableSize
from ticktop.source import ProcessKind, ProcessRecord

logger = logging.getLogger(__name__)

# Cycle counters are microseconds of CPU time
TICKS_PER_SECOND = 1_000_000
CLOCK_HZ = 100
TASK_SLOTS = -IDLE

ProcessKey = tuple[int, float]  # (pid, create_time)


def _ticks(seconds: float | None) -> int:
    return int((seconds or 0.0) * TICKS_PER_SECOND)


class PsutilSource:
    """
    Presents the host's processes as a fixed-capacity process table.

    psutil pids are unbounded, so every process is handed a small endpoint
    from a pool of ``capacity`` entries. An endpoint goes back to the pool
    only after a refresh in which its process was not seen, so a slot is
    never handed to a new process in the same refresh that lost the old one.
    The idle and kernel tasks are synthesized from the system-wide CPU times.
    """

    def __init__(self, capacity: int = 4096) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._endpoints: dict[ProcessKey, int] = {}
        self._free: list[int] = list(range(capacity))
        heapq.heapify(self._free)
        self._attrs = [
            "pid",
            "name",
            "status",
            "cpu_times",
            "memory_info",
            "nice",
            "create_time",
        ]
        if psutil.POSIX:
            self._attrs.append("uids")

    @property
    def clock_hz(self) -> int:
        return CLOCK_HZ

    def table_size(self) -> TableSize:
        return TableSize(tasks=TASK_SLOTS, procs=self._capacity)

    def enumerate(self) -> list[ProcessRecord]:
        records = self._task_records()
        seen: set[ProcessKey] = set()

        try:
            processes = list(psutil.process_iter(attrs=self._attrs))
        except psutil.Error as exc:
            raise SourceUnavailableError(f"cannot enumerate processes: {exc}") from exc

        for proc in processes:
            try:
                with proc.oneshot():
                    info = proc.info
                    key = (info["pid"], info.get("create_time") or 0.0)
                    record = self._make_record(self._endpoint_for(key), info)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
            seen.add(key)
            records.append(record)

        self._release_unseen(seen)
        return records

    def memory_info(self) -> MemoryInfo | None:
        try:
            vm = psutil.virtual_memory()
        except (psutil.Error, OSError):
            return None
        page = mmap.PAGESIZE
        return MemoryInfo(
            page_size=page,
            total=vm.total // page,
            free=vm.free // page,
            largest=vm.available // page,
            cached=getattr(vm, "cached", 0) // page,
        )

    def _endpoint_for(self, key: ProcessKey) -> int:
        endpoint = self._endpoints.get(key)
        if endpoint is not None:
            return endpoint
        if not self._free:
            # Table full; the snapshot builder rejects this endpoint
            logger.debug("no free endpoint for pid %d", key[0])
            return self._capacity
        endpoint = heapq.heappop(self._free)
        self._endpoints[key] = endpoint
        return endpoint

    def _release_unseen(self, seen: set[ProcessKey]) -> None:
        for key in [k for k in self._endpoints if k not in seen]:
            heapq.heappush(self._free, self._endpoints.pop(key))

    def _make_record(self, endpoint: int, info: dict) -> ProcessRecord:
        times = info.get("cpu_times")
        cycles = [0] * len(CycleCategory)
        if times is not None:
            cycles[CycleCategory.USER] = _ticks(times.user)
            cycles[CycleCategory.KERNELCALL] = _ticks(times.system)

        uids = info.get("uids")
        owner_uid = uids.effective if uids is not None else -1
        mem_info = info.get("memory_info")
        nice = info.get("nice") or 0
        running = info.get("status") == psutil.STATUS_RUNNING

        return ProcessRecord(
            endpoint=endpoint,
            pid=info["pid"],
            kind=ProcessKind.SYSTEM if owner_uid == 0 else ProcessKind.USER,
            name=info.get("name") or "",
            running=running,
            blocked_on=None,
            priority=nice + 20 if isinstance(nice, int) else 0,
            user_time=int((times.user if times else 0.0) * CLOCK_HZ),
            cycles=tuple(cycles),
            memory=mem_info.rss if mem_info else 0,
            owner_uid=owner_uid,
            nice=nice if isinstance(nice, int) else 0,
        )

    def _task_records(self) -> list[ProcessRecord]:
        try:
            times = psutil.cpu_times()
        except (psutil.Error, OSError) as exc:
            raise SourceUnavailableError(f"cannot read system cpu times: {exc}") from exc

        idle = times.idle + getattr(times, "iowait", 0.0)
        interrupts = getattr(times, "irq", 0.0) + getattr(times, "softirq", 0.0)
        return [
            self._task(IDLE, "idle", idle),
            self._task(KERNEL, "kernel", interrupts),
        ]

    @staticmethod
    def _task(endpoint: int, name: str, seconds: float) -> ProcessRecord:
        cycles = [0] * len(CycleCategory)
        cycles[CycleCategory.USER] = _ticks(seconds)
        return ProcessRecord(
            endpoint=endpoint,
            pid=endpoint,
            kind=ProcessKind.TASK,
            name=name,
            running=True,
            blocked_on=None,
            priority=0,
            user_time=0,
            cycles=tuple(cycles),
        )
