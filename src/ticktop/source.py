"""Process table sources for ticktop."""

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from ticktop.errors import SourceUnavailableError, VersionMismatchError
from ticktop.models import CycleCategory, MemoryInfo, TableSize

logger = logging.getLogger(__name__)

PSINFO_VERSION = 0
NAME_MAX = 16
DEFAULT_HZ = 60


class ProcessKind(Enum):
    """What sort of process a record describes."""

    TASK = "T"
    SYSTEM = "S"
    USER = "U"


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """One live process as reported by a source."""

    endpoint: int
    pid: int
    kind: ProcessKind
    name: str
    running: bool
    blocked_on: int | None
    priority: int
    user_time: int
    cycles: tuple[int, ...]  # Indexed by CycleCategory
    memory: int = 0  # Bytes
    owner_uid: int = 0
    nice: int = 0


class ProcessTableSource(Protocol):
    """Anything that can enumerate the live process table."""

    def table_size(self) -> TableSize:
        """Capacity of the table. Queried once per session."""
        ...

    def enumerate(self) -> Iterable[ProcessRecord]:
        """Current live processes. Raises SourceUnavailableError on failure."""
        ...

    def memory_info(self) -> MemoryInfo | None:
        """Main memory summary, or None when unknown."""
        ...

    @property
    def clock_hz(self) -> int:
        """Clock ticks per second, the unit of ProcessRecord.user_time."""
        ...


class MalformedRecord(ValueError):
    """A psinfo file that cannot be parsed."""


def _make64(hi: str, lo: str) -> int:
    return (int(hi) << 32) | int(lo)


def _system_hz() -> int:
    try:
        return os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return DEFAULT_HZ


def parse_psinfo(pid: int, text: str) -> ProcessRecord:
    """
    Parse the contents of a MINIX ``/proc/<pid>/psinfo`` file.

    Raises:
        VersionMismatchError: The file uses an unsupported format version.
        MalformedRecord: The file is truncated or has non-numeric fields.
    """
    tokens = text.split()
    if not tokens:
        raise MalformedRecord("empty psinfo")

    try:
        version = int(tokens[0])
    except ValueError as exc:
        raise MalformedRecord(f"bad version field {tokens[0]!r}") from exc
    if version != PSINFO_VERSION:
        raise VersionMismatchError(version, PSINFO_VERSION)

    fields = iter(tokens[1:])
    try:
        kind = ProcessKind(next(fields))
        endpoint = int(next(fields))
        name = next(fields)[:NAME_MAX]
        state = next(fields)
        blocked = int(next(fields))
        priority = int(next(fields))
        user_time = int(next(fields))
        next(fields)  # system time
        cycles = [_make64(next(fields), next(fields))]

        memory = owner_uid = nice = 0
        if kind is not ProcessKind.TASK:
            memory = int(next(fields))
            rest = [next(fields) for _ in range(11)]
            owner_uid = int(rest[5])
            nice = int(rest[7])
    except (StopIteration, ValueError) as exc:
        raise MalformedRecord(f"truncated or invalid psinfo for pid {pid}") from exc

    # Later cycle counters and the task memory field are optional
    tail = list(fields)
    for i in range(1, len(CycleCategory)):
        pair = tail[2 * (i - 1) : 2 * i]
        try:
            cycles.append(_make64(*pair) if len(pair) == 2 else 0)
        except ValueError:
            cycles.append(0)

    if kind is ProcessKind.TASK:
        extra = tail[2 * (len(CycleCategory) - 1) :]
        try:
            memory = int(extra[0]) if extra else 0
        except ValueError:
            memory = 0

    running = state == "R"
    return ProcessRecord(
        endpoint=endpoint,
        pid=pid,
        kind=kind,
        name=name,
        running=running,
        blocked_on=None if running else blocked,
        priority=priority,
        user_time=user_time,
        cycles=tuple(cycles),
        memory=memory,
        owner_uid=owner_uid,
        nice=nice,
    )


class ProcfsSource:
    """
    Reads the process table from a MINIX-style procfs.

    The layout is ``kinfo`` (process and task counts), ``meminfo`` and one
    ``<pid>/psinfo`` file per live process.
    """

    def __init__(
        self,
        root: str | os.PathLike[str] = "/proc",
        clock_hz: int | None = None,
    ) -> None:
        self._root = Path(root)
        self._clock_hz = clock_hz or _system_hz()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def clock_hz(self) -> int:
        return self._clock_hz

    def table_size(self) -> TableSize:
        path = self._root / "kinfo"
        try:
            procs, tasks = (int(v) for v in path.read_text().split()[:2])
        except OSError as exc:
            raise SourceUnavailableError(f"opening {path} failed: {exc}") from exc
        except ValueError as exc:
            raise SourceUnavailableError(f"reading from {path} failed") from exc
        return TableSize(tasks=tasks, procs=procs)

    def enumerate(self) -> Iterator[ProcessRecord]:
        try:
            entries = sorted(os.listdir(self._root))
        except OSError as exc:
            raise SourceUnavailableError(f"opendir on {self._root} failed: {exc}") from exc

        for entry in entries:
            # Kernel tasks show up under negative pids
            try:
                pid = int(entry)
            except ValueError:
                continue
            if pid == 0:
                continue
            record = self._read_record(pid)
            if record is not None:
                yield record

    def _read_record(self, pid: int) -> ProcessRecord | None:
        path = self._root / str(pid) / "psinfo"
        try:
            # Names are raw bytes from the kernel and need not be UTF-8
            text = path.read_bytes().decode(errors="replace")
        except OSError:
            # Process exited between listing and reading
            return None
        try:
            return parse_psinfo(pid, text)
        except MalformedRecord as exc:
            logger.debug("skipping %s: %s", path, exc)
            return None

    def memory_info(self) -> MemoryInfo | None:
        try:
            values = [int(v) for v in (self._root / "meminfo").read_text().split()[:5]]
        except (OSError, ValueError):
            return None
        if len(values) != 5:
            return None
        return MemoryInfo(*values)
