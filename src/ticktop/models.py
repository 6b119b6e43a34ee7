"""Data models for ticktop."""

from dataclasses import dataclass, field
from enum import Flag, IntEnum, auto
from typing import Iterator, NamedTuple

# Endpoints of the kernel tasks that get their own CPU state bucket
IDLE = -4
KERNEL = -1


class SlotFlag(Flag):
    """State flags stamped on a process slot."""

    NONE = 0
    USED = auto()
    IS_TASK = auto()
    IS_SYSTEM = auto()
    BLOCKED = auto()


class CycleCategory(IntEnum):
    """CPU cycle counters, in the order the process table reports them."""

    USER = 0
    IPC = 1
    KERNELCALL = 2

    @property
    def label(self) -> str:
        return self.name.lower()


ALL_CATEGORIES: frozenset[CycleCategory] = frozenset(CycleCategory)


class Identity(NamedTuple):
    """Who occupies a slot: the endpoint together with the pid."""

    endpoint: int
    pid: int


class TableSize(NamedTuple):
    """Capacity of the process table, fixed for a session."""

    tasks: int
    procs: int

    @property
    def total(self) -> int:
        return self.tasks + self.procs

    def slot_of(self, endpoint: int) -> int:
        """Table slot for an endpoint. May fall outside the table."""
        return endpoint + self.tasks


def _zero_cycles() -> list[int]:
    return [0] * len(CycleCategory)


@dataclass(slots=True)
class ProcessSlot:
    """
    One position of the process table.

    Slots are long-lived: a snapshot buffer is cleared and refilled every
    refresh instead of being reallocated.
    """

    flags: SlotFlag = SlotFlag.NONE
    endpoint: int = 0
    pid: int = 0
    cycles: list[int] = field(default_factory=_zero_cycles)
    priority: int = 0
    nice: int = 0
    blocked_on: int | None = None
    user_time: int = 0
    memory: int = 0
    owner_uid: int = 0
    name: str = ""

    @property
    def used(self) -> bool:
        return SlotFlag.USED in self.flags

    @property
    def identity(self) -> Identity:
        return Identity(self.endpoint, self.pid)

    def clear(self) -> None:
        """Return the slot to the empty state."""
        self.flags = SlotFlag.NONE
        self.endpoint = 0
        self.pid = 0
        for i in range(len(self.cycles)):
            self.cycles[i] = 0
        self.priority = 0
        self.nice = 0
        self.blocked_on = None
        self.user_time = 0
        self.memory = 0
        self.owner_uid = 0
        self.name = ""


@dataclass(slots=True)
class Snapshot:
    """The whole process table at one point in time."""

    slots: list[ProcessSlot]
    taken_at: float = 0.0

    @classmethod
    def empty(cls, size: int) -> "Snapshot":
        return cls(slots=[ProcessSlot() for _ in range(size)])

    def __len__(self) -> int:
        return len(self.slots)

    def __getitem__(self, index: int) -> ProcessSlot:
        return self.slots[index]

    def clear(self) -> None:
        for slot in self.slots:
            slot.clear()
        self.taken_at = 0.0

    def used(self) -> Iterator[tuple[int, ProcessSlot]]:
        """Iterate (index, slot) over the populated slots."""
        for index, slot in enumerate(self.slots):
            if slot.used:
                yield index, slot


@dataclass(slots=True, frozen=True)
class ProcessSummary:
    """Immutable copy of a slot, safe to hand to the display thread."""

    slot: int
    endpoint: int
    pid: int
    name: str
    owner_uid: int
    priority: int
    nice: int
    memory: int  # Bytes
    user_time: int  # Clock ticks
    is_task: bool
    is_system: bool
    blocked: bool
    blocked_on: int | None

    @classmethod
    def from_slot(cls, index: int, slot: ProcessSlot) -> "ProcessSummary":
        return cls(
            slot=index,
            endpoint=slot.endpoint,
            pid=slot.pid,
            name=slot.name,
            owner_uid=slot.owner_uid,
            priority=slot.priority,
            nice=slot.nice,
            memory=slot.memory,
            user_time=slot.user_time,
            is_task=SlotFlag.IS_TASK in slot.flags,
            is_system=SlotFlag.IS_SYSTEM in slot.flags,
            blocked=SlotFlag.BLOCKED in slot.flags,
            blocked_on=slot.blocked_on,
        )


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """Main memory summary, counted in pages."""

    page_size: int
    total: int
    free: int
    largest: int  # Largest contiguous free block
    cached: int

    @property
    def total_bytes(self) -> int:
        return self.page_size * self.total

    @property
    def free_bytes(self) -> int:
        return self.page_size * self.free

    @property
    def largest_bytes(self) -> int:
        return self.page_size * self.largest

    @property
    def cached_bytes(self) -> int:
        return self.page_size * self.cached
