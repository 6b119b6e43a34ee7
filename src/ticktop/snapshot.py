"""Builds process table snapshots from a source."""

import logging
import time

from ticktop.models import ProcessSlot, SlotFlag, Snapshot, TableSize
from ticktop.source import ProcessKind, ProcessRecord, ProcessTableSource

logger = logging.getLogger(__name__)


class SnapshotBuilder:
    """
    Materializes the live process table into a Snapshot.

    The table size is read from the source once, when the builder is created,
    and stays fixed afterwards.
    """

    def __init__(self, source: ProcessTableSource) -> None:
        self._source = source
        self._size = source.table_size()

    @property
    def size(self) -> TableSize:
        return self._size

    def build(self, into: Snapshot | None = None) -> Snapshot:
        """
        Take a snapshot of the process table.

        Args:
            into: Buffer to refill. A new one is allocated when omitted.

        Raises:
            SourceUnavailableError: The source cannot enumerate processes.
        """
        snapshot = into if into is not None else Snapshot.empty(self._size.total)
        snapshot.clear()

        for record in self._source.enumerate():
            slot = self._size.slot_of(record.endpoint)
            if not 0 <= slot < len(snapshot):
                logger.warning("unreasonable endpoint number %d", record.endpoint)
                continue
            fill_slot(snapshot[slot], record)

        snapshot.taken_at = time.monotonic()
        return snapshot


def fill_slot(slot: ProcessSlot, record: ProcessRecord) -> None:
    """Stamp a record onto a cleared slot and mark it used."""
    flags = SlotFlag.USED
    if record.kind is ProcessKind.TASK:
        flags |= SlotFlag.IS_TASK
    elif record.kind is ProcessKind.SYSTEM:
        flags |= SlotFlag.IS_SYSTEM
    if not record.running:
        flags |= SlotFlag.BLOCKED

    slot.flags = flags
    slot.endpoint = record.endpoint
    slot.pid = record.pid
    for i in range(len(slot.cycles)):
        slot.cycles[i] = record.cycles[i] if i < len(record.cycles) else 0
    slot.priority = record.priority
    slot.nice = record.nice
    slot.blocked_on = record.blocked_on
    slot.user_time = record.user_time
    slot.memory = record.memory
    slot.owner_uid = record.owner_uid
    slot.name = record.name
