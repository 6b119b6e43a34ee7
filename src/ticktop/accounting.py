"""Tick accounting between two process table snapshots."""

from collections.abc import Iterable

from ticktop.models import ALL_CATEGORIES, CycleCategory, ProcessSlot, Snapshot

Selector = frozenset[CycleCategory]


def cycle_ticks(prev: ProcessSlot, curr: ProcessSlot, categories: Iterable[CycleCategory]) -> int:
    """
    Ticks a slot consumed since the previous snapshot.

    When the previous slot held the same process the counters are subtracted,
    otherwise the process is new and everything it has accumulated counts.
    Counters never decrease for one process, so the result is not checked
    for underflow.
    """
    same = prev.used and prev.identity == curr.identity
    ticks = 0
    for category in categories:
        if same:
            ticks += curr.cycles[category] - prev.cycles[category]
        else:
            ticks += curr.cycles[category]
    return ticks


def delta(prev: Snapshot, curr: Snapshot, categories: Iterable[CycleCategory] = ALL_CATEGORIES) -> dict[int, int]:
    """Per-slot ticks for every slot used in ``curr``."""
    selected = frozenset(categories)
    return {index: cycle_ticks(prev[index], slot, selected) for index, slot in curr.used()}


def selector_mask(selector: Iterable[CycleCategory]) -> int:
    return sum(1 << category for category in set(selector))


def selector_from_mask(mask: int) -> Selector:
    return frozenset(c for c in CycleCategory if mask & (1 << c))


def next_selector(selector: Iterable[CycleCategory]) -> Selector:
    """Step to the next non-empty category combination, wrapping around."""
    limit = 1 << len(CycleCategory)
    mask = selector_mask(selector) + 1
    if mask >= limit:
        mask = 1
    return selector_from_mask(mask)


def selector_label(selector: Iterable[CycleCategory]) -> str:
    return " ".join(c.label for c in sorted(set(selector)))
