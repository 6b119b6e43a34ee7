"""Tests for tick accounting between snapshots."""

from helpers import record, snapshot

from ticktop.accounting import (
    cycle_ticks,
    delta,
    next_selector,
    selector_from_mask,
    selector_label,
    selector_mask,
)
from ticktop.models import ALL_CATEGORIES, CycleCategory, Snapshot


def test_same_identity_subtracts_counters():
    """Test counters are subtracted when the same process stays in a slot."""
    a = snapshot(8, record(3, 10, cycles=(100, 10, 5)))
    b = snapshot(8, record(3, 10, cycles=(150, 10, 5)))

    assert delta(a, b, ALL_CATEGORIES)[3] == 50


def test_unchanged_counters_add_nothing():
    """Test only the changed counter contributes to the delta."""
    a = snapshot(8, record(3, 10, cycles=(100, 10, 5)))
    b = snapshot(8, record(3, 10, cycles=(145, 10, 5)))

    assert delta(a, b)[3] == 45


def test_new_process_counts_all_ticks():
    """Test a slot empty in the older snapshot takes the full counter."""
    a = snapshot(8)
    b = snapshot(8, record(3, 11, cycles=(20, 0, 0)))

    assert delta(a, b)[3] == 20


def test_replaced_process_counts_all_ticks():
    """Test a different pid in the same slot is not subtracted."""
    a = snapshot(8, record(3, 10, cycles=(100, 10, 5)))
    b = snapshot(8, record(3, 11, cycles=(5, 0, 0)))

    assert delta(a, b)[3] == 5


def test_changed_endpoint_counts_all_ticks():
    """Test a changed endpoint breaks identity even with the same pid."""
    a = snapshot(8, record(1, 10, cycles=(100, 0, 0)), tasks=2)
    b = snapshot(8, record(1, 10, cycles=(120, 0, 0)), tasks=2)
    b[3].endpoint = 7

    assert delta(a, b)[3] == 120


def test_unused_slot_has_no_entry():
    """Test slots absent from the newer snapshot produce nothing."""
    a = snapshot(8, record(3, 10, cycles=(100, 0, 0)), record(4, 12, cycles=(7, 0, 0)))
    b = snapshot(8, record(4, 12, cycles=(9, 0, 0)))

    result = delta(a, b)

    assert 3 not in result
    assert result == {4: 2}


def test_category_selection():
    """Test only the selected categories are summed."""
    a = snapshot(8, record(2, 5, cycles=(10, 20, 30)))
    b = snapshot(8, record(2, 5, cycles=(11, 25, 40)))

    assert delta(a, b, {CycleCategory.USER})[2] == 1
    assert delta(a, b, {CycleCategory.IPC, CycleCategory.KERNELCALL})[2] == 15
    assert delta(a, b, ALL_CATEGORIES)[2] == 16


def test_non_decreasing_counters_give_non_negative_delta():
    """Test the delta is never negative while counters only grow."""
    counters = [(0, 0, 0), (5, 0, 1), (5, 3, 1), (90, 3, 8)]
    for older, newer in zip(counters, counters[1:]):
        a = snapshot(8, record(6, 40, cycles=older))
        b = snapshot(8, record(6, 40, cycles=newer))
        assert delta(a, b)[6] == sum(n - o for n, o in zip(newer, older))
        assert delta(a, b)[6] >= 0


def test_cycle_ticks_ignores_stale_unused_slot():
    """Test a cleared slot in the older snapshot is treated as empty."""
    a = snapshot(8, record(3, 10, cycles=(100, 0, 0)))
    b = snapshot(8, record(3, 10, cycles=(150, 0, 0)))
    a[3].clear()

    assert cycle_ticks(a[3], b[3], ALL_CATEGORIES) == 150


def test_delta_of_empty_snapshots():
    """Test nothing is reported for an empty table."""
    assert delta(Snapshot.empty(4), Snapshot.empty(4)) == {}


def test_selector_mask_round_trip():
    """Test selectors map onto the bit positions of their categories."""
    assert selector_mask({CycleCategory.USER}) == 1
    assert selector_mask(ALL_CATEGORIES) == 7
    assert selector_from_mask(6) == {CycleCategory.IPC, CycleCategory.KERNELCALL}


def test_next_selector_walks_all_combinations():
    """Test cycling visits every non-empty combination and wraps."""
    selector = selector_from_mask(1)
    seen = []
    for _ in range(7):
        seen.append(selector_mask(selector))
        selector = next_selector(selector)

    assert seen == [1, 2, 3, 4, 5, 6, 7]
    assert selector_mask(selector) == 1


def test_selector_label():
    """Test selectors render in counter order."""
    assert selector_label(ALL_CATEGORIES) == "user ipc kernelcall"
    assert selector_label({CycleCategory.KERNELCALL, CycleCategory.USER}) == "user kernelcall"
