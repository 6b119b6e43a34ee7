"""Accounting session: owns the snapshot buffers and runs refresh cycles."""

import dataclasses
import logging

from ticktop.accounting import Selector, delta, next_selector
from ticktop.aggregate import Order, Report, aggregate
from ticktop.models import ALL_CATEGORIES, CycleCategory, Snapshot, TableSize
from ticktop.snapshot import SnapshotBuilder
from ticktop.source import ProcessTableSource

logger = logging.getLogger(__name__)


class AccountingSession:
    """
    Samples a process table and reports what happened between samples.

    Two snapshot buffers are kept. Each refresh overwrites the older one in
    place, so nothing is reallocated after the second refresh.

    The session takes no lock. One thread may call refresh() while another
    toggles the order or category selection; each toggle is a single attribute
    assignment and refresh() reads both once, so a refresh sees either the old
    or the new setting.
    """

    def __init__(
        self,
        source: ProcessTableSource,
        categories: Selector = ALL_CATEGORIES,
        order: Order = Order.CPU,
    ) -> None:
        """
        Initialize the session.

        Args:
            source: Where process records come from.
            categories: Cycle categories shown in the CPU breakdown.
            order: Initial ranking order.

        Raises:
            SourceUnavailableError: The table size cannot be read.
        """
        self._source = source
        self._builder = SnapshotBuilder(source)
        self._prev: Snapshot | None = None
        self._curr: Snapshot | None = None
        self._categories = frozenset(categories) or ALL_CATEGORIES
        self._order = order

    @property
    def size(self) -> TableSize:
        return self._builder.size

    @property
    def categories(self) -> Selector:
        return self._categories

    @categories.setter
    def categories(self, value: Selector) -> None:
        if not value:
            raise ValueError("at least one cycle category must be selected")
        self._categories = frozenset(CycleCategory(c) for c in value)

    @property
    def order(self) -> Order:
        return self._order

    @order.setter
    def order(self, value: Order) -> None:
        self._order = value

    def toggle_order(self) -> Order:
        self._order = self._order.toggle()
        return self._order

    def cycle_categories(self) -> Selector:
        self._categories = next_selector(self._categories)
        return self._categories

    def refresh(self) -> Report | None:
        """
        Take a new snapshot and compare it with the previous one.

        Returns None on the first refresh and whenever no ticks elapsed.

        Raises:
            SourceUnavailableError: The source cannot enumerate processes.
        """
        self._prev, self._curr = self._curr, self._prev
        try:
            self._curr = self._builder.build(into=self._curr)
        except BaseException:
            # The buffer may be half written; keep the last good sample
            self._curr, self._prev = self._prev, None
            raise

        if self._prev is None:
            logger.debug("first sample taken, %d slots", len(self._curr))
            return None

        categories, order = self._categories, self._order
        totals = delta(self._prev, self._curr, ALL_CATEGORIES)
        if categories == ALL_CATEGORIES:
            selected = totals
        else:
            selected = delta(self._prev, self._curr, categories)

        report = aggregate(
            self._curr,
            totals,
            selected,
            order=order,
            categories=categories,
        )
        if report is None:
            logger.debug("no ticks elapsed since the previous sample")
            return None

        return dataclasses.replace(
            report,
            memory=self._source.memory_info(),
            clock_hz=self._source.clock_hz,
        )
