"""ticktop - Main Textual application."""

import logging
from queue import Empty, Queue

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from ticktop.accounting import selector_label
from ticktop.aggregate import Order, ProcessUsage, Report, rank
from ticktop.formatting import (
    COLUMNS,
    counts_line,
    cpu_states_line,
    memory_line,
    modes_line,
    process_cells,
)
from ticktop.monitor import SessionMonitor
from ticktop.session import AccountingSession

logger = logging.getLogger(__name__)


class HeaderStats(Static):
    """Header widget showing CPU states, process counts and memory."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 4;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__("Waiting for the second sample...", *args, **kwargs)
        self._report: Report | None = None

    def update_stats(self, report: Report) -> None:
        """Update the statistics from a report."""
        self._report = report
        self.update(self._get_text())

    def _get_text(self) -> str:
        report = self._report
        if report is None:
            return "Waiting for the second sample..."
        lines = [cpu_states_line(report), counts_line(report)]
        mem = memory_line(report)
        if mem is not None:
            lines.append(mem)
        lines.append(modes_line(report))
        return "\n".join(lines)


class ProcessTable(Container):
    """Container for the ranked process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, order: Order = Order.CPU, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: set[int] = set()
        self._rows: list[ProcessUsage] = []
        self._order = order
        self._clock_hz = 60

    @property
    def order(self) -> Order:
        """Get current ranking order."""
        return self._order

    def set_order(self, order: Order) -> None:
        """Re-rank the rows on screen without waiting for a refresh."""
        self._order = order
        if self._rows:
            self._render_rows(rank(self._rows, order))

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        for column in COLUMNS:
            table.add_column(column, key=column.lower())

    def update_report(self, report: Report) -> None:
        """
        Update the process table from a report.

        Uses update_cell for existing rows to avoid re-rendering the whole table.
        """
        self._clock_hz = report.clock_hz
        self._rows = list(report.processes)
        self._render_rows(rank(self._rows, self._order))

    def _render_rows(self, rows: list[ProcessUsage]) -> None:
        table = self.query_one("#process-table", DataTable)
        new_pids = {row.process.pid for row in rows}

        # Remove rows for processes that no longer exist
        for pid in self._current_pids - new_pids:
            try:
                table.remove_row(str(pid))
            except Exception:
                pass  # Row may not exist

        positions: dict[str, int] = {}
        for position, row in enumerate(rows):
            row_key = str(row.process.pid)
            positions[row_key] = position
            cells = process_cells(row, self._clock_hz)
            if row.process.pid in self._current_pids:
                self._update_row(table, row_key, cells)
            else:
                self._add_row(table, row_key, cells)

        self._current_pids = new_pids
        table.sort("pid", key=lambda pid: positions.get(str(pid), len(positions)))

    def _update_row(self, table: DataTable, row_key: str, cells: tuple[str, ...]) -> None:
        """Update an existing row using update_cell for performance."""
        try:
            for column, value in zip(COLUMNS, cells):
                table.update_cell(row_key, column.lower(), Text(value))
        except Exception:
            pass  # Row may have been removed

    def _add_row(self, table: DataTable, row_key: str, cells: tuple[str, ...]) -> None:
        """Add a new row to the table."""
        try:
            table.add_row(*(Text(value) for value in cells), key=row_key)
        except Exception:
            pass  # Row may already exist


class TicktopApp(App):
    """Main ticktop application."""

    TITLE = "ticktop"
    SUB_TITLE = "Process CPU accounting"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("o", "order", "Order"),
        ("t", "cycle_time", "CPU time"),
    ]

    def __init__(self, session: AccountingSession, poll_rate: float = 2.0) -> None:
        """Initialize the TicktopApp."""
        super().__init__()
        self._update_queue: Queue[Report] = Queue()
        self._monitor = SessionMonitor(session, self._update_queue, poll_rate=poll_rate)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable(order=self._monitor.session.order)
        yield Footer()

    def on_mount(self) -> None:
        """Start the session monitor when the app is mounted."""
        self._monitor.start()
        # Set up a timer to poll the queue for updates
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Check the queue for reports and refresh the UI."""
        report = None
        while True:
            try:
                report = self._update_queue.get_nowait()
            except Empty:
                break

        if report is not None:
            self._update_ui(report)

    def _update_ui(self, report: Report) -> None:
        """Update the UI with a new report."""
        try:
            self.query_one("#header-stats", HeaderStats).update_stats(report)
            self.query_one(ProcessTable).update_report(report)
        except Exception:
            logger.exception("failed to render report")

    def action_order(self) -> None:
        """Toggle between CPU and memory order."""
        order = self._monitor.session.toggle_order()
        self.query_one(ProcessTable).set_order(order)
        self.notify(f"Order: {order.value}")

    def action_cycle_time(self) -> None:
        """Cycle the CPU time categories shown."""
        categories = self._monitor.session.cycle_categories()
        self._monitor.refresh_now()
        self.notify(f"CPU time: {selector_label(categories)}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()
