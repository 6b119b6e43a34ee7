"""Background refresh loop for ticktop."""

import logging
import threading
from queue import Queue

from ticktop.aggregate import Report
from ticktop.session import AccountingSession

logger = logging.getLogger(__name__)


class SessionMonitor:
    """
    Runs an AccountingSession on a timer.

    Runs in a separate daemon thread and pushes reports to a thread-safe
    Queue. A failed refresh is logged and the loop carries on.
    """

    def __init__(
        self,
        session: AccountingSession,
        update_queue: Queue[Report],
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the SessionMonitor.

        Args:
            session: Accounting session to refresh.
            update_queue: Thread-safe queue to push reports to.
            poll_rate: Seconds between refreshes. Default 2.0s.
        """
        self._session = session
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def session(self) -> AccountingSession:
        return self._session

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SessionMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def refresh_now(self) -> None:
        """Cut the current wait short and refresh immediately."""
        self._wake_event.set()

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                report = self._session.refresh()
            except Exception:
                logger.exception("refresh failed")
            else:
                if report is not None:
                    self._queue.put(report)

            # Wait for poll_rate seconds, or until woken or stopped
            self._wake_event.wait(timeout=self._poll_rate)
            self._wake_event.clear()
