"""Command line entry point for ticktop."""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from ticktop.aggregate import Order
from ticktop.app import TicktopApp
from ticktop.errors import TicktopError
from ticktop.formatting import render_text
from ticktop.psutil_source import PsutilSource
from ticktop.session import AccountingSession
from ticktop.source import ProcessTableSource, ProcfsSource

logger = logging.getLogger(__name__)

app = typer.Typer(help="Per-process CPU accounting between two samples of the process table")


class SourceChoice(str, Enum):
    auto = "auto"
    procfs = "procfs"
    psutil = "psutil"


class OrderChoice(str, Enum):
    cpu = "cpu"
    memory = "memory"


def configure_logging(verbose: bool, log_file: Optional[Path]) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        filename=str(log_file) if log_file else None,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def make_source(choice: SourceChoice, proc_root: Path, capacity: int) -> ProcessTableSource:
    """Pick a process table source. ``auto`` prefers MINIX procfs when present."""
    if choice is SourceChoice.procfs or (
        choice is SourceChoice.auto and (proc_root / "kinfo").exists()
    ):
        logger.debug("reading MINIX procfs at %s", proc_root)
        return ProcfsSource(proc_root)
    logger.debug("reading processes through psutil, %d slots", capacity)
    return PsutilSource(capacity=capacity)


@app.command()
def main(
    interval: Annotated[float, typer.Option("--interval", "-d", help="Seconds between samples")] = 2.0,
    source: Annotated[SourceChoice, typer.Option(help="Process table source")] = SourceChoice.auto,
    proc_root: Annotated[Path, typer.Option(help="Root of the MINIX procfs")] = Path("/proc"),
    capacity: Annotated[int, typer.Option(min=1, help="Process slots for the psutil source")] = 4096,
    order: Annotated[OrderChoice, typer.Option("--order", "-o", help="Initial sort order")] = OrderChoice.cpu,
    batch: Annotated[bool, typer.Option("--batch", "-b", help="Print one report and exit")] = False,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", help="Rows to print in batch mode")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug messages")] = False,
    log_file: Annotated[Optional[Path], typer.Option(help="Write log messages to this file")] = None,
):
    configure_logging(verbose, log_file)

    try:
        session = AccountingSession(make_source(source, proc_root, capacity), order=Order(order.value))
        # The first sample only primes the previous-snapshot buffer
        session.refresh()
    except TicktopError as exc:
        typer.echo(f"ticktop: {exc}", err=True)
        raise typer.Exit(code=1)

    if batch:
        run_batch(session, interval, limit)
        return

    TicktopApp(session, poll_rate=interval).run()


def run_batch(session: AccountingSession, interval: float, limit: Optional[int]) -> None:
    time.sleep(max(0.1, interval))
    try:
        report = session.refresh()
    except TicktopError as exc:
        typer.echo(f"ticktop: {exc}", err=True)
        raise typer.Exit(code=1)
    if report is None:
        typer.echo("ticktop: no CPU ticks elapsed during the interval", err=True)
        raise typer.Exit(code=1)
    typer.echo(render_text(report, limit))


if __name__ == "__main__":
    app()
