"""Text formatting shared by the TUI and batch output."""

from functools import lru_cache

from ticktop.accounting import selector_label
from ticktop.aggregate import ProcessUsage, Report

try:
    import pwd
except ImportError:  # Windows
    pwd = None

COLUMNS = ("PID", "USERNAME", "PRI", "NICE", "SIZE", "STATE", "TIME", "CPU", "COMMAND")


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_time(ticks: int, hz: int) -> str:
    """Clock ticks as minutes:seconds."""
    seconds = ticks // max(hz, 1)
    return f"{seconds // 60:3d}:{seconds % 60:02d}"


@lru_cache(maxsize=256)
def username(uid: int) -> str:
    if uid < 0:
        return "?"
    if pwd is not None:
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            pass
    return str(uid)


def cpu_states_line(report: Report) -> str:
    cpu = report.cpu
    return (
        f"CPU states: {cpu.user:6.2f}% user, {cpu.system:6.2f}% system, "
        f"{cpu.kernel:6.2f}% kernel, {cpu.idle:6.2f}% idle"
    )


def counts_line(report: Report) -> str:
    counts = report.counts
    return f"{counts.total} processes: {counts.running} running, {counts.blocked} blocked"


def memory_line(report: Report) -> str | None:
    mem = report.memory
    if mem is None:
        return None
    return (
        f"main memory: {mem.total_bytes // 1024}K total, {mem.free_bytes // 1024}K free, "
        f"{mem.largest_bytes // 1024}K contig free, {mem.cached_bytes // 1024}K cached"
    )


def modes_line(report: Report) -> str:
    return (
        f"CPU time displayed ('t' to cycle): {selector_label(report.categories)}; "
        f"sort order ('o' to cycle): {report.order.value}"
    )


def process_cells(row: ProcessUsage, hz: int) -> tuple[str, ...]:
    """One table row as display strings, in COLUMNS order."""
    proc = row.process
    if proc.is_task:
        user, nice, name = "root", "", f"[{proc.name}]"
    else:
        user, nice, name = username(proc.owner_uid), str(proc.nice), proc.name
    if not proc.blocked:
        state = "RUN"
    elif proc.blocked_on is not None:
        state = f"({proc.blocked_on})"
    else:
        state = "BLK"
    return (
        str(proc.pid),
        user[:8],
        str(proc.priority),
        nice,
        format_bytes(proc.memory),
        state,
        format_time(proc.user_time, hz),
        f"{row.cpu_percent:6.2f}%",
        name,
    )


def render_text(report: Report, limit: int | None = None) -> str:
    """Plain-text rendering of a report, one line per process."""
    lines = [cpu_states_line(report), counts_line(report)]
    mem = memory_line(report)
    if mem is not None:
        lines.append(mem)
    lines.append(modes_line(report))
    lines.append("")
    widths = (6, 8, 4, 5, 7, 7, 7, 8, 0)
    lines.append(" ".join(c.rjust(w) for c, w in zip(COLUMNS, widths)).rstrip())
    rows = report.processes if limit is None else report.processes[:limit]
    for row in rows:
        cells = process_cells(row, report.clock_hz)
        lines.append(" ".join(c.rjust(w) for c, w in zip(cells, widths)))
    return "\n".join(lines)
