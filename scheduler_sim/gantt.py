from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import COLORS
from .models import ScheduledSlice


def _columns(t: float, scale: float) -> int:
    return int(round(t * scale))


def build_rich_gantt(
    slices: List[ScheduledSlice],
    colors: Optional[Dict[int, str]] = None,
    scale: float = 2.0,
) -> Tuple[Panel, str]:
    """
    Build a Rich Panel containing a colored Gantt chart and a string with time marks.

    ``scale`` is the number of terminal columns per simulated second.
    """
    if not slices:
        panel = Panel("No execution", title="Gantt Chart")
        return panel, ""

    slices = sorted(slices, key=lambda s: (s.start_time, s.end_time))
    colors = dict(colors or {})

    def pid_color(pid: int) -> str:
        if pid not in colors:
            colors[pid] = COLORS[len(colors) % len(COLORS)]
        return colors[pid]

    timeline = Text()
    labels = Text()
    time_marks = "0"
    column = 0

    for sl in slices:
        start_col = _columns(sl.start_time, scale)
        idle_gap = start_col - column
        if idle_gap > 0:
            timeline.append(" " * idle_gap)
            labels.append(" " * idle_gap)
            column = start_col
            time_marks += f"{sl.start_time:>6.1f}"

        width = max(1, _columns(sl.end_time, scale) - column)
        label = f"P{sl.pid}"

        timeline.append(" " * width, style=f"on {pid_color(sl.pid)}")
        labels.append(label[:width].ljust(width), style="bold")

        column += width
        time_marks += f"{sl.end_time:>6.1f}"

    table = Table.grid(padding=(0, 0))
    table.add_row(timeline)
    table.add_row(labels)

    panel = Panel.fit(table, title="Gantt Chart")
    return panel, time_marks
