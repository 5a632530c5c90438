from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import GanttEntry

PALETTE = ["red", "green", "yellow", "blue", "magenta", "cyan"]
IDLE_LABEL = "idle"

# (entry, start, end); entry is None for an idle span.
Span = Tuple[Optional[GanttEntry], int, int]


def timeline_spans(entries: Sequence[GanttEntry]) -> List[Span]:
    """
    The chart's segments in time order from t=0, with the idle gaps between
    them filled in as spans without an entry.
    """
    spans: List[Span] = []
    clock = 0
    for entry in sorted(entries, key=lambda e: (e.start, e.end)):
        if entry.start > clock:
            spans.append((None, clock, entry.start))
        spans.append((entry, entry.start, entry.end))
        clock = entry.end
    return spans


def _label(entry: Optional[GanttEntry]) -> str:
    return IDLE_LABEL if entry is None else entry.name


def render_gantt(entries: Sequence[GanttEntry]) -> str:
    """
    Plain-text Gantt chart: one cell per span, labelled with the process name,
    and the time of every boundary printed under its bar.
    """
    spans = timeline_spans(entries)
    if not spans:
        return "(no execution)"

    bar = "|"
    marks = "0"
    for entry, start, end in spans:
        label = _label(entry)
        bar += label.center(max(len(label), end - start) + 2) + "|"
        column = len(bar) - 1
        marks = marks.ljust(column) if len(marks) < column else marks + " "
        marks += str(end)

    return "\n".join(["Gantt Chart:", bar, marks])


def build_rich_gantt(entries: Sequence[GanttEntry], title: str = "Gantt Chart") -> Panel:
    """
    Colored Gantt chart: one column per span, headed by the process name, with
    a block as wide as the span and its time range underneath.

    A process's own color is used when it has one; the rest cycle through the
    palette in order of first appearance. Idle spans are drawn dimmed.
    """
    spans = timeline_spans(entries)
    if not spans:
        return Panel("No execution", title=title)

    colors: Dict[str, str] = {}
    table = Table(box=box.MINIMAL, pad_edge=False, show_edge=False)
    blocks = []
    ranges = []

    for entry, start, end in spans:
        width = max(1, end - start)
        if entry is None:
            table.add_column(Text(IDLE_LABEL, style="dim"), justify="center", min_width=width)
            blocks.append(Text("." * width, style="dim"))
        else:
            if entry.pid not in colors:
                colors[entry.pid] = entry.color or PALETTE[len(colors) % len(PALETTE)]
            table.add_column(Text(entry.name, style="bold"), justify="center", min_width=width)
            blocks.append(Text(" " * width, style=f"on {colors[entry.pid]}"))
        ranges.append(f"{start}-{end}")

    table.add_row(*blocks)
    table.add_row(*ranges)
    return Panel.fit(table, title=title)
