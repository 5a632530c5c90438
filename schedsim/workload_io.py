from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import List

from .models import Process

# (arrival_time, burst_time, priority) of the built-in demo workload.
SAMPLE_WORKLOAD = [
    (0, 8, 2),
    (1, 4, 1),
    (2, 9, 4),
    (3, 5, 3),
    (4, 2, 5),
    (5, 6, 2),
    (10, 3, 1),
    (12, 7, 3),
]


def sample_workload() -> List[Process]:
    """
    Return a fresh copy of the eight-process demo workload (P1..P8).
    """
    return [
        Process(
            pid=f"P{idx}",
            name=f"Process {idx}",
            arrival_time=arrival,
            burst_time=burst,
            priority=priority,
        )
        for idx, (arrival, burst, priority) in enumerate(SAMPLE_WORKLOAD, start=1)
    ]


def load_workload(path: str | Path) -> List[Process]:
    """
    Load a workload from a JSON or CSV file into a list of Process objects.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        return _load_json(path)
    if suffix == ".csv":
        return _load_csv(path)

    raise ValueError(f"Unsupported workload format: {suffix} (use .json or .csv)")


def _load_json(path: Path) -> List[Process]:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError("JSON workload must be a list of process objects")

    return [_process_from_mapping(entry) for entry in raw]


def _load_csv(path: Path) -> List[Process]:
    processes: List[Process] = []
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            processes.append(_process_from_mapping(row))
    return processes


def _process_from_mapping(mapping) -> Process:
    try:
        pid = str(mapping["pid"] if "pid" in mapping else mapping["id"])
        arrival_time = int(mapping["arrival_time"])
        burst_time = int(mapping["burst_time"])
        priority_val = mapping.get("priority")
        priority = int(priority_val) if priority_val not in (None, "") else 0
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid process entry: {mapping!r}") from exc

    return Process(
        pid=pid,
        arrival_time=arrival_time,
        burst_time=burst_time,
        priority=priority,
        name=str(mapping.get("name") or ""),
        color=mapping.get("color") or None,
    )
