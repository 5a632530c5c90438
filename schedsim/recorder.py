from __future__ import annotations

import copy
import logging
from typing import Iterable, List, Optional

from .algorithms import ReadyQueues
from .models import GanttEntry, Process, SimulationEvent

logger = logging.getLogger(__name__)


def _snapshot(processes: Iterable[Process]) -> tuple:
    return tuple(copy.deepcopy(p) for p in processes)


class EventRecorder:
    """
    Append-only replay log.

    Each call to ``record`` deep-copies the live state it is given, so the
    simulator is free to keep mutating its processes and queues afterwards.
    """

    def __init__(self, track_high_queue: bool = False):
        self.track_high_queue = track_high_queue
        self._events: List[SimulationEvent] = []

    def record(
        self,
        time: int,
        message: str,
        running: Optional[Process],
        queues: ReadyQueues,
        completed: Iterable[Process],
        gantt: Iterable[GanttEntry],
        idle: bool = False,
    ) -> SimulationEvent:
        event = SimulationEvent(
            time=time,
            running_process=copy.deepcopy(running) if running is not None else None,
            ready_queue=_snapshot(queues.ready),
            completed_processes=_snapshot(completed),
            gantt_snapshot=tuple(gantt),
            cpu_idle=running is None or idle,
            message=message,
            high_priority_queue=_snapshot(queues.high) if self.track_high_queue else None,
        )
        self._events.append(event)
        logger.debug("[t=%d] %s", time, message)
        return event

    @property
    def last(self) -> Optional[SimulationEvent]:
        return self._events[-1] if self._events else None

    @property
    def events(self) -> List[SimulationEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)
