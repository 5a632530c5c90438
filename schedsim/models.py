from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class Algorithm(str, Enum):
    FCFS = "fcfs"
    SJF = "sjf"
    SRTF = "srtf"
    PRIORITY = "priority"
    PRIORITY_PREEMPTIVE = "priority_p"
    RR = "rr"
    HRRN = "hrrn"
    MLQ = "mlq"

    @classmethod
    def parse(cls, value: "Algorithm | str") -> "Algorithm":
        """
        Resolve an algorithm from a member, its value, its name, or one of the
        legacy labels (SJF_NP, SJF_P, PRIORITY_NP, PRIORITY_P, MQS).
        """
        if isinstance(value, cls):
            return value

        key = str(value).strip().lower().replace("-", "_")
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        if key in _ALIASES:
            return _ALIASES[key]

        raise ValueError(f"Unknown or unimplemented algorithm '{value}'")


_ALIASES = {
    "sjf_np": Algorithm.SJF,
    "sjf_p": Algorithm.SRTF,
    "priority_np": Algorithm.PRIORITY,
    "mqs": Algorithm.MLQ,
}


class SimulationStatus(str, Enum):
    COMPLETED = "completed"
    FORCED_STOP = "forced_stop"
    STUCK = "stuck"


@dataclass
class Process:
    """
    A schedulable process.

    The input fields (pid through color) are fixed. The remaining fields are
    filled in by the simulator and the metrics calculator as the run
    progresses; they stay ``None`` for a process that never completes.
    """

    pid: str
    arrival_time: int
    burst_time: int
    priority: int = 0
    name: str = ""
    color: Optional[str] = None
    remaining_burst_time: Optional[int] = None
    start_time: Optional[int] = None
    completion_time: Optional[int] = None
    turnaround_time: Optional[int] = None
    waiting_time: Optional[int] = None
    response_time: Optional[int] = None
    # Multilevel queue only: 1 = high priority (RR), 2 = low priority (FCFS).
    queue_level: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.pid
        if self.remaining_burst_time is None:
            self.remaining_burst_time = self.burst_time

    @property
    def is_completed(self) -> bool:
        return self.completion_time is not None


@dataclass(frozen=True)
class GanttEntry:
    """
    One contiguous slice of execution, covering the half-open interval
    [start, end).
    """

    pid: str
    name: str
    start: int
    end: int
    color: Optional[str] = None

    @property
    def duration(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class SimulationEvent:
    """
    Snapshot of the simulation after one state-changing step.

    Every process held here is a private copy, so nothing the simulator does
    afterwards can change a recorded event.
    """

    time: int
    running_process: Optional[Process]
    ready_queue: Tuple[Process, ...]
    completed_processes: Tuple[Process, ...]
    gantt_snapshot: Tuple[GanttEntry, ...]
    cpu_idle: bool
    message: str
    high_priority_queue: Optional[Tuple[Process, ...]] = None


@dataclass
class OverallMetrics:
    average_turnaround_time: float = 0.0
    average_waiting_time: float = 0.0
    average_response_time: float = 0.0
    cpu_utilization: float = 0.0  # percent
    throughput: float = 0.0  # processes per time unit
    total_execution_time: int = 0


@dataclass
class SimulationResult:
    algorithm: Algorithm
    quantum: Optional[int]
    gantt_chart_data: List[GanttEntry] = field(default_factory=list)
    detailed_process_info: List[Process] = field(default_factory=list)
    overall_metrics: OverallMetrics = field(default_factory=OverallMetrics)
    simulation_log: List[SimulationEvent] = field(default_factory=list)
    status: SimulationStatus = SimulationStatus.COMPLETED
