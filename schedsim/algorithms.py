from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Type

from .config import DEFAULT_SIMULATION_CONFIG, SimulationConfig
from .models import Algorithm, Process

logger = logging.getLogger(__name__)


@dataclass
class ReadyQueues:
    """
    The ready structures of one simulation run.

    ``ready`` is the single ready queue for most algorithms and the
    low-priority (FCFS) queue for the multilevel queue. ``high`` is only used
    by the multilevel queue.
    """

    ready: List[Process] = field(default_factory=list)
    high: List[Process] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.ready) or bool(self.high)

    def holds(self, process: Process) -> bool:
        return any(p is process for p in self.ready) or any(p is process for p in self.high)

    def clear(self) -> None:
        self.ready.clear()
        self.high.clear()


def _take_first(queue: List[Process], key: Callable[[Process], object]) -> Optional[Process]:
    """
    Remove and return the process with the smallest key. On equal keys the
    one closest to the head of the queue wins.
    """
    if not queue:
        return None
    index = min(range(len(queue)), key=lambda i: key(queue[i]))
    return queue.pop(index)


class SchedulingPolicy:
    """
    Base policy: a single FIFO-ordered ready queue with no preemption.

    Subclasses override ``select`` (and, when they preempt or use a quantum,
    ``should_preempt`` / ``time_slice``).
    """

    algorithm: Algorithm
    label: str = ""
    uses_high_queue = False

    def __init__(self, quantum: Optional[int] = None, config: SimulationConfig = DEFAULT_SIMULATION_CONFIG):
        self.quantum = quantum
        self.config = config

    def admit(self, process: Process, queues: ReadyQueues) -> str:
        queues.ready.append(process)
        return f"Process {process.pid} (BT: {process.burst_time}, Prio: {process.priority}) arrived."

    def select(self, queues: ReadyQueues, clock: int) -> Optional[Process]:
        raise NotImplementedError

    def should_preempt(self, running: Process, queues: ReadyQueues) -> bool:
        return False

    def requeue(self, process: Process, queues: ReadyQueues) -> None:
        queues.ready.append(process)

    def time_slice(self, process: Process) -> Optional[int]:
        return None

    def describe_dispatch(self, process: Process) -> str:
        return f"Process {process.pid} starts/resumes execution (Rem BT: {process.remaining_burst_time})."

    def describe_preemption(self, process: Process) -> str:
        return f"Process {process.pid} preempted (Rem BT: {process.remaining_burst_time})."


class FCFSPolicy(SchedulingPolicy):
    algorithm = Algorithm.FCFS
    label = "FCFS"

    def select(self, queues: ReadyQueues, clock: int) -> Optional[Process]:
        return _take_first(queues.ready, lambda p: p.arrival_time)


class SJFPolicy(SchedulingPolicy):
    """
    Shortest Job First (non-preemptive): smallest total burst, ties broken by
    earlier arrival.
    """

    algorithm = Algorithm.SJF
    label = "SJF (non-preemptive)"

    def select(self, queues: ReadyQueues, clock: int) -> Optional[Process]:
        return _take_first(queues.ready, lambda p: (p.burst_time, p.arrival_time))


class SRTFPolicy(SchedulingPolicy):
    """
    Shortest Remaining Time First (preemptive SJF).

    An arrival preempts the running process when some queued process has
    strictly less remaining burst.
    """

    algorithm = Algorithm.SRTF
    label = "SRTF"

    def select(self, queues: ReadyQueues, clock: int) -> Optional[Process]:
        return _take_first(queues.ready, lambda p: (p.remaining_burst_time, p.arrival_time))

    def should_preempt(self, running: Process, queues: ReadyQueues) -> bool:
        if not queues.ready:
            return False
        shortest = min(p.remaining_burst_time for p in queues.ready)
        return shortest < running.remaining_burst_time


class PriorityPolicy(SchedulingPolicy):
    """
    Static priority (non-preemptive). Lower numeric priority value means
    higher priority; ties go to the earlier arrival.
    """

    algorithm = Algorithm.PRIORITY
    label = "Priority (non-preemptive)"

    def select(self, queues: ReadyQueues, clock: int) -> Optional[Process]:
        return _take_first(queues.ready, lambda p: (p.priority, p.arrival_time))


class PreemptivePriorityPolicy(PriorityPolicy):
    algorithm = Algorithm.PRIORITY_PREEMPTIVE
    label = "Priority (preemptive)"

    def should_preempt(self, running: Process, queues: ReadyQueues) -> bool:
        if not queues.ready:
            return False
        return min(p.priority for p in queues.ready) < running.priority


class RoundRobinPolicy(SchedulingPolicy):
    """
    Round Robin: the ready queue is circular, the head always runs next and
    gives the CPU back when its quantum expires.
    """

    algorithm = Algorithm.RR
    label = "Round Robin"

    def select(self, queues: ReadyQueues, clock: int) -> Optional[Process]:
        return queues.ready.pop(0) if queues.ready else None

    def time_slice(self, process: Process) -> Optional[int]:
        return self.quantum


class HRRNPolicy(SchedulingPolicy):
    """
    Highest Response Ratio Next (non-preemptive).

    The ratio (wait + burst) / burst is recomputed against the current clock
    at every selection, so long jobs gain ground the longer they wait.
    """

    algorithm = Algorithm.HRRN
    label = "HRRN"

    @staticmethod
    def response_ratio(process: Process, clock: int) -> Fraction:
        waited = clock - process.arrival_time
        return Fraction(waited + process.burst_time, process.burst_time)

    def select(self, queues: ReadyQueues, clock: int) -> Optional[Process]:
        return _take_first(queues.ready, lambda p: (-self.response_ratio(p, clock), p.arrival_time))


class MultilevelQueuePolicy(SchedulingPolicy):
    """
    Two-level queue: level 1 (priority below the threshold) is round robin,
    level 2 is FCFS.

    A process keeps the level it was given on first admission. Level 1 always
    runs first, and a level 1 arrival preempts a running level 2 process.
    """

    algorithm = Algorithm.MLQ
    label = "Multilevel Queue (RR/FCFS)"
    uses_high_queue = True

    def admit(self, process: Process, queues: ReadyQueues) -> str:
        if process.queue_level is None:
            process.queue_level = 1 if process.priority < self.config.mlq_priority_threshold else 2
            logger.debug("MLQ: %s assigned to level %d", process.pid, process.queue_level)

        if process.queue_level == 1:
            queues.high.append(process)
            return f"Process {process.pid} (Prio {process.priority}) arrived, assigned to High-Prio (RR) Queue."
        queues.ready.append(process)
        return f"Process {process.pid} (Prio {process.priority}) arrived, assigned to Low-Prio (FCFS) Queue."

    def select(self, queues: ReadyQueues, clock: int) -> Optional[Process]:
        if queues.high:
            return queues.high.pop(0)
        return _take_first(queues.ready, lambda p: p.arrival_time)

    def should_preempt(self, running: Process, queues: ReadyQueues) -> bool:
        return running.queue_level == 2 and bool(queues.high)

    def requeue(self, process: Process, queues: ReadyQueues) -> None:
        if process.queue_level == 1:
            queues.high.append(process)
        else:
            queues.ready.append(process)

    def time_slice(self, process: Process) -> Optional[int]:
        return self.quantum if process.queue_level == 1 else None

    def describe_dispatch(self, process: Process) -> str:
        return (
            f"Process {process.pid} (from Q{process.queue_level}) starts/resumes execution "
            f"(Rem BT: {process.remaining_burst_time})."
        )

    def describe_preemption(self, process: Process) -> str:
        return f"High-priority process arrived. Preempting {process.pid} from Low-Prio queue."


ALGORITHMS: Dict[Algorithm, Type[SchedulingPolicy]] = {
    Algorithm.FCFS: FCFSPolicy,
    Algorithm.SJF: SJFPolicy,
    Algorithm.SRTF: SRTFPolicy,
    Algorithm.PRIORITY: PriorityPolicy,
    Algorithm.PRIORITY_PREEMPTIVE: PreemptivePriorityPolicy,
    Algorithm.RR: RoundRobinPolicy,
    Algorithm.HRRN: HRRNPolicy,
    Algorithm.MLQ: MultilevelQueuePolicy,
}

QUANTUM_ALGORITHMS = frozenset({Algorithm.RR, Algorithm.MLQ})


def create_policy(
    algorithm: Algorithm | str,
    quantum: Optional[int] = None,
    config: SimulationConfig = DEFAULT_SIMULATION_CONFIG,
) -> SchedulingPolicy:
    """
    Build the policy for an algorithm. Quantum-driven algorithms get a
    normalized quantum; the rest get none.
    """
    algorithm = Algorithm.parse(algorithm)
    policy_cls = ALGORITHMS[algorithm]

    if algorithm in QUANTUM_ALGORITHMS:
        effective = config.effective_quantum(quantum)
        if effective != quantum:
            logger.debug("Quantum %r is not usable for %s, defaulting to %d", quantum, algorithm.value, effective)
        return policy_cls(quantum=effective, config=config)

    return policy_cls(config=config)
