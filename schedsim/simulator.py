"""
Tick-by-tick CPU scheduling simulator.

A ``Simulation`` owns everything one run touches: private copies of the
caller's processes, the ready queues, the open Gantt segment and the event
recorder. Per-algorithm behaviour lives entirely in the policy object chosen
at construction time (see ``schedsim.algorithms``).

Each tick runs the same fixed sequence: admit arrivals, check preemption,
dispatch if the CPU is free, execute one unit, then handle completion or
quantum expiry. Idle gaps are skipped in one step when the configuration
allows it, and the watchdog bounds the number of ticks actually simulated
(a fast-forwarded gap counts as none).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Optional

from .algorithms import ReadyQueues, create_policy
from .config import DEFAULT_SIMULATION_CONFIG, SimulationConfig
from .metrics import calculate_metrics
from .models import Algorithm, GanttEntry, Process, SimulationResult, SimulationStatus
from .recorder import EventRecorder

logger = logging.getLogger(__name__)

START_MESSAGE = "Simulation started. Waiting for processes."
IDLE_MESSAGE = "CPU Idle. Waiting for next process or arrival."
STUCK_MESSAGE = "Error: CPU idle, no new arrivals, but not all processes completed. Simulation stuck."


def _fresh_copy(process: Process) -> Process:
    return replace(
        process,
        remaining_burst_time=process.burst_time,
        start_time=None,
        completion_time=None,
        turnaround_time=None,
        waiting_time=None,
        response_time=None,
        queue_level=None,
    )


class Simulation:
    def __init__(
        self,
        processes: Iterable[Process],
        algorithm: Algorithm | str,
        time_quantum: Optional[int] = None,
        config: SimulationConfig = DEFAULT_SIMULATION_CONFIG,
    ):
        self.config = config
        self.policy = create_policy(algorithm, time_quantum, config)
        self.algorithm = self.policy.algorithm
        self.processes: List[Process] = [_fresh_copy(p) for p in processes]

        self.queues = ReadyQueues()
        self.recorder = EventRecorder(track_high_queue=self.policy.uses_high_queue)
        self.gantt: List[GanttEntry] = []
        self.completed: List[Process] = []

        self.clock = 0
        self.idle_time = 0
        self.ticks = 0
        self.running: Optional[Process] = None
        self.segment_start = 0
        self.slice_left: Optional[int] = None
        self.status = SimulationStatus.COMPLETED
        self._result: Optional[SimulationResult] = None

    @property
    def finished(self) -> bool:
        return len(self.completed) >= len(self.processes)

    def run(self) -> SimulationResult:
        """
        Run the simulation to the end and return its result. Calling it again
        returns the same result object.
        """
        if self._result is not None:
            return self._result

        logger.info(
            "Simulating %s on %d process(es)", self.algorithm.value, len(self.processes)
        )
        self._record(START_MESSAGE)

        while not self.finished:
            if self.ticks >= self.config.max_ticks:
                self._force_stop()
                break

            if self._admit_arrivals() and self.running is not None:
                self._check_preemption()

            if self.running is None:
                self._dispatch()

            if self.running is None:
                self._idle_tick()
            else:
                self._execute()

            self.clock += 1
            self.ticks += 1

            if not self.finished and self.running is None and not self.queues:
                if not self._skip_idle():
                    self._stuck()
                    break

        if self.status is SimulationStatus.COMPLETED:
            # Stamped at the tick of the last completion, not the clock after it.
            self._record(
                f"All {len(self.processes)} processes completed. Total time: {self.clock}.",
                idle=True,
                time=max(self.clock - 1, 0),
            )

        metrics = calculate_metrics(self.processes, self.clock, self.idle_time)
        logger.info(
            "%s finished (%s) at t=%d, CPU utilization %.1f%%",
            self.algorithm.value,
            self.status.value,
            self.clock,
            metrics.cpu_utilization,
        )

        self._result = SimulationResult(
            algorithm=self.algorithm,
            quantum=self.policy.quantum,
            gantt_chart_data=list(self.gantt),
            detailed_process_info=self.processes,
            overall_metrics=metrics,
            simulation_log=self.recorder.events,
            status=self.status,
        )
        return self._result

    def _record(self, message: str, idle: bool = False, time: Optional[int] = None) -> None:
        self.recorder.record(
            self.clock if time is None else time,
            message,
            running=self.running,
            queues=self.queues,
            completed=self.completed,
            gantt=self.gantt,
            idle=idle,
        )

    def _close_segment(self, end: int) -> None:
        if end > self.segment_start:
            p = self.running
            self.gantt.append(GanttEntry(pid=p.pid, name=p.name, start=self.segment_start, end=end, color=p.color))

    def _admit_arrivals(self) -> bool:
        arrived = False
        for p in self.processes:
            if p.arrival_time != self.clock or p.is_completed:
                continue
            if p is self.running or self.queues.holds(p):
                continue
            self._record(self.policy.admit(p, self.queues))
            arrived = True
        return arrived

    def _check_preemption(self) -> None:
        if not self.policy.should_preempt(self.running, self.queues):
            return

        victim = self.running
        self._close_segment(self.clock)
        self.policy.requeue(victim, self.queues)
        self.running = None
        self.slice_left = None
        self._record(self.policy.describe_preemption(victim))

    def _dispatch(self) -> None:
        process = self.policy.select(self.queues, self.clock)
        if process is None:
            return

        if process.start_time is None:
            process.start_time = self.clock
        self.running = process
        self.segment_start = self.clock
        self.slice_left = self.policy.time_slice(process)
        self._record(self.policy.describe_dispatch(process))

    def _idle_tick(self) -> None:
        last = self.recorder.last
        if last is None or not (last.cpu_idle and last.message == IDLE_MESSAGE):
            self._record(IDLE_MESSAGE, idle=True)
        self.idle_time += 1

    def _execute(self) -> None:
        p = self.running
        p.remaining_burst_time -= 1
        if self.slice_left is not None:
            self.slice_left -= 1
        end = self.clock + 1

        if p.remaining_burst_time <= 0:
            p.remaining_burst_time = 0
            p.completion_time = end
            self._close_segment(end)
            self.running = None
            self.slice_left = None
            self.completed.append(p)
            self._record(f"Process {p.pid} completed at t={end}.")
        elif self.slice_left == 0:
            self._close_segment(end)
            self.running = None
            self.slice_left = None
            self.policy.requeue(p, self.queues)
            self._record(
                f"Process {p.pid} time quantum expired. Moved to ready queue "
                f"(Rem BT: {p.remaining_burst_time})."
            )
        else:
            last = self.recorder.last
            if last.cpu_idle or last.running_process is None or last.running_process.pid != p.pid:
                self._record(f"Process {p.pid} continues execution (Rem BT: {p.remaining_burst_time}).")

    def _skip_idle(self) -> bool:
        """
        Called with the CPU idle and the queues empty. Returns False when no
        process is left to arrive, i.e. the run is stuck.
        """
        upcoming = [p.arrival_time for p in self.processes if not p.is_completed and p.arrival_time >= self.clock]
        if not upcoming:
            return False
        if not self.config.fast_forward_idle:
            return True

        next_arrival = min(upcoming)
        gap = next_arrival - self.clock
        if gap > 0:
            self._record(
                f"CPU Idle. Fast-forwarding by {gap} unit(s) to next arrival at t={next_arrival}.",
                idle=True,
            )
            self.idle_time += gap
            self.clock = next_arrival
        return True

    def _complete_remaining(self, at: int) -> None:
        for p in self.processes:
            if not p.is_completed:
                p.completion_time = max(at, p.arrival_time)
                self.completed.append(p)
        self.queues.clear()

    def _stuck(self) -> None:
        logger.error("%s simulation stuck at t=%d with %d unfinished process(es)",
                     self.algorithm.value, self.clock, len(self.processes) - len(self.completed))
        self.status = SimulationStatus.STUCK
        self._complete_remaining(self.clock)
        self._record(STUCK_MESSAGE, idle=True)

    def _force_stop(self) -> None:
        logger.warning("%s simulation exceeded %d ticks, forcing stop at t=%d",
                       self.algorithm.value, self.config.max_ticks, self.clock)
        self.status = SimulationStatus.FORCED_STOP
        if self.running is not None:
            self._close_segment(self.clock)
            self.running = None
            self.slice_left = None
        self._complete_remaining(self.clock)
        self._record(
            f"Simulation force stopped at t={self.clock} due to exceeding {self.config.max_ticks} simulated ticks.",
            idle=True,
        )


def run_simulation(
    processes: Iterable[Process],
    algorithm: Algorithm | str,
    time_quantum: Optional[int] = None,
    config: SimulationConfig = DEFAULT_SIMULATION_CONFIG,
) -> SimulationResult:
    """
    Simulate ``processes`` under ``algorithm`` and return the Gantt chart,
    per-process metrics, aggregate metrics and the replay log.

    The caller's process objects are never modified.
    """
    return Simulation(processes, algorithm, time_quantum, config).run()
