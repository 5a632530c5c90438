import copy
import logging

import pytest

from schedsim.config import SimulationConfig
from schedsim.models import Algorithm, Process, SimulationStatus
from schedsim.simulator import IDLE_MESSAGE, START_MESSAGE, STUCK_MESSAGE, Simulation, run_simulation
from schedsim.workload_io import sample_workload


def _slices(result):
    return [(g.pid, g.start, g.end) for g in result.gantt_chart_data]


def _by_pid(result):
    return {p.pid: p for p in result.detailed_process_info}


def test_fcfs_runs_in_arrival_order():
    procs = [Process("P1", arrival_time=0, burst_time=5), Process("P2", arrival_time=1, burst_time=3)]
    res = run_simulation(procs, "fcfs")
    assert _slices(res) == [("P1", 0, 5), ("P2", 5, 8)]
    assert res.status is SimulationStatus.COMPLETED


def test_srtf_preempts_longer_running_process():
    procs = [Process("P1", arrival_time=0, burst_time=8), Process("P2", arrival_time=1, burst_time=4)]
    res = run_simulation(procs, "srtf")
    assert _slices(res) == [("P1", 0, 1), ("P2", 1, 5), ("P1", 5, 12)]

    p1 = _by_pid(res)["P1"]
    assert p1.start_time == 0
    assert p1.completion_time == 12
    assert p1.waiting_time == 4


def test_rr_never_exceeds_quantum():
    procs = [Process("P1", arrival_time=0, burst_time=5), Process("P2", arrival_time=0, burst_time=3)]
    res = run_simulation(procs, "rr", time_quantum=4)
    assert _slices(res) == [("P1", 0, 4), ("P2", 4, 7), ("P1", 7, 8)]
    assert all(g.duration <= 4 for g in res.gantt_chart_data)


@pytest.mark.parametrize("quantum", [1, 2, 3, 5])
def test_rr_slices_bounded_on_sample_workload(quantum):
    res = run_simulation(sample_workload(), "rr", time_quantum=quantum)
    assert max(g.duration for g in res.gantt_chart_data) <= quantum


@pytest.mark.parametrize("algorithm", list(Algorithm))
def test_schedule_properties_hold_for_every_algorithm(algorithm):
    procs = sample_workload()
    res = run_simulation(procs, algorithm, time_quantum=3)

    busy = {}
    for g in res.gantt_chart_data:
        assert g.start < g.end
        busy[g.pid] = busy.get(g.pid, 0) + g.duration
    for p in procs:
        assert busy[p.pid] == p.burst_time

    # Segments never overlap.
    ordered = sorted(res.gantt_chart_data, key=lambda g: g.start)
    for prev, nxt in zip(ordered, ordered[1:]):
        assert prev.end <= nxt.start

    for p in res.detailed_process_info:
        assert p.remaining_burst_time == 0
        assert p.turnaround_time == p.completion_time - p.arrival_time
        assert p.waiting_time == p.turnaround_time - p.burst_time
        assert p.waiting_time >= 0
        assert p.response_time == p.start_time - p.arrival_time
        assert p.response_time >= 0

    metrics = res.overall_metrics
    assert 0 <= metrics.cpu_utilization <= 100
    assert metrics.total_execution_time == max(p.completion_time for p in res.detailed_process_info)
    assert metrics.throughput == pytest.approx(len(procs) / metrics.total_execution_time)

    assert res.simulation_log[0].message == START_MESSAGE
    assert res.simulation_log[-1].message.startswith("All 8 processes completed")


@pytest.mark.parametrize("algorithm", list(Algorithm))
def test_gantt_snapshots_are_prefixes_of_final_chart(algorithm):
    res = run_simulation(sample_workload(), algorithm, time_quantum=2)
    final = res.gantt_chart_data
    for event in res.simulation_log:
        assert list(event.gantt_snapshot) == final[: len(event.gantt_snapshot)]


def test_idle_gap_is_fast_forwarded():
    procs = [Process("P1", arrival_time=0, burst_time=2), Process("P2", arrival_time=5, burst_time=1)]
    res = run_simulation(procs, "fcfs")

    assert _slices(res) == [("P1", 0, 2), ("P2", 5, 6)]
    assert res.overall_metrics.total_execution_time == 6
    assert res.overall_metrics.cpu_utilization == pytest.approx(50.0)
    assert res.overall_metrics.throughput == pytest.approx(2 / 6)

    skips = [e for e in res.simulation_log if "Fast-forwarding" in e.message]
    assert len(skips) == 1
    assert skips[0].message == "CPU Idle. Fast-forwarding by 3 unit(s) to next arrival at t=5."
    assert skips[0].cpu_idle


def test_late_first_arrival_counts_leading_idle_time():
    res = run_simulation([Process("P1", arrival_time=3, burst_time=2)], "sjf")
    assert _slices(res) == [("P1", 3, 5)]
    assert res.overall_metrics.cpu_utilization == pytest.approx(40.0)
    assert _by_pid(res)["P1"].response_time == 0


@pytest.mark.parametrize("algorithm", list(Algorithm))
def test_fast_forward_does_not_change_schedule(algorithm):
    procs = [
        Process("A", arrival_time=2, burst_time=3, priority=1),
        Process("B", arrival_time=9, burst_time=2, priority=4),
        Process("C", arrival_time=10, burst_time=4, priority=2),
        Process("D", arrival_time=30, burst_time=1, priority=3),
    ]
    fast = run_simulation(procs, algorithm, time_quantum=2)
    slow = run_simulation(procs, algorithm, time_quantum=2, config=SimulationConfig(fast_forward_idle=False))

    assert fast.gantt_chart_data == slow.gantt_chart_data
    assert fast.overall_metrics == slow.overall_metrics
    assert not any("Fast-forwarding" in e.message for e in slow.simulation_log)


def test_consecutive_idle_ticks_log_once():
    procs = [Process("P1", arrival_time=4, burst_time=1)]
    res = run_simulation(procs, "fcfs", config=SimulationConfig(fast_forward_idle=False))
    idle_events = [e for e in res.simulation_log if e.message == IDLE_MESSAGE]
    assert len(idle_events) == 1
    assert res.overall_metrics.cpu_utilization == pytest.approx(20.0)


def test_zero_processes_returns_empty_result():
    res = run_simulation([], "rr")
    assert res.gantt_chart_data == []
    assert res.detailed_process_info == []
    assert res.overall_metrics.total_execution_time == 0
    assert res.overall_metrics.cpu_utilization == 0
    assert res.overall_metrics.throughput == 0
    assert [e.message for e in res.simulation_log] == [
        START_MESSAGE,
        "All 0 processes completed. Total time: 0.",
    ]


@pytest.mark.parametrize("quantum", [None, 0, -3])
def test_invalid_quantum_is_defaulted(quantum):
    res = run_simulation([Process("P1", 0, 10)], "rr", time_quantum=quantum)
    assert res.quantum == 4
    assert [g.duration for g in res.gantt_chart_data] == [4, 4, 2]


def test_quantum_ignored_by_non_quantum_algorithms():
    res = run_simulation([Process("P1", 0, 10)], "fcfs", time_quantum=3)
    assert res.quantum is None
    assert _slices(res) == [("P1", 0, 10)]


def test_caller_processes_are_not_mutated():
    procs = sample_workload()
    before = copy.deepcopy(procs)
    res = run_simulation(procs, "mlq", time_quantum=2)

    assert procs == before
    assert all(p.queue_level is None and p.completion_time is None for p in procs)
    assert not any(a is b for a in procs for b in res.detailed_process_info)


def test_stale_derived_fields_are_reset():
    stale = Process("P1", arrival_time=0, burst_time=3, remaining_burst_time=0, start_time=7, queue_level=2)
    res = run_simulation([stale], "mlq")
    p = res.detailed_process_info[0]
    assert p.start_time == 0
    assert p.queue_level == 1
    assert p.completion_time == 3


def test_log_snapshots_are_independent_copies():
    procs = [Process("P1", arrival_time=0, burst_time=8), Process("P2", arrival_time=1, burst_time=4)]
    res = run_simulation(procs, "srtf")
    live = res.detailed_process_info

    first_dispatch = next(e for e in res.simulation_log if e.running_process is not None)
    assert first_dispatch.running_process.pid == "P1"
    assert first_dispatch.running_process.remaining_burst_time == 8
    assert first_dispatch.running_process.completion_time is None

    for event in res.simulation_log:
        snapshot = [event.running_process, *event.ready_queue, *event.completed_processes]
        assert not any(s is p for s in snapshot if s is not None for p in live)

    # Mutating the live result afterwards leaves the log untouched.
    live[0].remaining_burst_time = 99
    assert first_dispatch.running_process.remaining_burst_time == 8


def test_preemption_event_shows_victim_back_in_queue():
    procs = [Process("P1", arrival_time=0, burst_time=8), Process("P2", arrival_time=1, burst_time=4)]
    res = run_simulation(procs, "srtf")
    event = next(e for e in res.simulation_log if "preempted" in e.message)
    assert event.time == 1
    assert event.running_process is None
    assert [p.pid for p in event.ready_queue] == ["P2", "P1"]
    assert event.gantt_snapshot[-1].pid == "P1"


def test_completed_set_grows_in_completion_order():
    res = run_simulation(sample_workload(), "fcfs")
    sizes = [len(e.completed_processes) for e in res.simulation_log]
    assert sizes == sorted(sizes)
    assert [p.pid for p in res.simulation_log[-1].completed_processes] == [
        "P1", "P2", "P3", "P4", "P5", "P6", "P7", "P8",
    ]


def test_high_queue_only_tracked_for_mlq():
    res = run_simulation(sample_workload(), "rr", time_quantum=2)
    assert all(e.high_priority_queue is None for e in res.simulation_log)

    res = run_simulation(sample_workload(), "mlq", time_quantum=2)
    assert all(e.high_priority_queue is not None for e in res.simulation_log)


@pytest.mark.parametrize("algorithm", list(Algorithm))
def test_runs_are_deterministic(algorithm):
    first = run_simulation(sample_workload(), algorithm, time_quantum=3)
    second = run_simulation(sample_workload(), algorithm, time_quantum=3)
    assert first.gantt_chart_data == second.gantt_chart_data
    assert first.detailed_process_info == second.detailed_process_info
    assert first.overall_metrics == second.overall_metrics
    assert first.simulation_log == second.simulation_log


def test_simulation_run_is_idempotent():
    sim = Simulation(sample_workload(), "hrrn")
    assert sim.run() is sim.run()


def test_watchdog_forces_stop(caplog):
    procs = [Process("Long", arrival_time=0, burst_time=50), Process("Short", arrival_time=0, burst_time=5)]
    with caplog.at_level(logging.WARNING, logger="schedsim"):
        res = run_simulation(procs, "fcfs", config=SimulationConfig(max_ticks=10))

    assert res.status is SimulationStatus.FORCED_STOP
    assert _slices(res) == [("Long", 0, 10)]
    assert res.simulation_log[-1].message.startswith("Simulation force stopped at t=10")
    assert "exceeded 10 ticks" in caplog.text

    long_, short = _by_pid(res)["Long"], _by_pid(res)["Short"]
    assert long_.completion_time == 10
    assert short.completion_time == 10
    assert short.start_time is None
    assert short.waiting_time == 5
    assert short.response_time == short.waiting_time
    assert res.overall_metrics.total_execution_time == 10
    assert res.overall_metrics.cpu_utilization == pytest.approx(100.0)


def test_stuck_simulation_completes_synthetically(caplog):
    # A negative arrival time is never reached by the clock.
    procs = [Process("P1", arrival_time=0, burst_time=2), Process("X", arrival_time=-1, burst_time=3)]
    with caplog.at_level(logging.ERROR, logger="schedsim"):
        res = run_simulation(procs, "fcfs")

    assert res.status is SimulationStatus.STUCK
    assert res.simulation_log[-1].message == STUCK_MESSAGE
    assert "stuck" in caplog.text

    x = _by_pid(res)["X"]
    assert x.completion_time == 2
    assert x.start_time is None
    assert x.response_time == x.waiting_time
    assert _slices(res) == [("P1", 0, 2)]


def test_far_off_arrival_is_fast_forwarded_not_force_stopped():
    procs = [Process("A", arrival_time=0, burst_time=1), Process("B", arrival_time=5000, burst_time=1)]
    res = run_simulation(procs, "fcfs")

    assert res.status is SimulationStatus.COMPLETED
    assert _slices(res) == [("A", 0, 1), ("B", 5000, 5001)]
    assert _by_pid(res)["B"].start_time == 5000
    assert res.overall_metrics.total_execution_time == 5001


def test_idle_ticks_count_towards_watchdog_without_fast_forward():
    procs = [Process("A", arrival_time=50, burst_time=1)]
    res = run_simulation(procs, "fcfs", config=SimulationConfig(max_ticks=10, fast_forward_idle=False))

    assert res.status is SimulationStatus.FORCED_STOP
    assert res.gantt_chart_data == []
    assert _by_pid(res)["A"].completion_time == 50


def test_completion_summary_stamped_at_last_completion_tick():
    res = run_simulation(sample_workload(), "rr", time_quantum=2)
    *_, last_completion, summary = res.simulation_log

    assert "completed at t=" in last_completion.message
    assert summary.time == last_completion.time
    assert summary.time == res.overall_metrics.total_execution_time - 1
    assert summary.message.endswith(f"Total time: {res.overall_metrics.total_execution_time}.")
