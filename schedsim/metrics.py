from __future__ import annotations

from typing import List

from .models import OverallMetrics, Process


def fill_process_metrics(process: Process) -> None:
    """
    Derive turnaround, waiting and response time for a completed process.
    """
    process.turnaround_time = process.completion_time - process.arrival_time
    process.waiting_time = max(0, process.turnaround_time - process.burst_time)

    if process.start_time is not None:
        process.response_time = process.start_time - process.arrival_time
    else:
        # Only forced or stuck completions get here: the process never ran.
        process.response_time = process.waiting_time


def calculate_metrics(processes: List[Process], total_time: int, idle_time: int) -> OverallMetrics:
    """
    Fill in per-process metrics for every completed process and compute the
    aggregate metrics over them. Processes that never completed keep their
    metric fields unset and do not count towards the averages.
    """
    completed = [p for p in processes if p.completion_time is not None]
    for p in completed:
        fill_process_metrics(p)

    if total_time > 0:
        cpu_utilization = max(0.0, min(100.0, (total_time - idle_time) / total_time * 100))
        throughput = len(completed) / total_time
    else:
        cpu_utilization = 0.0
        throughput = 0.0

    if not completed:
        return OverallMetrics(
            cpu_utilization=cpu_utilization,
            throughput=throughput,
            total_execution_time=total_time,
        )

    n = len(completed)
    return OverallMetrics(
        average_turnaround_time=sum(p.turnaround_time for p in completed) / n,
        average_waiting_time=sum(p.waiting_time for p in completed) / n,
        average_response_time=sum(p.response_time for p in completed) / n,
        cpu_utilization=cpu_utilization,
        throughput=throughput,
        total_execution_time=total_time,
    )


def summarize_metrics(metrics: OverallMetrics) -> dict:
    """
    Return averages of the key per-process metrics for quick comparison.
    """
    return {
        "avg_waiting": metrics.average_waiting_time,
        "avg_turnaround": metrics.average_turnaround_time,
        "avg_response": metrics.average_response_time,
    }
