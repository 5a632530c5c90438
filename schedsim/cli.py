from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import DEFAULT_TIME_QUANTUM, MAX_SIMULATION_TICKS, SimulationConfig
from .gantt import build_rich_gantt, render_gantt
from .metrics import summarize_metrics
from .models import Algorithm, Process, SimulationEvent, SimulationResult, SimulationStatus
from .simulator import run_simulation
from .workload_io import load_workload, sample_workload

logger = logging.getLogger(__name__)

ALGORITHM_NAMES = [a.value for a in Algorithm]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schedsim",
        description="Tick-by-tick CPU scheduling simulator "
        "(FCFS, SJF, SRTF, Priority, Preemptive Priority, RR, HRRN, MLQ).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Show simulator logging (-v for info, -vv for every event).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a scheduling algorithm on a workload.")
    run_parser.add_argument(
        "--algorithm",
        "-a",
        required=True,
        help=f"Algorithm to use ({', '.join(ALGORITHM_NAMES)}).",
    )
    _add_workload_arguments(run_parser, default_quantum=None)
    run_parser.add_argument(
        "--step",
        action="store_true",
        help="Replay the simulation log step by step in the terminal.",
    )
    run_parser.add_argument(
        "--step-delay",
        type=float,
        default=0.3,
        help="Seconds to wait between steps when --step is used (default: 0.3).",
    )
    run_parser.add_argument(
        "--show-log",
        action="store_true",
        help="Print the full simulation log as a table.",
    )
    run_parser.add_argument(
        "--plain",
        action="store_true",
        help="Draw the Gantt chart as plain text instead of colored blocks.",
    )
    run_parser.add_argument(
        "--max-ticks",
        type=int,
        default=MAX_SIMULATION_TICKS,
        help=f"Force-stop the simulation after simulating this many ticks (default: {MAX_SIMULATION_TICKS}).",
    )
    run_parser.add_argument(
        "--no-fast-forward",
        action="store_true",
        help="Tick through idle gaps one unit at a time.",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run multiple algorithms on the same workload and compare average metrics.",
    )
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        default=ALGORITHM_NAMES,
        help=f"Algorithms to compare (default: {' '.join(ALGORITHM_NAMES)}).",
    )
    _add_workload_arguments(compare_parser, default_quantum=DEFAULT_TIME_QUANTUM)

    return parser


def _add_workload_arguments(parser: argparse.ArgumentParser, default_quantum: Optional[int]) -> None:
    parser.add_argument(
        "--workload",
        "-w",
        default=None,
        help="Path to JSON or CSV workload file (default: built-in sample workload).",
    )
    parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=default_quantum,
        help=f"Time quantum for rr / mlq, ignored by the others (default: {DEFAULT_TIME_QUANTUM}).",
    )


def _configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        return
    level = logging.INFO if verbosity == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _load_processes(workload: Optional[str]) -> List[Process]:
    if workload is None:
        return sample_workload()
    return load_workload(Path(workload))


def _fmt(value) -> str:
    return "" if value is None else str(value)


def _print_result(result: SimulationResult, console: Console, plain: bool = False) -> None:
    console.print(f"[bold]Algorithm:[/bold] {result.algorithm.value}")
    if result.quantum is not None:
        console.print(f"[bold]Quantum:[/bold] {result.quantum}")
    if result.status is not SimulationStatus.COMPLETED:
        console.print(f"[bold red]Simulation ended abnormally:[/bold red] {escape(result.simulation_log[-1].message)}")

    console.print()

    if plain:
        console.print(render_gantt(result.gantt_chart_data), markup=False)
    else:
        console.print(build_rich_gantt(result.gantt_chart_data))

    console.print()

    headers = [
        "PID",
        "Arrive",
        "Burst",
        "Priority",
        "Start",
        "Complete",
        "Wait",
        "Turnaround",
        "Response",
    ]
    show_level = result.algorithm is Algorithm.MLQ
    if show_level:
        headers.append("Queue")

    proc_table = Table(title="Per-process metrics", box=box.SIMPLE_HEAVY)
    for h in headers:
        justify = "center" if h in {"PID", "Priority", "Queue"} else "right"
        proc_table.add_column(h, justify=justify)

    for p in result.detailed_process_info:
        row = [
            p.pid,
            str(p.arrival_time),
            str(p.burst_time),
            str(p.priority),
            _fmt(p.start_time),
            _fmt(p.completion_time),
            _fmt(p.waiting_time),
            _fmt(p.turnaround_time),
            _fmt(p.response_time),
        ]
        if show_level:
            row.append(_fmt(p.queue_level))
        proc_table.add_row(*row)

    console.print(proc_table)
    console.print()

    metrics = result.overall_metrics
    summary = summarize_metrics(metrics)
    sys_table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
    sys_table.add_column("Metric")
    sys_table.add_column("Value", justify="right")

    sys_table.add_row("Avg waiting", f"{summary['avg_waiting']:.2f}")
    sys_table.add_row("Avg turnaround", f"{summary['avg_turnaround']:.2f}")
    sys_table.add_row("Avg response", f"{summary['avg_response']:.2f}")
    sys_table.add_row("Throughput (proc/time)", f"{metrics.throughput:.3f}")
    sys_table.add_row("CPU utilization", f"{metrics.cpu_utilization:.1f}%")
    sys_table.add_row("Total time", str(metrics.total_execution_time))

    console.print(sys_table)


def _queue_text(queue: Optional[Sequence[Process]]) -> str:
    if not queue:
        return "-"
    return " ".join(p.pid for p in queue)


def _print_log(events: Sequence[SimulationEvent], console: Console) -> None:
    has_high = any(e.high_priority_queue is not None for e in events)

    table = Table(title="Simulation log", box=box.SIMPLE_HEAVY)
    table.add_column("#", justify="right")
    table.add_column("t", justify="right")
    table.add_column("Running", justify="center")
    if has_high:
        table.add_column("High queue")
    table.add_column("Ready queue")
    table.add_column("Event")

    for idx, event in enumerate(events):
        running = event.running_process.pid if event.running_process else "[dim]idle[/dim]"
        row = [str(idx), str(event.time), running]
        if has_high:
            row.append(_queue_text(event.high_priority_queue))
        row.extend([_queue_text(event.ready_queue), escape(event.message)])
        table.add_row(*row)

    console.print(table)


def _replay_log(result: SimulationResult, delay: float, console: Console) -> None:
    """
    Walk the simulation log one event at a time, redrawing the Gantt chart
    built so far at each step.
    """
    events = result.simulation_log
    console.print(f"[bold]Replaying {result.algorithm.value}[/bold] ({len(events)} steps)")
    console.print("[dim]Press Ctrl+C to skip the replay.[/dim]")

    for idx, event in enumerate(events):
        running = event.running_process.pid if event.running_process else "idle"
        console.print(f"[bold]step {idx:3d}[/bold]  t={event.time:3d}  running: [green]{running}[/green]")
        if event.high_priority_queue is not None:
            console.print(f"  high queue: {_queue_text(event.high_priority_queue)}")
        console.print(f"  ready queue: {_queue_text(event.ready_queue)}")
        console.print(f"  done: {_queue_text(event.completed_processes)}")
        console.print(f"  [italic]{escape(event.message)}[/italic]")
        if event.gantt_snapshot:
            console.print(build_rich_gantt(event.gantt_snapshot, title=f"Gantt @ t={event.time}"))
        time.sleep(delay)


def _run_compare(processes: List[Process], algorithms: Sequence[str], quantum: int, console: Console) -> None:
    summary_table = Table(title="Algorithm comparison", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Algorithm")
    summary_table.add_column("Quantum", justify="right")
    summary_table.add_column("Avg waiting", justify="right")
    summary_table.add_column("Avg turnaround", justify="right")
    summary_table.add_column("Avg response", justify="right")
    summary_table.add_column("CPU util.", justify="right")
    summary_table.add_column("Total time", justify="right")

    for alg in algorithms:
        result = run_simulation(processes, alg, time_quantum=quantum)
        summary = summarize_metrics(result.overall_metrics)
        summary_table.add_row(
            result.algorithm.value,
            _fmt(result.quantum),
            f"{summary['avg_waiting']:.2f}",
            f"{summary['avg_turnaround']:.2f}",
            f"{summary['avg_response']:.2f}",
            f"{result.overall_metrics.cpu_utilization:.1f}%",
            str(result.overall_metrics.total_execution_time),
        )

    console.print(summary_table)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)
    console = Console()

    try:
        processes = _load_processes(args.workload)
        if args.command == "run":
            algorithm = Algorithm.parse(args.algorithm)
        else:
            algorithms = [Algorithm.parse(a) for a in args.algorithms]
    except (OSError, ValueError) as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 1

    logger.info("Loaded %d process(es) from %s", len(processes), args.workload or "sample workload")

    if args.command == "run":
        config = SimulationConfig(max_ticks=args.max_ticks, fast_forward_idle=not args.no_fast_forward)
        result = run_simulation(processes, algorithm, time_quantum=args.quantum, config=config)
        if args.step:
            try:
                _replay_log(result, delay=args.step_delay, console=console)
            except KeyboardInterrupt:
                console.print("[yellow]Replay skipped.[/yellow]")
        if args.show_log:
            _print_log(result.simulation_log, console)
        _print_result(result, console, plain=args.plain)
        return 0

    if args.command == "compare":
        _run_compare(processes, algorithms, args.quantum, console)
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
