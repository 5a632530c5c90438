"""
schedsim package.

Tick-by-tick simulator for classical CPU scheduling algorithms. Produces a
Gantt chart, per-process and aggregate metrics, and a replayable event log;
a command-line interface renders them in the terminal.
"""

from .config import DEFAULT_SIMULATION_CONFIG, SimulationConfig
from .models import (
    Algorithm,
    GanttEntry,
    OverallMetrics,
    Process,
    SimulationEvent,
    SimulationResult,
    SimulationStatus,
)
from .simulator import Simulation, run_simulation

__all__ = [
    "Algorithm",
    "DEFAULT_SIMULATION_CONFIG",
    "GanttEntry",
    "OverallMetrics",
    "Process",
    "Simulation",
    "SimulationConfig",
    "SimulationEvent",
    "SimulationResult",
    "SimulationStatus",
    "cli",
    "run_simulation",
]
