"""
Simulation settings.

The module constants are the defaults used across the package; a
``SimulationConfig`` bundles them so a single run can override any of them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Quantum used by Round Robin and the high-priority MLQ level when the caller
# gives none (or an invalid one).
DEFAULT_TIME_QUANTUM = 4

# Priorities strictly below this go to the high-priority (RR) MLQ level.
MLQ_PRIORITY_THRESHOLD = 3

# Watchdog: a run still unfinished after simulating this many ticks is
# forcibly stopped. Fast-forwarded idle gaps do not count.
MAX_SIMULATION_TICKS = 2000


@dataclass(frozen=True)
class SimulationConfig:
    default_time_quantum: int = DEFAULT_TIME_QUANTUM
    mlq_priority_threshold: int = MLQ_PRIORITY_THRESHOLD
    max_ticks: int = MAX_SIMULATION_TICKS
    # Jump the clock over idle gaps instead of ticking through them.
    fast_forward_idle: bool = True

    def effective_quantum(self, quantum: Optional[int]) -> int:
        if quantum is None or quantum < 1:
            return self.default_time_quantum
        return quantum


DEFAULT_SIMULATION_CONFIG = SimulationConfig()
