from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from .config import DEFAULT_BURST, DEFAULT_PRIORITY, DEFAULT_QUANTUM


class ProcessState(IntEnum):
    NOT_ARRIVED = 0
    READY = 1
    RUNNING = 2
    COMPLETED = 3

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").lower()


@dataclass
class ProcessSpec:
    """
    User-editable parameters of a process, as entered before a run.
    """

    name: str = ""
    arrival_time: float = 0.0
    burst_time: float = DEFAULT_BURST
    priority: int = DEFAULT_PRIORITY


@dataclass(eq=False)
class Process:
    """
    One schedulable unit owned by the registry.

    Identity is the object itself: the scheduler state holds references to
    the very instances the registry owns.
    """

    pid: int
    name: str
    arrival_time: float
    burst_time: float
    priority: int
    remaining_time: float
    state: ProcessState = ProcessState.NOT_ARRIVED
    waiting_time: float = 0.0
    turnaround_time: float = 0.0
    response_time: float = -1.0
    completion_time: float = -1.0
    queue_level: Optional[int] = None
    color: str = ""

    @property
    def is_completed(self) -> bool:
        return self.state == ProcessState.COMPLETED


@dataclass
class SchedulerParams:
    quantum: float = DEFAULT_QUANTUM
    preemptive: bool = False


@dataclass
class SchedulerState:
    """
    Transient record passed between policy steps.
    """

    ready_queue: List[Process] = field(default_factory=list)
    running: Optional[Process] = None
    completed: List[Process] = field(default_factory=list)
    current_time: float = 0.0
    quantum_remaining: float = 0.0

    def copy(self) -> "SchedulerState":
        return SchedulerState(
            ready_queue=list(self.ready_queue),
            running=self.running,
            completed=list(self.completed),
            current_time=self.current_time,
            quantum_remaining=self.quantum_remaining,
        )


@dataclass(frozen=True)
class MetricsRecord:
    average_waiting_time: float = 0.0
    average_turnaround_time: float = 0.0
    average_response_time: float = 0.0
    cpu_utilization: float = 0.0
    throughput: float = 0.0
    short_processes: int = 0
    long_processes: int = 0
    interactive_processes: int = 0
    context_switches: int = 0
    fairness_score: float = 1.0
    waiting_time_variance: float = 0.0
    completed_count: int = 0


@dataclass
class MLFQQueue:
    level: int
    time_quantum: float
    processes: List[Process] = field(default_factory=list)

    @property
    def is_fcfs(self) -> bool:
        return math.isinf(self.time_quantum)


@dataclass
class MLFQView:
    queues: List[MLFQQueue] = field(default_factory=list)

    @property
    def queue_count(self) -> int:
        return len(self.queues)


@dataclass
class ScheduledSlice:
    """
    One contiguous slice of execution for a process in the Gantt chart.
    """

    pid: int
    start_time: float
    end_time: float


@dataclass(frozen=True)
class AlgorithmChange:
    time: float
    algorithm: str
