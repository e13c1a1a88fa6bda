"""
Scheduler simulation package.

A time-stepped simulator of CPU scheduling policies (FCFS, SJF, Priority,
Round Robin, MLFQ) that tracks per-process timing statistics and aggregate
performance metrics, with a command-line front end.
"""

from .algorithms import ALGORITHMS, get_mlfq_details, run_step
from .errors import (
    DuplicateProcessError,
    InvalidParameterError,
    InvalidProcessError,
    InvalidTransitionError,
    SchedulerError,
    UnknownAlgorithmError,
)
from .metrics import calculate_metrics
from .models import MetricsRecord, Process, ProcessSpec, ProcessState, SchedulerParams, SchedulerState
from .registry import ProcessRegistry
from .simulation import Simulation

__all__ = [
    "ALGORITHMS",
    "DuplicateProcessError",
    "InvalidParameterError",
    "InvalidProcessError",
    "InvalidTransitionError",
    "MetricsRecord",
    "Process",
    "ProcessRegistry",
    "ProcessSpec",
    "ProcessState",
    "SchedulerError",
    "SchedulerParams",
    "SchedulerState",
    "Simulation",
    "UnknownAlgorithmError",
    "calculate_metrics",
    "get_mlfq_details",
    "run_step",
]
