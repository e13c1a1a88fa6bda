from __future__ import annotations

import logging
import math
from numbers import Integral, Real
from typing import Callable, Dict, Iterator, List, Optional

from .config import COLORS
from .errors import DuplicateProcessError, InvalidProcessError, InvalidTransitionError
from .models import Process, ProcessSpec, ProcessState

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "arrival_time", "burst_time", "priority")


def default_color(pid: int) -> str:
    return COLORS[(pid - 1) % len(COLORS)]


def validate_spec(spec: ProcessSpec) -> None:
    """
    Reject parameters that cannot describe a schedulable process.
    """
    if not isinstance(spec.name, str):
        raise InvalidProcessError(f"Process name must be a string, got {spec.name!r}")

    arrival = spec.arrival_time
    if isinstance(arrival, bool) or not isinstance(arrival, Real) or not math.isfinite(arrival):
        raise InvalidProcessError(f"Arrival time must be a finite number, got {arrival!r}")
    if arrival < 0:
        raise InvalidProcessError(f"Arrival time cannot be negative, got {arrival!r}")

    burst = spec.burst_time
    if isinstance(burst, bool) or not isinstance(burst, Real) or not math.isfinite(burst):
        raise InvalidProcessError(f"Burst time must be a finite number, got {burst!r}")
    if burst <= 0:
        raise InvalidProcessError(f"Burst time must be positive, got {burst!r}")

    if isinstance(spec.priority, bool) or not isinstance(spec.priority, Integral):
        raise InvalidProcessError(f"Priority must be an integer, got {spec.priority!r}")


def _initial_state(arrival_time: float, current_time: float) -> ProcessState:
    return ProcessState.READY if arrival_time <= current_time else ProcessState.NOT_ARRIVED


class ProcessRegistry:
    """
    Owns every Process for its whole lifetime.

    Static parameters change only through ``update``; dynamic fields are
    written by the policy engine during a step and cleared by ``reset``.
    """

    def __init__(self, color_for: Optional[Callable[[int], str]] = None):
        self._processes: Dict[int, Process] = {}
        self._color_for = color_for or default_color

    def __iter__(self) -> Iterator[Process]:
        return iter(self.processes)

    def __len__(self) -> int:
        return len(self._processes)

    def __contains__(self, pid: int) -> bool:
        return pid in self._processes

    @property
    def processes(self) -> List[Process]:
        return [self._processes[pid] for pid in sorted(self._processes)]

    def get(self, pid: int) -> Optional[Process]:
        return self._processes.get(pid)

    def next_pid(self) -> int:
        return max(self._processes) + 1 if self._processes else 1

    def add(self, spec: ProcessSpec, current_time: float = 0.0, pid: Optional[int] = None) -> Process:
        validate_spec(spec)
        if pid is None:
            pid = self.next_pid()
        elif isinstance(pid, bool) or not isinstance(pid, Integral) or pid < 1:
            raise InvalidProcessError(f"Process id must be a positive integer, got {pid!r}")
        elif pid in self._processes:
            raise DuplicateProcessError(pid)
        pid = int(pid)

        process = Process(
            pid=pid,
            name=spec.name or f"Process {pid}",
            arrival_time=float(spec.arrival_time),
            burst_time=float(spec.burst_time),
            priority=int(spec.priority),
            remaining_time=float(spec.burst_time),
            state=_initial_state(spec.arrival_time, current_time),
            color=self._color_for(pid),
        )
        self._processes[pid] = process
        logger.debug("Added process %s (%s) in state %s", pid, process.name, process.state.name)
        return process

    def update(self, pid: int, current_time: float = 0.0, **fields) -> Optional[Process]:
        """
        Edit the static parameters of a process that has not run to an end.

        Unknown ids are ignored. The remaining-time counter restarts from
        the (possibly new) burst time.
        """
        process = self._processes.get(pid)
        if process is None:
            return None
        self._check_editable(process, "update")

        unknown = set(fields) - set(_EDITABLE_FIELDS)
        if unknown:
            raise InvalidProcessError(f"Cannot edit process fields: {', '.join(sorted(unknown))}")

        spec = ProcessSpec(
            name=fields.get("name", process.name),
            arrival_time=fields.get("arrival_time", process.arrival_time),
            burst_time=fields.get("burst_time", process.burst_time),
            priority=fields.get("priority", process.priority),
        )
        validate_spec(spec)

        process.name = spec.name or f"Process {pid}"
        process.arrival_time = float(spec.arrival_time)
        process.burst_time = float(spec.burst_time)
        process.priority = int(spec.priority)
        process.remaining_time = process.burst_time
        process.state = _initial_state(process.arrival_time, current_time)
        logger.debug("Updated process %s", pid)
        return process

    def remove(self, pid: int) -> Optional[Process]:
        process = self._processes.get(pid)
        if process is None:
            return None
        self._check_editable(process, "remove")
        del self._processes[pid]
        logger.debug("Removed process %s", pid)
        return process

    def promote_arrivals(self, current_time: float) -> List[Process]:
        arrived = []
        for process in self.processes:
            if process.state == ProcessState.NOT_ARRIVED and process.arrival_time <= current_time:
                process.state = ProcessState.READY
                arrived.append(process)
        return arrived

    def reset(self, initial_time: float = 0.0, mlfq: bool = False) -> None:
        for process in self._processes.values():
            process.state = _initial_state(process.arrival_time, initial_time)
            process.remaining_time = process.burst_time
            process.waiting_time = 0.0
            process.turnaround_time = 0.0
            process.response_time = -1.0
            process.completion_time = -1.0
            process.queue_level = 1 if mlfq else None

    def assign_top_level(self) -> None:
        for process in self._processes.values():
            if not process.is_completed:
                process.queue_level = 1

    @staticmethod
    def _check_editable(process: Process, action: str) -> None:
        if process.state in (ProcessState.RUNNING, ProcessState.COMPLETED):
            raise InvalidTransitionError(process.pid, process.state, action)
