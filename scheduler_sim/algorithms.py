from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from .config import MLFQ_LEVELS, MLFQ_QUANTA, TIME_EPSILON
from .errors import InvalidParameterError, UnknownAlgorithmError
from .models import MLFQQueue, MLFQView, Process, ProcessState, SchedulerParams, SchedulerState

logger = logging.getLogger(__name__)

FCFS = "FCFS"
SJF = "SJF"
PRIORITY = "Priority"
ROUND_ROBIN = "RoundRobin"
MLFQ = "MLFQ"

_ALIASES = {
    "fcfs": FCFS,
    "sjf": SJF,
    "priority": PRIORITY,
    "rr": ROUND_ROBIN,
    "roundrobin": ROUND_ROBIN,
    "round_robin": ROUND_ROBIN,
    "round-robin": ROUND_ROBIN,
    "mlfq": MLFQ,
}


def resolve_algorithm(name: str) -> str:
    """
    Map a user-supplied algorithm name onto its canonical spelling.
    """
    canonical = _ALIASES.get(str(name).strip().lower())
    if canonical is None:
        raise UnknownAlgorithmError(name)
    return canonical


def clamp_delta(delta: float) -> float:
    """
    A stalled or rewound clock must never run a process backwards.
    """
    try:
        delta = float(delta)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(delta) or delta < 0:
        return 0.0
    return delta


def validate_quantum(quantum: Optional[float]) -> float:
    if quantum is None or isinstance(quantum, bool):
        raise InvalidParameterError("Round Robin requires a positive quantum")
    try:
        value = float(quantum)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"Invalid quantum: {quantum!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise InvalidParameterError(f"Round Robin requires a positive quantum, got {quantum!r}")
    return value


def _queue_level(p: Process) -> int:
    return min(p.queue_level or 1, MLFQ_LEVELS)


def _arrival_order(p: Process):
    return (p.arrival_time, p.pid)


# Primary ranking per policy; the full sort key appends (arrival, pid).
_PRIMARY_KEYS: Dict[str, Callable[[Process], float]] = {
    FCFS: lambda p: p.arrival_time,
    SJF: lambda p: p.remaining_time,
    PRIORITY: lambda p: p.priority,
    MLFQ: _queue_level,
}


def sort_ready_queue(queue: List[Process], algorithm: str) -> List[Process]:
    """
    Return the ready queue in dispatch order for ``algorithm``.

    Round Robin keeps its FIFO order untouched. Sorting is stable, so
    applying it twice gives the same order.
    """
    primary = _PRIMARY_KEYS.get(algorithm)
    if primary is None:
        return list(queue)
    return sorted(queue, key=lambda p: (primary(p),) + _arrival_order(p))


def _admit(state: SchedulerState, processes: List[Process], assign_level: bool = False) -> None:
    queued = {p.pid for p in state.ready_queue}
    finished = {p.pid for p in state.completed}
    running_pid = state.running.pid if state.running is not None else None

    newcomers = [
        p
        for p in processes
        if p.state == ProcessState.READY
        and p.pid != running_pid
        and p.pid not in queued
        and p.pid not in finished
    ]
    newcomers.sort(key=_arrival_order)

    if assign_level:
        for p in newcomers:
            if p.queue_level is None:
                p.queue_level = 1

    state.ready_queue.extend(newcomers)


def _dispatch(state: SchedulerState, process: Process, quantum: Optional[float] = None) -> None:
    """
    Give the CPU to ``process``.

    Response time is taken at ``state.current_time``, which is already the
    end of the step being run: a process dispatched in the first 0.1 s step
    reports a response of 0.1, one delta more than its waiting time.
    """
    process.state = ProcessState.RUNNING
    state.running = process
    if process.response_time < 0:
        process.response_time = state.current_time - process.arrival_time
    if quantum is not None:
        state.quantum_remaining = quantum
    logger.debug("t=%.2f dispatch P%s", state.current_time, process.pid)


def _preempt_if_beaten(state: SchedulerState, algorithm: str) -> None:
    if state.running is None or not state.ready_queue:
        return

    primary = _PRIMARY_KEYS[algorithm]
    challenger = state.ready_queue[0]
    if not primary(challenger) < primary(state.running):
        return

    previous = state.running
    previous.state = ProcessState.READY
    state.ready_queue.pop(0)
    state.ready_queue.append(previous)
    state.running = None
    logger.debug("t=%.2f P%s preempted by P%s", state.current_time, previous.pid, challenger.pid)

    _dispatch(state, challenger)
    state.ready_queue = sort_ready_queue(state.ready_queue, algorithm)


def _complete(state: SchedulerState) -> None:
    p = state.running
    p.remaining_time = 0.0
    p.state = ProcessState.COMPLETED
    p.completion_time = state.current_time
    p.turnaround_time = p.completion_time - p.arrival_time
    p.waiting_time = p.turnaround_time - p.burst_time

    state.completed.append(p)
    state.running = None
    state.quantum_remaining = 0.0
    logger.debug("t=%.2f P%s completed", state.current_time, p.pid)


def _expire_quantum(state: SchedulerState, algorithm: str) -> None:
    p = state.running
    if algorithm == MLFQ:
        level = _queue_level(p)
        p.queue_level = min(level + 1, MLFQ_LEVELS)
        logger.debug("t=%.2f P%s demoted to level %s", state.current_time, p.pid, p.queue_level)
    else:
        logger.debug("t=%.2f P%s quantum expired", state.current_time, p.pid)

    p.state = ProcessState.READY
    state.ready_queue.append(p)
    state.running = None
    state.quantum_remaining = 0.0
    state.ready_queue = sort_ready_queue(state.ready_queue, algorithm)


def _step(
    state: SchedulerState,
    processes: List[Process],
    delta: float,
    algorithm: str,
    preemptive: bool = False,
    quantum_for: Optional[Callable[[Process], float]] = None,
) -> SchedulerState:
    new_state = state.copy()
    delta = clamp_delta(delta)

    _admit(new_state, processes, assign_level=algorithm == MLFQ)
    new_state.ready_queue = sort_ready_queue(new_state.ready_queue, algorithm)

    if preemptive:
        _preempt_if_beaten(new_state, algorithm)

    if new_state.running is None and new_state.ready_queue:
        process = new_state.ready_queue.pop(0)
        _dispatch(new_state, process, quantum_for(process) if quantum_for else None)

    if new_state.running is not None:
        running = new_state.running
        running.remaining_time -= delta
        if quantum_for is not None:
            new_state.quantum_remaining -= delta

        if running.remaining_time <= TIME_EPSILON:
            _complete(new_state)
        elif quantum_for is not None and new_state.quantum_remaining <= TIME_EPSILON:
            _expire_quantum(new_state, algorithm)

    for p in new_state.ready_queue:
        p.waiting_time += delta

    return new_state


def step_fcfs(
    state: SchedulerState,
    processes: List[Process],
    delta: float,
    params: Optional[SchedulerParams] = None,
) -> SchedulerState:
    """
    First-Come First-Serve (non-preemptive).
    """
    return _step(state, processes, delta, FCFS)


def step_sjf(
    state: SchedulerState,
    processes: List[Process],
    delta: float,
    params: Optional[SchedulerParams] = None,
) -> SchedulerState:
    """
    Shortest Job First, ranked by remaining time.

    With ``params.preemptive`` this is SRTF: a ready process with strictly
    less remaining time takes the CPU from the running one.
    """
    params = params or SchedulerParams()
    return _step(state, processes, delta, SJF, preemptive=params.preemptive)


def step_priority(
    state: SchedulerState,
    processes: List[Process],
    delta: float,
    params: Optional[SchedulerParams] = None,
) -> SchedulerState:
    """
    Static priority scheduling. Lower numeric priority value means higher
    priority; ties go to earlier arrival, then lower id.
    """
    params = params or SchedulerParams()
    return _step(state, processes, delta, PRIORITY, preemptive=params.preemptive)


def step_round_robin(
    state: SchedulerState,
    processes: List[Process],
    delta: float,
    params: Optional[SchedulerParams] = None,
) -> SchedulerState:
    """
    Round Robin scheduling with a fixed time quantum.
    """
    params = params or SchedulerParams()
    quantum = validate_quantum(params.quantum)
    return _step(state, processes, delta, ROUND_ROBIN, quantum_for=lambda p: quantum)


def step_mlfq(
    state: SchedulerState,
    processes: List[Process],
    delta: float,
    params: Optional[SchedulerParams] = None,
) -> SchedulerState:
    """
    Multi-Level Feedback Queue with 3 levels.

    - Processes enter at level 1 the first time they are seen ready.
    - Levels 1 and 2 are round robin with quanta of 2s and 4s; level 3 is FCFS.
    - Using up a quantum demotes the process one level, down to level 3.
    - There is no promotion (aging): a demoted process never climbs back.
    """
    return _step(state, processes, delta, MLFQ, quantum_for=lambda p: MLFQ_QUANTA[_queue_level(p)])


def get_mlfq_details(processes: List[Process]) -> MLFQView:
    """
    Bucket every ready process by queue level for inspection.

    The returned processes are copies; neither the processes nor any
    scheduler state are touched.
    """
    queues = [MLFQQueue(level=level, time_quantum=MLFQ_QUANTA[level]) for level in range(1, MLFQ_LEVELS + 1)]
    for p in processes:
        if p.state == ProcessState.READY:
            queues[_queue_level(p) - 1].processes.append(replace(p))
    return MLFQView(queues=queues)


ALGORITHMS = {
    FCFS: step_fcfs,
    SJF: step_sjf,
    PRIORITY: step_priority,
    ROUND_ROBIN: step_round_robin,
    MLFQ: step_mlfq,
}


def run_step(
    name: str,
    state: SchedulerState,
    processes: List[Process],
    delta: float,
    params: Optional[SchedulerParams] = None,
) -> SchedulerState:
    """
    Dispatch one simulation step to the requested policy.
    """
    func = ALGORITHMS[resolve_algorithm(name)]
    return func(state, processes, delta, params)
