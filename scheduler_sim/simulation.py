from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from .algorithms import MLFQ, ROUND_ROBIN, clamp_delta, get_mlfq_details, resolve_algorithm, run_step, validate_quantum
from .config import (
    DEFAULT_DELTA,
    DEFAULT_QUANTUM,
    DEFAULT_SPEED,
    FEEDBACK_WARMUP,
    FRAME_INTERVAL,
    MAX_STEPS,
    METRICS_INTERVAL,
    TIME_EPSILON,
)
from .driver import FrameLoop
from .errors import InvalidParameterError, SimulationStalledError
from .feedback import FeedbackFormatter, Suggestion, evaluate_feedback
from .metrics import calculate_metrics
from .models import (
    AlgorithmChange,
    MetricsRecord,
    MLFQView,
    Process,
    ProcessSpec,
    ProcessState,
    ScheduledSlice,
    SchedulerParams,
    SchedulerState,
)
from .registry import ProcessRegistry

logger = logging.getLogger(__name__)


def _validate_positive(value: float, what: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"Invalid {what}: {value!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise InvalidParameterError(f"{what.capitalize()} must be a positive number, got {value!r}")
    return value


class Simulation:
    """
    A scheduling run: the process registry, the scheduler state, the
    virtual clock and everything derived from them.

    Every public method holds one lock for its whole duration, so a frame
    loop running in the background and a caller editing processes never
    see a step or a reset half applied.
    """

    def __init__(
        self,
        algorithm: str = "FCFS",
        quantum: float = DEFAULT_QUANTUM,
        preemptive: bool = False,
        speed: float = DEFAULT_SPEED,
        color_for: Optional[Callable[[int], str]] = None,
        feedback_formatter: Optional[FeedbackFormatter] = None,
        clock: Callable[[], float] = time.perf_counter,
        frame_interval: float = FRAME_INTERVAL,
    ):
        self._lock = threading.RLock()
        self.registry = ProcessRegistry(color_for=color_for)
        self._algorithm = resolve_algorithm(algorithm)
        self._params = SchedulerParams(quantum=validate_quantum(quantum), preemptive=bool(preemptive))
        self._speed = _validate_positive(speed, "speed")
        self._feedback_formatter = feedback_formatter
        self._clock = clock
        self._frame_interval = _validate_positive(frame_interval, "frame interval")

        self._state = SchedulerState()
        self._metrics: Optional[MetricsRecord] = None
        self._history: List[AlgorithmChange] = []
        self._timeline: List[ScheduledSlice] = []
        self._suggestion: Optional[Suggestion] = None
        self._feedback_text: Optional[str] = None
        self._last_metrics_time = 0.0
        self._last_tick: Optional[float] = None
        self._loop: Optional[FrameLoop] = None
        self._retired_loop: Optional[FrameLoop] = None
        self._finished = False

    # --- read side -------------------------------------------------------

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def params(self) -> SchedulerParams:
        return SchedulerParams(quantum=self._params.quantum, preemptive=self._params.preemptive)

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def current_time(self) -> float:
        return self._state.current_time

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state.copy()

    @property
    def processes(self) -> List[Process]:
        """
        Copies of every process in id order, taken under the lock so a
        frame loop stepping in the background cannot change them later.
        """
        with self._lock:
            return [replace(p) for p in self.registry.processes]

    @property
    def timeline(self) -> List[ScheduledSlice]:
        with self._lock:
            return [ScheduledSlice(s.pid, s.start_time, s.end_time) for s in self._timeline]

    @property
    def history(self) -> List[AlgorithmChange]:
        with self._lock:
            return list(self._history)

    @property
    def suggestion(self) -> Optional[Suggestion]:
        return self._suggestion

    @property
    def feedback_text(self) -> Optional[str]:
        return self._feedback_text

    @property
    def is_running(self) -> bool:
        return self._loop is not None

    @property
    def is_finished(self) -> bool:
        return self._finished

    def get_metrics(self) -> Optional[MetricsRecord]:
        return self._metrics

    def get_mlfq_details(self) -> Optional[MLFQView]:
        with self._lock:
            if self._algorithm != MLFQ:
                return None
            return get_mlfq_details(self.registry.processes)

    # --- process editing -------------------------------------------------

    def add_process(self, spec: Optional[ProcessSpec] = None, pid: Optional[int] = None, **fields) -> Process:
        if spec is None:
            spec = ProcessSpec(**fields)
        with self._lock:
            process = self.registry.add(spec, current_time=self._state.current_time, pid=pid)
            self._finished = False
            return process

    def update_process(self, pid: int, **fields) -> Optional[Process]:
        with self._lock:
            process = self.registry.update(pid, current_time=self._state.current_time, **fields)
            self._prune_ready_queue()
            return process

    def remove_process(self, pid: int) -> Optional[Process]:
        with self._lock:
            process = self.registry.remove(pid)
            self._prune_ready_queue()
            return process

    def _prune_ready_queue(self) -> None:
        self._state.ready_queue = [
            p for p in self._state.ready_queue if p.pid in self.registry and p.state == ProcessState.READY
        ]

    # --- policy ------------------------------------------------------------

    def set_algorithm(self, name: str, quantum: Optional[float] = None, preemptive: Optional[bool] = None) -> None:
        """
        Switch the active policy.

        Clears the ready queue, the running slot and the quantum; the
        process that was running goes back to ready. Per-process history is
        kept, except that MLFQ starts every unfinished process at level 1.
        """
        canonical = resolve_algorithm(name)
        if quantum is not None:
            quantum = validate_quantum(quantum)

        with self._lock:
            self._algorithm = canonical
            if quantum is not None:
                self._params.quantum = quantum
            if preemptive is not None:
                self._params.preemptive = bool(preemptive)

            running = self._state.running
            if running is not None and running.state == ProcessState.RUNNING:
                running.state = ProcessState.READY
            self._state = SchedulerState(
                completed=list(self._state.completed),
                current_time=self._state.current_time,
            )

            if canonical == MLFQ:
                self.registry.assign_top_level()

            self._history.append(AlgorithmChange(time=self._state.current_time, algorithm=canonical))
            self._suggestion = None
            self._feedback_text = None
            logger.info("t=%.2f switched to %s", self._state.current_time, canonical)

    # --- stepping ----------------------------------------------------------

    def step(self, delta: float) -> SchedulerState:
        """
        Advance the simulated clock by ``delta`` seconds and run one policy
        step. Negative or non-finite deltas count as zero.
        """
        delta = clamp_delta(delta)
        with self._lock:
            new_time = self._state.current_time + delta
            self.registry.promote_arrivals(new_time)
            processes = self.registry.processes
            before: Dict[int, float] = {p.pid: p.remaining_time for p in processes}

            state = self._state.copy()
            state.current_time = new_time
            self._state = run_step(self._algorithm, state, processes, delta, self._params)

            executed = next((p for p in processes if p.remaining_time < before[p.pid]), None)
            if executed is not None:
                self._record_slice(executed.pid, new_time - delta, new_time)

            if new_time - self._last_metrics_time >= METRICS_INTERVAL:
                self._metrics = calculate_metrics(processes, self._state.completed)
                self._last_metrics_time = new_time
                if new_time > FEEDBACK_WARMUP:
                    self._provide_feedback(self._metrics)

            if processes and len(self._state.completed) == len(processes) and not self._finished:
                self._finish(processes)

            return self._state.copy()

    def advance(self, wall_delta: float) -> SchedulerState:
        """
        Turn a measured wall-clock delta into simulated time.
        """
        with self._lock:
            return self.step(clamp_delta(wall_delta) * self._speed)

    def tick(self, source: Optional[FrameLoop] = None) -> Optional[SchedulerState]:
        """
        Run one frame using the real time elapsed since the previous frame.

        A frame from a loop that has since been paused or reset is dropped.
        """
        with self._lock:
            if source is not None and source is not self._loop:
                return None
            now = self._clock()
            if self._last_tick is None:
                self._last_tick = now
                return self._state.copy()
            wall_delta = now - self._last_tick
            self._last_tick = now
            return self.advance(wall_delta)

    def run_until_complete(self, delta: float = DEFAULT_DELTA, max_steps: int = MAX_STEPS) -> SchedulerState:
        delta = _validate_positive(delta, "delta")
        with self._lock:
            if not len(self.registry):
                return self._state.copy()
            for _ in range(max_steps):
                if self._finished:
                    return self._state.copy()
                self.step(delta)
            if self._finished:
                return self._state.copy()
        raise SimulationStalledError(f"Simulation did not finish within {max_steps} steps")

    def _record_slice(self, pid: int, start: float, end: float) -> None:
        if self._timeline:
            last = self._timeline[-1]
            if last.pid == pid and abs(last.end_time - start) <= TIME_EPSILON:
                last.end_time = end
                return
        self._timeline.append(ScheduledSlice(pid=pid, start_time=max(0.0, start), end_time=end))

    def _finish(self, processes: List[Process]) -> None:
        self._metrics = calculate_metrics(processes, self._state.completed)
        self._finished = True
        self._provide_feedback(self._metrics, final=True)
        logger.info("t=%.2f all %d processes completed", self._state.current_time, len(processes))
        self._retired_loop = self._detach_loop() or self._retired_loop

    def _provide_feedback(self, metrics: MetricsRecord, final: bool = False) -> None:
        quantum = self._params.quantum if self._algorithm == ROUND_ROBIN else None
        suggestion = evaluate_feedback(metrics, self._algorithm, final=final, quantum=quantum)
        if suggestion is None:
            return
        self._suggestion = suggestion
        self._feedback_text = None
        if self._feedback_formatter is not None and suggestion.suggested_algorithm is not None:
            self._feedback_text = self._feedback_formatter(
                self._algorithm, suggestion.suggested_algorithm, metrics
            )
        logger.debug(
            "t=%.2f feedback: %s -> %s (%s)",
            self._state.current_time,
            self._algorithm,
            suggestion.suggested_algorithm,
            suggestion.reason.value if suggestion.reason else "final",
        )

    # --- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._loop is not None:
                return
            if self._finished:
                logger.info("Nothing left to run; reset the simulation first")
                return
            self._last_tick = self._clock()
            self._loop = FrameLoop(self, self._frame_interval)
            self._loop.start()
            logger.info("t=%.2f simulation started (%s)", self._state.current_time, self._algorithm)

    def pause(self) -> None:
        with self._lock:
            loop = self._detach_loop()
            if loop is not None:
                logger.info("t=%.2f simulation paused", self._state.current_time)
            retired, self._retired_loop = self._retired_loop, None
        self._join(loop)
        self._join(retired)

    def reset(self) -> None:
        with self._lock:
            loop = self._detach_loop()
            self.registry.reset(0.0, mlfq=self._algorithm == MLFQ)
            self._state = SchedulerState()
            self._metrics = None
            self._history = []
            self._timeline = []
            self._suggestion = None
            self._feedback_text = None
            self._last_metrics_time = 0.0
            self._last_tick = None
            self._finished = False
            retired, self._retired_loop = self._retired_loop, None
            logger.info("Simulation reset")
        self._join(loop)
        self._join(retired)

    def set_speed(self, multiplier: float) -> None:
        multiplier = _validate_positive(multiplier, "speed")
        with self._lock:
            self._speed = multiplier

    def loop_failed(self, loop: FrameLoop) -> None:
        """
        Called by a frame loop whose frame raised; the run stays paused at
        the last completed step.
        """
        with self._lock:
            if loop is self._loop:
                self._retired_loop = self._detach_loop()
                logger.warning("t=%.2f simulation paused after an error", self._state.current_time)

    def _detach_loop(self) -> Optional[FrameLoop]:
        loop, self._loop = self._loop, None
        if loop is not None:
            loop.stop()
        self._last_tick = None
        return loop

    @staticmethod
    def _join(loop: Optional[FrameLoop]) -> None:
        if loop is not None and loop is not threading.current_thread():
            loop.join()
