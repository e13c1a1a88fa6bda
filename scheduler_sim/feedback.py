"""
Threshold checks that decide when a different algorithm is worth trying.

Only the triggers live here; turning a suggestion into prose is left to
whatever formatter the caller plugs into the simulation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .algorithms import FCFS, MLFQ, PRIORITY, ROUND_ROBIN, SJF
from .config import (
    FEEDBACK_CONVOY_WAITING,
    FEEDBACK_HIGH_WAITING,
    FEEDBACK_LOW_UTILIZATION,
    FEEDBACK_SMALL_QUANTUM,
)
from .models import MetricsRecord

FeedbackFormatter = Callable[[str, str, MetricsRecord], str]


class Reason(Enum):
    HIGH_WAITING_SHORT_JOBS = "high_waiting_short_jobs"
    HIGH_WAITING_INTERACTIVE = "high_waiting_interactive"
    LOW_CPU_UTILIZATION = "low_cpu_utilization"
    MIXED_WORKLOAD = "mixed_workload"


class Verdict(Enum):
    CONVOY_EFFECT = "convoy_effect"
    ADEQUATE = "adequate"
    STARVATION = "starvation"
    SHORT_JOBS_FAVORED = "short_jobs_favored"
    PRIORITY_ORDERED = "priority_ordered"
    HIGH_CONTEXT_SWITCHING = "high_context_switching"
    FAIR_SHARING = "fair_sharing"
    BALANCED = "balanced"


@dataclass(frozen=True)
class Suggestion:
    current_algorithm: str
    suggested_algorithm: Optional[str]
    reason: Optional[Reason]
    metrics: MetricsRecord
    final: bool = False
    verdict: Optional[Verdict] = None


def performance_verdict(algorithm: str, metrics: MetricsRecord, quantum: Optional[float] = None) -> Optional[Verdict]:
    if algorithm == FCFS:
        if metrics.average_waiting_time > FEEDBACK_CONVOY_WAITING:
            return Verdict.CONVOY_EFFECT
        return Verdict.ADEQUATE
    if algorithm == SJF:
        if metrics.long_processes > 0 and metrics.average_waiting_time > FEEDBACK_HIGH_WAITING:
            return Verdict.STARVATION
        return Verdict.SHORT_JOBS_FAVORED
    if algorithm == PRIORITY:
        return Verdict.PRIORITY_ORDERED
    if algorithm == ROUND_ROBIN:
        if quantum is not None and quantum < FEEDBACK_SMALL_QUANTUM:
            return Verdict.HIGH_CONTEXT_SWITCHING
        return Verdict.FAIR_SHARING
    if algorithm == MLFQ:
        return Verdict.BALANCED
    return None


def evaluate_feedback(
    metrics: Optional[MetricsRecord],
    current_algorithm: str,
    final: bool = False,
    quantum: Optional[float] = None,
) -> Optional[Suggestion]:
    """
    Check the metrics against the suggestion thresholds.

    Rules are applied in order and a later match replaces an earlier one.
    A final evaluation always yields a result carrying the verdict on the
    current algorithm, with or without a suggested alternative.
    """
    if metrics is None:
        return None

    suggested = None
    reason = None

    if metrics.average_waiting_time > FEEDBACK_HIGH_WAITING:
        if metrics.short_processes > metrics.long_processes and current_algorithm != SJF:
            suggested, reason = SJF, Reason.HIGH_WAITING_SHORT_JOBS
        elif metrics.interactive_processes > 0 and current_algorithm != ROUND_ROBIN:
            suggested, reason = ROUND_ROBIN, Reason.HIGH_WAITING_INTERACTIVE

    if metrics.cpu_utilization < FEEDBACK_LOW_UTILIZATION and current_algorithm != PRIORITY:
        suggested, reason = PRIORITY, Reason.LOW_CPU_UTILIZATION

    if metrics.short_processes > 0 and metrics.long_processes > 0 and current_algorithm != MLFQ:
        suggested, reason = MLFQ, Reason.MIXED_WORKLOAD

    verdict = performance_verdict(current_algorithm, metrics, quantum) if final else None
    if suggested is None and verdict is None:
        return None

    return Suggestion(
        current_algorithm=current_algorithm,
        suggested_algorithm=suggested,
        reason=reason,
        metrics=metrics,
        final=final,
        verdict=verdict,
    )
