from __future__ import annotations

from typing import Dict, List, Sequence

from .config import CPU_UTILIZATION_EPSILON, INTERACTIVE_BURST_THRESHOLD, SHORT_BURST_THRESHOLD
from .models import MetricsRecord, Process


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def population_variance(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    mean = _mean(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def calculate_metrics(processes: List[Process], completed: List[Process]) -> MetricsRecord:
    """
    Derive aggregate statistics from the whole population and the
    completion list.

    CPU utilization is requested burst time over the latest completion
    time, so it can read above 1.0 while processes are still running.
    Context switches are approximated by ``completed - 1``.
    """
    if not processes:
        return MetricsRecord(completed_count=len(completed))

    waiting_times = [p.waiting_time for p in processes]
    started = [p.response_time for p in processes if p.response_time >= 0]

    last_completion = max((p.completion_time for p in completed), default=CPU_UTILIZATION_EPSILON)
    span = max(last_completion, CPU_UTILIZATION_EPSILON)
    variance = population_variance(waiting_times)

    return MetricsRecord(
        average_waiting_time=_mean(waiting_times),
        average_turnaround_time=_mean([p.turnaround_time for p in processes]),
        average_response_time=sum(started) / max(1, len(completed)),
        cpu_utilization=sum(p.burst_time for p in processes) / span,
        throughput=len(completed) / span,
        short_processes=sum(1 for p in processes if p.burst_time <= SHORT_BURST_THRESHOLD),
        long_processes=sum(1 for p in processes if p.burst_time > SHORT_BURST_THRESHOLD),
        interactive_processes=sum(
            1 for p in processes if p.burst_time <= INTERACTIVE_BURST_THRESHOLD and p.arrival_time > 0
        ),
        context_switches=max(0, len(completed) - 1),
        fairness_score=1 / (1 + variance),
        waiting_time_variance=variance,
        completed_count=len(completed),
    )


def summarize_process_metrics(processes: List[Process]) -> Dict[str, float]:
    """
    Return averages of the key per-process metrics for quick comparison.
    """
    if not processes:
        return {"avg_waiting": 0.0, "avg_turnaround": 0.0, "avg_response": 0.0}

    n = len(processes)
    return {
        "avg_waiting": sum(p.waiting_time for p in processes) / n,
        "avg_turnaround": sum(p.turnaround_time for p in processes) / n,
        "avg_response": sum(max(p.response_time, 0.0) for p in processes) / n,
    }
