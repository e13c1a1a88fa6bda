from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.table import Table

from .algorithms import ALGORITHMS, PRIORITY, ROUND_ROBIN, SJF, resolve_algorithm
from .config import DEFAULT_DELTA, DEFAULT_QUANTUM, DEFAULT_SPEED
from .errors import SchedulerError
from .gantt import build_rich_gantt
from .metrics import summarize_process_metrics
from .models import MetricsRecord, ProcessSpec
from .simulation import Simulation
from .workload_io import load_workload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scheduler-sim",
        description="Time-stepped CPU scheduling simulator (FCFS, SJF, Priority, RoundRobin, MLFQ).",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log scheduling decisions.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Simulate one algorithm on a workload file.")
    run_parser.add_argument(
        "--algorithm",
        "-a",
        required=True,
        help="Algorithm to use (fcfs, sjf, priority, rr, mlfq).",
    )
    _add_workload_args(run_parser)
    run_parser.add_argument(
        "--live",
        action="store_true",
        help="Run in real time with the frame loop instead of fixed steps.",
    )
    run_parser.add_argument(
        "--speed",
        type=float,
        default=DEFAULT_SPEED,
        help=f"Simulated seconds per real second with --live (default: {DEFAULT_SPEED}).",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run multiple algorithms on the same workload and compare average metrics.",
    )
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        default=list(ALGORITHMS),
        help="Algorithms to compare (default: all five).",
    )
    _add_workload_args(compare_parser)

    return parser


def _add_workload_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file.",
    )
    parser.add_argument(
        "--quantum",
        "-q",
        type=float,
        default=DEFAULT_QUANTUM,
        help=f"Time quantum for round robin (default: {DEFAULT_QUANTUM}).",
    )
    parser.add_argument(
        "--preemptive",
        action="store_true",
        help="Let SJF / Priority preempt the running process.",
    )
    parser.add_argument(
        "--delta",
        type=float,
        default=DEFAULT_DELTA,
        help=f"Simulated seconds per step (default: {DEFAULT_DELTA}).",
    )


def describe_suggestion(current: str, suggested: str, metrics: MetricsRecord) -> str:
    return (
        f"{current} -> try {suggested} "
        f"(avg wait {metrics.average_waiting_time:.2f}s, "
        f"{metrics.short_processes} short / {metrics.long_processes} long)"
    )


def _build_simulation(algorithm: str, specs: List[ProcessSpec], args) -> Simulation:
    sim = Simulation(
        algorithm=algorithm,
        quantum=args.quantum,
        preemptive=args.preemptive,
        speed=getattr(args, "speed", DEFAULT_SPEED),
        feedback_formatter=describe_suggestion,
    )
    for spec in specs:
        sim.add_process(spec)
    return sim


def _fmt(value: float) -> str:
    return "-" if value < 0 else f"{value:.2f}"


def _state_table(sim: Simulation) -> Table:
    table = Table(title=f"{sim.algorithm} at t={sim.current_time:.1f}s", box=box.SIMPLE_HEAVY)
    table.add_column("PID", justify="center")
    table.add_column("Name")
    table.add_column("State")
    table.add_column("Remaining", justify="right")
    table.add_column("Level", justify="center")
    for p in sim.processes:
        table.add_row(
            str(p.pid),
            p.name,
            p.state.label,
            f"{p.remaining_time:.1f}",
            "" if p.queue_level is None else str(p.queue_level),
        )
    return table


def _print_result(sim: Simulation, console: Console) -> None:
    params = sim.params
    console.print(f"[bold]Algorithm:[/bold] {sim.algorithm}")
    if sim.algorithm == ROUND_ROBIN:
        console.print(f"[bold]Quantum:[/bold] {params.quantum:g}")
    elif sim.algorithm in {SJF, PRIORITY}:
        console.print(f"[bold]Preemptive:[/bold] {'yes' if params.preemptive else 'no'}")

    console.print()

    processes = sim.processes
    panel, time_marks = build_rich_gantt(sim.timeline, colors={p.pid: p.color for p in processes})
    console.print(panel)
    if time_marks:
        console.print(time_marks)

    console.print()

    headers = [
        "PID",
        "Name",
        "Arrive",
        "Burst",
        "Priority",
        "Complete",
        "Wait",
        "Turnaround",
        "Response",
    ]

    proc_table = Table(title="Per-process metrics", box=box.SIMPLE_HEAVY)
    for h in headers:
        justify = "center" if h in {"PID", "Priority"} else "left" if h == "Name" else "right"
        proc_table.add_column(h, justify=justify)

    for p in processes:
        proc_table.add_row(
            str(p.pid),
            p.name,
            f"{p.arrival_time:g}",
            f"{p.burst_time:g}",
            str(p.priority),
            _fmt(p.completion_time),
            f"{p.waiting_time:.2f}",
            f"{p.turnaround_time:.2f}",
            _fmt(p.response_time),
        )

    console.print(proc_table)
    console.print()

    metrics = sim.get_metrics()
    if metrics is not None:
        sys_table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
        sys_table.add_column("Metric")
        sys_table.add_column("Value", justify="right")

        sys_table.add_row("Avg waiting", f"{metrics.average_waiting_time:.2f}")
        sys_table.add_row("Avg turnaround", f"{metrics.average_turnaround_time:.2f}")
        sys_table.add_row("Avg response", f"{metrics.average_response_time:.2f}")
        sys_table.add_row("Throughput (proc/s)", f"{metrics.throughput:.3f}")
        sys_table.add_row("CPU utilization", f"{metrics.cpu_utilization*100:.1f}%")
        sys_table.add_row("Context switches (approx.)", str(metrics.context_switches))
        sys_table.add_row("Fairness", f"{metrics.fairness_score:.3f}")

        console.print(sys_table)

    suggestion = sim.suggestion
    if suggestion is not None:
        if suggestion.verdict is not None:
            console.print(f"[bold]Verdict:[/bold] {suggestion.verdict.value.replace('_', ' ')}")
        if sim.feedback_text:
            console.print(f"[yellow]Suggestion:[/yellow] {sim.feedback_text}")


def _run_live(sim: Simulation, console: Console) -> None:
    sim.start()
    try:
        with Live(_state_table(sim), console=console, refresh_per_second=10) as live:
            while sim.is_running:
                time.sleep(0.1)
                live.update(_state_table(sim))
    except KeyboardInterrupt:
        console.print("[yellow]Simulation interrupted.[/yellow]")
    finally:
        sim.pause()


def _run(args, console: Console) -> int:
    algorithm = resolve_algorithm(args.algorithm)
    specs = load_workload(Path(args.workload))
    sim = _build_simulation(algorithm, specs, args)
    if args.live and sim.processes:
        _run_live(sim, console)
    else:
        sim.run_until_complete(delta=args.delta)
    _print_result(sim, console)
    return 0


def _compare(args, console: Console) -> int:
    workload_path = Path(args.workload)
    specs = load_workload(workload_path)

    summary_table = Table(title=f"Algorithm comparison: {workload_path}", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Algorithm", no_wrap=True)
    summary_table.add_column("Avg waiting", justify="right")
    summary_table.add_column("Avg turnaround", justify="right")
    summary_table.add_column("Avg response", justify="right")
    summary_table.add_column("Throughput", justify="right")
    summary_table.add_column("Fairness", justify="right")

    for name in args.algorithms:
        sim = _build_simulation(resolve_algorithm(name), specs, args)
        sim.run_until_complete(delta=args.delta)
        summary = summarize_process_metrics(sim.processes)
        metrics = sim.get_metrics() or MetricsRecord()
        summary_table.add_row(
            sim.algorithm,
            f"{summary['avg_waiting']:.2f}",
            f"{summary['avg_turnaround']:.2f}",
            f"{summary['avg_response']:.2f}",
            f"{metrics.throughput:.3f}",
            f"{metrics.fairness_score:.3f}",
        )

    console.print(summary_table)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    console = Console()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        if args.command == "run":
            return _run(args, console)
        if args.command == "compare":
            return _compare(args, console)
    except (SchedulerError, ValueError, OSError) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
