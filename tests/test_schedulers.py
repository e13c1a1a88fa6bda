import math

import pytest

from scheduler_sim.algorithms import (
    ALGORITHMS,
    get_mlfq_details,
    resolve_algorithm,
    run_step,
    sort_ready_queue,
)
from scheduler_sim.errors import InvalidParameterError, UnknownAlgorithmError
from scheduler_sim.models import ProcessSpec, ProcessState, SchedulerParams, SchedulerState
from scheduler_sim.registry import ProcessRegistry
from scheduler_sim.simulation import Simulation


def _sim(algorithm, specs, **kwargs):
    sim = Simulation(algorithm=algorithm, **kwargs)
    for name, arrival, burst, priority in specs:
        sim.add_process(ProcessSpec(name=name, arrival_time=arrival, burst_time=burst, priority=priority))
    return sim


def _by_name(sim):
    return {p.name: p for p in sim.processes}


def _completion_order(sim):
    return [p.name for p in sim.state.completed]


def _procs():
    return [
        ("A", 0, 6, 3),
        ("B", 2, 4, 1),
        ("C", 4, 2, 4),
        ("D", 6, 8, 2),
        ("E", 20, 3, 2),
    ]


def test_fcfs_order():
    sim = _sim("FCFS", [("A", 0, 5, 1), ("B", 1, 1, 1), ("C", 2, 1, 1)])
    sim.run_until_complete(delta=0.1)

    assert _completion_order(sim) == ["A", "B", "C"]
    procs = _by_name(sim)
    assert procs["A"].waiting_time == pytest.approx(0.0, abs=1e-6)
    assert procs["B"].waiting_time == pytest.approx(4.0, abs=1e-6)
    assert procs["C"].waiting_time == pytest.approx(4.0, abs=1e-6)
    assert procs["B"].response_time == pytest.approx(4.1, abs=1e-6)
    # response is stamped at the end of the dispatching step
    assert procs["A"].response_time == pytest.approx(0.1, abs=1e-6)
    assert procs["B"].response_time - procs["B"].waiting_time == pytest.approx(0.1, abs=1e-6)


def test_sjf_non_preemptive_runs_long_job_first():
    sim = _sim("SJF", [("A", 0, 10, 1), ("B", 1, 1, 1)])
    sim.run_until_complete(delta=0.1)

    assert _completion_order(sim) == ["A", "B"]
    assert _by_name(sim)["B"].waiting_time == pytest.approx(9.0, abs=1e-6)


def test_sjf_preemptive_switches_to_short_job():
    sim = _sim("SJF", [("A", 0, 10, 1), ("B", 1, 1, 1)], preemptive=True)
    sim.run_until_complete(delta=0.1)

    assert _completion_order(sim) == ["B", "A"]
    procs = _by_name(sim)
    assert procs["B"].completion_time == pytest.approx(2.0, abs=1e-6)
    assert procs["A"].completion_time == pytest.approx(11.0, abs=1e-6)
    assert procs["A"].waiting_time == pytest.approx(1.0, abs=1e-6)


def test_priority_non_preemptive():
    sim = _sim("Priority", [("A", 0, 4, 3), ("B", 1, 1, 1), ("C", 1, 1, 2)])
    sim.run_until_complete(delta=0.1)
    # A holds the CPU; afterwards B (priority 1) beats C (priority 2).
    assert _completion_order(sim) == ["A", "B", "C"]


def test_priority_preemptive():
    sim = _sim("Priority", [("A", 0, 4, 3), ("B", 1, 1, 1)], preemptive=True)
    sim.run_until_complete(delta=0.1)

    assert _completion_order(sim) == ["B", "A"]
    assert _by_name(sim)["B"].completion_time == pytest.approx(2.0, abs=1e-6)


def test_priority_equal_values_do_not_preempt():
    sim = _sim("Priority", [("A", 0, 3, 2), ("B", 1, 1, 2)], preemptive=True)
    sim.run_until_complete(delta=0.1)
    assert _completion_order(sim) == ["A", "B"]


def test_rr_is_cyclic():
    sim = _sim("RoundRobin", [("P1", 0, 3, 1), ("P2", 0, 3, 1), ("P3", 0, 3, 1)], quantum=1)

    first_turns = []
    while not sim.is_finished:
        state = sim.step(0.1)
        if state.running is not None and (not first_turns or first_turns[-1] != state.running.name):
            first_turns.append(state.running.name)

    assert first_turns[:6] == ["P1", "P2", "P3", "P1", "P2", "P3"]
    assert _completion_order(sim) == ["P1", "P2", "P3"]
    assert min(p.completion_time for p in sim.processes) > 2.0


def test_rr_keeps_fifo_order():
    sim = _sim("rr", [("Long", 0, 5, 1), ("Short", 0, 1, 1)], quantum=10)
    sim.run_until_complete(delta=0.1)
    assert _completion_order(sim) == ["Long", "Short"]


def test_mlfq_demotion():
    sim = _sim("MLFQ", [("Big", 0, 10, 1)])
    process = sim.registry.processes[0]

    reached = {}
    levels = []
    while not sim.is_finished:
        sim.step(0.1)
        level = process.queue_level
        levels.append(level)
        reached.setdefault(level, sim.current_time)

    assert reached[2] == pytest.approx(2.0, abs=1e-6)
    assert reached[3] == pytest.approx(6.0, abs=1e-6)
    first_level_three = levels.index(3)
    assert all(level == 3 for level in levels[first_level_three:])
    assert process.completion_time == pytest.approx(10.0, abs=1e-6)


def test_mlfq_new_arrival_runs_ahead_of_demoted_process():
    sim = _sim("MLFQ", [("Long", 0, 8, 1), ("Late", 3, 1, 1)])
    sim.run_until_complete(delta=0.1)
    procs = _by_name(sim)
    assert procs["Long"].queue_level == 3
    assert procs["Late"].queue_level == 1
    assert _completion_order(sim) == ["Late", "Long"]


@pytest.mark.parametrize("algorithm", list(ALGORITHMS))
@pytest.mark.parametrize("preemptive", [False, True])
def test_invariants_hold_for_every_policy(algorithm, preemptive):
    sim = _sim(algorithm, _procs(), quantum=2, preemptive=preemptive)
    previous = {p.pid: (p.state, p.remaining_time, p.waiting_time) for p in sim.processes}

    for _ in range(100_000):
        if sim.is_finished:
            break
        sim.step(0.1)
        running = [p for p in sim.processes if p.state == ProcessState.RUNNING]
        assert len(running) <= 1
        for p in sim.processes:
            old_state, old_remaining, old_waiting = previous[p.pid]
            assert p.remaining_time <= old_remaining
            assert 0 <= p.remaining_time <= p.burst_time
            if old_state == ProcessState.READY and p.state == ProcessState.READY:
                assert p.waiting_time >= old_waiting
        previous = {p.pid: (p.state, p.remaining_time, p.waiting_time) for p in sim.processes}

    assert sim.is_finished
    assert len(sim.state.completed) == len(_procs())
    for p in sim.processes:
        assert p.state == ProcessState.COMPLETED
        assert p.turnaround_time == p.completion_time - p.arrival_time
        assert p.waiting_time == p.turnaround_time - p.burst_time
        assert p.response_time >= 0


def test_run_step_is_direct_and_idempotent_on_admission():
    registry = ProcessRegistry()
    registry.add(ProcessSpec(name="A", burst_time=3))
    registry.add(ProcessSpec(name="B", burst_time=1))

    state = SchedulerState()
    for _ in range(3):
        state = run_step("sjf", state, registry.processes, 0.0)

    assert [p.name for p in state.ready_queue] == ["A"]
    assert state.running.name == "B"
    assert state.running.remaining_time == 1


def test_negative_delta_never_runs_backwards():
    registry = ProcessRegistry()
    process = registry.add(ProcessSpec(burst_time=3))

    state = run_step("FCFS", SchedulerState(), registry.processes, 1.0)
    state = run_step("FCFS", state, registry.processes, -5.0)
    state = run_step("FCFS", state, registry.processes, math.nan)

    assert process.remaining_time == 2.0
    assert process.state == ProcessState.RUNNING


def test_run_step_returns_new_state():
    registry = ProcessRegistry()
    registry.add(ProcessSpec(burst_time=3))
    before = SchedulerState()
    after = run_step("FCFS", before, registry.processes, 1.0)
    assert before.running is None
    assert after.running is not None


def test_sort_is_idempotent():
    registry = ProcessRegistry()
    for arrival, burst, priority in [(2, 3, 1), (0, 3, 2), (0, 1, 1), (1, 5, 1)]:
        registry.add(ProcessSpec(arrival_time=arrival, burst_time=burst, priority=priority))

    for algorithm in ALGORITHMS:
        once = sort_ready_queue(registry.processes, algorithm)
        twice = sort_ready_queue(once, algorithm)
        assert [p.pid for p in once] == [p.pid for p in twice]


def test_sort_tie_break_by_arrival_then_pid():
    registry = ProcessRegistry()
    registry.add(ProcessSpec(arrival_time=1, burst_time=2))
    registry.add(ProcessSpec(arrival_time=0, burst_time=2))
    registry.add(ProcessSpec(arrival_time=0, burst_time=2))

    ordered = sort_ready_queue(registry.processes, "SJF")
    assert [p.pid for p in ordered] == [2, 3, 1]


def test_get_mlfq_details_is_read_only():
    registry = ProcessRegistry()
    a = registry.add(ProcessSpec(name="A"))
    b = registry.add(ProcessSpec(name="B"))
    c = registry.add(ProcessSpec(name="C"))
    registry.add(ProcessSpec(name="Later", arrival_time=10))
    a.queue_level = 1
    b.queue_level = 2
    c.queue_level = 7

    view = get_mlfq_details(registry.processes)

    assert view.queue_count == 3
    assert [q.time_quantum for q in view.queues[:2]] == [2, 4]
    assert view.queues[2].is_fcfs
    assert [[p.name for p in q.processes] for q in view.queues] == [["A"], ["B"], ["C"]]

    view.queues[0].processes[0].queue_level = 3
    assert a.queue_level == 1
    assert c.queue_level == 7


def test_resolve_algorithm_aliases():
    assert resolve_algorithm("rr") == "RoundRobin"
    assert resolve_algorithm("Round_Robin") == "RoundRobin"
    assert resolve_algorithm("mlfq") == "MLFQ"
    with pytest.raises(UnknownAlgorithmError):
        resolve_algorithm("lottery")


def test_round_robin_rejects_bad_quantum():
    registry = ProcessRegistry()
    registry.add(ProcessSpec())
    with pytest.raises(InvalidParameterError):
        run_step("rr", SchedulerState(), registry.processes, 0.1, SchedulerParams(quantum=0))
