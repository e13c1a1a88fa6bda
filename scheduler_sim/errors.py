from __future__ import annotations


class SchedulerError(Exception):
    """Base class for every error raised by the simulator."""


class InvalidProcessError(SchedulerError, ValueError):
    """Process parameters that cannot describe a schedulable unit."""


class DuplicateProcessError(SchedulerError, ValueError):
    def __init__(self, pid: int):
        super().__init__(f"Process id {pid} is already in use")
        self.pid = pid


class InvalidTransitionError(SchedulerError):
    """Editing or removing a process that is running or already completed."""

    def __init__(self, pid: int, state, action: str):
        super().__init__(f"Cannot {action} process {pid} while it is {state.label}")
        self.pid = pid
        self.state = state
        self.action = action


class InvalidParameterError(SchedulerError, ValueError):
    """Bad policy or driver parameter (quantum, speed, delta)."""


class UnknownAlgorithmError(SchedulerError, ValueError):
    def __init__(self, name: str):
        super().__init__(f"Unknown or unimplemented algorithm '{name}'")
        self.name = name


class SimulationStalledError(SchedulerError):
    """A run did not finish within its step budget."""
