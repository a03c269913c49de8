"""Update supervisor.

Components:
- ProcessSupervisor: spawns the configured command and observes its exit
- UpdateCoordinator: check -> stop -> pull -> restart cycle, driven by the scheduler
- cli: command-line entry point
"""

from autoupdater.supervisor.coordinator import UpdateCoordinator, UpdaterState
from autoupdater.supervisor.process import (
    ChildProcess,
    ProcessSupervisor,
    ProcessSupervisorError,
    SignalTermination,
    SignalThenKill,
    TerminationStrategy,
)

__all__ = [
    "ChildProcess",
    "ProcessSupervisor",
    "ProcessSupervisorError",
    "SignalTermination",
    "SignalThenKill",
    "TerminationStrategy",
    "UpdateCoordinator",
    "UpdaterState",
]
