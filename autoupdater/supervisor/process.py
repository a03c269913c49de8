"""Process supervisor: spawns the supervised command and observes its exit.

The supervisor owns at most one child at a time. The child inherits our
stdin/stdout/stderr, so its output reaches the terminal untouched. A watcher
task resolves a one-shot exit future and clears the handle whatever the cause
of exit (clean exit, signal, crash).
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Optional, Protocol

from autoupdater.config import CommandSpec, UpdaterError
from autoupdater.logging_config import get_logger

logger = get_logger(__name__)


class ProcessSupervisorError(UpdaterError):
    """Raised when the supervisor is asked to do something its protocol forbids."""


class ChildProcess:
    """Handle to one live OS process plus its exit notification."""

    def __init__(self, process: asyncio.subprocess.Process, command: CommandSpec) -> None:
        self._process = process
        self.command = command
        self._exited: asyncio.Future[int] = asyncio.get_running_loop().create_future()

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    @property
    def exited(self) -> bool:
        return self._exited.done()

    def send_signal(self, signum: int) -> None:
        """Deliver ``signum``; a child that is already gone is not an error."""
        try:
            self._process.send_signal(signum)
        except ProcessLookupError:
            logger.debug("command_already_gone", pid=self.pid)

    def kill(self) -> None:
        self.send_signal(signal.SIGKILL)

    async def wait(self) -> int:
        """Wait until the exit has been observed and return the exit code."""
        return await asyncio.shield(self._exited)

    async def _observe_exit(self) -> int:
        returncode = await self._process.wait()
        if not self._exited.done():
            self._exited.set_result(returncode)
        return returncode


class TerminationStrategy(Protocol):
    """How a child is asked to go away. Returns once its exit has been observed."""

    async def terminate(self, child: ChildProcess) -> None: ...


class SignalTermination:
    """Send a single signal and wait for the exit, however long it takes."""

    def __init__(self, signal_name: str) -> None:
        self.signal = signal.Signals[signal_name]

    async def terminate(self, child: ChildProcess) -> None:
        logger.info("command_stopping", pid=child.pid, signal=self.signal.name)
        child.send_signal(self.signal)
        await child.wait()


class SignalThenKill:
    """Send a signal, then SIGKILL if the child outlives ``grace_seconds``."""

    def __init__(self, signal_name: str, grace_seconds: float = 10.0) -> None:
        self.signal = signal.Signals[signal_name]
        self.grace_seconds = grace_seconds

    async def terminate(self, child: ChildProcess) -> None:
        logger.info("command_stopping", pid=child.pid, signal=self.signal.name)
        child.send_signal(self.signal)
        try:
            await asyncio.wait_for(child.wait(), timeout=self.grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("command_kill_timeout", pid=child.pid, grace_seconds=self.grace_seconds)
            child.kill()
            await child.wait()


class ProcessSupervisor:
    """Starts, stops and watches the supervised command."""

    def __init__(
        self,
        cwd: Optional[Path] = None,
        termination: Optional[TerminationStrategy] = None,
    ) -> None:
        self._cwd = cwd
        self._termination = termination
        self._child: Optional[ChildProcess] = None
        self._watcher: Optional[asyncio.Task] = None

    @property
    def child(self) -> Optional[ChildProcess]:
        return self._child

    @property
    def is_running(self) -> bool:
        return self._child is not None

    async def start(self, command: Optional[CommandSpec]) -> Optional[ChildProcess]:
        """Launch ``command``; does nothing when no command is configured."""
        if command is None:
            return None
        if self._child is not None:
            raise ProcessSupervisorError(
                f"Command already running with pid {self._child.pid}; stop it first"
            )

        process = await asyncio.create_subprocess_exec(
            command.executable,
            *command.args,
            cwd=str(self._cwd) if self._cwd else None,
        )
        child = ChildProcess(process, command)
        self._child = child
        self._watcher = asyncio.create_task(self._watch(child), name=f"watch-{child.pid}")
        logger.info("command_started", pid=child.pid, command=str(command))
        return child

    async def _watch(self, child: ChildProcess) -> None:
        returncode = await child._observe_exit()
        if self._child is child:
            self._child = None
        logger.info("command_exited", pid=child.pid, returncode=returncode)

    async def stop(self, signal_name: str) -> None:
        """Ask the live child to exit and return once the exit is observed.

        Returns immediately when nothing is running. With the default strategy
        there is no timeout: a child that ignores the signal keeps this call
        pending indefinitely.
        """
        child = self._child
        if child is None:
            return
        strategy = self._termination or SignalTermination(signal_name)
        await strategy.terminate(child)
        # The watcher clears the handle; make sure it ran before returning.
        if self._watcher is not None:
            await asyncio.shield(self._watcher)

    def kill(self) -> None:
        """SIGKILL the live child; a pending ``stop()`` then completes."""
        child = self._child
        if child is None:
            return
        logger.warning("command_killed", pid=child.pid)
        child.kill()
