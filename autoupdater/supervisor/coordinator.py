"""Update coordinator: the check/stop/pull/restart cycle.

The coordinator ties the git gateway, the process supervisor and the scheduler
together:

- ``run()`` prepares the working tree, starts the command and arms the first
  check, then waits until shutdown or a fatal error.
- ``check_for_updates()`` fetches and compares HEAD with its upstream.
- ``update()`` stops the command, pulls, restarts the command.

Only one cycle is ever in flight because the next check is scheduled only when
the current cycle completes. The command is always fully stopped before the
working tree is pulled.
"""

from __future__ import annotations

import asyncio
import signal
from enum import StrEnum
from typing import Optional

from autoupdater.config import UpdaterConfig
from autoupdater.logging_config import get_logger
from autoupdater.modules.git import GitGateway, RevisionPair
from autoupdater.modules.scheduler import UpdateScheduler
from autoupdater.supervisor.process import ProcessSupervisor

logger = get_logger(__name__)


class UpdaterState(StrEnum):
    """Where the coordinator is in its cycle."""
    IDLE = "idle"           # waiting for the next scheduled check
    CHECKING = "checking"   # fetch + revision comparison
    UPDATING = "updating"   # stop, pull, restart


class UpdateCoordinator:
    """Runs update cycles against a single working tree and command."""

    def __init__(
        self,
        config: UpdaterConfig,
        gateway: Optional[GitGateway] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        scheduler: Optional[UpdateScheduler] = None,
    ) -> None:
        self._config = config
        self._gateway = gateway or GitGateway()
        self._supervisor = supervisor or ProcessSupervisor(cwd=config.path)
        self._scheduler = scheduler or UpdateScheduler(
            config, self.check_for_updates, on_failure=self.fail,
        )
        self._state = UpdaterState.IDLE
        self._done: Optional[asyncio.Future[None]] = None
        self._shutting_down = False
        self._cycle_idle = asyncio.Event()
        self._cycle_idle.set()

    @property
    def config(self) -> UpdaterConfig:
        return self._config

    @property
    def state(self) -> UpdaterState:
        return self._state

    @property
    def supervisor(self) -> ProcessSupervisor:
        return self._supervisor

    # ── Lifecycle ────────────────────────────────────────────────────

    async def run(self) -> None:
        """Prepare the tree, start the command and keep checking for updates.

        Returns after a graceful shutdown. Raises whatever error stopped an
        update cycle; setup failures raise ``SetupError`` before anything runs.
        """
        loop = asyncio.get_running_loop()
        self._done = loop.create_future()

        logger.info("updater_starting", **self._config.describe())
        self._gateway.ensure_local_tree(
            self._config.path, self._config.repository, self._config.branch,
        )

        self._install_signal_handlers(loop)
        try:
            self._scheduler.start()
            await self._supervisor.start(self._config.command)
            self._scheduler.schedule_next()
            await self._done
        finally:
            self._remove_signal_handlers(loop)
            self._scheduler.shutdown()

    def fail(self, exc: BaseException) -> None:
        """Abort ``run()`` with ``exc``; used for errors raised inside a cycle."""
        logger.error("update_cycle_failed", error=str(exc), state=str(self._state))
        if self._done is not None and not self._done.done():
            self._done.set_exception(exc)

    async def shutdown(self) -> None:
        """Stop checking, stop the command and let ``run()`` return.

        A check already in flight is allowed to wind down (it skips the pull)
        before ``run()`` stops the scheduler.
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        logger.info("updater_shutting_down")
        self._scheduler.cancel()
        await self._supervisor.stop(self._config.signal)
        await self._cycle_idle.wait()
        if self._done is not None and not self._done.done():
            self._done.set_result(None)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._on_signal, signum)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or not supported on this platform.
                logger.debug("signal_handler_unavailable", signal=signum.name)

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(signum)
            except (NotImplementedError, RuntimeError):
                pass

    def _on_signal(self, signum: signal.Signals) -> None:
        logger.info("updater_signal_received", signal=signum.name)
        if self._shutting_down:
            # Second signal: the command did not honour the first one.
            self._supervisor.kill()
            return
        task = asyncio.ensure_future(self.shutdown())
        task.add_done_callback(self._shutdown_done)

    def _shutdown_done(self, task: asyncio.Future) -> None:
        if not task.cancelled() and task.exception() is not None:
            self.fail(task.exception())

    # ── Update cycle ─────────────────────────────────────────────────

    async def check_for_updates(self) -> RevisionPair:
        """Compare local HEAD with upstream and update when they differ."""
        self._cycle_idle.clear()
        try:
            self._state = UpdaterState.CHECKING
            logger.info("checking_for_update")
            self._gateway.fetch(self._config.path)

            revisions = self._gateway.revisions(self._config.path)
            logger.info(
                "revisions_compared",
                current_revision=revisions.current_revision,
                latest_revision=revisions.latest_revision,
            )

            if revisions.up_to_date:
                self._finish_cycle()
            else:
                logger.info("updating")
                await self.update()
            return revisions
        finally:
            self._cycle_idle.set()

    async def update(self) -> None:
        """Quiesce the command, pull the tree and restart the command."""
        self._state = UpdaterState.UPDATING
        while self._supervisor.is_running:
            await self._supervisor.stop(self._config.signal)

        if self._shutting_down:
            self._state = UpdaterState.IDLE
            return

        self._gateway.pull(self._config.path)
        logger.info("updated")
        await self._supervisor.start(self._config.command)
        self._finish_cycle()

    def _finish_cycle(self) -> None:
        self._state = UpdaterState.IDLE
        if self._shutting_down:
            return
        self._scheduler.schedule_next()
