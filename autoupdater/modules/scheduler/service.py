"""Update-check scheduler.

Keeps exactly one one-shot APScheduler job outstanding. The job fires the
coordinator's check, and the coordinator asks for the next one when its cycle
completes, so checks never overlap.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Callable, Coroutine, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from tzlocal import get_localzone

from autoupdater.config import ScheduleMode, UpdaterConfig
from autoupdater.logging_config import get_logger

logger = get_logger(__name__)

CHECK_JOB_ID = "update_check"

AsyncCallback = Callable[[], Coroutine[Any, Any, Any]]
FailureHandler = Callable[[BaseException], None]
Clock = Callable[[], dt.datetime]


def local_now() -> dt.datetime:
    """Current time in the system's local zone (DST-aware, not a fixed offset)."""
    return dt.datetime.now(get_localzone())


def _elapsed(start: dt.datetime, end: dt.datetime) -> dt.timedelta:
    # Aware datetimes sharing a tzinfo subtract as wall-clock times; go via UTC.
    return end.astimezone(dt.timezone.utc) - start.astimezone(dt.timezone.utc)


def compute_delay(config: UpdaterConfig, now: dt.datetime) -> dt.timedelta:
    """Return how long to wait from ``now`` until the next update check.

    Interval mode waits the configured number of minutes. Time-of-day mode
    waits until the next occurrence of HH:MM on the wall clock of ``now``'s
    zone, which is tomorrow once today's slot has been reached. A daylight
    saving change in between shortens or lengthens the wait accordingly.
    """
    if config.schedule_mode is ScheduleMode.INTERVAL:
        return dt.timedelta(minutes=config.frequency)

    target = now.replace(
        hour=config.time.hours, minute=config.time.minutes, second=0, microsecond=0,
    )
    if target <= now:
        target += dt.timedelta(days=1)
    return _elapsed(now, target)


class UpdateScheduler:
    """Arranges single-shot update checks according to the configured policy."""

    def __init__(
        self,
        config: UpdaterConfig,
        callback: AsyncCallback,
        on_failure: Optional[FailureHandler] = None,
        clock: Clock = local_now,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._config = config
        self._callback = callback
        self._on_failure = on_failure
        self._clock = clock
        self._scheduler = scheduler or AsyncIOScheduler(
            job_defaults={
                "misfire_grace_time": None,  # a late check is still a check
                "coalesce": True,
                "max_instances": 1,
            },
        )
        self._scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)
        self._next_run: Optional[dt.datetime] = None

    @property
    def next_run(self) -> Optional[dt.datetime]:
        return self._next_run

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Start the underlying scheduler (idempotent). Needs a running event loop."""
        if self._scheduler.running:
            return
        self._scheduler.start()
        logger.debug("scheduler_started")

    def cancel(self) -> None:
        """Drop the outstanding timer, leaving a check that already fired alone."""
        try:
            self._scheduler.remove_job(CHECK_JOB_ID)
        except JobLookupError:
            pass
        self._next_run = None

    def shutdown(self) -> None:
        """Drop the outstanding timer and stop the scheduler.

        A check still in flight is cancelled, so callers wind the cycle down
        first (see ``cancel``).
        """
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=False)
        self._next_run = None
        logger.debug("scheduler_stopped")

    @staticmethod
    def _on_job_event(event) -> None:
        job_id = getattr(event, "job_id", "?")
        if event.code == EVENT_JOB_ERROR:
            logger.error("apscheduler_job_error", job_id=job_id, error=str(getattr(event, "exception", "")))
        elif event.code == EVENT_JOB_MISSED:
            logger.warning("apscheduler_job_missed", job_id=job_id)

    def schedule_next(self) -> dt.timedelta:
        """Arm the one-shot timer for the next check and return its delay."""
        now = self._clock()
        delay = compute_delay(self._config, now)
        run_at = (now.astimezone(dt.timezone.utc) + delay).astimezone(now.tzinfo)

        self._scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=run_at),
            id=CHECK_JOB_ID,
            name="check_for_updates",
            replace_existing=True,
        )
        self._next_run = run_at
        logger.info(
            "update_check_scheduled",
            delay_seconds=delay.total_seconds(),
            delay_ms=int(delay.total_seconds() * 1000),
            run_at=run_at.isoformat(),
        )
        return delay

    async def _fire(self) -> None:
        self._next_run = None
        try:
            await self._callback()
        except Exception as exc:
            if self._on_failure is None:
                raise
            self._on_failure(exc)
