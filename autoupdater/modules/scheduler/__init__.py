"""Scheduler module: timing of update checks."""

from autoupdater.modules.scheduler.service import UpdateScheduler, compute_delay, local_now

__all__ = ["UpdateScheduler", "compute_delay", "local_now"]
