"""Keep a recurring job in line with the user's settings.

Each scheduler maps a ``BackupSettings`` snapshot to the interval its job
should run at (or to nothing) and makes the job queue match. Settings can
change faster than the queue answers; only the newest value matters, so a
new value cancels the action in flight and replaces any value still
waiting to be applied.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Optional, Union

from qamus_sync.config.settings import AutomaticBackupFrequency, BackupSettings
from qamus_sync.config.store import SettingsStore
from qamus_sync.logger import Logger, create_logger
from qamus_sync.scheduling.job_queue import JobFunction, JobQueue
from qamus_sync.transfer.cancellation import CancellationToken

BACKUP_JOB_NAME = "backup"
REMINDER_JOB_NAME = "reminder"

BACKUP_INTERVALS: Dict[AutomaticBackupFrequency, Optional[timedelta]] = {
    AutomaticBackupFrequency.OFF: None,
    AutomaticBackupFrequency.DAILY: timedelta(hours=24),
    AutomaticBackupFrequency.WEEKLY: timedelta(hours=168),
    AutomaticBackupFrequency.MONTHLY: timedelta(hours=720),
}

MIN_REMINDER_MINUTES = 15
MAX_REMINDER_MINUTES = 180

IntervalFunction = Callable[[BackupSettings], Optional[timedelta]]


def backup_interval(settings: BackupSettings) -> Optional[timedelta]:
    return BACKUP_INTERVALS[settings.automatic_backup_frequency]


def reminder_interval(settings: BackupSettings) -> Optional[timedelta]:
    if not settings.reminder_enabled:
        return None
    minutes = max(MIN_REMINDER_MINUTES, min(MAX_REMINDER_MINUTES, settings.reminder_interval_minutes))
    return timedelta(minutes=minutes)


@dataclass(frozen=True)
class Unscheduled:
    pass


@dataclass(frozen=True)
class Scheduled:
    interval: timedelta


ScheduleState = Union[Unscheduled, Scheduled]


class PeriodicScheduler:
    """Install, replace or cancel one named recurring job from settings.

    Values arrive through ``submit()`` (or a settings store subscription)
    and are applied one at a time on a private worker thread. The value
    being applied is abandoned, before it touches the queue again, as soon
    as a newer one arrives.

    Example:
        scheduler = PeriodicScheduler("backup", queue, backup_interval, job.run)
        scheduler.start(settings_store)
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        name: str,
        job_queue: JobQueue,
        interval_for: IntervalFunction,
        job: JobFunction,
        can_schedule: Optional[Callable[[], bool]] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.name = name
        self.job_queue = job_queue
        self.job = job
        self.can_schedule = can_schedule
        self.logger = logger or create_logger(name=f"qamus-sync.scheduler.{name}")
        self.schedule_state: ScheduleState = Unscheduled()
        self._interval_for = interval_for
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"qamus-{name}-scheduler")
        self._lock = threading.Lock()
        self._pending: Optional[BackupSettings] = None
        self._token: Optional[CancellationToken] = None
        self._draining = False
        self._stopped = False
        self._idle = threading.Event()
        self._idle.set()
        self._unsubscribe: Optional[Callable[[], None]] = None

    def interval_for(self, settings: BackupSettings) -> Optional[timedelta]:
        return self._interval_for(settings)

    def apply(self, settings: BackupSettings, token: Optional[CancellationToken] = None) -> ScheduleState:
        """Make the queue match ``settings``, synchronously.

        ``token`` is checked before each queue mutation; once cancelled the
        remaining steps are skipped and the previous state is kept.
        """
        token = token or CancellationToken()
        interval = self.interval_for(settings)

        if interval is None:
            if token.cancelled:
                return self.schedule_state
            self.job_queue.cancel(self.name)
            self.schedule_state = Unscheduled()
            self.logger.info("Recurring job off", job=self.name)
            return self.schedule_state

        if self.can_schedule is not None and not self.can_schedule():
            self.logger.warning("Scheduling not permitted, job left unchanged", job=self.name)
            return self.schedule_state

        if any(job.interval == interval for job in self.job_queue.list_enqueued(self.name)):
            self.logger.debug("Recurring job already up to date", job=self.name)
            self.schedule_state = Scheduled(interval)
            return self.schedule_state

        if token.cancelled:
            self.logger.debug("Superseded before enqueue", job=self.name)
            return self.schedule_state
        self.job_queue.enqueue_periodic(self.name, interval, self.job, replace_existing=True)
        self.schedule_state = Scheduled(interval)
        self.logger.info("Recurring job scheduled", job=self.name, interval_seconds=interval.total_seconds())
        return self.schedule_state

    def submit(self, settings: BackupSettings) -> None:
        """Queue ``settings`` for application, superseding any earlier value."""
        with self._lock:
            if self._stopped:
                return
            if self._token is not None:
                self._token.cancel()
            self._pending = settings
            if not self._draining:
                self._draining = True
                self._idle.clear()
                self._executor.submit(self._drain)

    def start(self, settings_store: SettingsStore) -> None:
        """Follow ``settings_store``; its current value is applied right away."""
        if self._unsubscribe is None:
            self._unsubscribe = settings_store.subscribe(self.submit)

    def stop(self, wait: bool = True) -> None:
        """Stop following settings and shut the worker down. Not restartable."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            self._stopped = True
            self._pending = None
            if self._token is not None:
                self._token.cancel()
        self._executor.shutdown(wait=wait)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted value has been applied."""
        return self._idle.wait(timeout)

    def _drain(self) -> None:
        while True:
            with self._lock:
                settings = self._pending
                if settings is None or self._stopped:
                    self._draining = False
                    self._idle.set()
                    return
                self._pending = None
                token = CancellationToken()
                self._token = token
            try:
                self.apply(settings, token)
            except Exception as e:
                self.logger.error("Failed to update recurring job", job=self.name, error=str(e))


def backup_scheduler(job_queue: JobQueue, job: JobFunction, logger: Optional[Logger] = None) -> PeriodicScheduler:
    return PeriodicScheduler(BACKUP_JOB_NAME, job_queue, backup_interval, job, logger=logger)


def reminder_scheduler(
    job_queue: JobQueue,
    job: JobFunction,
    can_schedule: Optional[Callable[[], bool]] = None,
    logger: Optional[Logger] = None,
) -> PeriodicScheduler:
    return PeriodicScheduler(
        REMINDER_JOB_NAME, job_queue, reminder_interval, job, can_schedule=can_schedule, logger=logger
    )
