"""Recurring job queue adapters.

Jobs are addressed by a logical name: enqueuing under an existing name
replaces that job, so at most one recurring job exists per name.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from apscheduler.jobstores.base import ConflictingIdError, JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from qamus_sync.logger import Logger, create_logger


class JobStatus(str, Enum):
    SUCCESS = "success"
    RETRY = "retry"
    FAILURE = "failure"


@dataclass(frozen=True)
class JobResult:
    """Outcome of one run of a scheduled job."""

    status: JobStatus
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, **data: Any) -> "JobResult":
        return cls(JobStatus.SUCCESS, data)

    @classmethod
    def retry(cls, **data: Any) -> "JobResult":
        return cls(JobStatus.RETRY, data)

    @classmethod
    def failure(cls, **data: Any) -> "JobResult":
        return cls(JobStatus.FAILURE, data)


@dataclass(frozen=True)
class EnqueuedJob:
    """A recurring job as reported by the queue."""

    name: str
    interval: timedelta
    state: str
    next_run_time: Optional[datetime] = None


JobFunction = Callable[[], Any]


@runtime_checkable
class JobQueue(Protocol):
    """Protocol for recurring job queues."""

    def enqueue_periodic(
        self,
        name: str,
        interval: timedelta,
        func: JobFunction,
        replace_existing: bool = True,
    ) -> None:
        """Install ``func`` to run every ``interval`` under ``name``.

        With ``replace_existing=False`` an existing job of that name is kept.
        """
        ...

    def cancel(self, name: str) -> bool:
        """Remove the job; returns False when there was none."""
        ...

    def list_enqueued(self, name: str) -> List[EnqueuedJob]:
        ...

    def report(self, name: str, result: JobResult) -> None:
        ...

    def last_result(self, name: str) -> Optional[JobResult]:
        ...


class _ResultLog:
    def __init__(self, logger: Logger) -> None:
        self.logger = logger
        self._results: Dict[str, JobResult] = {}
        self._results_lock = threading.Lock()

    def report(self, name: str, result: JobResult) -> None:
        with self._results_lock:
            self._results[name] = result
        if result.status is JobStatus.FAILURE:
            self.logger.error("Job failed", job=name, **result.data)
        elif result.status is JobStatus.RETRY:
            self.logger.warning("Job will retry on its next run", job=name, **result.data)
        else:
            self.logger.info("Job succeeded", job=name, **result.data)

    def last_result(self, name: str) -> Optional[JobResult]:
        with self._results_lock:
            return self._results.get(name)

    def run_and_report(self, name: str, func: JobFunction) -> None:
        try:
            result = func()
        except Exception as e:
            result = JobResult.failure(error=str(e))
        if isinstance(result, JobResult):
            self.report(name, result)


class APSchedulerJobQueue(_ResultLog):
    """JobQueue on an APScheduler ``BackgroundScheduler``.

    Runs of the same job never overlap, and runs missed while the process
    was busy are coalesced into one.

    Example:
        queue = APSchedulerJobQueue()
        queue.start()
        queue.enqueue_periodic("backup", timedelta(hours=24), job.run)
    """

    def __init__(
        self,
        scheduler: Optional[BackgroundScheduler] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(logger or create_logger(name="qamus-sync.jobs"))
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={"coalesce": True, "max_instances": 1},
            timezone=timezone.utc,
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("Job queue started")

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            self.logger.info("Job queue stopped")

    def enqueue_periodic(
        self,
        name: str,
        interval: timedelta,
        func: JobFunction,
        replace_existing: bool = True,
    ) -> None:
        try:
            self.scheduler.add_job(
                self.run_and_report,
                IntervalTrigger(seconds=interval.total_seconds()),
                args=[name, func],
                id=name,
                name=name,
                replace_existing=replace_existing,
                coalesce=True,
                max_instances=1,
            )
        except ConflictingIdError:
            self.logger.debug("Job already enqueued, keeping it", job=name)
            return
        self.logger.info("Job enqueued", job=name, interval_seconds=interval.total_seconds())

    def cancel(self, name: str) -> bool:
        try:
            self.scheduler.remove_job(name)
        except JobLookupError:
            return False
        self.logger.info("Job cancelled", job=name)
        return True

    def list_enqueued(self, name: str) -> List[EnqueuedJob]:
        job = self.scheduler.get_job(name)
        if job is None:
            return []
        # Jobs added before start() have no next_run_time attribute yet
        next_run = getattr(job, "next_run_time", None)
        if not self.scheduler.running:
            state = "pending"
        else:
            state = "scheduled" if next_run is not None else "paused"
        return [EnqueuedJob(name=job.id, interval=job.trigger.interval, state=state, next_run_time=next_run)]


class MemoryJobQueue(_ResultLog):
    """In-memory JobQueue for tests; jobs only run through ``run_now``.

    ``history`` records every enqueue and cancel as ``(action, name, interval)``.
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        super().__init__(logger or create_logger(name="qamus-sync.jobs"))
        self.history: List[Tuple[str, str, Optional[timedelta]]] = []
        self._jobs: Dict[str, Tuple[EnqueuedJob, JobFunction]] = {}
        self._lock = threading.Lock()

    def start(self) -> None:
        """No-op; jobs only run through run_now."""

    def shutdown(self, wait: bool = True) -> None:
        """No-op; nothing runs in the background."""

    def enqueue_periodic(
        self,
        name: str,
        interval: timedelta,
        func: JobFunction,
        replace_existing: bool = True,
    ) -> None:
        with self._lock:
            if name in self._jobs and not replace_existing:
                return
            self._jobs[name] = (EnqueuedJob(name=name, interval=interval, state="scheduled"), func)
            self.history.append(("enqueue", name, interval))

    def cancel(self, name: str) -> bool:
        with self._lock:
            removed = self._jobs.pop(name, None) is not None
            self.history.append(("cancel", name, None))
            return removed

    def list_enqueued(self, name: str) -> List[EnqueuedJob]:
        with self._lock:
            entry = self._jobs.get(name)
            return [entry[0]] if entry else []

    def run_now(self, name: str) -> Optional[JobResult]:
        """Run a job once, synchronously, and return what it reported."""
        with self._lock:
            entry = self._jobs.get(name)
        if entry is None:
            return None
        self.run_and_report(name, entry[1])
        return self.last_result(name)
