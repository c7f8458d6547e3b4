"""Recurring backups and reminders driven by user settings.

Usage:
    from qamus_sync.scheduling import APSchedulerJobQueue, backup_scheduler

    queue = APSchedulerJobQueue()
    queue.start()
    scheduler = backup_scheduler(queue, AutomaticBackupJob(orchestrator, store).run)
    scheduler.start(store)
"""

from qamus_sync.scheduling.job_queue import (
    APSchedulerJobQueue,
    EnqueuedJob,
    JobFunction,
    JobQueue,
    JobResult,
    JobStatus,
    MemoryJobQueue,
)
from qamus_sync.scheduling.jobs import (
    AutomaticBackupJob,
    LoggingNotifier,
    NetworkMonitor,
    Notifier,
    ReminderJob,
    StaticNetworkMonitor,
)
from qamus_sync.scheduling.periodic import (
    BACKUP_INTERVALS,
    BACKUP_JOB_NAME,
    MAX_REMINDER_MINUTES,
    MIN_REMINDER_MINUTES,
    REMINDER_JOB_NAME,
    PeriodicScheduler,
    Scheduled,
    ScheduleState,
    Unscheduled,
    backup_interval,
    backup_scheduler,
    reminder_interval,
    reminder_scheduler,
)
from qamus_sync.scheduling.retry import RetryPolicy

__all__ = [
    "APSchedulerJobQueue",
    "MemoryJobQueue",
    "JobQueue",
    "JobFunction",
    "JobResult",
    "JobStatus",
    "EnqueuedJob",
    "AutomaticBackupJob",
    "ReminderJob",
    "Notifier",
    "LoggingNotifier",
    "NetworkMonitor",
    "StaticNetworkMonitor",
    "PeriodicScheduler",
    "ScheduleState",
    "Scheduled",
    "Unscheduled",
    "BACKUP_INTERVALS",
    "BACKUP_JOB_NAME",
    "REMINDER_JOB_NAME",
    "MIN_REMINDER_MINUTES",
    "MAX_REMINDER_MINUTES",
    "backup_interval",
    "reminder_interval",
    "backup_scheduler",
    "reminder_scheduler",
    "RetryPolicy",
]
