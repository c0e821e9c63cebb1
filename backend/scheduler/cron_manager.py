"""
Cron Manager
APScheduler integration for the recurring price update timer.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional
import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR, EVENT_JOB_MISSED, EVENT_JOB_MAX_INSTANCES
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore

from .schedule_config import DEFAULT_TIMEZONE, build_cron_trigger

logger = logging.getLogger(__name__)


class CronManager:
    """Manages cron jobs on an asyncio APScheduler.

    The underlying scheduler is created on start() and discarded on stop(),
    so a stopped manager can be started again on a fresh event loop.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        self.timezone = timezone
        self.scheduler: Optional[AsyncIOScheduler] = None

    def _create_scheduler(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=pytz.timezone(self.timezone)
        )

        # Add event listeners for job monitoring
        scheduler.add_listener(self._job_executed_listener, EVENT_JOB_EXECUTED)
        scheduler.add_listener(self._job_error_listener, EVENT_JOB_ERROR)
        scheduler.add_listener(self._job_missed_listener, EVENT_JOB_MISSED)
        scheduler.add_listener(self._job_max_instances_listener, EVENT_JOB_MAX_INSTANCES)
        return scheduler

    def start(self):
        """Start the scheduler. Must be called from a running event loop."""
        if self.scheduler is None:
            self.scheduler = self._create_scheduler()
        if not self.scheduler.running:
            logger.info("Starting cron scheduler")
            self.scheduler.start()

    def stop(self):
        """Stop the scheduler and drop all jobs."""
        if self.scheduler is not None and self.scheduler.running:
            logger.info("Stopping cron scheduler")
            self.scheduler.shutdown(wait=False)
        self.scheduler = None

    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self.scheduler is not None and self.scheduler.running

    def add_job(self,
                job_id: str,
                func: Callable,
                cron_expression: str,
                timezone: str = DEFAULT_TIMEZONE,
                max_instances: int = 1,
                replace_existing: bool = True,
                **kwargs) -> bool:
        """
        Add a scheduled job.

        Args:
            job_id: Unique identifier for the job
            func: Function or coroutine function to execute
            cron_expression: Cron expression for scheduling
            timezone: Timezone for the schedule
            max_instances: Maximum concurrent instances
            replace_existing: Whether to replace existing job with same ID
            **kwargs: Additional arguments to pass to the function

        Returns:
            bool: True if job added successfully
        """
        if not self.is_running():
            logger.error(f"Cannot add job {job_id}: cron scheduler is not running")
            return False

        try:
            trigger = build_cron_trigger(cron_expression, timezone)
        except ValueError as e:
            logger.error(str(e))
            return False

        # coalesce: a backlog of missed fire times collapses into a single run
        self.scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            max_instances=max_instances,
            coalesce=True,
            misfire_grace_time=60,
            replace_existing=replace_existing,
            kwargs=kwargs
        )

        next_run = self.get_next_run_time(job_id)
        logger.info(f"Added job {job_id} with schedule {cron_expression} ({timezone}). Next run: {next_run}")
        return True

    def reschedule_job(self, job_id: str, cron_expression: str, timezone: str = DEFAULT_TIMEZONE) -> bool:
        """
        Move an existing job to a new cron expression.

        An execution already in progress is not interrupted.

        Returns:
            bool: True if job rescheduled successfully
        """
        if not self.has_job(job_id):
            logger.error(f"Cannot reschedule unknown job {job_id}")
            return False
        try:
            trigger = build_cron_trigger(cron_expression, timezone)
        except ValueError as e:
            logger.error(str(e))
            return False

        self.scheduler.reschedule_job(job_id, trigger=trigger)
        logger.info(f"Rescheduled job {job_id} to {cron_expression} ({timezone}). "
                    f"Next run: {self.get_next_run_time(job_id)}")
        return True

    def remove_job(self, job_id: str) -> bool:
        """
        Remove a scheduled job.

        Returns:
            bool: True if job removed successfully
        """
        if self.scheduler is None:
            return False
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        logger.info(f"Removed job {job_id}")
        return True

    def has_job(self, job_id: str) -> bool:
        return self.scheduler is not None and self.scheduler.get_job(job_id) is not None

    def get_jobs(self) -> List[Dict]:
        """
        Get all scheduled jobs.

        Returns:
            List of job information dictionaries
        """
        if self.scheduler is None:
            return []
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append({
                'id': job.id,
                'name': job.name or job.id,
                'trigger': str(job.trigger),
                'next_run_time': job.next_run_time,
                'max_instances': job.max_instances,
            })
        return jobs

    def get_next_run_time(self, job_id: str) -> Optional[datetime]:
        """Get the next run time for a job, or None if not scheduled."""
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(job_id)
        return job.next_run_time if job else None

    def _job_executed_listener(self, event):
        """Handle job execution events."""
        logger.info(f"Job {event.job_id} executed successfully")

    def _job_error_listener(self, event):
        """Handle job error events."""
        logger.error(f"Job {event.job_id} failed with error: {event.exception}")

    def _job_missed_listener(self, event):
        """Handle missed job events."""
        logger.warning(f"Job {event.job_id} missed scheduled run time: {event.scheduled_run_time}")

    def _job_max_instances_listener(self, event):
        """Handle ticks skipped because the previous execution is still running."""
        logger.warning(f"Job {event.job_id} still running, skipped tick at {event.scheduled_run_times}")
