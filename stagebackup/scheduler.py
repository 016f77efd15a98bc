"""
APScheduler configuration for recurring backup runs.

Manages:
- A cron-triggered run of every configured backup job
- Scheduler start/stop
"""

import logging

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None

JOB_ID = 'backup_run'


def init_scheduler(manager, cron: str, timezone: str = 'UTC'):
    """
    Initialize and configure APScheduler.

    Args:
        manager: BackupManager to run on each trigger
        cron: Crontab expression, e.g. '0 2 * * *'
        timezone: Timezone the expression is evaluated in

    Returns:
        The scheduler

    Raises:
        ValueError: If the cron expression is invalid
    """
    global scheduler

    if scheduler is not None:
        return scheduler

    trigger = CronTrigger.from_crontab(cron, timezone=timezone)

    job_defaults = {
        'coalesce': True,  # Combine multiple pending runs into one
        'max_instances': 1,  # Never overlap runs against the same directory
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BlockingScheduler(
        executors={'default': ThreadPoolExecutor(max_workers=1)},
        job_defaults=job_defaults,
        timezone=timezone
    )

    scheduler.add_job(
        func=_execute_backup_wrapper,
        args=[manager],
        trigger=trigger,
        id=JOB_ID,
        name='Scheduled backup run',
        replace_existing=True
    )

    return scheduler


def start_scheduler():
    """
    Start the scheduler. Blocks until the scheduler is shut down.
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    for job in scheduler.get_jobs():
        logger.info(f"Scheduled {job.name} ({job.trigger})")

    scheduler.start()


def stop_scheduler():
    """Stop the scheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None


def _execute_backup_wrapper(manager):
    """
    Run the backup jobs from the scheduler thread.

    Failures are logged so one bad run does not stop the schedule.
    """
    try:
        summary = manager.run()
        if summary['errors']:
            logger.warning(f"Scheduled run finished with {len(summary['errors'])} error(s)")
    except Exception:
        logger.exception("Scheduled backup run failed")
