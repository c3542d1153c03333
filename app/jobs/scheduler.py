"""
APScheduler Configuration

Background job scheduler. Jobs run on the application's event loop.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from app.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,  # Allow 60 seconds grace time for misfires
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone='UTC'
)


async def run_payment_reconciliation():
    """Scheduler entry point; a failed run is logged and retried on the next interval."""
    from app.jobs.order_jobs import flag_unreconciled_payments

    try:
        await flag_unreconciled_payments()
    except Exception as e:
        logger.error(f"Job 'payment_reconciliation' failed: {e}")


def start_scheduler():
    """Start the background job scheduler."""
    if not scheduler.running:
        scheduler.add_job(
            run_payment_reconciliation,
            'interval',
            minutes=settings.PAYMENT_RECONCILIATION_INTERVAL_MINUTES,
            id='payment_reconciliation',
            name='Payment Reconciliation',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")
