"""
Background Job Scheduler - Runs periodic maintenance for both apps.

Jobs:
- Deal reminders (follow-ups due, stale deals, quarterly check-ins)
- Tech session auto clock-out
- QuickBooks sync retry sweep
- Cleanup of old read notifications
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Callable

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None

NOTIFICATION_RETENTION_DAYS = 30


class BackgroundScheduler:
    """Simple background scheduler for running periodic tasks."""

    def __init__(self, tick_seconds: int = 10):
        self.jobs: Dict[str, Dict] = {}
        self.running = False
        self.tick_seconds = tick_seconds
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

    def add_job(self, job_id: str, func: Callable, interval_seconds: int,
                run_immediately: bool = False, kwargs: Dict = None):
        """
        Add a job to the scheduler.

        Args:
            job_id: Unique identifier for the job
            func: Function to call
            interval_seconds: How often to run (in seconds)
            run_immediately: Whether the first run is due now
            kwargs: Keyword arguments to pass to the function
        """
        now = datetime.utcnow()
        with self._lock:
            self.jobs[job_id] = {
                'func': func,
                'interval': interval_seconds,
                'kwargs': kwargs or {},
                'last_run': None,
                'next_run': now if run_immediately else now + timedelta(seconds=interval_seconds),
                'run_count': 0,
                'last_result': None,
                'last_error': None,
                'enabled': True
            }
        logger.info(f"Added job '{job_id}' with interval {interval_seconds}s")

    def remove_job(self, job_id: str) -> bool:
        with self._lock:
            if job_id not in self.jobs:
                return False
            del self.jobs[job_id]
        logger.info(f"Removed job '{job_id}'")
        return True

    def enable_job(self, job_id: str) -> bool:
        with self._lock:
            if job_id not in self.jobs:
                return False
            self.jobs[job_id]['enabled'] = True
        return True

    def disable_job(self, job_id: str) -> bool:
        """Disable a job without removing it."""
        with self._lock:
            if job_id not in self.jobs:
                return False
            self.jobs[job_id]['enabled'] = False
        return True

    def get_job_status(self) -> Dict[str, Any]:
        """Get status of all jobs."""
        with self._lock:
            return {
                job_id: {
                    'interval': job['interval'],
                    'lastRun': job['last_run'].isoformat() if job['last_run'] else None,
                    'nextRun': job['next_run'].isoformat() if job['next_run'] else None,
                    'runCount': job['run_count'],
                    'lastResult': job['last_result'],
                    'lastError': job['last_error'],
                    'enabled': job['enabled']
                }
                for job_id, job in self.jobs.items()
            }

    def start(self):
        """Start the scheduler in a background thread."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name='background-scheduler', daemon=True)
        self._thread.start()
        logger.info("Background scheduler started")

    def stop(self):
        self.running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Background scheduler stopped")

    def _execute(self, job_id: str, job: Dict, now: datetime) -> bool:
        try:
            logger.debug(f"Running job '{job_id}'")
            result = job['func'](**job['kwargs'])
        except Exception as e:
            logger.error(f"Job '{job_id}' failed: {e}")
            with self._lock:
                job['last_error'] = str(e)
                job['next_run'] = now + timedelta(seconds=job['interval'])
            return False

        with self._lock:
            job['last_run'] = now
            job['next_run'] = now + timedelta(seconds=job['interval'])
            job['run_count'] += 1
            job['last_result'] = result
            job['last_error'] = None
        return True

    def run_pending(self, now: datetime = None) -> int:
        """Run every enabled job that is due; returns how many ran."""
        now = now or datetime.utcnow()
        with self._lock:
            due = [
                (job_id, job) for job_id, job in self.jobs.items()
                if job['enabled'] and job['next_run'] and now >= job['next_run']
            ]
        for job_id, job in due:
            self._execute(job_id, job, now)
        return len(due)

    def _run_loop(self):
        """Main scheduler loop."""
        while self.running and not self._stop_event.is_set():
            self.run_pending()
            self._stop_event.wait(timeout=self.tick_seconds)

    def run_job_now(self, job_id: str) -> Optional[bool]:
        """
        Manually trigger a job.

        Returns:
            None for an unknown job, otherwise whether the run succeeded
        """
        with self._lock:
            job = self.jobs.get(job_id)
        if job is None:
            return None
        return self._execute(job_id, job, datetime.utcnow())


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler()
    return _scheduler


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

def deal_reminders_job(stale_days: int = 7, checkin_window_days: int = 7):
    """Raise notifications for follow-ups due, stale deals and check-ins."""
    from database.connection import get_db_session
    from services.reminder_service import run_reminder_sweep

    with get_db_session() as session:
        results = run_reminder_sweep(session, stale_days, checkin_window_days)
    return {'notificationsCreated': sum(results.values())}


def tech_auto_clock_out_job(max_hours: int = 12):
    """Close tech sessions left open longer than ``max_hours``."""
    from database.connection import get_db_session
    from services.tech_sessions import auto_clock_out

    with get_db_session() as session:
        closed = auto_clock_out(session, max_hours)
    return {'sessionsClosed': closed}


def quickbooks_sync_job(config: Dict = None):
    """Push due QuickBooks sync rows for every shop."""
    from database.connection import get_db_session
    from services.qbo_sync import sweep_all_shops

    with get_db_session() as session:
        totals = sweep_all_shops(session, config or {})
    if totals['attempted']:
        logger.info(
            f"QuickBooks sweep: {totals['synced']} synced, {totals['failed']} failed "
            f"across {totals['shops']} shop(s)"
        )
    return totals


def cleanup_old_notifications_job(days: int = NOTIFICATION_RETENTION_DAYS):
    """Delete read notifications older than ``days`` in every organization."""
    from database.connection import get_db_session
    from database.models import Organization
    from services.notification_service import NotificationService

    deleted = 0
    with get_db_session() as session:
        for org in session.query(Organization).all():
            deleted += NotificationService(session, org.id).cleanup_old_notifications(days=days)
    if deleted > 0:
        logger.info(f"Cleaned up {deleted} old notifications")
    return {'deleted': deleted}


def register_default_jobs(scheduler: BackgroundScheduler, config) -> BackgroundScheduler:
    """Add the standard jobs, parameterized from the app config."""
    # Reminders every 15 minutes
    scheduler.add_job(
        'deal_reminders',
        deal_reminders_job,
        interval_seconds=15 * 60,
        run_immediately=True,
        kwargs={
            'stale_days': config.get('STALE_DEAL_DAYS', 7),
            'checkin_window_days': config.get('CHECKIN_WINDOW_DAYS', 7),
        }
    )

    scheduler.add_job(
        'tech_auto_clock_out',
        tech_auto_clock_out_job,
        interval_seconds=30 * 60,
        kwargs={'max_hours': config.get('TECH_AUTO_CLOCK_OUT_HOURS', 12)}
    )

    # Retry delays are minutes apart, so check every minute
    scheduler.add_job(
        'quickbooks_sync',
        quickbooks_sync_job,
        interval_seconds=60,
        kwargs={'config': config}
    )

    scheduler.add_job(
        'cleanup_notifications',
        cleanup_old_notifications_job,
        interval_seconds=24 * 60 * 60
    )
    return scheduler


def init_scheduler(app):
    """Initialize the scheduler with default jobs and start it."""
    scheduler = register_default_jobs(get_scheduler(), app.config)
    scheduler.start()
    logger.info("Scheduler initialized with default jobs")
    return scheduler
