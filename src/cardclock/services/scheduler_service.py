from datetime import datetime, timedelta
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from cardclock.shared.logger import app_logger


class SchedulerService:
    """Background timers: the hot-plug poll and the settle delays"""

    def __init__(self):
        self.scheduler = None
        self.logger = app_logger
        self.is_running = False

    def start(self):
        """Start the scheduler"""
        if self.scheduler and self.is_running:
            self.logger.warning("Scheduler is already running")
            return

        try:
            self.scheduler = BackgroundScheduler()

            self.scheduler.add_listener(self._job_executed_listener, EVENT_JOB_EXECUTED)
            self.scheduler.add_listener(self._job_error_listener, EVENT_JOB_ERROR)

            self.scheduler.start()
            self.is_running = True

            self.logger.info("Scheduler service started successfully")

        except Exception as e:
            self.logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the scheduler"""
        if self.scheduler and self.is_running:
            try:
                self.scheduler.shutdown(wait=False)
                self.is_running = False
                self.logger.info("Scheduler service stopped")
            except Exception as e:
                self.logger.error(f"Error stopping scheduler: {e}")

    def add_interval_job(self, func, seconds: float, job_id: str, name: str = None):
        """Run func every `seconds`, never overlapping with itself"""
        if not self.scheduler or not self.is_running:
            raise RuntimeError("Scheduler not running")

        self.scheduler.add_job(
            func=func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            name=name or job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=max(1, int(seconds)),
        )
        self.logger.info(f"[CRON] Job '{job_id}' scheduled every {seconds}s")

    def call_later(self, delay_seconds: float, func, *args):
        """Run func once after a delay without blocking the caller"""
        if not self.scheduler or not self.is_running:
            raise RuntimeError("Scheduler not running")

        run_date = datetime.now() + timedelta(seconds=delay_seconds)
        return self.scheduler.add_job(
            func=func,
            trigger=DateTrigger(run_date=run_date),
            args=args,
            misfire_grace_time=30,
        )

    def remove_job(self, job_id: str):
        if self.scheduler:
            self.scheduler.remove_job(job_id)

    def _job_executed_listener(self, event):
        self.logger.debug(f"Job '{event.job_id}' executed successfully")

    def _job_error_listener(self, event):
        self.logger.error(f"[CRON] Job '{event.job_id}' crashed: {event.exception}")


# Global scheduler instance
scheduler_service = SchedulerService()
