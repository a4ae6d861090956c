"""Scheduler configuration using SQLAlchemy job store."""

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from .config.logging import get_logger, log_error
from .config.settings import get_settings
from .ormdb.database import get_database_url

logger = get_logger(__name__)


def create_scheduler() -> BackgroundScheduler:
    """
    Create and configure a BackgroundScheduler with SQLAlchemy job store.

    Returns:
        Configured BackgroundScheduler instance
    """
    settings = get_settings()

    # Jobs persist in the application database
    jobstores = {
        "default": SQLAlchemyJobStore(
            url=get_database_url(), tablename="apscheduler_jobs"
        )
    }

    executors = {
        "default": ThreadPoolExecutor(max_workers=settings.scheduler_max_workers)
    }

    job_defaults = {
        "coalesce": False,
        "max_instances": 1,  # a run still in flight blocks the next one
        "misfire_grace_time": 30,
    }

    scheduler = BackgroundScheduler(
        jobstores=jobstores,
        executors=executors,
        job_defaults=job_defaults,
        timezone="UTC",
    )

    scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
    scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    return scheduler


def job_executed_listener(event):
    """Log successful job executions."""
    logger.info(
        "Job executed",
        job_id=event.job_id,
        scheduled_run_time=str(event.scheduled_run_time),
    )


def job_error_listener(event):
    """Log job execution errors."""
    log_error(event.exception, job_id=event.job_id, traceback=event.traceback)


def get_global_scheduler() -> BackgroundScheduler:
    """
    Get or create the global scheduler instance.

    Returns:
        Global BackgroundScheduler instance
    """
    if not hasattr(get_global_scheduler, "_scheduler"):
        get_global_scheduler._scheduler = create_scheduler()

    return get_global_scheduler._scheduler


def start_scheduler():
    """Start the global scheduler."""
    scheduler = get_global_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started with SQLAlchemy job store")


def shutdown_scheduler():
    """Shutdown the global scheduler."""
    scheduler = get_global_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")


def _replace_job(job_id: str, **job_kwargs):
    # replace_existing keeps one persisted job per id across restarts
    get_global_scheduler().add_job(id=job_id, replace_existing=True, **job_kwargs)


def add_alert_sweep_job(interval_minutes: int = 5):
    """
    Add the alert evaluation sweep to the scheduler.

    Args:
        interval_minutes: How often to sweep active alerts
    """
    _replace_job(
        "alert_sweep",
        func="beacon.jobs:run_alert_sweep",
        trigger="interval",
        minutes=interval_minutes,
        name="Alert Evaluation Sweep",
    )
    logger.info("Added alert sweep job", interval_minutes=interval_minutes)


def add_prediction_refresh_job(hour: int = 2):
    """
    Add the daily alert prediction refresh.

    Args:
        hour: Hour of the day to run (UTC)
    """
    _replace_job(
        "prediction_refresh",
        func="beacon.jobs:run_prediction_refresh",
        trigger="cron",
        hour=hour,
        name="Alert Prediction Refresh",
    )
    logger.info("Added prediction refresh job", hour=hour)


def add_sync_cycle_job(interval_minutes: int = 15):
    _replace_job(
        "sync_cycle",
        func="beacon.jobs:run_sync_cycle",
        trigger="interval",
        minutes=interval_minutes,
        name="Sync Queue Rebuild",
    )
    logger.info("Added sync cycle job", interval_minutes=interval_minutes)


def add_predictive_cache_job(interval_minutes: int = 10):
    _replace_job(
        "predictive_cache",
        func="beacon.jobs:run_predictive_warm",
        trigger="interval",
        minutes=interval_minutes,
        name="Predictive Cache Warm",
    )
    logger.info("Added predictive cache job", interval_minutes=interval_minutes)


def add_store_cleanup_job(hour: int = 3):
    _replace_job(
        "store_cleanup",
        func="beacon.jobs:run_store_cleanup",
        trigger="cron",
        hour=hour,
        name="Expired Cache Cleanup",
    )


def schedule_default_jobs():
    """Register every recurring job with intervals from settings."""
    settings = get_settings()

    add_alert_sweep_job(settings.alert_check_interval_minutes)
    add_prediction_refresh_job(settings.prediction_refresh_hour)
    add_sync_cycle_job(settings.sync_rebuild_interval_minutes)
    add_predictive_cache_job(settings.predictive_cache_interval_minutes)
    add_store_cleanup_job()


def list_scheduled_jobs():
    """Log all currently scheduled jobs."""
    jobs = get_global_scheduler().get_jobs()

    if not jobs:
        logger.info("No scheduled jobs")
        return

    for job in jobs:
        logger.info(
            "Scheduled job",
            job_id=job.id,
            name=job.name,
            next_run_time=str(job.next_run_time),
        )
