"""
Beacon - Main application entry point.

Runs the recurring price-signal jobs: alert sweeps, daily prediction refresh,
sync queue rebuilds and predictive cache warming.
"""

import sys
import time

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from beacon.config.logging import get_logger
from beacon.config.settings import get_required_env_vars, get_settings
from beacon.jobs import (
    run_alert_sweep,
    run_predictive_warm,
    run_prediction_refresh,
    run_sync_cycle,
)
from beacon.scheduler import (
    list_scheduled_jobs,
    schedule_default_jobs,
    shutdown_scheduler,
    start_scheduler,
)
from beacon.utils.config import initialize_application, validate_environment


def run_once() -> None:
    """Run every job a single time in the foreground."""
    logger = get_logger(__name__)

    sync_summary = run_sync_cycle()
    logger.info("Sync cycle", queued=sync_summary.queued, synced=sync_summary.synced)

    warmed = run_predictive_warm()
    logger.info("Predictive warm", warmed=warmed)

    refreshed = run_prediction_refresh()
    logger.info("Prediction refresh", refreshed=refreshed)

    sweep = run_alert_sweep()
    print(
        f"Alerts evaluated: {sweep.evaluated}, triggered: {sweep.triggered}, "
        f"snoozed: {sweep.snoozed}, errors: {sweep.errors}"
    )


def main() -> None:
    """Main application entry point."""
    initialize_application()

    logger = get_logger(__name__)
    logger.info("Starting Beacon application")

    settings = get_settings()

    if not validate_environment():
        logger.error("Environment validation failed")
        print(
            "Please set the required environment variables before running the application."
        )
        print(f"Required variables: {', '.join(get_required_env_vars())}")
        sys.exit(1)

    logger.info("Environment validation passed")

    if "-test" in sys.argv:
        logger.info("Starting test mode, running each job once")
        run_once()
        return

    logger.info(
        "Starting production mode",
        alert_interval_minutes=settings.alert_check_interval_minutes,
        sync_interval_minutes=settings.sync_rebuild_interval_minutes,
    )
    print("Starting Beacon in production mode...")

    start_scheduler()
    schedule_default_jobs()
    list_scheduled_jobs()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
        print("\nShutting down...")
    finally:
        shutdown_scheduler()


if __name__ == "__main__":
    main()
