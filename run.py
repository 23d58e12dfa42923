import logging
import os
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from potflow import create_app
from potflow.automation.runner import AutomationRunner
from potflow.config import load_settings
from potflow.db import get_db_session
from potflow.monzo.client import MonzoClient

logger = logging.getLogger("scheduler")

settings = load_settings()
app = create_app(settings)


# Scheduled automation job, an in-process alternative to the cron endpoint
def scheduled_automation():
    logger.info("[SCHEDULER] Starting scheduled automation run...")
    client = MonzoClient(
        client_id=settings.monzo_client_id,
        client_secret=settings.monzo_client_secret,
        redirect_uri=settings.redirect_uri,
        timeout=settings.monzo_http_timeout,
    )
    with next(get_db_session()) as db:
        try:
            report = AutomationRunner(db, client, tz=settings.tz).run(datetime.now(timezone.utc))
            logger.info(f"[SCHEDULER] Automation run complete: {report.ran} processed")
        except Exception as e:
            logger.error(f"[SCHEDULER] Critical error in scheduled automation: {e}")
            db.rollback()


if settings.scheduler_enabled and settings.monzo_configured:
    scheduler = BackgroundScheduler()
    # One run at a time; missed runs collapse into one
    scheduler.add_job(
        scheduled_automation,
        "interval",
        minutes=settings.scheduler_interval_minutes,
        next_run_time=datetime.now(),
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    for job in scheduler.get_jobs():
        logger.info(f"[SCHEDULER] - {job.name}: {job.trigger}")

if __name__ == "__main__":
    # Use environment variable for debug mode, default to False for production safety
    debug_mode = os.getenv("FLASK_DEBUG", "false").lower() in ("true", "1", "yes")

    app.run(debug=debug_mode, host="0.0.0.0", port=5000)
