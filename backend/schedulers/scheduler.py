# @role: Background scheduler that refreshes every account snapshot after market close
# @used_by: main.py
# @filter_type: system
# @tags: scheduler, cron, background
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR, JobExecutionEvent

from routes.dependencies import get_sync_service
from config.logging_config import get_loggers

logger, sync_logger = get_loggers()

# --- Scheduler init ---
scheduler = BackgroundScheduler()

def safe_job_runner(func, job_id: str):
    """Run `func` with structured logging and exception capture."""
    try:
        logger.info("▶ Job %s starting", job_id)
        func()
        logger.info("✔ Job %s completed successfully", job_id)
    except Exception:
        logger.exception("✖ Job %s failed with exception", job_id)

def job_listener(event: JobExecutionEvent):
    """Catch any errors or report durations after each job run."""
    if event.exception:
        logger.error("❌ Job %s raised an exception: %s", event.job_id, event.exception)
    else:
        logger.info("🕒 Job %s executed without error", event.job_id)

def sync_all_snapshots():
    report = get_sync_service().sync_all_accounts()
    if report.reauth_required:
        sync_logger.warning("🔐 Kite login required for: %s", ", ".join(report.reauth_required))

# Attach listener for success & error events
scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

# --- Scheduled jobs ---

# Snapshot refresh after NSE close: 15:45 IST, Mon–Fri
scheduler.add_job(
    func=lambda: safe_job_runner(sync_all_snapshots, "post_close_snapshot_sync"),
    trigger=CronTrigger(day_of_week="mon-fri", hour=15, minute=45, timezone="Asia/Kolkata"),
    id="post_close_snapshot_sync",
    name="Sync all Kite account snapshots",
    replace_existing=True,
    misfire_grace_time=600,   # skip if >10 min late
    coalesce=True,            # collapse overlapping runs
)

def start():
    if not scheduler.running:
        scheduler.start()
        logger.info("📅 Scheduler started")

def shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("🛑 Scheduler stopped")
