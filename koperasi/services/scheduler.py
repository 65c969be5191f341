"""Background scheduler for the overdue installment digest."""

import logging
from datetime import date

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from koperasi.core.config import settings
from koperasi.db.base import SessionLocal
from koperasi.models.user import User, UserRoleEnum

logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None

JOB_ID = "overdue_digest"


def send_overdue_digest_job(db=None, today: date = None) -> int:
    """Email active admins the members with overdue periods.

    Returns the number of overdue members found. Opens its own session
    unless one is passed in.
    """
    from koperasi.core.email import send_overdue_digest, smtp_configured
    from koperasi.services.report import overdue_members

    own_session = db is None
    if own_session:
        db = SessionLocal()
    try:
        overdue = overdue_members(db, today=today)
        if not overdue:
            logger.debug("Overdue digest: nothing overdue")
            return 0

        admins = db.query(User).filter(
            User.role == UserRoleEnum.ADMIN,
            User.is_active == True,
        ).all()
        admin_emails = [a.email for a in admins if a.email]
        if not admin_emails:
            logger.warning("Overdue digest: %d member(s) overdue but no active admin to notify", len(overdue))
            return len(overdue)
        if not smtp_configured():
            logger.warning("Overdue digest: SMTP not configured, %d member(s) overdue", len(overdue))
            return len(overdue)

        send_overdue_digest(to_emails=admin_emails, overdue=overdue)
        logger.info("Overdue digest sent for %d member(s) to %d admin(s)", len(overdue), len(admin_emails))
        return len(overdue)
    except Exception:
        db.rollback()
        logger.exception("Error in overdue digest job")
        return 0
    finally:
        if own_session:
            db.close()


# ---------------------------------------------------------------------------
# Scheduler lifecycle helpers
# ---------------------------------------------------------------------------

def start_scheduler() -> None:
    """Create and start the background scheduler."""
    global scheduler
    interval = settings.SCHEDULER_INTERVAL_MINUTES

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        send_overdue_digest_job,
        trigger=IntervalTrigger(minutes=interval),
        id=JOB_ID,
        name="Overdue installment digest",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Background scheduler started with interval=%d minutes", interval)


def stop_scheduler() -> None:
    """Shut down the background scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
        scheduler = None


def get_scheduler_status() -> dict:
    """Return current scheduler state for the health endpoint."""
    if not scheduler or not scheduler.running:
        return {"running": False, "intervalMinutes": None, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "nextRunTime": job.next_run_time.isoformat() if job.next_run_time else None,
        })

    return {
        "running": True,
        "intervalMinutes": settings.SCHEDULER_INTERVAL_MINUTES,
        "jobs": jobs,
    }
