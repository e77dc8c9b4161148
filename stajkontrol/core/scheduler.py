"""
Application scheduler (APScheduler).

Runs periodic maintenance inside the API process:
- hourly purge of expired company OTP sessions
- daily reminder to students whose internship ended without a logbook
"""

import logging
from datetime import date
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from stajkontrol.config import settings
from stajkontrol.db.session import Database

logger = logging.getLogger(__name__)


def scheduler_listener(event):
    """Log executed and failed jobs."""
    if event.exception:
        logger.error(f"Job '{event.job_id}' failed with exception: {event.exception}")
    else:
        logger.info(f"Job '{event.job_id}' executed successfully")


def create_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(
        timezone=settings.SCHEDULER_TIMEZONE,
        job_defaults={
            "coalesce": True,  # Combine missed executions into one
            "max_instances": 1,
            "misfire_grace_time": 3600,
        },
    )
    scheduler.add_listener(scheduler_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    return scheduler


async def purge_expired_otps(db: Database) -> int:
    """Scheduled task: delete OTP rows that can no longer be used."""
    from stajkontrol.services.otp_service import OtpService

    async with db.session() as session:
        removed = await OtpService(session).purge_expired()
    logger.info(f"Purged {removed} expired OTP sessions")
    return removed


async def send_logbook_reminders(db: Database, today: Optional[date] = None) -> int:
    """
    Scheduled task: remind students whose internship has ended while the
    logbook is still Waiting without a file.
    """
    from stajkontrol.models import Application, ApplicationStatus, Logbook, LogbookStatus
    from stajkontrol.services.mailer import dispatch_email, logbook_reminder_email

    today = today or date.today()
    async with db.session() as session:
        result = await session.execute(
            select(Application)
            .join(Logbook, Logbook.application_id == Application.id)
            .where(
                Application.status == ApplicationStatus.APPROVED,
                Application.end_date <= today,
                Logbook.status == LogbookStatus.WAITING,
            )
        )
        applications = [a for a in result.scalars().all() if a.logbook and a.logbook.file is None]

        sent = 0
        for application in applications:
            subject, body = logbook_reminder_email(application.student.full_name, application.company_name)
            if await dispatch_email(application.student.email, subject, body):
                sent += 1

    logger.info(f"Logbook reminders: {len(applications)} due, {sent} sent")
    return sent


def setup_jobs(scheduler: AsyncIOScheduler, db: Database) -> None:
    """Register periodic jobs."""
    scheduler.add_job(
        purge_expired_otps,
        IntervalTrigger(hours=1),
        args=[db],
        id="purge_expired_otps",
        name="Purge expired OTP sessions (hourly)",
        replace_existing=True,
    )
    scheduler.add_job(
        send_logbook_reminders,
        CronTrigger(hour=settings.LOGBOOK_REMINDER_HOUR, minute=0),
        args=[db],
        id="logbook_reminders",
        name="Logbook upload reminders (daily)",
        replace_existing=True,
    )
    logger.info(f"Scheduled jobs configured: {[job.id for job in scheduler.get_jobs()]}")


def start_scheduler(scheduler: AsyncIOScheduler, db: Database) -> None:
    """Called during application startup (in lifespan)."""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return
    setup_jobs(scheduler, db)
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Called during application shutdown (in lifespan)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
