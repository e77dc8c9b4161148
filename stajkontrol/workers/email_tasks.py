"""E-mail delivery tasks."""

import logging
import smtplib

from stajkontrol.services.mailer import send_email_sync
from stajkontrol.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="stajkontrol.workers.email_tasks.send_email",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_email(self, to: str, subject: str, body: str) -> dict:
    """Send one e-mail, retrying on SMTP or network errors."""
    try:
        send_email_sync(to, subject, body)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"Email to {to} failed (attempt {self.request.retries + 1}): {e}")
        raise self.retry(exc=e)
    return {"status": "sent", "to": to}
