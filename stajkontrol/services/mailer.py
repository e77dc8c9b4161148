"""
Outgoing e-mail.

Messages are built here and delivered over SMTP, either through the
Celery ``send_email`` task (CELERY_ENABLED) or in a worker thread.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from stajkontrol.config import settings

logger = logging.getLogger(__name__)


def build_message(to: str, subject: str, body: str) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain", "utf-8"))
    return msg


def send_email_sync(to: str, subject: str, body: str) -> None:
    """Deliver one message over SMTP. Raises smtplib/socket errors."""
    msg = build_message(to, subject, body)
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        if settings.SMTP_USE_TLS:
            server.starttls()
        if settings.SMTP_USER:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)
    logger.info(f"Email sent to {to}: {subject}")


async def dispatch_email(to: str, subject: str, body: str) -> bool:
    """
    Send an e-mail without blocking the event loop.

    Returns:
        True when handed off for delivery, False when e-mail is disabled.
    """
    if not settings.EMAIL_ENABLED:
        logger.info(f"Email disabled, not sending '{subject}' to {to}")
        return False

    if settings.CELERY_ENABLED:
        from stajkontrol.workers.email_tasks import send_email

        send_email.delay(to, subject, body)
        return True

    try:
        await asyncio.to_thread(send_email_sync, to, subject, body)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to}: {e}")
        return False
    return True


# Templates

def otp_email(code: str, minutes: int) -> tuple[str, str]:
    subject = "Staj Kontrol - Giriş Kodu"
    body = (
        "Merhaba,\n\n"
        f"Şirket girişi için tek kullanımlık kodunuz: {code}\n"
        f"Kod {minutes} dakika boyunca geçerlidir.\n\n"
        "Bu isteği siz yapmadıysanız bu e-postayı dikkate almayınız.\n"
    )
    return subject, body


def application_submitted_email(student_name: str, company_name: str, start, end) -> tuple[str, str]:
    subject = "Staj Kontrol - Onay Bekleyen Staj Başvurusu"
    body = (
        f"Sayın {company_name} yetkilisi,\n\n"
        f"{student_name} adlı öğrencimiz {start:%d.%m.%Y} - {end:%d.%m.%Y} tarihleri arasında "
        "şirketinizde staj yapmak için başvuruda bulunmuştur.\n\n"
        f"Başvuruyu incelemek için: {settings.FRONTEND_URL}/sirket/giris\n"
    )
    return subject, body


def application_decided_email(company_name: str, approved: bool, reason: Optional[str]) -> tuple[str, str]:
    outcome = "onaylandı" if approved else "reddedildi"
    subject = f"Staj Kontrol - Başvurunuz {outcome}"
    body = f"{company_name} firmasına yaptığınız staj başvurusu {outcome}.\n"
    if reason:
        body += f"\nGerekçe: {reason}\n"
    return subject, body


def logbook_decided_email(company_name: str, approved: bool, reason: Optional[str]) -> tuple[str, str]:
    outcome = "onaylandı" if approved else "reddedildi"
    subject = f"Staj Kontrol - Staj defteriniz {outcome}"
    body = f"{company_name} stajınıza ait defter {outcome}.\n"
    if reason:
        body += f"\nGerekçe: {reason}\n\nDefterinizi düzelterek yeniden yükleyebilirsiniz.\n"
    return subject, body


def logbook_reminder_email(student_name: str, company_name: str) -> tuple[str, str]:
    subject = "Staj Kontrol - Staj defteri hatırlatması"
    body = (
        f"Merhaba {student_name},\n\n"
        f"{company_name} stajınız sona erdi ancak staj defteriniz henüz yüklenmedi.\n"
        f"Defterinizi yüklemek için: {settings.FRONTEND_URL}/defterler\n"
    )
    return subject, body
