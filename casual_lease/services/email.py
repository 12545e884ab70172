"""Email sending via SMTP.

``send_email`` never raises: a missing SMTP configuration or a relay error
is logged and reported as ``False`` so callers can treat delivery as a soft
failure.
"""

import logging
from dataclasses import dataclass
from email.message import EmailMessage

import aiosmtplib

from casual_lease.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


def build_message(to: str, subject: str, html: str, attachments: list[EmailAttachment] | None = None) -> EmailMessage:
    message = EmailMessage()
    message["From"] = settings.smtp_from
    message["To"] = to
    message["Subject"] = subject
    message.set_content("This message requires an HTML-capable email client.")
    message.add_alternative(html, subtype="html")

    for attachment in attachments or []:
        maintype, _, subtype = attachment.mime_type.partition("/")
        message.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return message


async def send_email(
    to: str,
    subject: str,
    html: str,
    attachments: list[EmailAttachment] | None = None,
) -> bool:
    """Send an HTML email. Returns True if the relay accepted it."""
    if not settings.smtp_configured:
        logger.warning("SMTP not configured, skipping email to %s", to)
        return False

    message = build_message(to, subject, html, attachments)
    try:
        await aiosmtplib.send(
            message,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )
    except (aiosmtplib.SMTPException, OSError):
        logger.exception("Failed to send email to %s", to)
        return False

    logger.info("Email sent to %s: %s", to, subject)
    return True
