import logging
import smtplib
from email.message import EmailMessage

import config

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, message: str) -> None:
    """Send a plain-text email through the configured SMTP server."""
    msg = EmailMessage()
    msg["From"] = f"{config.FROM_NAME} <{config.FROM_EMAIL}>"
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(message)

    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=30) as smtp:
        smtp.ehlo()
        if smtp.has_extn("starttls"):
            smtp.starttls()
            smtp.ehlo()
        if config.SMTP_EMAIL and config.SMTP_PASSWORD:
            smtp.login(config.SMTP_EMAIL, config.SMTP_PASSWORD)
        smtp.send_message(msg)
    logger.info("Email %r sent to %s", subject, to)
