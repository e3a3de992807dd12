"""Outgoing account email over SMTP."""
import smtplib
from email.message import EmailMessage
from typing import Optional

from tutorhub.infrastructure.config import settings
from hub_utils.logger_utils import logger

SMTP_TIMEOUT_SECONDS = 10


def _mail_configured() -> bool:
    return bool(settings.MAIL_SERVER and settings.MAIL_USERNAME and settings.MAIL_PASSWORD)


def _build_message(to_email: str, subject: str, html_body: str, text_body: Optional[str]) -> EmailMessage:
    message = EmailMessage()
    message['Subject'] = subject
    message['From'] = settings.MAIL_DEFAULT_SENDER or settings.MAIL_USERNAME
    message['To'] = to_email
    # Plain text first so clients without HTML still get a readable body
    message.set_content(text_body or "Open this message in an HTML capable mail client.")
    message.add_alternative(html_body, subtype='html')
    return message


def send_email(to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
    """
    Deliver one message. Returns False instead of raising when mail is not
    configured or the SMTP exchange fails, so callers never fail on email.
    """
    if not _mail_configured():
        logger.warning(
            "Email not configured, message dropped",
            extra={"subject": subject, "missing": "MAIL_SERVER/MAIL_USERNAME/MAIL_PASSWORD"},
        )
        return False

    message = _build_message(to_email, subject, html_body, text_body)
    try:
        with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
            if settings.MAIL_USE_TLS:
                smtp.starttls()
            smtp.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(
            f"SMTP delivery failed: {e}",
            extra={"subject": subject, "server": f"{settings.MAIL_SERVER}:{settings.MAIL_PORT}"},
            exc_info=True,
        )
        return False

    logger.info("Email sent", extra={"subject": subject})
    return True


def send_password_reset_email(to_email: str, reset_link: str) -> bool:
    ttl = settings.PASSWORD_RESET_TTL_MINUTES
    app_name = settings.APP_NAME
    html_body = (
        f"<p>We received a request to reset the password of your {app_name} account.</p>"
        f'<p><a href="{reset_link}">Choose a new password</a></p>'
        f"<p>The link works once and expires in {ttl} minutes. "
        f"If you did not ask for it, you can ignore this email.</p>"
    )
    text_body = (
        f"We received a request to reset the password of your {app_name} account.\n"
        f"Choose a new password: {reset_link}\n"
        f"The link works once and expires in {ttl} minutes."
    )
    return send_email(to_email, f"{app_name} password reset", html_body, text_body)
