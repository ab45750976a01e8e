"""
Transactional email over SMTP.
Sends run inside FastAPI BackgroundTasks; failures are logged, never raised.
"""

import logging
import smtplib
from email.mime.text import MIMEText

from eduknit import config

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return bool(config.SMTP_HOST and config.SMTP_USER and config.SMTP_PASSWORD)


def send_email(to_address: str, subject: str, body: str) -> bool:
    if not smtp_configured():
        logger.info("SMTP not configured; skipping email '%s' to %s", subject, to_address)
        return False

    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = config.MAIL_FROM
    msg["To"] = to_address

    try:
        server = smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=15)
        try:
            if config.SMTP_USE_TLS:
                server.starttls()
            server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.sendmail(config.MAIL_FROM, [to_address], msg.as_string())
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("Failed to send email '%s' to %s: %s", subject, to_address, e)
        return False

    logger.info("Email '%s' sent to %s", subject, to_address)
    return True


# ==================== TEMPLATES ====================

def send_verification_email(email: str, first_name: str, token: str) -> bool:
    link = f"{config.FRONTEND_URL}/verify-email?token={token}"
    body = (
        f"Hi {first_name},\n\n"
        f"Welcome to EduKnit Learn! Please verify your email address:\n{link}\n\n"
        f"This link expires in {config.EMAIL_VERIFICATION_MINUTES} minutes."
    )
    return send_email(email, "Verify your EduKnit Learn account", body)


def send_password_reset_email(email: str, first_name: str, token: str) -> bool:
    link = f"{config.FRONTEND_URL}/reset-password?token={token}"
    body = (
        f"Hi {first_name},\n\n"
        f"We received a request to reset your password:\n{link}\n\n"
        f"This link expires in {config.PASSWORD_RESET_MINUTES} minutes. "
        "If you did not request it, you can ignore this email."
    )
    return send_email(email, "Reset your EduKnit Learn password", body)


def send_deletion_scheduled_email(email: str, first_name: str, scheduled_for) -> bool:
    body = (
        f"Hi {first_name},\n\n"
        f"Your account is scheduled for deletion on {scheduled_for:%Y-%m-%d}. "
        "You can cancel the request from your privacy settings before that date."
    )
    return send_email(email, "Your EduKnit Learn account deletion request", body)
