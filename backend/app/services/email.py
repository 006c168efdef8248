"""Email notification service — console mock (MAIL_ENABLED=False).

When MAIL_ENABLED is False, email content is printed to logs instead of
being sent via SMTP. Set MAIL_ENABLED=True to wire a real transport.
"""
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def send_notification_email(
    to_email: str | None,
    title: str,
    message: str | None,
    link: str | None = None,
) -> None:
    """Send (or mock-log) the email copy of an in-app notification."""
    recipient = to_email or "unknown-recipient"

    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== WORKFLOW NOTIFICATION EMAIL ===\n"
            "From: %s <%s>\n"
            "To: %s\n"
            "Subject: %s\n"
            "%s\n"
            "Link: %s\n"
            "===================================",
            settings.MAIL_FROM_NAME,
            settings.MAIL_FROM,
            recipient,
            title,
            message or "",
            link or "-",
        )
        return

    # Real SMTP path (not implemented)
    logger.warning(
        "MAIL_ENABLED=True but SMTP transport is not configured. "
        "Falling back to console log for %s.",
        recipient,
    )
    logger.info("NOTIFICATION EMAIL (unsent): to=%s subject=%s", recipient, title)
