"""
Best-effort outbound notifications.

Both functions are scheduled as FastAPI background tasks after the response
is sent. Failures are logged and swallowed: a webhook or mail outage never
fails a registration or a publish.
"""

import smtplib
import ssl
from datetime import datetime, timezone
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import httpx

from felicity.core.config import get_settings
from felicity.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

DISCORD_EMBED_COLOR = 3447003


def build_discord_message(event: dict, organizer_name: str) -> dict:
    def _day(value) -> str:
        return value.strftime("%d/%m/%Y") if isinstance(value, datetime) else str(value)

    return {
        "content": f"**New Event Published by {organizer_name}!**",
        "embeds": [{
            "title": event["name"],
            "description": event.get("description") or "",
            "color": DISCORD_EMBED_COLOR,
            "fields": [
                {"name": "Type", "value": event["event_type"], "inline": True},
                {"name": "Start Date", "value": _day(event["start_date"]), "inline": True},
                {
                    "name": "Registration Deadline",
                    "value": _day(event["registration_deadline"]),
                    "inline": True,
                },
            ],
            "footer": {"text": "Felicity Event Management System"},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }],
    }


async def send_discord_notification(webhook_url: str, event: dict, organizer_name: str) -> None:
    if not webhook_url:
        return

    try:
        async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT_SECONDS) as client:
            response = await client.post(webhook_url, json=build_discord_message(event, organizer_name))
            response.raise_for_status()
        logger.info("discord_notification_sent", event_name=event["name"])
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("discord_notification_failed", event_name=event["name"], error=str(e))


def build_ticket_email(
    to_email: str,
    event_name: str,
    event_type: str,
    organizer_name: Optional[str],
    ticket_id: str,
    qr_png: bytes,
) -> MIMEMultipart:
    message = MIMEMultipart("related")
    message["Subject"] = f"Registration Confirmation: {event_name}"
    message["From"] = settings.MAIL_FROM
    message["To"] = to_email

    html = (
        "<h1>Registration Successful!</h1>"
        "<p>Hi there,</p>"
        f"<p>You have successfully registered for <strong>{event_name}</strong>.</p>"
        f"<p><strong>Ticket ID:</strong> {ticket_id}</p>"
        f"<p><strong>Event Type:</strong> {event_type}</p>"
        f"<p><strong>Organizer:</strong> {organizer_name or 'Unknown'}</p>"
        "<p>Your QR code is attached. You can also find it under My Events.</p>"
    )
    message.attach(MIMEText(html, "html"))

    image = MIMEImage(qr_png, _subtype="png")
    image.add_header("Content-Disposition", "attachment", filename="ticket-qr.png")
    message.attach(image)
    return message


def send_ticket_email(
    to_email: str,
    event_name: str,
    event_type: str,
    organizer_name: Optional[str],
    ticket_id: str,
    qr_png: bytes,
) -> bool:
    """Send the confirmation mail. Runs in the background threadpool."""
    if not settings.SMTP_USERNAME or not settings.SMTP_PASSWORD:
        logger.info("ticket_email_skipped", to=to_email, ticket_id=ticket_id, reason="smtp_not_configured")
        return False

    message = build_ticket_email(to_email, event_name, event_type, organizer_name, ticket_id, qr_png)
    try:
        context = ssl.create_default_context()
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
            server.starttls(context=context)
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(settings.SMTP_USERNAME, [to_email], message.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error("ticket_email_failed", to=to_email, ticket_id=ticket_id, error=str(e))
        return False

    logger.info("ticket_email_sent", to=to_email, ticket_id=ticket_id)
    return True
