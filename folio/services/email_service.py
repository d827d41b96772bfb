"""
Contact notification email.

When a visitor sends a message, the site owner (MAIL_CONTACT_TO) gets a
plain-text + HTML mail with Reply-To set to the visitor, so answering
the mail answers the visitor. Delivery runs on a daemon thread; the
contact request never waits on the mail server. Nothing is sent when
MAIL_CONTACT_TO or the SMTP credentials are missing.
"""

import logging
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from flask import current_app, render_template

logger = logging.getLogger(__name__)

TEMPLATE = "emails/contact_notification.html"


def _plain_body(message, ticket_id):
    lines = [
        f"{message['name']} <{message['email']}> wrote:",
        "",
        message["message"],
        "",
    ]
    if ticket_id:
        lines.append(f"A ticket was added to the board ({ticket_id}).")
    else:
        lines.append("No ticket could be created for this message; add one from the board.")
    return "\n".join(lines)


def build_notification(message, ticket_id=None):
    """Compose the owner's mail for a stored message, or None if no recipient."""
    config = current_app.config
    to = config.get("MAIL_CONTACT_TO")
    if not to:
        return None

    sender = config.get("MAIL_FROM_ADDRESS") or config.get("MAIL_USERNAME") or ""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = f"New message from {message['name']}"
    msg["From"] = formataddr((config.get("MAIL_FROM_NAME", "Folio"), sender))
    msg["To"] = to
    msg["Reply-To"] = formataddr((message["name"], message["email"]))
    # Mail clients prefer the last alternative they can render.
    msg.attach(MIMEText(_plain_body(message, ticket_id), "plain"))
    msg.attach(MIMEText(
        render_template(TEMPLATE, message=message, ticket_id=ticket_id), "html"
    ))
    return msg


def notify_new_message(message, ticket_id=None):
    """Mail the owner about a contact message. Returns the delivery thread."""
    msg = build_notification(message, ticket_id)
    if msg is None:
        logger.info("MAIL_CONTACT_TO not set; skipping contact notification.")
        return None

    app = current_app._get_current_object()
    thread = threading.Thread(
        target=_deliver, args=(app, msg), name=f"notify-{message.get('id')}", daemon=True
    )
    thread.start()
    return thread


def _deliver(app, msg):
    """SMTP send with STARTTLS. Runs on the notification thread."""
    config = app.config
    username = config.get("MAIL_USERNAME")
    password = config.get("MAIL_PASSWORD")
    if not username or not password:
        logger.warning("Notification not sent: MAIL_USERNAME or MAIL_PASSWORD not configured.")
        return False

    host = config.get("MAIL_SMTP_HOST", "smtp.gmail.com")
    port = config.get("MAIL_SMTP_PORT", 587)
    try:
        with smtplib.SMTP(host, port, timeout=30) as server:
            server.starttls()
            server.login(username, password)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send notification to {msg['To']}: {e}")
        return False
    logger.info(f"Notification sent to {msg['To']}: {msg['Subject']}")
    return True
