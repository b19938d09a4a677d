import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from common import config

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


class EmailConfigurationError(RuntimeError):
    pass


class EmailDeliveryError(RuntimeError):
    pass


REQUIRED_SETTINGS = (
    "EMAIL_HOST",
    "EMAIL_PORT",
    "EMAIL_USERNAME",
    "EMAIL_PASSWORD",
    "EMAIL_FROM_EMAIL",
    "EMAIL_FROM_NAME",
)


def render_template(template_name: str, **context) -> str:
    context.setdefault("app_name", config.APP_NAME)
    return templates.get_template(f"{template_name}.html").render(**context)


def build_message(to_email: str, subject: str, html: str, text: Optional[str] = None) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = f'"{config.EMAIL_FROM_NAME}" <{config.EMAIL_FROM_EMAIL}>'
    msg["To"] = to_email
    msg["Subject"] = subject
    msg["X-Auto-Response-Suppress"] = "OOF, AutoReply"
    if text:
        msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(html, "html"))
    return msg


def send_email(to_email: str, subject: str, html: str, text: Optional[str] = None):
    """Send email using the SMTP configuration."""
    missing = [name for name in REQUIRED_SETTINGS if not getattr(config, name)]
    if missing:
        raise EmailConfigurationError(
            f"Missing required email configuration: {', '.join(missing)}"
        )

    msg = build_message(to_email, subject, html, text)
    try:
        if config.EMAIL_SECURE:
            server = smtplib.SMTP_SSL(config.EMAIL_HOST, config.EMAIL_PORT, timeout=10)
        else:
            server = smtplib.SMTP(config.EMAIL_HOST, config.EMAIL_PORT, timeout=10)
        with server:
            if not config.EMAIL_SECURE:
                server.starttls()
            server.login(config.EMAIL_USERNAME, config.EMAIL_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email '%s' to %s: %s", subject, to_email, e)
        raise EmailDeliveryError(f"Failed to send email: {e}") from e

    logger.info("Email '%s' sent to %s", subject, to_email)


def send_password_reset_email(to_email: str, token: str, account_path: str = "organizer"):
    reset_url = f"{config.FRONTEND_URL}/{account_path}/reset-password?token={token}"
    send_email(
        to_email,
        "Password Reset Request",
        render_template("reset_password", reset_url=reset_url),
        text=(
            "You requested a password reset. Please click on the following link "
            f"to reset your password: {reset_url}"
        ),
    )


def send_welcome_email(to_email: str, name: str, account_path: str = "organizer"):
    login_url = f"{config.FRONTEND_URL}/{account_path}/login"
    send_email(
        to_email,
        f"Welcome to {config.APP_NAME}",
        render_template("welcome", name=name, login_url=login_url),
        text=f"Welcome to {config.APP_NAME}, {name}! You can now log in to your account.",
    )


def send_ticket_confirmation_email(to_email: str, customer_name: str, event: dict, tickets: list):
    send_email(
        to_email,
        f"Your tickets for {event['name']}",
        render_template(
            "ticket_confirmation",
            customer_name=customer_name,
            event=event,
            tickets=tickets,
        ),
        text="\n".join(
            [f"Hi {customer_name}, here are your tickets for {event['name']}:"]
            + [ticket["ticket_number"] for ticket in tickets]
        ),
    )


def deliver_quietly(send, *args, **kwargs):
    """Run a send_* helper from a background task, where nobody is left to
    receive the exception."""
    try:
        send(*args, **kwargs)
    except (EmailConfigurationError, EmailDeliveryError) as e:
        logger.warning("Background email not delivered: %s", e)
