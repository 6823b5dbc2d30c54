"""Transactional email over SMTP.

Routers schedule ``send_mail`` as a FastAPI background task, so the response
is sent before the SMTP exchange starts. When ``SMTP_HOST`` is not configured
mails are logged and skipped. Failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage

from procrastinhate.config import Settings, get_settings

logger = logging.getLogger(__name__)

SIGNATURE = "Procrast In Hate Team"


@dataclass(frozen=True)
class Mail:
    subject: str
    content: str


def _render(heading: str, name: str, *paragraphs: str) -> str:
    body = "\n".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)
    return (
        f"<h1>{html.escape(heading)}</h1>\n"
        f"<p>Hi {html.escape(name)},</p>\n"
        f"{body}\n"
        "<p>Best regards,</p>\n"
        f"<p>{SIGNATURE}</p>"
    )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def welcome(name: str) -> Mail:
    return Mail(
        "Welcome to the Procrast In Hate",
        _render(
            "Welcome to the Procrast In Hate",
            name,
            "Thank you for signing up to the Procrast In Hate. We are excited to have you on board.",
            "Get started by creating a project or a task and collaborating with your team.",
        ),
    )


def signed_in(name: str) -> Mail:
    return Mail(
        "You have signed in",
        _render(
            "You have signed in",
            name,
            "Welcome back to the Procrast In Hate. You have successfully signed in.",
        ),
    )


def profile_updated(name: str) -> Mail:
    return Mail(
        "Profile updated",
        _render("Your profile has been updated", name, "Your profile has been updated successfully."),
    )


def profile_picture_updated(name: str) -> Mail:
    return Mail(
        "Profile picture updated",
        _render(
            "Your profile picture has been updated",
            name,
            "Your profile picture has been updated successfully.",
        ),
    )


def invitation_answered(name: str, title: str, *, accepted: bool) -> Mail:
    verb = "accepted" if accepted else "declined"
    return Mail(
        f"Invitation {verb}",
        _render(
            f"You have {verb} the invitation",
            name,
            f"You have {verb} the invitation to collaborate on {title}.",
        ),
    )


def collaborator_answered(name: str, actor: str, title: str, *, accepted: bool) -> Mail:
    verb = "accepted" if accepted else "declined"
    return Mail(
        f"Collaborator {verb} the invitation",
        _render(
            f"Collaborator {verb} the invitation",
            name,
            f"{actor} has {verb} the invitation to collaborate on {title}.",
        ),
    )


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


def _send_via_smtp(settings: Settings, *, to: str, mail: Mail) -> None:
    message = EmailMessage()
    message["From"] = settings.mail_from or settings.smtp_username or ""
    message["To"] = to
    message["Subject"] = mail.subject
    message.set_content(mail.content, subtype="html")

    smtp_class = smtplib.SMTP_SSL if settings.smtp_use_ssl else smtplib.SMTP
    with smtp_class(settings.smtp_host, settings.smtp_port, timeout=20) as server:
        if settings.smtp_username and settings.smtp_password:
            server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(message)


async def send_mail(*, to: str, mail: Mail) -> bool:
    """Send *mail* to *to*. Returns whether the mail was handed to the SMTP server."""
    settings = get_settings()
    if not settings.smtp_host:
        logger.debug("Mail delivery disabled, skipped %r to %s", mail.subject, to)
        return False
    try:
        await asyncio.to_thread(_send_via_smtp, settings, to=to, mail=mail)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("SMTP send of %r to %s failed: %s", mail.subject, to, exc)
        return False
    logger.info("Sent %r to %s", mail.subject, to)
    return True
