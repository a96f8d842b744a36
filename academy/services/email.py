from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from html import escape
from typing import Iterable

from academy.core.settings import settings


logger = logging.getLogger(__name__)

PLATFORM_NAME = "Academy"


def _brand_color() -> str:
    color = settings.brand_color.strip()
    if not color.startswith("#"):
        color = f"#{color}"
    return color


def _base_url() -> str:
    return settings.public_base_url


def _render_email_html(
    title: str,
    body: str,
    *,
    action_url: str | None = None,
    action_label: str | None = None,
) -> str:
    brand_color = _brand_color()
    button_html = ""
    if action_url and action_label:
        button_html = f"""
            <tr>
                <td align="center" style="padding: 24px;">
                    <a href="{escape(action_url)}" style="display:inline-block;padding:12px 28px;border-radius:6px;background-color:{brand_color};color:#ffffff;font-weight:600;text-decoration:none;">{escape(action_label)}</a>
                </td>
            </tr>
        """

    return f"""
    <html>
        <body style="margin:0;padding:0;background-color:#f3f4f6;font-family:Helvetica,Arial,sans-serif;">
            <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="padding:24px 12px;">
                <tr>
                    <td align="center">
                        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:600px;background-color:#ffffff;border-radius:12px;">
                            <tr>
                                <td style="background-color:{brand_color};color:#ffffff;padding:20px 32px;font-size:22px;font-weight:700;">{PLATFORM_NAME}</td>
                            </tr>
                            <tr>
                                <td style="padding:32px;color:#1f2937;font-size:16px;line-height:1.6;">
                                    <h1 style="margin:0 0 16px 0;font-size:22px;color:{brand_color};">{escape(title)}</h1>
                                    <p style="margin:0;">{escape(body)}</p>
                                </td>
                            </tr>
                            {button_html}
                        </table>
                    </td>
                </tr>
            </table>
        </body>
    </html>
    """


def _render_email_text(
    title: str,
    body: str,
    *,
    action_url: str | None = None,
    action_label: str | None = None,
) -> str:
    text = f"{title}\n\n{body}"
    if action_url and action_label:
        text += f"\n\n{action_label}: {action_url}"
    text += f"\n\n{settings.smtp_from_name}"
    return text


def send_email(
    *, subject: str, to: Iterable[str], html_body: str, text_body: str | None = None
) -> bool:
    recipients = [addr for addr in to if addr]
    if not recipients:
        logger.warning("No recipients given for email '%s'", subject)
        return False

    if not settings.smtp_host or not settings.smtp_from_email:
        logger.info(
            "SMTP not configured; skipped email '%s' to %s",
            subject,
            ", ".join(recipients),
        )
        return False

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = formataddr((settings.smtp_from_name, settings.smtp_from_email))
    message["To"] = ", ".join(recipients)
    message.set_content(text_body or "Your email client does not support HTML.")
    message.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(
            settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout
        ) as server:
            if settings.smtp_starttls:
                server.starttls()
            if settings.smtp_user:
                server.login(settings.smtp_user, settings.smtp_password or "")
            server.send_message(message)
            logger.info("Sent email '%s' to %s", subject, ", ".join(recipients))
            return True
    except (smtplib.SMTPException, OSError) as exc:  # pragma: no cover - external SMTP
        logger.exception("Failed to send email '%s': %s", subject, exc)
        return False


def _send_notice(
    *, email: str, subject: str, title: str, body: str, action_label: str, path: str = ""
) -> bool:
    action_url = f"{_base_url()}{path}"
    return send_email(
        subject=subject,
        to=[email],
        html_body=_render_email_html(
            title, body, action_url=action_url, action_label=action_label
        ),
        text_body=_render_email_text(
            title, body, action_url=action_url, action_label=action_label
        ),
    )


def _greeting(name: str | None) -> str:
    return f"Hello {name}, " if name else "Hello, "


def send_welcome_email(*, email: str, name: str | None = None) -> bool:
    body = (
        f"{_greeting(name)}your {PLATFORM_NAME} account is ready. "
        "Sign in to follow your program, open lessons and submit assignments."
    )
    return _send_notice(
        email=email,
        subject=f"Welcome to {PLATFORM_NAME}",
        title="Your account is ready",
        body=body,
        action_label="Sign in",
    )


def send_submission_reviewed_email(
    *, email: str, name: str | None, assignment_title: str, status: str
) -> bool:
    readable = status.replace("_", " ").lower()
    body = (
        f"{_greeting(name)}your submission for '{assignment_title}' "
        f"was reviewed. Current status: {readable}."
    )
    return _send_notice(
        email=email,
        subject="Your submission was reviewed",
        title="Submission reviewed",
        body=body,
        action_label="View feedback",
    )


def send_certificate_issued_email(
    *, email: str, name: str | None, program_name: str, certificate_id: str
) -> bool:
    body = (
        f"{_greeting(name)}congratulations on completing '{program_name}'. "
        f"Your certificate {certificate_id} is available for download."
    )
    return _send_notice(
        email=email,
        subject="Your certificate is ready",
        title="Certificate issued",
        body=body,
        action_label="Verify certificate",
        path=f"/{settings.verify_path.strip('/')}?cert={certificate_id}",
    )


def send_progress_reminder_email(
    *, email: str, name: str | None, program_name: str | None
) -> bool:
    program = f" in '{program_name}'" if program_name else ""
    body = (
        f"{_greeting(name)}this is a friendly reminder from your mentor to keep "
        f"going with your lessons and assignments{program}."
    )
    return _send_notice(
        email=email,
        subject="Keep up with your program",
        title="A reminder from your mentor",
        body=body,
        action_label="Continue learning",
    )


__all__ = [
    "send_certificate_issued_email",
    "send_email",
    "send_progress_reminder_email",
    "send_submission_reviewed_email",
    "send_welcome_email",
]
