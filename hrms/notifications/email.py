"""Outbound email delivery over SMTP, with a console backend for development."""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Iterable, Optional

from hrms.config import Settings, settings

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self, config: Settings):
        self.s = config

    def _as_msg(
        self, subject: str, to: Iterable[str], html: str, text: Optional[str] = None
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = f"{self.s.EMAIL_FROM_NAME} <{self.s.EMAIL_FROM}>"
        msg["To"] = ", ".join(to)
        msg["Subject"] = subject
        msg.set_content(text or " ")
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    def _send_smtp(self, msg: EmailMessage) -> bool:
        context = ssl.create_default_context()
        try:
            with smtplib.SMTP(self.s.EMAIL_HOST, self.s.EMAIL_PORT, timeout=20) as server:
                if self.s.EMAIL_USE_TLS:
                    server.starttls(context=context)
                if self.s.EMAIL_USERNAME:
                    server.login(self.s.EMAIL_USERNAME, self.s.EMAIL_PASSWORD)
                server.send_message(msg)
            logger.info("Email sent via SMTP: %s -> %s", msg["Subject"], msg["To"])
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("SMTP delivery failed (%s): %s", e.__class__.__name__, e)
            return False

    def send(
        self, subject: str, to: Iterable[str], html: str, text: Optional[str] = None
    ) -> bool:
        """Deliver a message; never raises, returns whether it went out."""
        to = list(to)
        if not self.s.EMAIL_ENABLED:
            logger.info("Email suppressed (EMAIL_ENABLED=False): %s -> %s", subject, to)
            return False

        if self.s.EMAIL_BACKEND.lower() == "console":
            logger.info("Email (console) to=%s subject=%s\n%s", ", ".join(to), subject, text or html)
            return True

        if not self.s.EMAIL_HOST or not self.s.EMAIL_PORT:
            logger.error("EMAIL_HOST/EMAIL_PORT not configured")
            return False

        return self._send_smtp(self._as_msg(subject, to, html, text))


email_service = EmailService(settings)


# ── Account emails ──────────────────────────────────────────────────

def send_verification_email(to: str, username: str, token: str) -> bool:
    link = f"{settings.FRONTEND_URL}/verify-email?token={token}"
    return email_service.send(
        "Verify your email address",
        [to],
        html=f"<p>Hello {username},</p><p>Please verify your email: "
             f"<a href=\"{link}\">{link}</a></p>",
        text=f"Hello {username},\n\nPlease verify your email: {link}\n",
    )


def send_password_reset_email(to: str, username: str, token: str) -> bool:
    link = f"{settings.FRONTEND_URL}/reset-password?token={token}"
    return email_service.send(
        "Password reset request",
        [to],
        html=f"<p>Hello {username},</p><p>Reset your password within "
             f"{settings.PASSWORD_RESET_EXPIRY_HOURS} hour(s): "
             f"<a href=\"{link}\">{link}</a></p>",
        text=f"Hello {username},\n\nReset your password: {link}\n",
    )
