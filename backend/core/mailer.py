# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Outbound mail over SMTP (STARTTLS).

With no ``smtp_host`` configured the message is written to the log instead,
which is what development setups want.  Delivery errors propagate as
``smtplib.SMTPException`` / ``OSError``; callers decide whether a failure
matters (password reset) or not (welcome mail).
"""

import smtplib
from email.message import EmailMessage

from fastapi import Request

from core.config import Settings
from core.logger import logger
from models.user import User


class Mailer:
    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.email_from

    def send(self, to: str, subject: str, text: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)

        if not self.host:
            logger.info("SMTP not configured; mail to %s [%s]:\n%s", to, subject, text)
            return

        with smtplib.SMTP(self.host, self.port, timeout=10) as server:
            server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info("Mail sent to %s [%s]", to, subject)

    def send_welcome(self, user: User, url: str) -> None:
        self.send(
            user.email,
            "Welcome to CityLog",
            f"Hi {user.first_name},\n\n"
            f"Your account is ready. Start logging the cities you visit: {url}\n",
        )

    def send_password_reset(self, user: User, url: str) -> None:
        self.send(
            user.email,
            "Your password reset link",
            f"Hi {user.first_name},\n\n"
            f"Forgot your password? Submit a PATCH request with your new password "
            f"and confirmPassword to:\n{url}\n\n"
            f"If you didn't forget your password, please ignore this email.\n",
        )


def get_mailer(request: Request) -> Mailer:
    """FastAPI dependency: the app-wide Mailer."""
    return request.app.state.mailer
