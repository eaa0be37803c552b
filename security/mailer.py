"""
Outbound mail collaborator for the password-reset flow.

LogMailer is the development default and records only recipient and subject.
SMTPMailer delivers through smtplib.
"""
from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


class Mailer:
    def send(self, to: str, subject: str, body_html: str) -> None:
        raise NotImplementedError


class LogMailer(Mailer):
    def send(self, to, subject, body_html):
        logger.info("Mail to %s: %s", to, subject)


class SMTPMailer(Mailer):
    def __init__(self, host, port=587, username=None, password=None, use_tls=True, sender="no-reply@library.local", timeout=10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def send(self, to, subject, body_html):
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.attach(MIMEText(body_html, "html"))
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(str(exc)) from exc


def mailer_from_config(config) -> Mailer:
    if config.get("MAIL_BACKEND", "log") == "smtp":
        return SMTPMailer(
            host=config["SMTP_HOST"],
            port=config.get("SMTP_PORT", 587),
            username=config.get("SMTP_USERNAME"),
            password=config.get("SMTP_PASSWORD"),
            use_tls=config.get("SMTP_USE_TLS", True),
            sender=config.get("MAIL_FROM", "no-reply@library.local"),
        )
    return LogMailer()


def reset_code_email(name: str, code: str, minutes: int):
    name = escape(name or "")
    subject = "Password Reset OTP - Library Catalogue"
    body = (
        f"<h2>Password Reset OTP</h2>"
        f"<p>Hello <strong>{name}</strong>,</p>"
        f"<p>Use this code to reset your password: <strong>{code}</strong></p>"
        f"<p>The code expires in {minutes} minutes. If you did not ask for it, ignore this email.</p>"
    )
    return subject, body


def reset_success_email(name: str):
    name = escape(name or "")
    subject = "Password Reset Successful - Library Catalogue"
    body = (
        f"<h2>Password changed</h2>"
        f"<p>Hello <strong>{name}</strong>, your password was reset. "
        f"If this was not you, contact the library immediately.</p>"
    )
    return subject, body
