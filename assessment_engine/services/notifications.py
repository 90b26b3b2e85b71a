from __future__ import annotations

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from pydantic import BaseModel

from assessment_engine.models import ResultStatus

logger = logging.getLogger(__name__)


class NotificationSender(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, text_body: str, html_body: str) -> bool:
        """Deliver one message. Returns False when nothing was actually sent."""
        raise NotImplementedError


class SmtpNotificationSender(NotificationSender):
    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        sender: str,
        use_ssl: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_ssl = use_ssl
        self.timeout = timeout

    def _build(self, to: str, subject: str, text_body: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _deliver(self, msg: MIMEMultipart, to: str) -> None:
        smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        with smtp_cls(self.host, self.port, timeout=self.timeout) as server:
            if not self.use_ssl:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.sender, [to], msg.as_string())

    async def send(self, to: str, subject: str, text_body: str, html_body: str) -> bool:
        msg = self._build(to, subject, text_body, html_body)
        # smtplib blocks; keep it off the event loop.
        await asyncio.to_thread(self._deliver, msg, to)
        logger.info(f"Email sent to {to}: {subject}")
        return True


class LoggingNotificationSender(NotificationSender):
    """Used when no SMTP server is configured."""

    async def send(self, to: str, subject: str, text_body: str, html_body: str) -> bool:
        logger.info(f"[No SMTP] Would send to {to}: {subject}")
        return False


class ResultEmail(BaseModel):
    subject: str
    text: str
    html: str


def render_result_email(
    *,
    candidate_name: str,
    test_name: str,
    score: int,
    status: ResultStatus,
    passing_score: int,
    duration: Optional[float] = None,
    signature: str = "",
) -> ResultEmail:
    passed = status == ResultStatus.passed
    outcome = (
        "Congratulations! You have passed the assessment."
        if passed
        else "Unfortunately, you did not meet the passing criteria for this assessment."
    )
    duration_line = f"Duration: {duration:g} minutes\n" if duration is not None else ""

    text = (
        f"Dear {candidate_name or 'Candidate'},\n\n"
        f'Your assessment results for "{test_name}" have been declared.\n\n'
        f"Score: {score}%\n"
        f"Status: {status.value}\n"
        f"Passing Score: {passing_score}%\n"
        f"{duration_line}\n"
        f"{outcome}\n\n"
        f"Best regards,\n{signature}\n"
    )

    colour = "#22c55e" if passed else "#ef4444"
    duration_html = (
        f'<p style="margin: 5px 0;"><strong>Duration:</strong> {duration:g} minutes</p>' if duration is not None else ""
    )
    html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #e0e0e0; border-radius: 5px;">
  <h2 style="color: #333;">Assessment Results Declared</h2>
  <p>Dear {escape(candidate_name or 'Candidate')},</p>
  <p>Your assessment results for <strong>"{escape(test_name)}"</strong> have been declared.</p>
  <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;">
    <h3 style="margin: 0 0 10px 0; color: #333;">Your Results:</h3>
    <p style="margin: 5px 0;"><strong>Score:</strong> {score}%</p>
    <p style="margin: 5px 0;"><strong>Status:</strong> <span style="color: {colour}; font-weight: bold;">{status.value}</span></p>
    <p style="margin: 5px 0;"><strong>Passing Score:</strong> {passing_score}%</p>
    {duration_html}
  </div>
  <p style="color: {colour};">{outcome}</p>
  <p>Best regards,<br>{escape(signature).replace(chr(10), '<br>')}</p>
</div>
"""
    return ResultEmail(subject=f"Your {test_name} Assessment Results", text=text, html=html)
