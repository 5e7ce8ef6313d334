"""
Delivery of the end-of-run sync report.

The summary is always logged; when REPORT_EMAIL is configured it is also
mailed. Delivery is observational and never fails the run.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from core.config import settings
from schemas.sync import SyncReport

logger = logging.getLogger(__name__)


class ReportDelivery:

    def __init__(
        self,
        recipient: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: int = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None
    ):
        self.recipient = recipient if recipient is not None else settings.REPORT_EMAIL
        self.smtp_host = smtp_host or settings.SMTP_HOST
        self.smtp_port = smtp_port or settings.SMTP_PORT
        self.smtp_user = smtp_user or settings.SMTP_USER
        self.smtp_password = smtp_password or settings.SMTP_PASSWORD

    def build_message(self, report: SyncReport) -> EmailMessage:
        message = EmailMessage()
        stamp = (report.finished_at.isoformat() if report.finished_at else "")
        message["Subject"] = f"API Mirror Sync Report - {stamp}"
        message["From"] = f"API Mirror <{self.smtp_user or self.recipient}>"
        message["To"] = self.recipient
        message.set_content(report.render())
        return message

    def _send(self, message: EmailMessage):
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as smtp:
            smtp.starttls()
            if self.smtp_user:
                smtp.login(self.smtp_user, self.smtp_password or "")
            smtp.send_message(message)

    async def deliver(self, report: SyncReport) -> bool:
        """Log the summary and mail it if configured; returns True when mailed"""
        logger.info("\n" + report.render())

        if not self.recipient:
            return False
        if not self.smtp_host:
            logger.warning("REPORT_EMAIL is set but SMTP_HOST is not; report not mailed")
            return False

        try:
            await asyncio.to_thread(self._send, self.build_message(report))
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to email sync report to {self.recipient}: {e}")
            return False

        logger.info(f"✉ Report emailed to {self.recipient}")
        return True
