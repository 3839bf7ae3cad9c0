"""
SMTP email notifier
"""
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Dict, Any

from services.alert_engine.exceptions import SendFailed
from .base import Notifier, NotificationResult


class SmtpNotifier(Notifier):
    """SMTP notifier for alert emails"""

    channel = 'smtp'

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.smtp_host = config.get('smtp_host', 'localhost')
        self.smtp_port = config.get('smtp_port', 587)
        self.smtp_user = config.get('smtp_user')
        self.smtp_password = config.get('smtp_password')
        self.use_tls = config.get('use_tls', True)
        self.timeout = config.get('timeout', 30)

    def validate_config(self) -> bool:
        """Validate SMTP configuration"""
        if not self.enabled:
            return False

        if not self.smtp_host:
            self.logger.error("No SMTP host configured")
            return False

        return True

    def send(self, to: str, subject: str, html: str) -> NotificationResult:
        """
        Send an alert email over SMTP

        Raises:
            SendFailed: if the notifier is misconfigured or the SMTP exchange fails
        """
        if self.dry_run:
            return self._dry_run_result(to, subject)

        if not self.validate_config():
            raise SendFailed("SMTP not configured correctly", provider=self.channel)

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.from_email
        msg['To'] = to
        msg.attach(MIMEText(html, 'html'))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()

                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)

                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise SendFailed(str(e), provider=self.channel)

        self.logger.info(f"Sent alert email to {to}")

        return NotificationResult(
            channel=self.channel,
            recipient=to,
            response={'smtp_host': self.smtp_host}
        )
