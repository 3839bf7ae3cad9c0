"""
Resend Notifier
===============
Send alert emails through the Resend HTTP API.

Docs: https://resend.com/docs/api-reference/emails/send-email
"""
from typing import Dict, Any

import requests

from services.alert_engine.exceptions import SendFailed
from .base import Notifier, NotificationResult


class ResendNotifier(Notifier):
    """Resend API notifier for alert emails"""

    channel = 'resend'

    API_URL = 'https://api.resend.com/emails'

    def __init__(self, config: Dict[str, Any], session: requests.Session = None):
        super().__init__(config)
        self.api_key = config.get('api_key')
        self.api_url = config.get('api_url', self.API_URL)
        self.timeout = config.get('timeout', 10)
        self.session = session or requests.Session()

    def validate_config(self) -> bool:
        """Validate Resend configuration"""
        if not self.enabled:
            return False

        if not self.api_key:
            self.logger.error("No Resend API key configured")
            return False

        return True

    def send(self, to: str, subject: str, html: str) -> NotificationResult:
        """
        Send an alert email via Resend

        Raises:
            SendFailed: carrying Resend's error message when the API rejects the email
        """
        if self.dry_run:
            return self._dry_run_result(to, subject)

        if not self.validate_config():
            raise SendFailed("Resend not configured correctly", provider=self.channel)

        payload = {
            'from': self.from_email,
            'to': [to],
            'subject': subject,
            'html': html
        }
        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json'
        }

        try:
            response = self.session.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise SendFailed(f"Resend request failed: {e}", provider=self.channel)

        if response.status_code not in (200, 201, 202):
            raise SendFailed(self._error_reason(response), provider=self.channel)

        try:
            data = response.json()
        except ValueError:
            data = {}

        message_id = data.get('id') if isinstance(data, dict) else None
        self.logger.info(f"Email sent successfully to {to}. Resend ID: {message_id}")

        return NotificationResult(
            channel=self.channel,
            recipient=to,
            message_id=message_id,
            response=data if isinstance(data, dict) else None
        )

    def _error_reason(self, response: requests.Response) -> str:
        """Pull the provider message out of an error response"""
        try:
            data = response.json()
        except ValueError:
            return f"Resend API error {response.status_code}: {response.text}"

        if isinstance(data, dict) and data.get('message'):
            return f"Resend API error {response.status_code}: {data['message']}"
        return f"Resend API error {response.status_code}"
