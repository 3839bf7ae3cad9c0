"""
Base notifier interface for alert emails
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


@dataclass
class NotificationResult:
    """Result of a successful send"""
    channel: str
    recipient: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    message_id: Optional[str] = None
    response: Optional[Dict[str, Any]] = None


class Notifier(ABC):
    """Base class for all email notifiers"""

    channel = 'base'

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize notifier with configuration

        Args:
            config: Channel-specific configuration
        """
        self.config = config
        self.enabled = config.get('enabled', True)
        self.dry_run = config.get('dry_run', False)
        self.from_email = config.get('from_email', 'BreathWise Alerts <onboarding@resend.dev>')
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def send(self, to: str, subject: str, html: str) -> NotificationResult:
        """
        Send one email

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body

        Returns:
            NotificationResult on success

        Raises:
            SendFailed: with the provider-supplied reason
        """
        pass

    def validate_config(self) -> bool:
        """
        Validate notifier configuration

        Returns:
            True if config is valid
        """
        return self.enabled

    def _dry_run_result(self, to: str, subject: str) -> NotificationResult:
        self.logger.info(f"[DRY RUN] Would send email to {to}: {subject}")
        return NotificationResult(channel=self.channel, recipient=to, response={'dry_run': True})

    def __repr__(self):
        return f"{self.__class__.__name__}(enabled={self.enabled})"
