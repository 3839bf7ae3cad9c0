"""
Notifier selection

Resend is preferred when an API key is configured, then SMTP when enabled.
With neither, no notifier is built and alert emails are logged but not sent.
"""
import logging
from typing import Any, Dict, Optional

from notifications.channels import Notifier, ResendNotifier, SmtpNotifier

logger = logging.getLogger(__name__)


def build_notifier(notifier_config: Dict[str, Any]) -> Optional[Notifier]:
    """
    Build the configured notifier

    Args:
        notifier_config: Output of AlertsConfig.get_notifier_config()

    Returns:
        Notifier instance, or None when no email provider is configured
    """
    resend_config = notifier_config.get('resend', {})
    if resend_config.get('enabled') and resend_config.get('api_key'):
        logger.info("Using Resend notifier")
        return ResendNotifier(resend_config)

    smtp_config = notifier_config.get('smtp', {})
    if smtp_config.get('enabled'):
        logger.info(f"Using SMTP notifier ({smtp_config.get('smtp_host')}:{smtp_config.get('smtp_port')})")
        return SmtpNotifier(smtp_config)

    logger.warning("No email provider configured (RESEND_API_KEY / SMTP_ENABLED). "
                   "Email alerts will be logged but not sent.")
    return None
