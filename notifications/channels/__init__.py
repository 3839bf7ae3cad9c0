"""
Notifier implementations for alert emails
"""
from .base import Notifier, NotificationResult
from .email_notifier import SmtpNotifier
from .resend_notifier import ResendNotifier

__all__ = [
    'Notifier',
    'NotificationResult',
    'SmtpNotifier',
    'ResendNotifier'
]
