"""
Alert engine error taxonomy

Every error raised by a collaborator of the alert engine derives from
AlertEngineError. The runner and scheduler contain all of them.
"""


class AlertEngineError(Exception):
    """Base class for alert engine errors"""


class ConfigurationError(AlertEngineError):
    """A rule cannot be scheduled (malformed fire time, bad threshold, missing field)"""

    def __init__(self, message: str, rule_id: str = None):
        super().__init__(message)
        self.rule_id = rule_id


class TransientFetchError(AlertEngineError):
    """The reading provider could not produce a reading"""


class FetchFailed(TransientFetchError):
    """Raised by reading providers on network errors, non-2xx responses or bad payloads"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class NotificationError(AlertEngineError):
    """An email could not be dispatched"""


class SendFailed(NotificationError):
    """Raised by notifiers; carries the provider-supplied reason"""

    def __init__(self, reason: str, provider: str = None):
        super().__init__(reason)
        self.reason = reason
        self.provider = provider


class StoreError(AlertEngineError):
    """The rule store could not be read"""


class StoreUnavailable(StoreError):
    """Raised by the rule store when the backing database cannot be reached"""
