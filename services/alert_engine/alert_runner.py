"""
Alert Runner - Per-firing Check Orchestration
==============================================
One firing of one rule:

1. Resolve the owner's display name (best-effort)
2. Fetch a fresh reading for the monitored coordinates
3. Evaluate the reading against the rule's threshold
4. Send exactly one email, or log that sending was skipped

Each step contains its own failures. run_check() never raises.
"""
import logging
from enum import Enum
from typing import Optional

from services.alert_engine.exceptions import FetchFailed, SendFailed
from services.alert_engine.models import DEFAULT_RECIPIENT_NAME, AlertRule
from services.alert_engine.rule_evaluator import ThresholdEvaluator

logger = logging.getLogger(__name__)


class CheckOutcome(str, Enum):
    """Terminal outcome of a firing"""
    SENT = "sent"
    SKIPPED = "skipped"              # No notifier configured
    FETCH_FAILED = "fetch_failed"
    SEND_FAILED = "send_failed"
    ERROR = "error"                  # Unexpected failure


class AlertRunner:
    """
    Runs the check for one rule firing.

    Args:
        reading_provider: Object with fetch_reading(lat, lon) -> Reading
        lat: Monitored latitude
        lon: Monitored longitude
        notifier: Object with send(to, subject, html); None for degraded mode
        owner_lookup: Object with get_owner_name(owner_id); optional
        evaluator: ThresholdEvaluator; defaults to one with no location name override
    """

    def __init__(
        self,
        reading_provider,
        lat: float,
        lon: float,
        notifier=None,
        owner_lookup=None,
        evaluator: Optional[ThresholdEvaluator] = None
    ):
        self.reading_provider = reading_provider
        self.lat = lat
        self.lon = lon
        self.notifier = notifier
        self.owner_lookup = owner_lookup
        self.evaluator = evaluator or ThresholdEvaluator()

    def run_check(self, rule: AlertRule) -> CheckOutcome:
        """
        Fetch, evaluate and notify for one rule

        Args:
            rule: Rule snapshot captured at schedule time

        Returns:
            CheckOutcome describing how the firing ended
        """
        try:
            return self._run_check(rule)
        except Exception as e:
            logger.error(f"Unexpected error running alert {rule.id}: {e}", exc_info=True)
            return CheckOutcome.ERROR

    def _run_check(self, rule: AlertRule) -> CheckOutcome:
        recipient = rule.recipient_email
        recipient_name = self._resolve_owner_name(rule)

        try:
            reading = self.reading_provider.fetch_reading(self.lat, self.lon)
        except FetchFailed as e:
            logger.error(f"Failed to fetch AQI for recipient {recipient} (rule {rule.id}): {e}")
            return CheckOutcome.FETCH_FAILED

        verdict = self.evaluator.evaluate(
            reading,
            float(rule.threshold),
            recipient_name=recipient_name,
            fire_time=rule.fire_time
        )

        if verdict.triggered:
            logger.info(
                f"ALERT TRIGGERED for {recipient}! "
                f"AQI: {reading.pollution_index} > Threshold: {rule.threshold}"
            )
        else:
            logger.info(f"All clear for {recipient}. Current AQI ({reading.pollution_index}) is safe.")

        if self.notifier is None:
            logger.info(f"Email sending skipped for {recipient}: no email provider configured")
            return CheckOutcome.SKIPPED

        try:
            result = self.notifier.send(recipient, verdict.subject, verdict.body)
        except SendFailed as e:
            logger.error(f"Email to {recipient} failed (rule {rule.id}): {e.reason}")
            return CheckOutcome.SEND_FAILED

        logger.info(
            f"Email sent to {recipient} (rule {rule.id}, "
            f"message id: {getattr(result, 'message_id', None)})"
        )
        return CheckOutcome.SENT

    def _resolve_owner_name(self, rule: AlertRule) -> str:
        """Owner display name for the salutation; falls back to a placeholder"""
        if self.owner_lookup is None or not rule.owner_id:
            return DEFAULT_RECIPIENT_NAME

        try:
            name = self.owner_lookup.get_owner_name(rule.owner_id)
        except Exception as e:
            logger.warning(f"Could not resolve owner {rule.owner_id} for alert {rule.id}: {e}")
            return DEFAULT_RECIPIENT_NAME

        return name or DEFAULT_RECIPIENT_NAME
