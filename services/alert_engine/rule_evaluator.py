"""
Threshold Evaluator - Reading vs. Threshold Verdicts
=====================================================
Maps a fresh air quality reading and a rule's threshold to a Verdict:

- triggered: index strictly above the threshold
- clear: index at or below the threshold

The verdict carries the email subject and HTML body for the recipient.
Evaluation is pure: no I/O, no clock reads, no logging.
"""
from html import escape
from typing import Dict, Optional

from services.alert_engine.models import DEFAULT_RECIPIENT_NAME, Reading, Verdict

# OpenWeather air pollution index levels
AQI_LEVELS: Dict[int, str] = {
    1: 'Good',
    2: 'Fair',
    3: 'Moderate',
    4: 'Poor',
    5: 'Very Poor',
}

HIGH_POLLUTION_SUBJECT = '🔴 AQI Alert: High Pollution Detected!'
SAFE_SUBJECT = '🟢 AQI Alert: Safe to Go Outside!'


def describe_level(index: int) -> str:
    """Human-readable label for an AQI level"""
    return AQI_LEVELS.get(index, 'Unknown')


class ThresholdEvaluator:
    """
    Evaluates readings against alert thresholds.

    Args:
        location_name: Monitored location shown in the email footer
    """

    def __init__(self, location_name: str = 'New Delhi'):
        self.location_name = location_name

    def evaluate(
        self,
        reading: Reading,
        threshold: float,
        recipient_name: str = DEFAULT_RECIPIENT_NAME,
        fire_time: Optional[str] = None
    ) -> Verdict:
        """
        Evaluate a reading against a threshold.

        Args:
            reading: Fresh reading with a numeric pollution index
            threshold: Finite, non-negative threshold (validated by the caller)
            recipient_name: Salutation name
            fire_time: Rule fire time shown in the footer

        Returns:
            Verdict with triggered flag, subject and HTML body
        """
        index = reading.pollution_index
        triggered = index > threshold

        if triggered:
            subject = HIGH_POLLUTION_SUBJECT
            body = self._format_body(
                recipient_name,
                index,
                threshold,
                fire_time,
                headline='The Air Quality Index (AQI) is high.',
                color='#b91c1c',
                advice=(
                    'We recommend you <strong>do not go outdoors</strong> '
                    'or limit your outdoor activities significantly.'
                ),
            )
        else:
            subject = SAFE_SUBJECT
            body = self._format_body(
                recipient_name,
                index,
                threshold,
                fire_time,
                headline='Air quality is currently good or moderate.',
                color='#3b5d46',
                advice='It is generally safe for you to <strong>go outdoors</strong> for your planned activity.',
            )

        return Verdict(triggered=triggered, subject=subject, body=body)

    def _format_body(
        self,
        recipient_name: str,
        index: int,
        threshold: float,
        fire_time: Optional[str],
        headline: str,
        color: str,
        advice: str
    ) -> str:
        """Render the HTML email body"""
        footer = f"Location: {escape(self.location_name)}"
        if fire_time:
            footer = f"Alert time: {escape(fire_time)} ({footer})"

        return (
            f"<p>Hello {escape(recipient_name or DEFAULT_RECIPIENT_NAME)},</p>\n"
            f"<h3 style=\"color: {color};\">{headline}</h3>\n"
            f"<p>Current AQI: <span style=\"font-weight: bold; font-size: 1.1em;\">{index}</span> "
            f"({describe_level(index)}) (Threshold: {_format_number(threshold)})</p>\n"
            f"<p>{advice}</p>\n"
            f"<p class=\"small\">{footer}.</p>\n"
        )


def _format_number(value: float) -> str:
    """Render 100.0 as '100' and 2.5 as '2.5'"""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def evaluate(reading: Reading, threshold: float, recipient_name: str = DEFAULT_RECIPIENT_NAME) -> Verdict:
    """Evaluate with the default location; see ThresholdEvaluator.evaluate"""
    return ThresholdEvaluator().evaluate(reading, threshold, recipient_name=recipient_name)
