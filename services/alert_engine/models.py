"""
Data contracts for the alert engine

AlertRule is a read-only snapshot of a persisted rule, Reading is a fresh
air quality measurement and Verdict is the evaluation outcome.
"""
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from services.alert_engine.exceptions import ConfigurationError

FIRE_TIME_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$')

DEFAULT_RECIPIENT_NAME = 'User'


def parse_fire_time(fire_time: Any) -> Tuple[int, int]:
    """
    Parse an 'HH:MM' fire time into an (hour, minute) pair

    A trailing ':SS' is accepted and ignored; rules fire on the minute.

    Raises:
        ConfigurationError: if the value is not a valid 24-hour time
    """
    if not isinstance(fire_time, str):
        raise ConfigurationError(f"Fire time must be a string, got {type(fire_time).__name__}")

    match = FIRE_TIME_PATTERN.match(fire_time)
    if not match:
        raise ConfigurationError(f"Malformed fire time: {fire_time!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise ConfigurationError(f"Fire time out of range: {fire_time!r}")

    return hour, minute


def parse_threshold(threshold: Any) -> float:
    """
    Coerce a threshold into a finite, non-negative float

    Raises:
        ConfigurationError: if the value is missing, not numeric, non-finite or negative
    """
    if threshold is None or isinstance(threshold, bool):
        raise ConfigurationError(f"Invalid threshold: {threshold!r}")

    try:
        value = float(threshold)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Threshold is not numeric: {threshold!r}")

    if not math.isfinite(value):
        raise ConfigurationError(f"Threshold must be finite: {threshold!r}")
    if value < 0:
        raise ConfigurationError(f"Threshold must be non-negative: {threshold!r}")

    return value


@dataclass(frozen=True)
class AlertRule:
    """
    One recurring daily check.

    Attributes:
        id: Opaque rule identifier, stable across rebuilds
        owner_id: Identifier of the requesting user
        fire_time: 'HH:MM' in the scheduler's reference timezone
        pollutant: Informational pollutant label
        threshold: Index level above which the alert triggers
        recipient_email: Destination address
    """
    id: str
    owner_id: Optional[str]
    fire_time: str
    pollutant: str
    threshold: float
    recipient_email: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AlertRule":
        """Build a rule from an "Alert" table row"""
        return cls(
            id=str(row['id']),
            owner_id=row.get('userId'),
            fire_time=row.get('alertTime'),
            pollutant=row.get('pollutant') or '',
            threshold=row.get('threshold'),
            recipient_email=row.get('alertEmail'),
        )

    def schedule_time(self) -> Tuple[int, int]:
        """Return the (hour, minute) this rule fires at"""
        try:
            return parse_fire_time(self.fire_time)
        except ConfigurationError as e:
            raise ConfigurationError(str(e), rule_id=self.id)

    def validate(self) -> Tuple[int, int]:
        """
        Check that the rule can be scheduled

        Returns:
            (hour, minute) of the fire time

        Raises:
            ConfigurationError: naming the offending rule
        """
        hour, minute = self.schedule_time()

        try:
            parse_threshold(self.threshold)
        except ConfigurationError as e:
            raise ConfigurationError(str(e), rule_id=self.id)

        if not self.recipient_email:
            raise ConfigurationError("Missing recipient email", rule_id=self.id)

        return hour, minute


@dataclass(frozen=True)
class Reading:
    """Point-in-time air quality measurement"""
    pollution_index: int
    components: Dict[str, float] = field(default_factory=dict)
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Verdict:
    """Outcome of evaluating a reading against a threshold"""
    triggered: bool
    subject: str
    body: str
