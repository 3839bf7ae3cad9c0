"""
Repository for alert rules in PostgreSQL
Read-only listing for the scheduler plus validated rule creation
"""
import logging
import uuid
from typing import List, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from services.alert_engine.exceptions import ConfigurationError, StoreUnavailable
from services.alert_engine.models import AlertRule, parse_fire_time, parse_threshold

logger = logging.getLogger(__name__)


class AlertRuleRepository:
    """Repository for alert rule persistence"""

    def __init__(self, dsn: str):
        """Initialize repository with database connection string"""
        self.dsn = dsn

    def _get_connection(self):
        """
        Get database connection

        Raises:
            StoreUnavailable: if the database cannot be reached
        """
        try:
            return psycopg2.connect(self.dsn)
        except psycopg2.Error as e:
            raise StoreUnavailable(f"Rule store unreachable: {e}")

    def list_all_rules(self) -> List[AlertRule]:
        """
        Snapshot every alert rule

        Raises:
            StoreUnavailable: if the rules cannot be read
        """
        conn = self._get_connection()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute("""
                    SELECT id, "userId", "alertTime", pollutant, threshold, "alertEmail"
                    FROM "Alert"
                    ORDER BY "createdAt" ASC
                """)
                rows = cur.fetchall()
        except psycopg2.Error as e:
            raise StoreUnavailable(f"Failed to list alert rules: {e}")
        finally:
            conn.close()

        return [AlertRule.from_row(dict(row)) for row in rows]

    def get_owner_name(self, owner_id: str) -> Optional[str]:
        """Display name of a rule owner, or None if unknown"""
        if not owner_id:
            return None

        conn = self._get_connection()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute('SELECT name FROM "User" WHERE id = %s', (owner_id,))
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StoreUnavailable(f"Failed to look up user {owner_id}: {e}")
        finally:
            conn.close()

        if row:
            return row['name']
        return None

    def create_rule(
        self,
        owner_id: str,
        fire_time: str,
        pollutant: str,
        threshold,
        recipient_email: str
    ) -> AlertRule:
        """
        Validate and insert a new alert rule

        Callers must invoke the scheduler's on_rule_set_changed() afterwards.

        Raises:
            ConfigurationError: if a field is missing or invalid, or the owner does not exist
            StoreUnavailable: if the insert fails
        """
        missing = [
            name for name, value in (
                ('fire_time', fire_time),
                ('pollutant', pollutant),
                ('threshold', threshold),
                ('recipient_email', recipient_email)
            )
            if value is None or value == ''
        ]
        if missing:
            raise ConfigurationError(f"Missing required alert details: {', '.join(missing)}")

        parse_fire_time(fire_time)
        threshold_value = parse_threshold(threshold)

        rule = AlertRule(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            fire_time=fire_time.strip(),
            pollutant=pollutant,
            threshold=threshold_value,
            recipient_email=recipient_email.strip()
        )

        conn = self._get_connection()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO "Alert" (id, "userId", "alertTime", pollutant, threshold, "alertEmail")
                    VALUES (%s, %s, %s, %s, %s, %s)
                """, (
                    rule.id,
                    rule.owner_id,
                    rule.fire_time,
                    rule.pollutant,
                    rule.threshold,
                    rule.recipient_email
                ))
            conn.commit()
        except psycopg2.IntegrityError as e:
            conn.rollback()
            raise ConfigurationError(f"Alert rule rejected by the database (unknown user {owner_id}?): {e}")
        except psycopg2.Error as e:
            conn.rollback()
            raise StoreUnavailable(f"Failed to create alert rule: {e}")
        finally:
            conn.close()

        logger.info(f"Created alert rule {rule.id} for user {owner_id} at {rule.fire_time}")
        return rule
