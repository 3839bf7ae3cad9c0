#!/usr/bin/env python3
"""
AQI Alert Scheduler
Runs one daily check per alert rule at the rule's fire time

Each rule gets its own cron job (hour:minute in the monitored location's
timezone). When a job fires, the AlertRunner fetches the current AQI, evaluates
it against the rule's threshold and sends one email.

The job set is rebuilt from the rule store at startup and whenever the rule
set changes (on_rule_set_changed). Jobs of unchanged rules are left as they are.
"""

import os
import sys
import time
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from services.alert_engine.alert_runner import AlertRunner, CheckOutcome
from services.alert_engine.exceptions import ConfigurationError, StoreError
from services.alert_engine.models import AlertRule

logger = logging.getLogger(__name__)

LOG_DIR = os.environ.get('ALERT_LOG_DIR', '/logs' if os.name != 'nt' else 'logs')

# Set by configure_logging() once the log directory is usable
METRICS_FILE: Optional[str] = None

# Metrics tracking
metrics = {
    'last_rebuild': None,
    'rebuild_count': 0,
    'rules_scheduled': 0,
    'rules_skipped': 0,
    'checks': {outcome.value: 0 for outcome in CheckOutcome},
    'last_error': None,
    'tasks': {}
}
_metrics_lock = threading.Lock()


def configure_logging(level: str = 'INFO') -> None:
    """Log to stdout, plus a file under LOG_DIR when it can be created"""
    global METRICS_FILE

    log_handlers = [logging.StreamHandler(sys.stdout)]

    try:
        os.makedirs(LOG_DIR, exist_ok=True)
        log_handlers.append(logging.FileHandler(os.path.join(LOG_DIR, 'alert_scheduler.log')))
        METRICS_FILE = os.path.join(LOG_DIR, 'scheduler_metrics.json')
    except (OSError, PermissionError):
        pass  # Fall back to console only

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=log_handlers
    )


def _save_metrics():
    if not METRICS_FILE:
        return
    try:
        with open(METRICS_FILE, 'w') as f:
            json.dump(metrics, f, indent=2)
    except Exception as e:
        logger.error(f"Failed to save metrics: {e}")


def update_metrics(task_name, status, duration=None, error=None, extra=None):
    """Update metrics for tracking"""
    with _metrics_lock:
        metrics['tasks'][task_name] = {
            'last_run': datetime.now(timezone.utc).isoformat(),
            'status': status,
            'duration_seconds': duration,
            'error': str(error) if error else None
        }

        if extra:
            metrics['tasks'][task_name].update(extra)

        if error:
            metrics['last_error'] = {
                'task': task_name,
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'error': str(error)
            }

        _save_metrics()


def record_check_outcome(outcome: CheckOutcome):
    """Count a finished firing by outcome"""
    with _metrics_lock:
        metrics['checks'][outcome.value] = metrics['checks'].get(outcome.value, 0) + 1
        _save_metrics()


class AlertScheduler:
    """
    Owns the live set of per-rule cron jobs.

    Args:
        rule_store: Object with list_all_rules() -> List[AlertRule]
        runner: AlertRunner invoked on each firing
        scheduler: APScheduler instance (BackgroundScheduler if omitted)
        timezone: Reference timezone for rule fire times
        misfire_grace_seconds: How late a firing may still run
        resync_minutes: Interval for periodic rebuilds; 0 disables
    """

    JOB_PREFIX = 'aqi_alert_'
    RESYNC_JOB_ID = 'rule_resync'

    def __init__(
        self,
        rule_store,
        runner: AlertRunner,
        scheduler=None,
        timezone: str = 'Asia/Kolkata',
        misfire_grace_seconds: int = 300,
        resync_minutes: int = 0
    ):
        self.rule_store = rule_store
        self.runner = runner
        self.timezone = timezone
        self.misfire_grace_seconds = misfire_grace_seconds
        self.resync_minutes = resync_minutes
        self.scheduler = scheduler or BackgroundScheduler(timezone=timezone)

        self._jobs = {}  # rule id -> apscheduler Job
        self._generation = 0
        self._rebuild_lock = threading.Lock()

    @property
    def active_rule_ids(self) -> List[str]:
        """Ids of rules with a live job"""
        return list(self._jobs)

    @property
    def timer_count(self) -> int:
        return len(self._jobs)

    def rebuild(self) -> bool:
        """
        Bring the rule jobs in line with the rule store

        Jobs of rules that are unchanged since the last rebuild stay in place,
        so a rebuild landing on a rule's fire time never costs that day's
        firing. Every other job is cancelled and, if its rule is still
        present and valid, recreated from the new snapshot.

        Rebuilds are serialized. If the store cannot be read the previous
        job set is left untouched.

        Returns:
            True if the job set was rebuilt
        """
        with self._rebuild_lock:
            start_time = time.time()

            try:
                rules = self.rule_store.list_all_rules()
            except StoreError as e:
                duration = time.time() - start_time
                logger.error(f"Rule store unavailable, keeping {len(self._jobs)} existing alert jobs: {e}")
                update_metrics('rebuild', 'failed', duration, e)
                return False

            wanted = {}
            skipped = 0
            for rule in rules:
                trigger = self._build_trigger(rule)
                if trigger is None:
                    skipped += 1
                    continue
                if rule.id in wanted:
                    logger.warning(f"Duplicate alert id {rule.id}: later definition replaces the earlier one")
                wanted[rule.id] = (rule, trigger)

            self._generation += 1
            generation = self._generation

            for rule_id in list(self._jobs):
                job = self._jobs[rule_id]
                if rule_id not in wanted or wanted[rule_id][0] != job.args[0]:
                    self._remove_job(self._jobs.pop(rule_id))

            kept = 0
            for rule_id, (rule, trigger) in wanted.items():
                if rule_id in self._jobs:
                    kept += 1
                    continue
                self._schedule_rule(rule, trigger, generation)

            duration = time.time() - start_time
            with _metrics_lock:
                metrics['last_rebuild'] = datetime.now(timezone.utc).isoformat()
                metrics['rebuild_count'] += 1
                metrics['rules_scheduled'] = len(self._jobs)
                metrics['rules_skipped'] = skipped
            update_metrics('rebuild', 'success', duration, extra={
                'rules_listed': len(rules),
                'rules_scheduled': len(self._jobs),
                'rules_unchanged': kept,
                'rules_skipped': skipped
            })

            logger.info(
                f"Alert schedule rebuilt in {duration:.2f}s: "
                f"{len(self._jobs)} active ({kept} unchanged), {skipped} skipped"
            )
            return True

    def on_rule_set_changed(self) -> bool:
        """Rebuild after a rule insert/update/delete. Never raises."""
        try:
            return self.rebuild()
        except Exception as e:
            logger.error(f"Alert schedule rebuild failed: {e}", exc_info=True)
            update_metrics('rebuild', 'error', error=e)
            return False

    def _build_trigger(self, rule: AlertRule) -> Optional[CronTrigger]:
        """Daily trigger for a rule, or None if the rule is malformed"""
        try:
            hour, minute = rule.validate()
            return CronTrigger(hour=hour, minute=minute, timezone=self.timezone)
        except (ConfigurationError, ValueError) as e:
            logger.warning(f"Skipping alert {rule.id}: {e}")
            return None

    def _schedule_rule(self, rule: AlertRule, trigger: CronTrigger, generation: int):
        self._jobs[rule.id] = self.scheduler.add_job(
            self._fire,
            trigger,
            args=[rule, generation],
            id=f"{self.JOB_PREFIX}{rule.id}",
            name=f"AQI alert {rule.id} ({rule.fire_time} {self.timezone})",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.misfire_grace_seconds
        )

        logger.info(
            f"Scheduled alert for User {rule.owner_id} "
            f"(Recipient: {rule.recipient_email}) at {rule.fire_time} ({self.timezone})."
        )

    def _remove_job(self, job):
        try:
            self.scheduler.remove_job(job.id)
        except JobLookupError:
            logger.debug(f"Job {job.id} already removed")

    def _fire(self, rule: AlertRule, generation: int) -> Optional[CheckOutcome]:
        """Job callback: run the check unless a rebuild has replaced this job"""
        job = self._jobs.get(rule.id)
        if job is None or job.args[1] != generation:
            logger.info(f"Skipping stale firing for alert {rule.id} (generation {generation})")
            return None

        outcome = self.runner.run_check(rule)
        record_check_outcome(outcome)
        return outcome

    def describe_jobs(self) -> List[Dict]:
        """Rule jobs with their next fire time, for dry runs and diagnostics"""
        now = datetime.now(timezone.utc)
        jobs = []
        for rule_id, job in self._jobs.items():
            rule = job.args[0]
            next_fire = job.trigger.get_next_fire_time(None, now)
            jobs.append({
                'rule_id': rule_id,
                'fire_time': rule.fire_time,
                'recipient': rule.recipient_email,
                'threshold': rule.threshold,
                'next_fire_time': next_fire.isoformat() if next_fire else None
            })
        return jobs

    def start(self):
        """Build the schedule and start the underlying scheduler"""
        self.on_rule_set_changed()

        if self.resync_minutes > 0:
            self.scheduler.add_job(
                self.on_rule_set_changed,
                IntervalTrigger(minutes=self.resync_minutes, timezone=self.timezone),
                id=self.RESYNC_JOB_ID,
                name=f"Rule resync (every {self.resync_minutes} min)",
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )
            logger.info(f"Periodic rule resync every {self.resync_minutes} minutes")

        self.scheduler.start()

    def shutdown(self, wait: bool = False):
        """Stop the scheduler; in-flight checks finish when wait=True"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)


def build_alert_scheduler(config, scheduler=None) -> AlertScheduler:
    """Wire the rule store, reading provider, notifier and runner from config"""
    from ingestors.air_quality import OpenWeatherAirQualityClient
    from notifications.factory import build_notifier
    from services.alert_engine.rule_evaluator import ThresholdEvaluator
    from services.alert_engine.rule_repository import AlertRuleRepository

    repository = AlertRuleRepository(config.database_url)
    runner = AlertRunner(
        reading_provider=OpenWeatherAirQualityClient(
            api_key=config.openweather_api_key,
            base_url=config.openweather_base_url,
            timeout=config.request_timeout_seconds
        ),
        lat=config.check_lat,
        lon=config.check_lon,
        notifier=build_notifier(config.get_notifier_config()),
        owner_lookup=repository,
        evaluator=ThresholdEvaluator(location_name=config.location_name)
    )

    return AlertScheduler(
        rule_store=repository,
        runner=runner,
        scheduler=scheduler,
        timezone=config.timezone,
        misfire_grace_seconds=config.misfire_grace_seconds,
        resync_minutes=config.rule_resync_minutes
    )


def main():
    """Main scheduler entry point"""
    import argparse

    from dotenv import load_dotenv
    from pydantic import ValidationError

    from config.alerts_config import AlertsConfig

    parser = argparse.ArgumentParser(description='AQI Alert Scheduler')
    parser.add_argument('--dry-run', action='store_true',
                       help='Show scheduled alert jobs without starting scheduler')
    parser.add_argument('--run-rule', metavar='RULE_ID',
                       help='Run one alert check immediately and exit (for testing)')
    parser.add_argument('--log-level', default=os.environ.get('LOG_LEVEL', 'INFO'),
                       help='Logging level (default: INFO)')
    args = parser.parse_args()

    load_dotenv()
    configure_logging(args.log_level)

    try:
        config = AlertsConfig()
    except ValidationError as e:
        logger.error(f"FATAL: invalid configuration: {e}")
        sys.exit(1)

    if not config.openweather_api_key:
        logger.error("FATAL: OPENWEATHER_API_KEY environment variable is not set! Please check your .env file.")
        sys.exit(1)

    # Test mode
    if args.run_rule:
        alert_scheduler = build_alert_scheduler(config, scheduler=BackgroundScheduler(timezone=config.timezone))
        try:
            rules = alert_scheduler.rule_store.list_all_rules()
        except StoreError as e:
            logger.error(f"Cannot load alert rules: {e}")
            sys.exit(1)

        rule = next((r for r in rules if r.id == args.run_rule), None)
        if rule is None:
            logger.error(f"Alert {args.run_rule} not found")
            sys.exit(1)

        logger.info(f"TEST MODE: Running alert {rule.id} once")
        outcome = alert_scheduler.runner.run_check(rule)
        sys.exit(0 if outcome in (CheckOutcome.SENT, CheckOutcome.SKIPPED) else 1)

    # Dry run mode - show jobs and exit
    if args.dry_run:
        alert_scheduler = build_alert_scheduler(config, scheduler=BackgroundScheduler(timezone=config.timezone))
        if not alert_scheduler.rebuild():
            sys.exit(1)

        logger.info("=" * 60)
        logger.info(f"DRY RUN MODE - {alert_scheduler.timer_count} scheduled alert jobs ({config.timezone})")
        logger.info("=" * 60)
        for job in alert_scheduler.describe_jobs():
            logger.info(
                f"  {job['rule_id']}: {job['fire_time']} -> {job['recipient']} "
                f"(threshold {job['threshold']}, next {job['next_fire_time']})"
            )
        logger.info("=" * 60)
        sys.exit(0)

    # Production scheduler
    alert_scheduler = build_alert_scheduler(config, scheduler=BlockingScheduler(timezone=config.timezone))

    logger.info("=" * 60)
    logger.info("AQI Alert Scheduler started")
    logger.info(f"Monitored location: {config.location_name} ({config.check_lat}, {config.check_lon})")
    logger.info(f"Reference timezone: {config.timezone}")
    logger.info("=" * 60)

    try:
        alert_scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


if __name__ == '__main__':
    main()
