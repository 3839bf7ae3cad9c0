"""
Alert Engine - Threshold Evaluation and Per-firing Checks
==========================================================

Usage:
    from services.alert_engine import AlertRunner, ThresholdEvaluator

    verdict = ThresholdEvaluator().evaluate(Reading(pollution_index=4), threshold=3)
    runner = AlertRunner(reading_provider, lat=28.7041, lon=77.1025, notifier=notifier)
    runner.run_check(rule)
"""

from services.alert_engine.alert_runner import AlertRunner, CheckOutcome
from services.alert_engine.models import AlertRule, Reading, Verdict
from services.alert_engine.rule_evaluator import ThresholdEvaluator, evaluate
from services.alert_engine.rule_repository import AlertRuleRepository

__all__ = [
    'AlertRule',
    'AlertRuleRepository',
    'AlertRunner',
    'CheckOutcome',
    'Reading',
    'ThresholdEvaluator',
    'Verdict',
    'evaluate'
]
