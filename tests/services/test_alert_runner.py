"""
Tests for services/alert_engine/alert_runner.py

Tests verify:
- Happy path sends exactly one email to the rule's recipient
- Fetch failures abort the firing with no email
- Send failures are contained and not retried
- Missing notifier is a logged skip
- Owner name resolution is best-effort
"""
import logging
import pytest
from unittest.mock import Mock

from services.alert_engine import AlertRunner, CheckOutcome, Reading
from services.alert_engine.exceptions import FetchFailed, SendFailed, StoreUnavailable
from services.alert_engine.rule_evaluator import HIGH_POLLUTION_SUBJECT, SAFE_SUBJECT


LAT, LON = 28.7041, 77.1025


@pytest.fixture
def owner_lookup():
    lookup = Mock()
    lookup.get_owner_name.return_value = 'Alice'
    return lookup


class TestRunCheckSuccess:
    """Happy path"""

    def test_triggered_check_sends_high_pollution_email(
        self, make_rule, mock_reading_provider, mock_notifier, owner_lookup
    ):
        """Reading above threshold sends the high pollution email"""
        runner = AlertRunner(mock_reading_provider, LAT, LON, notifier=mock_notifier, owner_lookup=owner_lookup)

        outcome = runner.run_check(make_rule(threshold=3))

        assert outcome == CheckOutcome.SENT
        mock_reading_provider.fetch_reading.assert_called_once_with(LAT, LON)
        mock_notifier.send.assert_called_once()

        to, subject, html = mock_notifier.send.call_args[0]
        assert to == 'alice@example.com'
        assert subject == HIGH_POLLUTION_SUBJECT
        assert 'Hello Alice,' in html

    def test_clear_check_sends_safe_email(self, make_rule, mock_reading_provider, mock_notifier):
        """Reading at the threshold sends the safe email"""
        runner = AlertRunner(mock_reading_provider, LAT, LON, notifier=mock_notifier)

        outcome = runner.run_check(make_rule(threshold=4))

        assert outcome == CheckOutcome.SENT
        subject = mock_notifier.send.call_args[0][1]
        assert subject == SAFE_SUBJECT

    def test_uses_rule_snapshot_recipient(self, make_rule, mock_reading_provider, mock_notifier):
        """Email goes to the snapshot's recipient address"""
        runner = AlertRunner(mock_reading_provider, LAT, LON, notifier=mock_notifier)

        runner.run_check(make_rule(recipient_email='bob@example.com'))

        assert mock_notifier.send.call_args[0][0] == 'bob@example.com'


class TestRunCheckFailures:
    """Failure isolation at each step"""

    def test_fetch_failure_sends_nothing(self, make_rule, mock_notifier, caplog):
        """FetchFailed aborts the firing without notifying"""
        provider = Mock()
        provider.fetch_reading.side_effect = FetchFailed("status 503", status_code=503)
        runner = AlertRunner(provider, LAT, LON, notifier=mock_notifier)

        with caplog.at_level(logging.ERROR):
            outcome = runner.run_check(make_rule())

        assert outcome == CheckOutcome.FETCH_FAILED
        mock_notifier.send.assert_not_called()
        assert 'Failed to fetch AQI' in caplog.text

    def test_send_failure_is_not_retried(self, make_rule, mock_reading_provider, caplog):
        """SendFailed is logged; no second fetch, evaluation or send"""
        notifier = Mock()
        notifier.send.side_effect = SendFailed("domain not verified", provider='resend')
        evaluator = Mock(wraps=AlertRunner(mock_reading_provider, LAT, LON).evaluator)
        runner = AlertRunner(mock_reading_provider, LAT, LON, notifier=notifier, evaluator=evaluator)

        with caplog.at_level(logging.ERROR):
            outcome = runner.run_check(make_rule())

        assert outcome == CheckOutcome.SEND_FAILED
        assert notifier.send.call_count == 1
        assert mock_reading_provider.fetch_reading.call_count == 1
        assert evaluator.evaluate.call_count == 1
        assert 'domain not verified' in caplog.text

    def test_unexpected_error_is_contained(self, make_rule, mock_notifier):
        """Any other exception ends the firing without propagating"""
        provider = Mock()
        provider.fetch_reading.side_effect = RuntimeError("boom")
        runner = AlertRunner(provider, LAT, LON, notifier=mock_notifier)

        outcome = runner.run_check(make_rule())

        assert outcome == CheckOutcome.ERROR
        mock_notifier.send.assert_not_called()

    def test_no_notifier_is_a_skip(self, make_rule, mock_reading_provider, caplog):
        """Without a notifier the check completes and logs the skip"""
        runner = AlertRunner(mock_reading_provider, LAT, LON, notifier=None)

        with caplog.at_level(logging.INFO):
            outcome = runner.run_check(make_rule())

        assert outcome == CheckOutcome.SKIPPED
        assert 'skipped' in caplog.text


class TestOwnerNameResolution:
    """Best-effort salutation lookup"""

    def test_lookup_failure_uses_placeholder(self, make_rule, mock_reading_provider, mock_notifier):
        lookup = Mock()
        lookup.get_owner_name.side_effect = StoreUnavailable("db down")
        runner = AlertRunner(mock_reading_provider, LAT, LON, notifier=mock_notifier, owner_lookup=lookup)

        outcome = runner.run_check(make_rule())

        assert outcome == CheckOutcome.SENT
        assert 'Hello User,' in mock_notifier.send.call_args[0][2]

    def test_lookup_returning_none_uses_placeholder(self, make_rule, mock_reading_provider, mock_notifier):
        lookup = Mock()
        lookup.get_owner_name.return_value = None
        runner = AlertRunner(mock_reading_provider, LAT, LON, notifier=mock_notifier, owner_lookup=lookup)

        runner.run_check(make_rule())

        assert 'Hello User,' in mock_notifier.send.call_args[0][2]

    def test_rule_without_owner_skips_lookup(self, make_rule, mock_reading_provider, mock_notifier, owner_lookup):
        runner = AlertRunner(mock_reading_provider, LAT, LON, notifier=mock_notifier, owner_lookup=owner_lookup)

        runner.run_check(make_rule(owner_id=None))

        owner_lookup.get_owner_name.assert_not_called()
