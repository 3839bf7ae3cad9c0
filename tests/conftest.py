"""
Pytest configuration and shared fixtures
"""
import pytest
from pathlib import Path
from unittest.mock import Mock

# Load .env from project root for all tests (override=True to ensure fresh values)
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

from services.alert_engine.models import AlertRule, Reading


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "live: mark test as requiring live services (PostgreSQL, APIs, etc.)"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running"
    )


@pytest.fixture
def make_rule():
    """Factory for alert rules with sensible defaults"""
    def _make_rule(**overrides):
        fields = {
            'id': 'rule-1',
            'owner_id': 'user-1',
            'fire_time': '08:00',
            'pollutant': 'PM2.5',
            'threshold': 3.0,
            'recipient_email': 'alice@example.com'
        }
        fields.update(overrides)
        return AlertRule(**fields)
    return _make_rule


@pytest.fixture
def sample_reading():
    """Reading at AQI level 4 (Poor)"""
    return Reading(pollution_index=4, components={'pm2_5': 88.4, 'pm10': 120.1})


@pytest.fixture
def mock_reading_provider(sample_reading):
    """Reading provider that always returns sample_reading"""
    provider = Mock()
    provider.fetch_reading.return_value = sample_reading
    return provider


@pytest.fixture
def mock_notifier():
    """Notifier that accepts every email"""
    notifier = Mock()
    notifier.send.return_value = Mock(message_id='msg-123')
    return notifier
