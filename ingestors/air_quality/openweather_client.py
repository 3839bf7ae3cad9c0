"""
OpenWeather Air Pollution Client

Fetches the current air pollution index for a coordinate pair from the
OpenWeather Air Pollution API.

Example:
    client = OpenWeatherAirQualityClient(api_key='...')
    reading = client.fetch_reading(28.7041, 77.1025)
    print(reading.pollution_index, reading.components['pm2_5'])
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict

import requests

from services.alert_engine.exceptions import FetchFailed
from services.alert_engine.models import Reading

logger = logging.getLogger(__name__)


class OpenWeatherAirQualityClient:
    """
    Reading provider backed by the OpenWeather Air Pollution API

    One HTTP request per call. Failures are reported as FetchFailed and
    never retried here.
    """

    DEFAULT_BASE_URL = 'http://api.openweathermap.org/data/2.5'

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: float = 10.0,
        session: requests.Session = None
    ):
        """
        Initialize OpenWeather client

        Args:
            api_key: OpenWeather API key (or set OPENWEATHER_API_KEY env var)
            base_url: API base URL
            timeout: Request timeout in seconds
            session: Optional requests session
        """
        self.api_key = api_key or os.getenv('OPENWEATHER_API_KEY')
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

        if not self.api_key:
            logger.warning("No OpenWeather API key configured - AQI fetches will fail")

    def fetch_reading(self, lat: float, lon: float) -> Reading:
        """
        Fetch the current air pollution reading

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            Reading with pollution index and components

        Raises:
            FetchFailed: on network errors, non-200 responses or unexpected payloads
        """
        if not self.api_key:
            raise FetchFailed("OpenWeather API key not configured")

        url = f"{self.base_url}/air_pollution"
        params = {'lat': lat, 'lon': lon, 'appid': self.api_key}

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchFailed(f"OpenWeather request failed: {e}")

        if response.status_code != 200:
            raise FetchFailed(
                f"OpenWeather API fetch failed with status {response.status_code}",
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchFailed(f"OpenWeather returned invalid JSON: {e}", status_code=response.status_code)

        return self._parse_reading(payload)

    def _parse_reading(self, payload: Dict[str, Any]) -> Reading:
        """Extract the first entry of an air_pollution response"""
        try:
            entry = payload['list'][0]
            index = entry['main']['aqi']
            components = entry.get('components') or {}
        except (KeyError, IndexError, TypeError) as e:
            raise FetchFailed(f"Unexpected OpenWeather payload shape: {e!r}")

        if isinstance(index, bool) or not isinstance(index, (int, float)):
            raise FetchFailed(f"Unexpected AQI value: {index!r}")

        try:
            components = {name: float(value) for name, value in components.items()}
        except (AttributeError, TypeError, ValueError) as e:
            raise FetchFailed(f"Unexpected OpenWeather components: {e!r}")

        logger.debug(f"Fetched AQI {index} ({len(components)} components)")
        return Reading(
            pollution_index=int(index),
            components=components,
            captured_at=datetime.now(timezone.utc)
        )
