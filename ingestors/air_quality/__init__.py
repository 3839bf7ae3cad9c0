"""
Air Quality Reading Providers
"""

from .openweather_client import OpenWeatherAirQualityClient

__all__ = ['OpenWeatherAirQualityClient']
