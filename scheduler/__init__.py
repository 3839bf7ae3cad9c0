"""
AQI alert scheduling
"""
