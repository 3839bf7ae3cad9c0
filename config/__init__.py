"""
Application configuration
"""
