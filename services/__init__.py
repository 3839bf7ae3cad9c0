"""
Background services
"""
