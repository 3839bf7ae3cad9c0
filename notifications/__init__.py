"""
Alert email delivery
"""
