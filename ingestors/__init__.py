"""
Reading ingestion
"""
