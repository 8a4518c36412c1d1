"""
Core ingestion pipeline: offsets, record assembly, retries and the poll loop.
"""
