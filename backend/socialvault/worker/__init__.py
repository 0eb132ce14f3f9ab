"""
Background worker: queue dispatch, job processors and scrapers.
"""
