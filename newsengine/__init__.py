"""
News Engine

Unattended ingestion and maintenance pipeline for a personal news reader.
Schedules feed refreshes, deduplicates and enriches articles, enforces
retention rules and records an auditable job history.
"""

__version__ = "1.0.0"
