"""
gator

Aggregates RSS feeds on a schedule and lets users browse the posts of the
feeds they follow.
"""

__version__ = "1.0.0"
__author__ = "gator contributors"
__description__ = "RSS feed aggregator with a scheduled ingestion pipeline"
