"""
Link Crawler

A breadth-first web crawler that records a link graph with per-URL crawl state.
"""

__version__ = "1.0.0"
__description__ = "A breadth-first crawler that persists a link graph with crawl state"
