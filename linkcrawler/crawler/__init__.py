"""
Link crawler core components.
"""

from .engine import CrawlEngine, CrawlResult, CrawlStats
from .frontier import Frontier
from .fetcher import WebFetcher, FetchResult, AuthenticationError
from .parser import ContentParser, ParsedContent, Link
from .images import ImageFilter, ImageDecision, image_filename

__all__ = [
    'CrawlEngine', 'CrawlResult', 'CrawlStats',
    'Frontier',
    'WebFetcher', 'FetchResult', 'AuthenticationError',
    'ContentParser', 'ParsedContent', 'Link',
    'ImageFilter', 'ImageDecision', 'image_filename'
]
