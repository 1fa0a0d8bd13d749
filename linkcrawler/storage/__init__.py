"""
Storage layer for the link crawler.
"""

from .database import (PageStore, StorageBackend, FileStorageBackend, RedisStorageBackend,
                       StorageError, DuplicateURLError)
from .models import URLRecord

__all__ = ['PageStore', 'StorageBackend', 'FileStorageBackend', 'RedisStorageBackend',
           'StorageError', 'DuplicateURLError', 'URLRecord']
