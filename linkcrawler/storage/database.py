"""
Page store for the link graph.
Supports both Redis and file-based storage.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Dict, List, Any, Iterable

import redis.asyncio as redis

from .models import URLRecord, UPDATABLE_FIELDS
from ..utils.config import DatabaseConfig


class StorageError(Exception):
    """Raised when the page store cannot be read or written."""
    pass


class DuplicateURLError(StorageError):
    """Raised when inserting a URL that is already stored."""
    pass


def _check_fields(fields: Iterable[str]) -> List[str]:
    fields = list(fields)
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update fields: {sorted(unknown)}")
    return fields


class StorageBackend:
    """Abstract base class for storage backends."""

    async def ensure_schema(self):
        """Prepare the backend; safe to call more than once."""
        raise NotImplementedError

    async def next_batch(self, limit: int = 0) -> List[URLRecord]:
        """Uncrawled records in insertion order, at most `limit` (0 = all)."""
        raise NotImplementedError

    async def exists(self, url: str) -> bool:
        raise NotImplementedError

    async def get_by_url(self, url: str) -> Optional[URLRecord]:
        raise NotImplementedError

    async def insert(self, record: URLRecord) -> URLRecord:
        """Insert a new record and return it with its assigned id."""
        raise NotImplementedError

    async def update(self, record: URLRecord, fields: Iterable[str] = UPDATABLE_FIELDS):
        """Write the named fields of `record` to the stored row for `record.url`."""
        raise NotImplementedError

    async def count(self, crawled: Optional[bool] = None) -> int:
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError


class FileStorageBackend(StorageBackend):
    """JSON file storage backend for development and small-scale crawls."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)
        self.records: Dict[str, URLRecord] = {}
        self.next_id = 1

    async def ensure_schema(self):
        """Create the data file if missing and load existing records."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self.records = {}
                self.next_id = 1
                self._save()
                self.logger.info(f"Created page store at {self.path}")
                return

            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            self.records = {
                row['url']: URLRecord.from_dict(row) for row in data.get('pages', [])
            }
            self.next_id = int(data.get('next_id', len(self.records) + 1))
            self.logger.info(f"Loaded {len(self.records)} pages from {self.path}")

        except (OSError, ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Failed to initialize file storage at {self.path}: {e}")

    def _save(self):
        data = {
            'next_id': self.next_id,
            'pages': [record.to_dict() for record in self._ordered()],
        }
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}")

    def _ordered(self) -> List[URLRecord]:
        return sorted(self.records.values(), key=lambda r: r.id)

    async def next_batch(self, limit: int = 0) -> List[URLRecord]:
        pending = [URLRecord(**r.to_dict()) for r in self._ordered() if not r.crawled]
        return pending[:limit] if limit > 0 else pending

    async def exists(self, url: str) -> bool:
        return url in self.records

    async def get_by_url(self, url: str) -> Optional[URLRecord]:
        record = self.records.get(url)
        return URLRecord(**record.to_dict()) if record else None

    async def insert(self, record: URLRecord) -> URLRecord:
        if record.url in self.records:
            raise DuplicateURLError(f"URL already stored: {record.url}")

        stored = URLRecord(**{**record.to_dict(), 'id': self.next_id})
        self.records[stored.url] = stored
        self.next_id += 1
        self._save()
        return URLRecord(**stored.to_dict())

    async def update(self, record: URLRecord, fields: Iterable[str] = UPDATABLE_FIELDS):
        fields = _check_fields(fields)
        stored = self.records.get(record.url)
        if stored is None:
            raise StorageError(f"Cannot update unknown URL: {record.url}")

        for name in fields:
            setattr(stored, name, getattr(record, name))
        self._save()

    async def count(self, crawled: Optional[bool] = None) -> int:
        if crawled is None:
            return len(self.records)
        return sum(1 for r in self.records.values() if r.crawled == crawled)

    async def close(self):
        self.logger.debug(f"File page store closed: {self.path}")


class RedisStorageBackend(StorageBackend):
    """
    Redis storage backend.

    Layout under `key_prefix`:
      <prefix>:pages      hash   id -> JSON record
      <prefix>:urls       hash   url -> id (uniqueness index)
      <prefix>:uncrawled  zset   id scored by id (insertion order)
      <prefix>:next_id    string id counter
    """

    def __init__(self, config: Dict[str, Any], client: Optional[redis.Redis] = None):
        self.config = config
        self.redis_client = client
        self.logger = logging.getLogger(__name__)

        prefix = config.get('key_prefix', 'linkcrawler')
        self.pages_key = f"{prefix}:pages"
        self.urls_key = f"{prefix}:urls"
        self.uncrawled_key = f"{prefix}:uncrawled"
        self.next_id_key = f"{prefix}:next_id"

    async def ensure_schema(self):
        """Connect and verify the server answers."""
        try:
            if self.redis_client is None:
                self.redis_client = redis.Redis(
                    host=self.config.get('host', 'localhost'),
                    port=self.config.get('port', 6379),
                    db=self.config.get('db', 0),
                    password=self.config.get('password'),
                    decode_responses=True
                )
            await self.redis_client.ping()
            self.logger.info(f"Redis page store ready ({self.pages_key})")
        except redis.RedisError as e:
            raise StorageError(f"Failed to initialize Redis storage: {e}")

    def _decode(self, raw: Optional[str]) -> Optional[URLRecord]:
        if raw is None:
            return None
        return URLRecord.from_dict(json.loads(raw))

    async def next_batch(self, limit: int = 0) -> List[URLRecord]:
        try:
            end = limit - 1 if limit > 0 else -1
            ids = await self.redis_client.zrange(self.uncrawled_key, 0, end)
            if not ids:
                return []
            rows = await self.redis_client.hmget(self.pages_key, ids)
        except redis.RedisError as e:
            raise StorageError(f"Failed to load next batch: {e}")
        return [self._decode(row) for row in rows if row is not None]

    async def exists(self, url: str) -> bool:
        try:
            record_id = await self.redis_client.hget(self.urls_key, url)
            if record_id is None:
                return False
            return bool(await self.redis_client.hexists(self.pages_key, record_id))
        except redis.RedisError as e:
            raise StorageError(f"Failed to look up {url}: {e}")

    async def get_by_url(self, url: str) -> Optional[URLRecord]:
        try:
            record_id = await self.redis_client.hget(self.urls_key, url)
            if record_id is None:
                return None
            return self._decode(await self.redis_client.hget(self.pages_key, record_id))
        except redis.RedisError as e:
            raise StorageError(f"Failed to read {url}: {e}")

    async def insert(self, record: URLRecord) -> URLRecord:
        try:
            record_id = await self.redis_client.incr(self.next_id_key)
            if not await self.redis_client.hsetnx(self.urls_key, record.url, record_id):
                if await self.exists(record.url):
                    raise DuplicateURLError(f"URL already stored: {record.url}")
                # Claim left behind by an insert whose row write failed
                self.logger.warning(f"Reclaiming orphaned URL index entry: {record.url}")
                await self.redis_client.hset(self.urls_key, record.url, record_id)
        except redis.RedisError as e:
            raise StorageError(f"Failed to insert {record.url}: {e}")

        stored = URLRecord(**{**record.to_dict(), 'id': record_id})
        try:
            async with self.redis_client.pipeline(transaction=True) as pipe:
                pipe.hset(self.pages_key, record_id, json.dumps(stored.to_dict()))
                if not stored.crawled:
                    pipe.zadd(self.uncrawled_key, {record_id: record_id})
                await pipe.execute()
        except redis.RedisError as e:
            await self._release_url(record.url, record_id)
            raise StorageError(f"Failed to insert {record.url}: {e}")
        return stored

    async def _release_url(self, url: str, record_id: int):
        """Drop a URL claim whose page row was never written."""
        try:
            if str(await self.redis_client.hget(self.urls_key, url)) == str(record_id):
                await self.redis_client.hdel(self.urls_key, url)
        except redis.RedisError as e:
            self.logger.error(f"Failed to release {url} after aborted insert: {e}")

    async def update(self, record: URLRecord, fields: Iterable[str] = UPDATABLE_FIELDS):
        fields = _check_fields(fields)
        stored = await self.get_by_url(record.url)
        if stored is None:
            raise StorageError(f"Cannot update unknown URL: {record.url}")

        for name in fields:
            setattr(stored, name, getattr(record, name))

        try:
            async with self.redis_client.pipeline(transaction=True) as pipe:
                pipe.hset(self.pages_key, stored.id, json.dumps(stored.to_dict()))
                if stored.crawled:
                    pipe.zrem(self.uncrawled_key, stored.id)
                else:
                    pipe.zadd(self.uncrawled_key, {stored.id: stored.id})
                await pipe.execute()
        except redis.RedisError as e:
            raise StorageError(f"Failed to update {record.url}: {e}")

    async def count(self, crawled: Optional[bool] = None) -> int:
        try:
            total = await self.redis_client.hlen(self.urls_key)
            if crawled is None:
                return total
            uncrawled = await self.redis_client.zcard(self.uncrawled_key)
            return uncrawled if not crawled else total - uncrawled
        except redis.RedisError as e:
            raise StorageError(f"Failed to count pages: {e}")

    async def close(self):
        if self.redis_client:
            await self.redis_client.aclose()
            self.logger.info("Redis connection closed")


class PageStore:
    """Page store facade that handles the configured storage backend."""

    def __init__(self, config: DatabaseConfig, backend: Optional[StorageBackend] = None):
        self.config = config
        self.backend = backend
        self.logger = logging.getLogger(__name__)

    def _create_backend(self) -> StorageBackend:
        backend_type = self.config.type.lower()

        if backend_type == 'redis':
            return RedisStorageBackend(self.config.redis)
        elif backend_type == 'file':
            return FileStorageBackend(self.config.file['path'])
        raise StorageError(f"Unknown database type: {backend_type}")

    async def ensure_schema(self):
        """Initialize the backend; idempotent."""
        if self.backend is None:
            self.backend = self._create_backend()
        await self.backend.ensure_schema()
        self.logger.info(f"Page store initialized with {type(self.backend).__name__}")

    def _require_backend(self) -> StorageBackend:
        if not self.backend:
            raise StorageError("Page store not initialized")
        return self.backend

    async def next_batch(self, limit: int = 0) -> List[URLRecord]:
        return await self._require_backend().next_batch(limit)

    async def exists(self, url: str) -> bool:
        return await self._require_backend().exists(url)

    async def get_by_url(self, url: str) -> Optional[URLRecord]:
        return await self._require_backend().get_by_url(url)

    async def insert(self, record: URLRecord) -> URLRecord:
        return await self._require_backend().insert(record)

    async def update(self, record: URLRecord, fields: Iterable[str] = UPDATABLE_FIELDS):
        await self._require_backend().update(record, fields)

    async def count(self, crawled: Optional[bool] = None) -> int:
        return await self._require_backend().count(crawled)

    async def get_stats(self) -> Dict[str, int]:
        """Get storage statistics."""
        total = await self.count()
        crawled = await self.count(crawled=True)
        return {'total_pages': total, 'crawled': crawled, 'uncrawled': total - crawled}

    async def close(self):
        """Close storage connections."""
        if self.backend:
            await self.backend.close()
