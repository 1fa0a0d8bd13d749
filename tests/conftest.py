"""
Test configuration and fixtures for link crawler tests
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import fakeredis
import pytest

from linkcrawler.crawler.fetcher import FetchResult
from linkcrawler.crawler.parser import ContentParser
from linkcrawler.storage.database import PageStore, FileStorageBackend, RedisStorageBackend
from linkcrawler.utils.config import Config, DatabaseConfig
from linkcrawler.utils.progress import ProgressChannel


def page(*links: Tuple[str, str], title: str = "Page", images: List[str] = ()) -> str:
    """Build a small HTML document with the given (href, text) links."""
    anchors = "".join(f'<a href="{href}">{text}</a>' for href, text in links)
    imgs = "".join(f'<img src="{src}">' for src in images)
    return (f"<html><head><title>{title}</title></head>"
            f"<body><p>Body of {title}</p>{anchors}{imgs}</body></html>")


class FakeFetcher:
    """In-memory stand-in for WebFetcher."""

    def __init__(self, pages: Optional[Dict[str, str]] = None):
        self.pages: Dict[str, str] = dict(pages or {})
        self.failing: set = set()
        self.heads: Dict[str, Tuple[int, str]] = {}
        self.resources: Dict[str, bytes] = {}
        self.fetched: List[str] = []
        self.downloaded: List[str] = []
        self.login: Optional[Tuple[dict, str]] = None
        self.closed = False

    async def start(self):
        pass

    async def close(self):
        self.closed = True

    async def start_authenticated_session(self, credentials, endpoint):
        self.login = (credentials, endpoint)

    async def fetch(self, url: str) -> FetchResult:
        self.fetched.append(url)
        if url in self.failing or url not in self.pages:
            return FetchResult(url=url, status_code=0, error="Client error: unreachable")
        return FetchResult(url=url, status_code=200, content=self.pages[url],
                           content_type="text/html")

    async def fetch_to_file(self, url: str, dest_path: Path) -> FetchResult:
        if url not in self.resources:
            return FetchResult(url=url, status_code=404, error="HTTP 404")
        self.downloaded.append(url)
        Path(dest_path).parent.mkdir(parents=True, exist_ok=True)
        Path(dest_path).write_bytes(self.resources[url])
        return FetchResult(url=url, status_code=200, bytes_written=len(self.resources[url]))

    async def head_size(self, url: str) -> int:
        return self.heads.get(url, (-1, ""))[0]

    async def content_type(self, url: str) -> str:
        return self.heads.get(url, (-1, ""))[1]

    def get_stats(self):
        return {'total_requests': len(self.fetched)}


@pytest.fixture
def config(tmp_path):
    """Default configuration with a file store under tmp_path."""
    cfg = Config()
    cfg.database = DatabaseConfig(type='file', file={'path': str(tmp_path / 'pages.json')})
    cfg.images.media_directory = str(tmp_path / 'media')
    return cfg


@pytest.fixture
def store(config):
    return PageStore(config.database, backend=FileStorageBackend(config.database.file['path']))


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def parser():
    return ContentParser()


@pytest.fixture
def progress():
    return ProgressChannel(max_history=100)


@pytest.fixture
def make_page():
    return page


@pytest.fixture
def redis_store():
    """Page store on an in-process fake Redis server."""
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    backend = RedisStorageBackend({'key_prefix': 'test'}, client=client)
    return PageStore(DatabaseConfig(type='redis'), backend=backend)
