"""
Web page fetcher built on an aiohttp client session.
"""

import asyncio
import aiohttp
import logging
import time
from pathlib import Path
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    content: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    content_type: Optional[str] = None
    encoding: Optional[str] = None
    bytes_written: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class AuthenticationError(Exception):
    """Raised when logging into the crawled site fails."""
    pass


class WebFetcher:
    """
    Fetches web pages and binary resources, optionally inside a logged-in session.
    """

    def __init__(self, user_agent: str, request_timeout: int = 30,
                 max_content_size: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_content_size = max_content_size

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            # The cookie jar carries the login session across requests
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                cookie_jar=aiohttp.CookieJar(unsafe=True),
                connector=aiohttp.TCPConnector(
                    limit_per_host=10,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def start_authenticated_session(self, credentials: Dict[str, str], endpoint: str):
        """
        Log into the site by posting `credentials` as a form to `endpoint`.

        Cookies set by the response are kept for every later request.

        Raises:
            AuthenticationError: on transport failure or an HTTP error status
        """
        await self.start()
        try:
            async with self.session.post(endpoint, data=credentials) as response:
                if response.status >= 400:
                    raise AuthenticationError(f"Login to {endpoint} failed with HTTP {response.status}")
                await response.read()
        except (ClientError, asyncio.TimeoutError) as e:
            raise AuthenticationError(f"Login to {endpoint} failed: {e}") from e

        self.logger.info(f"Authenticated session started at {endpoint}")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single page.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with the decoded body, or with `error` set on failure
        """
        start_time = time.time()
        self.stats['total_requests'] += 1

        try:
            async with self.session.get(url) as response:
                fetch_time = time.time() - start_time
                headers = dict(response.headers)
                content_type = response.headers.get('content-type', '').lower()

                if response.status >= 400:
                    self.stats['failed_requests'] += 1
                    self.logger.warning(f"HTTP {response.status} fetching {url}")
                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        headers=headers,
                        content_type=content_type,
                        error=f"HTTP {response.status}",
                        fetch_time=fetch_time
                    )

                if not self._is_text_content(content_type):
                    self.stats['failed_requests'] += 1
                    self.logger.debug(f"Skipping non-text content: {url} ({content_type})")
                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        headers=headers,
                        content_type=content_type,
                        error="Non-text content type",
                        fetch_time=fetch_time
                    )

                content = await self._read_content_safely(response)
                if content is None:
                    self.stats['failed_requests'] += 1
                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        headers=headers,
                        content_type=content_type,
                        error="Content unreadable or too large",
                        fetch_time=fetch_time
                    )

                self.stats['total_bytes_downloaded'] += len(content)
                self.stats['successful_requests'] += 1
                self.logger.debug(f"Fetched {url}: {response.status} ({len(content)} chars)")

                return FetchResult(
                    url=url,
                    status_code=response.status,
                    content=content,
                    headers=headers,
                    content_type=content_type,
                    encoding=response.charset,
                    fetch_time=fetch_time
                )

        except asyncio.TimeoutError:
            error_msg = "Request timeout"
            self.logger.warning(f"Timeout fetching {url}")

        except ClientError as e:
            error_msg = f"Client error: {str(e)}"
            self.logger.warning(f"Client error fetching {url}: {e}")

        self.stats['failed_requests'] += 1
        return FetchResult(
            url=url,
            status_code=0,
            error=error_msg,
            fetch_time=time.time() - start_time
        )

    async def fetch_to_file(self, url: str, dest_path: Path) -> FetchResult:
        """Stream a binary resource to `dest_path`."""
        start_time = time.time()
        self.stats['total_requests'] += 1
        dest_path = Path(dest_path)

        try:
            async with self.session.get(url) as response:
                if response.status >= 400:
                    self.stats['failed_requests'] += 1
                    return FetchResult(url=url, status_code=response.status,
                                       error=f"HTTP {response.status}",
                                       fetch_time=time.time() - start_time)

                dest_path.parent.mkdir(parents=True, exist_ok=True)
                written = 0
                with open(dest_path, 'wb') as f:
                    async for chunk in response.content.iter_chunked(8192):
                        f.write(chunk)
                        written += len(chunk)

                self.stats['successful_requests'] += 1
                self.stats['total_bytes_downloaded'] += written
                return FetchResult(
                    url=url,
                    status_code=response.status,
                    content_type=response.headers.get('content-type', '').lower(),
                    bytes_written=written,
                    fetch_time=time.time() - start_time
                )

        except asyncio.TimeoutError:
            error_msg = "Request timeout"
        except (ClientError, OSError) as e:
            error_msg = f"{type(e).__name__}: {e}"

        # Drop partial downloads so a later existence check does not skip them
        try:
            dest_path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.debug(f"Could not remove {dest_path}: {e}")
        self.stats['failed_requests'] += 1
        self.logger.warning(f"Failed to download {url}: {error_msg}")
        return FetchResult(url=url, status_code=0, error=error_msg,
                           fetch_time=time.time() - start_time)

    async def _head(self, url: str) -> Optional[Dict[str, str]]:
        try:
            async with self.session.head(url, allow_redirects=True) as response:
                if response.status >= 400:
                    self.logger.debug(f"HEAD {url} returned {response.status}")
                    return None
                return {k.lower(): v for k, v in response.headers.items()}
        except (ClientError, asyncio.TimeoutError) as e:
            self.logger.debug(f"HEAD {url} failed: {e}")
            return None

    async def head_size(self, url: str) -> int:
        """Declared size of a resource in bytes, or -1 when unknown."""
        headers = await self._head(url)
        if not headers:
            return -1
        try:
            return int(headers.get('content-length', -1))
        except ValueError:
            return -1

    async def content_type(self, url: str) -> str:
        """Declared content type of a resource, or an empty string."""
        headers = await self._head(url)
        if not headers:
            return ""
        return headers.get('content-type', '').lower()

    def _is_text_content(self, content_type: str) -> bool:
        """Check if content type is text-based."""
        text_types = [
            'text/html',
            'text/plain',
            'application/xhtml+xml',
        ]
        return any(text_type in content_type for text_type in text_types)

    async def _read_content_safely(self, response) -> Optional[str]:
        """
        Read response content with a size limit.

        Returns:
            Content string, or None if too large or unreadable
        """
        max_size = self.max_content_size
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        content_bytes = b''
        async for chunk in response.content.iter_chunked(8192):
            content_bytes += chunk
            if len(content_bytes) > max_size:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            for fallback_encoding in ['utf-8', 'cp1252']:
                try:
                    return content_bytes.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue
            return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
