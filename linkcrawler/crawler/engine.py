"""
Crawl engine: depth-bounded breadth-first traversal over the page store.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .frontier import Frontier
from .fetcher import WebFetcher
from .parser import ContentParser, ParsedContent, normalize_url
from .images import ImageFilter
from ..storage.database import PageStore, StorageError
from ..storage.models import URLRecord
from ..utils.config import Config
from ..utils.logger import get_crawl_logger
from ..utils.monitoring import CrawlerMonitor
from ..utils.progress import ProgressChannel


# Fields written when a link is rediscovered, and when a page finishes
LINK_UPDATE_FIELDS = ('title', 'linked_from', 'depth')
PAGE_UPDATE_FIELDS = ('title', 'body', 'depth', 'crawled')


@dataclass
class CrawlResult:
    """What processing one page produced."""
    body: str
    links: List[Tuple[str, str]]
    depth: int


@dataclass
class CrawlStats:
    """Statistics for one run."""
    start_time: float
    rounds: int = 0
    pages_crawled: int = 0
    fetch_failures: int = 0
    links_inserted: int = 0
    links_updated: int = 0
    images_saved: int = 0
    image_failures: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_crawled / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlEngine:
    """
    Drives the crawl: loads a frontier of uncrawled pages, runs each through
    fetch, parse, image capture and link-graph updates, then reloads the
    frontier for the next round until it is empty or the depth budget is spent.

    Pages are processed one at a time. All link writes for a page are
    committed before the page itself is marked crawled. Store errors are not
    caught here; they end the run.
    """

    def __init__(self, config: Config, store: PageStore, fetcher: WebFetcher,
                 parser: ContentParser, image_filter: Optional[ImageFilter] = None,
                 progress: Optional[ProgressChannel] = None,
                 monitor: Optional[CrawlerMonitor] = None):
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.parser = parser
        self.image_filter = image_filter
        self.progress = progress or ProgressChannel(config.monitoring.progress_history)
        self.monitor = monitor or CrawlerMonitor()

        self.logger = logging.getLogger(__name__)
        self.crawl_logger = get_crawl_logger(__name__)

        self.frontier = Frontier()
        self.failure_counts: Dict[str, int] = {}
        self.stats = CrawlStats(start_time=time.time())

    @classmethod
    def from_config(cls, config: Config, progress: Optional[ProgressChannel] = None,
                    monitor: Optional[CrawlerMonitor] = None) -> 'CrawlEngine':
        """Build an engine and its collaborators from configuration."""
        fetcher = WebFetcher(
            user_agent=config.crawler.user_agent,
            request_timeout=config.crawler.request_timeout
        )
        parser = ContentParser(
            allowed_domains=config.crawler.allowed_domains,
            blocked_domains=config.crawler.blocked_domains
        )
        image_filter = ImageFilter(
            fetcher,
            media_directory=config.images.media_directory,
            min_image_size=config.images.min_image_size
        )
        return cls(config, PageStore(config.database), fetcher, parser,
                   image_filter=image_filter, progress=progress, monitor=monitor)

    async def initialize(self):
        """Prepare the store, log in if configured and seed the graph."""
        await self.store.ensure_schema()
        await self.fetcher.start()

        auth = self.config.auth
        if auth.enabled and auth.login_endpoint:
            await self.fetcher.start_authenticated_session(auth.credentials, auth.login_endpoint)

        await self.add_seed_urls()
        self.logger.info("Crawl engine initialized")

    async def add_seed_urls(self) -> int:
        """Insert configured seed URLs at depth 0 unless already known."""
        added_count = 0
        for url in map(normalize_url, self.config.crawler.seed_urls):
            if await self.store.exists(url):
                continue
            await self.store.insert(URLRecord(url=url, depth=0))
            added_count += 1

        self.logger.info(f"Added {added_count} seed URLs to the page store")
        return added_count

    async def run(self, max_depth: Optional[int] = None) -> CrawlStats:
        """
        Crawl until the frontier is empty or `max_depth` rounds have run.

        Args:
            max_depth: Number of rounds; 0 means unbounded. Defaults to the
                configured value.

        Returns:
            Statistics for this run
        """
        if max_depth is None:
            max_depth = self.config.crawler.max_depth

        self.stats = CrawlStats(start_time=time.time())
        await self.refresh_frontier()

        while not self.frontier.is_empty():
            self.logger.info(f"Starting round {self.stats.rounds + 1} "
                             f"with {len(self.frontier)} pages")

            for page in self.frontier.snapshot():
                await self.process_page(page)
                self.frontier.discard(page.url)

            self.stats.rounds += 1
            self.monitor.update_rounds(self.stats.rounds)

            if max_depth and self.stats.rounds >= max_depth:
                self.logger.info(f"Reached max depth of {max_depth} rounds")
                break

            await self.refresh_frontier()

        await self._log_final_stats()
        return self.stats

    async def refresh_frontier(self) -> int:
        """Reload the frontier from the page store."""
        batch_size = self.config.crawler.batch_size
        limit = batch_size + len(self.frontier.excluded) if batch_size else 0

        records = await self.store.next_batch(limit)
        count = self.frontier.load(records, limit=batch_size)

        self.monitor.update_frontier_size(count)
        self.logger.debug(f"Frontier loaded with {count} pages")
        return count

    async def process_page(self, page: URLRecord) -> bool:
        """
        Fetch, parse and record one frontier page.

        Returns:
            True if the page was marked crawled, False if it was skipped
        """
        # Depth lives in the store, not in the frontier copy
        stored = await self.store.get_by_url(page.url)
        if stored is None:
            raise StorageError(f"Frontier page missing from store: {page.url}")
        if stored.crawled:
            self.logger.debug(f"Skipping already crawled page: {page.url}")
            return False
        depth = stored.depth

        fetch_result = await self.fetcher.fetch(page.url)
        if not fetch_result.ok:
            self._record_fetch_failure(page.url, fetch_result.error)
            return False

        parsed = self.parser.parse(page.url, fetch_result.content)

        if self.config.images.save_images and self.image_filter:
            await self._capture_images(parsed)

        result = CrawlResult(
            body=parsed.content or "",
            links=[(link.url, link.title) for link in parsed.links],
            depth=depth + 1
        )
        await self._record_links(stored, result)

        stored.title = parsed.title or stored.title
        stored.body = result.body
        stored.depth = depth
        stored.crawled = True
        await self.store.update(stored, PAGE_UPDATE_FIELDS)

        self.crawl_logger.page_event(logging.DEBUG, page.url, 'crawled',
                                     f"Crawled with {len(result.links)} links",
                                     depth=depth, round=self.stats.rounds + 1)
        self.progress.emit(f"Found {len(result.links)} links on {page.url}.")
        self.stats.pages_crawled += 1
        self.monitor.record_page_crawled(page.url, len(result.links))
        return True

    async def _record_links(self, page: URLRecord, result: CrawlResult):
        """Insert unseen links; overwrite title, referrer and depth of known ones."""
        inserted = updated = 0

        for link_url, link_title in result.links:
            record = URLRecord(
                url=link_url,
                title=link_title,
                linked_from=page.id,
                depth=result.depth
            )
            if await self.store.exists(link_url):
                await self.store.update(record, LINK_UPDATE_FIELDS)
                updated += 1
            else:
                await self.store.insert(record)
                inserted += 1

        self.stats.links_inserted += inserted
        self.stats.links_updated += updated
        self.monitor.record_links(inserted, updated)

    async def _capture_images(self, parsed: ParsedContent):
        for image_url in parsed.images:
            decision = await self.image_filter.capture(image_url)
            if decision.saved:
                self.stats.images_saved += 1
                self.monitor.record_image_saved(image_url)
            elif decision.error:
                self.stats.image_failures += 1
                self.monitor.record_fetch_failure(image_url, resource='image')

    def _record_fetch_failure(self, url: str, error: Optional[str]):
        self.stats.fetch_failures += 1
        self.monitor.record_fetch_failure(url)
        self.crawl_logger.page_event(
            logging.WARNING, url, 'fetch_failed',
            f"Fetch failed, leaving page uncrawled: {error}", round=self.stats.rounds + 1
        )

        limit = self.config.crawler.max_fetch_failures
        if not limit:
            return

        failures = self.failure_counts.get(url, 0) + 1
        self.failure_counts[url] = failures
        if failures >= limit:
            self.frontier.exclude(url)
            self.logger.warning(f"Giving up on {url} after {failures} failed fetches")

    async def _log_final_stats(self):
        store_stats = await self.store.get_stats()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.crawl_logger.crawl_stat('rounds', self.stats.rounds)
        self.crawl_logger.crawl_stat('pages_crawled', self.stats.pages_crawled)
        self.crawl_logger.crawl_stat('fetch_failures', self.stats.fetch_failures)
        self.crawl_logger.crawl_stat('links_inserted', self.stats.links_inserted)
        self.crawl_logger.crawl_stat('links_updated', self.stats.links_updated)
        self.crawl_logger.crawl_stat('images_saved', self.stats.images_saved)
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {self.stats.pages_per_minute:.1f} pages/min")
        self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")
        self.logger.info(f"Page store stats: {store_stats}")

    async def close(self):
        """Close all connections."""
        await self.fetcher.close()
        await self.store.close()
        self.logger.info("Crawl engine closed")
