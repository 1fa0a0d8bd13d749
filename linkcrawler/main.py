#!/usr/bin/env python3
"""
Command-line entry point for the link crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .crawler.engine import CrawlEngine
from .crawler.fetcher import AuthenticationError
from .storage.database import StorageError
from .utils.config import load_config, Config
from .utils.logger import setup_logging, log_system_info
from .utils.monitoring import initialize_monitoring


class CrawlerApp:
    """Main application class for the link crawler."""

    def __init__(self):
        self.engine: Optional[CrawlEngine] = None
        self.logger = logging.getLogger(__name__)

    def setup_signal_handlers(self, crawl_task: asyncio.Task):
        """Cancel the crawl on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            crawl_task.cancel()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # Not supported on Windows event loops
                pass

    async def run(self, config_path: str, max_depth: Optional[int] = None,
                  dry_run: bool = False) -> int:
        """Run the link crawler."""
        config = load_config(config_path)
        setup_logging(config.logging)
        log_system_info()

        if max_depth is not None:
            config.crawler.max_depth = max_depth

        self.logger.info("=== LINK CRAWLER STARTING ===")
        self.logger.info(f"Configuration loaded from: {config_path}")
        self.logger.info(f"Seed URLs: {config.crawler.seed_urls}")
        self.logger.info(f"Max depth: {config.crawler.max_depth or 'unbounded'}")
        self.logger.info(f"Database type: {config.database.type}")
        self.logger.info(f"Save images: {config.images.save_images}")

        monitor = initialize_monitoring(config.monitoring.metrics_enabled,
                                        config.monitoring.prometheus_port)
        self.engine = CrawlEngine.from_config(config, monitor=monitor)

        try:
            if dry_run:
                self.logger.info("DRY RUN MODE: No actual crawling will be performed")
                return await self._dry_run(config)

            await self.engine.initialize()

            crawl_task = asyncio.create_task(self.engine.run())
            self.setup_signal_handlers(crawl_task)
            try:
                await crawl_task
            except asyncio.CancelledError:
                self.logger.info("Crawl cancelled; uncrawled pages stay queued for the next run")
                return 1

        except (StorageError, AuthenticationError) as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            await self.engine.close()
            self.logger.info(f"Monitoring summary: {monitor.get_summary()}")
            self.logger.info("=== LINK CRAWLER FINISHED ===")

        return 0

    async def _dry_run(self, config: Config) -> int:
        """Check page store and fetcher connectivity without crawling."""
        status = 0

        self.logger.info("Testing page store...")
        try:
            await self.engine.store.ensure_schema()
            stats = await self.engine.store.get_stats()
            self.logger.info(f"✓ Page store ready: {stats}")
        except StorageError as e:
            self.logger.error(f"✗ Page store initialization failed: {e}")
            status = 1

        self.logger.info("Testing fetcher configuration...")
        await self.engine.fetcher.start()
        if config.crawler.seed_urls:
            result = await self.engine.fetcher.fetch(config.crawler.seed_urls[0])
            if result.error:
                self.logger.warning(f"Test fetch failed: {result.error}")
            else:
                self.logger.info(f"✓ Test fetch successful: {result.status_code}")

        self.logger.info("Dry run completed")
        return status


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Breadth-first link crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  linkcrawler                            # Run with default config.yaml
  linkcrawler --config my_config.yaml    # Run with custom config
  linkcrawler --max-depth 2              # Stop after two frontier rounds
  linkcrawler --dry-run                  # Test configuration only
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--max-depth',
        type=int,
        help='Number of frontier rounds to run (0 = until no pages remain)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Test configuration without actually crawling'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Link Crawler {__version__}'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    if args.max_depth is not None and args.max_depth < 0:
        print("Error: --max-depth must be non-negative")
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(
            config_path=args.config,
            max_depth=args.max_depth,
            dry_run=args.dry_run
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
