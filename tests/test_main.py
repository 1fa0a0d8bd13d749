"""
Command-line Entry Point Tests
"""

import sys

import pytest
from unittest.mock import patch, AsyncMock

from linkcrawler import main as cli
from linkcrawler.crawler.fetcher import WebFetcher, FetchResult
from linkcrawler.storage.database import FileStorageBackend


def test_missing_config_file(tmp_path, capsys):
    with patch.object(sys, 'argv', ['linkcrawler', '--config', str(tmp_path / 'none.yaml')]):
        assert cli.main() == 1

    assert "not found" in capsys.readouterr().out


def test_negative_max_depth(tmp_path):
    config_path = tmp_path / 'config.yaml'
    config_path.write_text("crawler:\n  seed_urls: []\n")

    with patch.object(sys, 'argv', ['linkcrawler', '--config', str(config_path), '--max-depth', '-1']):
        assert cli.main() == 1


def test_version_flag(capsys):
    with patch.object(sys, 'argv', ['linkcrawler', '--version']):
        with pytest.raises(SystemExit):
            cli.main()

    assert "Link Crawler" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_app_run_crawls_seed(tmp_path):
    """End to end through CrawlerApp with the network stubbed out"""
    pages_path = tmp_path / 'pages.json'
    config_path = tmp_path / 'config.yaml'
    config_path.write_text(
        "crawler:\n"
        "  seed_urls: ['http://site.test/']\n"
        "  max_depth: 1\n"
        "database:\n"
        f"  file: {{path: '{pages_path}'}}\n"
    )
    html = '<html><title>Home</title><body><a href="/next">Next</a></body></html>'

    with patch.object(cli, 'setup_logging'), patch.object(cli, 'log_system_info'), \
            patch.object(cli.CrawlerApp, 'setup_signal_handlers'), \
            patch.object(WebFetcher, 'start', AsyncMock()), \
            patch.object(WebFetcher, 'close', AsyncMock()), \
            patch.object(WebFetcher, 'fetch', AsyncMock(return_value=FetchResult(
                url='http://site.test/', status_code=200, content=html))):
        status = await cli.CrawlerApp().run(str(config_path))

    assert status == 0
    backend = FileStorageBackend(str(pages_path))
    await backend.ensure_schema()
    home = await backend.get_by_url('http://site.test/')
    following = await backend.get_by_url('http://site.test/next')
    assert home.crawled is True
    assert home.title == 'Home'
    assert following.crawled is False
    assert following.linked_from == home.id
