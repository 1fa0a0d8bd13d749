"""
Logging Setup Tests
"""

import json
import logging

import pytest

from linkcrawler.utils.config import LoggingConfig
from linkcrawler.utils.logger import JSONFormatter, NoiseFilter, get_crawl_logger, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_json_formatter_keeps_crawl_context():
    record = logging.makeLogRecord({
        'name': 'linkcrawler.crawler.engine', 'levelno': logging.WARNING,
        'levelname': 'WARNING', 'msg': 'Fetch failed',
        'url': 'http://site.test/c', 'event': 'fetch_failed', 'round': 2,
    })

    entry = json.loads(JSONFormatter().format(record))

    assert entry['message'] == 'Fetch failed'
    assert entry['url'] == 'http://site.test/c'
    assert entry['event'] == 'fetch_failed'
    assert entry['round'] == 2
    assert 'stat' not in entry


def test_noise_filter_drops_chatty_debug_only():
    noise_filter = NoiseFilter()

    def record(name, level):
        return logging.makeLogRecord({'name': name, 'levelno': level})

    assert noise_filter.filter(record('aiohttp.client', logging.DEBUG)) is False
    assert noise_filter.filter(record('aiohttp.client', logging.WARNING)) is True
    assert noise_filter.filter(record('linkcrawler.crawler.engine', logging.DEBUG)) is True


def test_page_event_carries_context(caplog):
    crawl_logger = get_crawl_logger('linkcrawler.tests', run='nightly')

    with caplog.at_level(logging.WARNING, logger='linkcrawler.tests'):
        crawl_logger.page_event(logging.WARNING, 'http://site.test/c', 'fetch_failed',
                                'Fetch failed', round=3)

    record = caplog.records[-1]
    assert record.url == 'http://site.test/c'
    assert record.event == 'fetch_failed'
    assert record.round == 3
    assert record.run == 'nightly'


def test_setup_logging_writes_crawl_and_error_logs(tmp_path, root_logger):
    log_file = tmp_path / 'logs' / 'crawl.log'
    setup_logging(LoggingConfig(level='debug', file=str(log_file), json=True))

    get_crawl_logger('linkcrawler.tests').crawl_stat('pages_crawled', 4)
    logging.getLogger('linkcrawler.tests').error('Store unavailable')
    for handler in root_logger.handlers:
        handler.flush()

    entries = [json.loads(line) for line in log_file.read_text().splitlines()]
    stat = next(e for e in entries if e.get('stat') == 'pages_crawled')
    assert stat['value'] == 4
    assert root_logger.level == logging.DEBUG
    errors = (tmp_path / 'logs' / 'errors.log').read_text()
    assert 'Store unavailable' in errors
    assert 'pages_crawled' not in errors


def test_unknown_level_rejected(tmp_path, root_logger):
    with pytest.raises(ValueError):
        setup_logging(LoggingConfig(level='chatty', file=str(tmp_path / 'crawl.log')))
