"""
Logging setup for crawl runs.

Console output, a size-rotated crawl log and a separate error log, with
optional JSON records that carry the crawl context (url, round, event).
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Optional
from datetime import datetime, timezone

from .config import LoggingConfig


# Record attributes set by CrawlLogAdapter and kept in JSON output
CRAWL_CONTEXT_FIELDS = ('url', 'event', 'round', 'depth', 'stat', 'value')

NOISY_LOGGERS = ('aiohttp.access', 'aiohttp.client', 'aiohttp.internal', 'redis.asyncio')


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update({key: getattr(record, key)
                      for key in CRAWL_CONTEXT_FIELDS if hasattr(record, key)})

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class CrawlLogAdapter(logging.LoggerAdapter):
    """Logger adapter for page-level crawl events and run statistics."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs

    def page_event(self, level: int, url: str, event: str, message: str, **context):
        """Log something that happened to one page, e.g. ``fetch_failed``."""
        self.log(level, message, extra={'url': url, 'event': event, **context})

    def crawl_stat(self, name: str, value: Any):
        self.info(f"{name}: {value}", extra={'event': 'crawl_stat', 'stat': name, 'value': value})


class NoiseFilter(logging.Filter):
    """Drop sub-WARNING records from chatty client libraries."""

    def __init__(self, prefixes: Iterable[str] = NOISY_LOGGERS):
        super().__init__()
        self.prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.WARNING or not record.name.startswith(self.prefixes)


def _rotating_handler(path: Path, level: int, max_bytes: int, backup_count: int,
                      formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: LoggingConfig, filter_noise: bool = True) -> logging.Logger:
    """
    Install the crawl log handlers on the root logger.

    The crawl log rotates at `config.max_file_size_mb` and keeps
    `config.backup_count` old files; ``errors.log`` beside it collects
    ERROR and above.

    Args:
        config: Logging section of the crawler configuration
        filter_noise: Attach NoiseFilter to the console and crawl log

    Returns:
        Configured root logger
    """
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {config.level}")

    log_file = Path(config.file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    formatter = JSONFormatter() if config.json else logging.Formatter(config.format)
    max_bytes = config.max_file_size_mb * 1024 * 1024

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(max(level, logging.INFO))
    console_handler.setFormatter(formatter)

    crawl_handler = _rotating_handler(log_file, logging.DEBUG, max_bytes,
                                      config.backup_count, formatter)
    error_handler = _rotating_handler(log_file.parent / 'errors.log', logging.ERROR,
                                      max_bytes, config.backup_count, formatter)

    if filter_noise:
        console_handler.addFilter(NoiseFilter())
        crawl_handler.addFilter(NoiseFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in (console_handler, crawl_handler, error_handler):
        root_logger.addHandler(handler)

    for name in ('aiohttp', 'redis', 'asyncio'):
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging to {log_file} at {config.level.upper()}")
    return root_logger


def get_crawl_logger(name: str, **context) -> CrawlLogAdapter:
    """Adapter whose records all carry `context`."""
    return CrawlLogAdapter(logging.getLogger(name), context)


def log_system_info():
    """Log the host the crawl runs on."""
    import platform
    import psutil

    logger = logging.getLogger(__name__)
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage(str(Path.cwd()))

    logger.info(f"Host: {platform.node()} ({platform.platform()})")
    logger.info(f"Python {platform.python_version()}, {psutil.cpu_count()} CPU cores")
    logger.info(f"Memory: {memory.available / 1024**3:.1f} of {memory.total / 1024**3:.1f} GB free")
    logger.info(f"Disk: {disk.free / 1024**3:.1f} GB free in {Path.cwd()}")
