"""
Configuration management for the link crawler.
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    max_depth: int = 0
    batch_size: int = 0
    max_fetch_failures: int = 0
    request_timeout: int = 30
    user_agent: str = "LinkCrawler/1.0"
    allowed_domains: List[str] = field(default_factory=list)
    blocked_domains: List[str] = field(default_factory=list)


@dataclass
class AuthConfig:
    """Configuration for logging into the crawled site before crawling."""
    enabled: bool = False
    login_endpoint: Optional[str] = None
    credentials: Dict[str, str] = field(default_factory=dict)


@dataclass
class ImageConfig:
    """Configuration for image capture."""
    save_images: bool = False
    min_image_size: int = 0
    media_directory: str = "media"


@dataclass
class DatabaseConfig:
    """Configuration for the page store."""
    type: str = "file"
    file: Dict[str, Any] = field(default_factory=lambda: {'path': 'data/pages.json'})
    redis: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False
    max_file_size_mb: int = 50
    backup_count: int = 5


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False
    progress_history: int = 1000


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    images: ImageConfig = field(default_factory=ImageConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        try:
            self._config = self.from_dict(config_data)
        except TypeError as e:
            raise ValueError(f"Invalid configuration in {self.config_path}: {e}")

        self._validate_config()
        return self._config

    @staticmethod
    def from_dict(config_data: Dict[str, Any]) -> Config:
        """Build a Config from parsed YAML; missing sections use defaults."""
        database_data = dict(config_data.get('database') or {})
        if 'file' in database_data:
            database_data['file'] = {**DatabaseConfig().file, **(database_data['file'] or {})}

        return Config(
            crawler=CrawlerConfig(**(config_data.get('crawler') or {})),
            auth=AuthConfig(**(config_data.get('auth') or {})),
            images=ImageConfig(**(config_data.get('images') or {})),
            database=DatabaseConfig(**database_data),
            logging=LoggingConfig(**(config_data.get('logging') or {})),
            monitoring=MonitoringConfig(**(config_data.get('monitoring') or {})),
        )

    def _validate_config(self):
        """Validate configuration values."""
        if not self._config:
            raise ValueError("Configuration not loaded")
        validate_config(self._config)
        logging.info("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def validate_config(config: Config):
    """Raise ValueError on inconsistent configuration values."""
    crawler = config.crawler

    if crawler.max_depth < 0:
        raise ValueError("max_depth must be non-negative (0 means unbounded)")

    if crawler.batch_size < 0:
        raise ValueError("batch_size must be non-negative (0 means no limit)")

    if crawler.max_fetch_failures < 0:
        raise ValueError("max_fetch_failures must be non-negative (0 means unlimited)")

    if crawler.request_timeout <= 0:
        raise ValueError("request_timeout must be positive")

    if config.images.min_image_size < 0:
        raise ValueError("min_image_size must be non-negative")

    if config.logging.max_file_size_mb <= 0 or config.logging.backup_count < 0:
        raise ValueError("logging.max_file_size_mb must be positive and backup_count non-negative")

    if config.monitoring.progress_history < 0:
        raise ValueError("progress_history must be non-negative (0 keeps no history)")

    if config.auth.enabled and not config.auth.login_endpoint:
        raise ValueError("auth.login_endpoint is required when auth is enabled")

    if config.database.type not in ['file', 'redis']:
        raise ValueError("Database type must be 'file' or 'redis'")


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
