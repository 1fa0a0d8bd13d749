"""
Configuration Tests
"""

import pytest

from linkcrawler.utils.config import ConfigManager, load_config


FULL_CONFIG = """
crawler:
  seed_urls:
    - http://site.test/
  max_depth: 3
  batch_size: 50
auth:
  enabled: true
  login_endpoint: http://site.test/login
  credentials:
    username: crawler
    password: secret
images:
  save_images: true
  min_image_size: 1024
database:
  type: redis
  redis:
    host: redis.internal
logging:
  level: DEBUG
"""


def write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


def test_load_full_config(tmp_path):
    config = load_config(write(tmp_path, FULL_CONFIG))

    assert config.crawler.seed_urls == ["http://site.test/"]
    assert config.crawler.max_depth == 3
    assert config.crawler.batch_size == 50
    assert config.auth.credentials == {'username': 'crawler', 'password': 'secret'}
    assert config.images.min_image_size == 1024
    assert config.database.type == 'redis'
    assert config.database.redis['host'] == 'redis.internal'
    assert config.logging.level == 'DEBUG'


def test_missing_sections_use_defaults(tmp_path):
    config = load_config(write(tmp_path, "crawler:\n  seed_urls: [http://site.test/]\n"))

    assert config.crawler.max_depth == 0
    assert config.crawler.max_fetch_failures == 0
    assert config.auth.enabled is False
    assert config.images.save_images is False
    assert config.database.type == 'file'
    assert config.database.file['path'] == 'data/pages.json'


def test_partial_file_section_keeps_default_path(tmp_path):
    config = load_config(write(tmp_path, "database:\n  type: file\n  file: {}\n"))

    assert config.database.file['path'] == 'data/pages.json'


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


@pytest.mark.parametrize("text", [
    "crawler:\n  max_depth: -1\n",
    "crawler:\n  batch_size: -5\n",
    "images:\n  min_image_size: -1\n",
    "auth:\n  enabled: true\n",
    "database:\n  type: mysql\n",
    "monitoring:\n  progress_history: -1\n",
])
def test_invalid_values_rejected(tmp_path, text):
    with pytest.raises(ValueError):
        load_config(write(tmp_path, text))


def test_config_property_requires_load():
    with pytest.raises(ValueError):
        ConfigManager("missing.yaml").config


def test_unknown_option_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_config(write(tmp_path, "crawler:\n  max_pages: 10\n"))
