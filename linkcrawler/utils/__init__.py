"""
Utility modules for the link crawler.
"""

from .config import Config, ConfigManager, load_config, validate_config
from .progress import ProgressChannel

__all__ = ['Config', 'ConfigManager', 'load_config', 'validate_config', 'ProgressChannel']
