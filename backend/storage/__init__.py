"""
Storage package for price update and vendor configuration
"""

from .config_manager import ConfigManager
from .config_store import ConfigStore, FileConfigStore, RedisConfigStore, create_config_store
from .models import VendorConfig, VendorPriority, UpdateFrequency, PriceUpdateConfigRecord

__all__ = [
    "ConfigManager",
    "ConfigStore",
    "FileConfigStore",
    "RedisConfigStore",
    "create_config_store",
    "VendorConfig",
    "VendorPriority",
    "UpdateFrequency",
    "PriceUpdateConfigRecord",
]
