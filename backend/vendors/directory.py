"""
Vendor directory backed by the stored vendor configuration.
"""

from typing import List

from storage.config_manager import ConfigManager
from storage.models import VendorConfig

from .base import VendorDirectory


class ConfigVendorDirectory(VendorDirectory):
    """Lists vendors from ConfigManager's vendor documents."""

    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager

    async def list_vendors(self) -> List[VendorConfig]:
        return self.config_manager.load_vendor_configs()
