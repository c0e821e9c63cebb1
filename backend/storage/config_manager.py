"""
Config Manager
Reads and writes the price update schedule and per-vendor settings.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import ValidationError

from scheduler.exceptions import ConfigReadError, VendorNotFoundError
from scheduler.schedule_config import ScheduleConfig
from utils.logging import get_logger

from .config_store import ConfigStore
from .models import PriceUpdateConfigRecord, VendorConfig

logger = get_logger(__name__)


class ConfigManager:
    """Typed access to the configuration documents held by a ConfigStore.

    Loose JSON is validated here: a malformed document is reported as
    ConfigReadError instead of leaking half-filled objects to callers.
    """

    def __init__(self, store: ConfigStore):
        self.store = store
        self._lock = threading.RLock()

    # Schedule configuration

    def load_record(self) -> PriceUpdateConfigRecord:
        """Load the stored configuration document, or defaults if none was saved."""
        data = self.store.read_config()
        if data is None:
            return PriceUpdateConfigRecord()
        try:
            return PriceUpdateConfigRecord.model_validate(data)
        except ValidationError as e:
            raise ConfigReadError(f"Invalid price update config: {e}") from e

    def save_record(self, record: PriceUpdateConfigRecord) -> None:
        record = record.model_copy(update={"last_config_update": datetime.now(timezone.utc)})
        self.store.write_config(record.model_dump(mode="json"))

    def load_config(self) -> ScheduleConfig:
        """Load the schedule configuration.

        Raises:
            ConfigReadError: the store is unreadable or holds an invalid document
        """
        record = self.load_record()
        try:
            return record.to_schedule_config()
        except ValidationError as e:
            raise ConfigReadError(f"Invalid schedule in price update config: {e}") from e

    def save_config(self, config: ScheduleConfig) -> None:
        """Persist a schedule configuration, keeping the rest of the document."""
        with self._lock:
            try:
                record = self.load_record()
            except ConfigReadError as e:
                logger.warning("Replacing unreadable price update config", error=str(e))
                record = PriceUpdateConfigRecord()
            self.save_record(record.merge_schedule_config(config))
        logger.info("Price update configuration saved", cron=config.cron_expression, enabled=config.enabled)

    # Vendor configuration

    def load_vendor_configs(self) -> List[VendorConfig]:
        data = self.store.read_vendor_configs()
        if data is None:
            return []
        if not isinstance(data, list):
            raise ConfigReadError("Vendor config document must be a list")
        try:
            configs = [VendorConfig.model_validate(item) for item in data]
        except ValidationError as e:
            raise ConfigReadError(f"Invalid vendor config: {e}") from e

        duplicates = self._duplicate_ids(configs)
        if duplicates:
            raise ConfigReadError(f"Duplicate vendor ids in vendor config: {', '.join(duplicates)}")
        return configs

    def save_vendor_configs(self, vendor_configs: List[VendorConfig]) -> None:
        duplicates = self._duplicate_ids(vendor_configs)
        if duplicates:
            raise ValueError(f"Duplicate vendor ids: {', '.join(duplicates)}")
        with self._lock:
            self.store.write_vendor_configs([config.model_dump(mode="json") for config in vendor_configs])

    def get_vendor_config(self, vendor_id: str) -> Optional[VendorConfig]:
        for config in self.load_vendor_configs():
            if config.vendor_id == vendor_id:
                return config
        return None

    def get_active_vendors(self) -> List[str]:
        """Ids of vendors with auto-update enabled."""
        return [config.vendor_id for config in self.load_vendor_configs() if config.auto_update_enabled]

    def update_vendor_auto_update(self, vendor_id: str, enabled: bool) -> None:
        """Enable or disable auto-update for one vendor.

        Raises:
            VendorNotFoundError: vendor_id is not configured
        """
        with self._lock:
            self._update_vendor(vendor_id, auto_update_enabled=enabled)
            self._sync_active_vendors()
        logger.info(f"Vendor {vendor_id} auto-update {'enabled' if enabled else 'disabled'}")

    def set_all_vendors_auto_update(self, enabled: bool) -> int:
        """Enable or disable auto-update for every vendor; returns how many were touched."""
        with self._lock:
            configs = [
                config.model_copy(update={"auto_update_enabled": enabled})
                for config in self.load_vendor_configs()
            ]
            self.save_vendor_configs(configs)
            self._sync_active_vendors(configs)
        logger.info(f"Auto-update {'enabled' if enabled else 'disabled'} for {len(configs)} vendors")
        return len(configs)

    def update_vendor_name(self, vendor_id: str, vendor_name: str) -> None:
        with self._lock:
            self._update_vendor(vendor_id, vendor_name=vendor_name)

    def update_vendor_last_update(self, vendor_id: str, when: Optional[datetime] = None) -> None:
        """Stamp the time of the vendor's latest successful price update."""
        with self._lock:
            self._update_vendor(vendor_id, last_update=when or datetime.now(timezone.utc))

    def sync_vendors(self, vendors: Dict[str, str]) -> int:
        """Register vendors (id -> name) that are not configured yet.

        New vendors start with auto-update off. Known vendors only get their
        name filled in when it was empty. Returns the number of new vendors.
        """
        with self._lock:
            configs = self.load_vendor_configs()
            known = {config.vendor_id: index for index, config in enumerate(configs)}
            added = 0
            for vendor_id, vendor_name in vendors.items():
                if vendor_id in known:
                    existing = configs[known[vendor_id]]
                    if not existing.vendor_name and vendor_name:
                        configs[known[vendor_id]] = existing.model_copy(update={"vendor_name": vendor_name})
                    continue
                known[vendor_id] = len(configs)
                configs.append(VendorConfig(vendor_id=vendor_id, vendor_name=vendor_name or ""))
                added += 1
            self.save_vendor_configs(configs)
        if added:
            logger.info(f"Registered {added} new vendors")
        return added

    def _update_vendor(self, vendor_id: str, **changes) -> VendorConfig:
        configs = self.load_vendor_configs()
        for index, config in enumerate(configs):
            if config.vendor_id == vendor_id:
                configs[index] = config.model_copy(update=changes)
                self.save_vendor_configs(configs)
                return configs[index]
        raise VendorNotFoundError(vendor_id)

    def _sync_active_vendors(self, configs: Optional[List[VendorConfig]] = None) -> None:
        """Mirror the enabled vendor ids into the main config document."""
        if configs is None:
            configs = self.load_vendor_configs()
        record = self.load_record()
        active = [config.vendor_id for config in configs if config.auto_update_enabled]
        if record.active_vendors != active:
            self.save_record(record.model_copy(update={"active_vendors": active}))

    @staticmethod
    def _duplicate_ids(configs: List[VendorConfig]) -> List[str]:
        seen = set()
        duplicates = []
        for config in configs:
            if config.vendor_id in seen and config.vendor_id not in duplicates:
                duplicates.append(config.vendor_id)
            seen.add(config.vendor_id)
        return duplicates
