"""
Config Store
Durable backends for the price update configuration documents.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import redis

from scheduler.exceptions import ConfigReadError, ConfigWriteError

logger = logging.getLogger(__name__)


class ConfigStore(ABC):
    """Raw JSON-document storage. Returns None for documents never written."""

    @abstractmethod
    def read_config(self) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def write_config(self, data: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def read_vendor_configs(self) -> Optional[List[Dict[str, Any]]]:
        pass

    @abstractmethod
    def write_vendor_configs(self, data: List[Dict[str, Any]]) -> None:
        pass

    def describe(self) -> str:
        return type(self).__name__


class FileConfigStore(ConfigStore):
    """JSON files in a config directory."""

    CONFIG_FILENAME = "price-update-config.json"
    VENDOR_CONFIG_FILENAME = "vendor-config.json"

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config_path = self.config_dir / self.CONFIG_FILENAME
        self.vendor_config_path = self.config_dir / self.VENDOR_CONFIG_FILENAME

    def read_config(self) -> Optional[Dict[str, Any]]:
        return self._read(self.config_path)

    def write_config(self, data: Dict[str, Any]) -> None:
        self._write(self.config_path, data)

    def read_vendor_configs(self) -> Optional[List[Dict[str, Any]]]:
        return self._read(self.vendor_config_path)

    def write_vendor_configs(self, data: List[Dict[str, Any]]) -> None:
        self._write(self.vendor_config_path, data)

    def describe(self) -> str:
        return f"file:{self.config_dir}"

    def _read(self, path: Path):
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigReadError(f"Corrupt config file {path}: {e}") from e
        except OSError as e:
            raise ConfigReadError(f"Cannot read config file {path}: {e}") from e

    def _write(self, path: Path, data) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file first so readers never see half a document
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise ConfigWriteError(f"Cannot write config file {path}: {e}") from e
        logger.debug(f"Saved {path}")


class RedisConfigStore(ConfigStore):
    """JSON strings stored under fixed Redis keys."""

    CONFIG_KEY = "price_update:config"
    VENDOR_CONFIG_KEY = "price_update:vendors"

    def __init__(self, redis_url: str = None, client: "redis.Redis" = None):
        if client is None:
            client = redis.from_url(redis_url or "redis://localhost:6379", decode_responses=True)
        self.redis_client = client

    def read_config(self) -> Optional[Dict[str, Any]]:
        return self._read(self.CONFIG_KEY)

    def write_config(self, data: Dict[str, Any]) -> None:
        self._write(self.CONFIG_KEY, data)

    def read_vendor_configs(self) -> Optional[List[Dict[str, Any]]]:
        return self._read(self.VENDOR_CONFIG_KEY)

    def write_vendor_configs(self, data: List[Dict[str, Any]]) -> None:
        self._write(self.VENDOR_CONFIG_KEY, data)

    def describe(self) -> str:
        return "redis"

    def _read(self, key: str):
        try:
            raw = self.redis_client.get(key)
        except redis.RedisError as e:
            raise ConfigReadError(f"Cannot read {key} from Redis: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigReadError(f"Corrupt config under {key}: {e}") from e

    def _write(self, key: str, data) -> None:
        try:
            self.redis_client.set(key, json.dumps(data, ensure_ascii=False))
        except (TypeError, ValueError) as e:
            raise ConfigWriteError(f"Config for {key} is not serializable: {e}") from e
        except redis.RedisError as e:
            raise ConfigWriteError(f"Cannot write {key} to Redis: {e}") from e


def create_config_store(settings) -> ConfigStore:
    """Build the store selected by CONFIG_BACKEND."""
    if settings.uses_redis_config():
        logger.info("Using Redis config store")
        return RedisConfigStore(settings.REDIS_URL)
    logger.info(f"Using file config store in {settings.CONFIG_DIR}")
    return FileConfigStore(settings.CONFIG_DIR)
