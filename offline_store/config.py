"""
Offline store configuration.

Configuration can be provided directly, via environment variables, or
via the ``offline_store`` section of a YAML settings file.

Environment Variables:
    OFFLINE_STORE_DATA_DIR: Directory for collection files
    OFFLINE_STORE_SYNC_URL: Remote bulk upsert endpoint
    OFFLINE_STORE_SYNC_TIMEOUT: Network deadline for a sync, in seconds
    OFFLINE_STORE_AUTO_SYNC: Push after every local mutation (default: true)
    OFFLINE_STORE_PROBE_HOST: Host used by the connectivity probe
    OFFLINE_STORE_PROBE_INTERVAL: Seconds between connectivity probes
    OFFLINE_STORE_LOG_JSON: Emit store logs as JSON lines on stdout (default: false)
    OFFLINE_STORE_LOG_LEVEL: Level for the JSON log handler (default: INFO)

Settings file (``~/.offline_store/settings.yaml``):

```yaml
offline_store:
  data_dir: /var/lib/shop/data
  sync_endpoint: https://api.example.com/sync
  sync_timeout: 15
  auto_sync: true
  structured_logging: true
  sync_headers:
    X-Client: shop-terminal
```
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".offline_store" / "data"
DEFAULT_SETTINGS_PATH = Path.home() / ".offline_store" / "settings.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class StoreConfig:
    """Configuration for an offline database.

    Attributes:
        data_dir: Directory holding one JSON file per collection
        sync_endpoint: URL of the remote bulk upsert endpoint (None disables sync)
        sync_timeout: Total network deadline for one sync attempt, in seconds
        sync_headers: Extra HTTP headers sent with every sync request
        auto_sync: Push local state after every successful mutation when online
        probe_host: Host the connectivity probe connects to
        probe_port: Port the connectivity probe connects to
        probe_interval: Seconds between connectivity probes
        structured_logging: Configure JSON logging for the package on create
        log_level: Level used when structured_logging is enabled
    """

    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    sync_endpoint: str | None = None
    sync_timeout: float = 30.0
    sync_headers: dict[str, str] = field(default_factory=dict)
    auto_sync: bool = True

    probe_host: str = "1.1.1.1"
    probe_port: int = 53
    probe_interval: float = 10.0

    structured_logging: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir).expanduser()

    @classmethod
    def from_environment(cls) -> StoreConfig:
        """Create configuration from environment variables.

        Returns:
            StoreConfig populated from environment variables, with
            defaults for anything unset
        """
        config = cls()
        env = os.environ

        if "OFFLINE_STORE_DATA_DIR" in env:
            config.data_dir = Path(env["OFFLINE_STORE_DATA_DIR"]).expanduser()
        config.sync_endpoint = env.get("OFFLINE_STORE_SYNC_URL", config.sync_endpoint)
        if "OFFLINE_STORE_SYNC_TIMEOUT" in env:
            config.sync_timeout = float(env["OFFLINE_STORE_SYNC_TIMEOUT"])
        if "OFFLINE_STORE_AUTO_SYNC" in env:
            config.auto_sync = env["OFFLINE_STORE_AUTO_SYNC"].strip().lower() in _TRUE_VALUES
        config.probe_host = env.get("OFFLINE_STORE_PROBE_HOST", config.probe_host)
        if "OFFLINE_STORE_PROBE_INTERVAL" in env:
            config.probe_interval = float(env["OFFLINE_STORE_PROBE_INTERVAL"])
        if "OFFLINE_STORE_LOG_JSON" in env:
            log_json = env["OFFLINE_STORE_LOG_JSON"].strip().lower()
            config.structured_logging = log_json in _TRUE_VALUES
        config.log_level = env.get("OFFLINE_STORE_LOG_LEVEL", config.log_level).upper()

        return config

    @classmethod
    def from_file(cls, path: Path | None = None) -> StoreConfig:
        """Create configuration from a YAML settings file.

        Args:
            path: Settings file path. Defaults to ~/.offline_store/settings.yaml

        Returns:
            StoreConfig from the ``offline_store`` section, or defaults if
            the file or section is missing
        """
        settings_path = path or DEFAULT_SETTINGS_PATH
        if not settings_path.exists():
            logger.debug(f"No settings file at {settings_path}, using defaults")
            return cls()

        content = yaml.safe_load(settings_path.read_text(encoding="utf-8")) or {}
        section = content.get("offline_store") or {}

        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings in {settings_path}: {sorted(unknown)}")

        return cls(**{k: v for k, v in section.items() if k in known})

    @property
    def sync_enabled(self) -> bool:
        return bool(self.sync_endpoint)
