"""Configuration loading for the feed cache application."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from xml.etree import ElementTree as ET

from .policy import MAX_CACHE_AGE_DAYS

logger = logging.getLogger(__name__)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    enabled: bool = False
    connection_string: Optional[str] = None


@dataclass
class AppConfig:
    feed_url: Optional[str]
    timeout: float = 10.0
    max_age_days: int = MAX_CACHE_AGE_DAYS
    offline: bool = False
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() == "true"


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()

    offline = _parse_bool(root.findtext("offline"))

    feed_url = (root.findtext("feed-url") or "").strip() or None
    if feed_url is None and not offline:
        raise ValueError("Config missing <feed-url>")

    timeout = float(root.findtext("timeout", "10"))
    if timeout <= 0:
        raise ValueError("<timeout> must be positive.")

    # Cache
    max_age_days = MAX_CACHE_AGE_DAYS
    cache_node = root.find("cache")
    if cache_node is not None:
        max_age_days = int(cache_node.findtext("max-age-days", str(MAX_CACHE_AGE_DAYS)))
        if max_age_days <= 0:
            raise ValueError("<max-age-days> must be positive.")

    # Logging
    log_node = root.find("logging")
    logging_config = LoggingConfig()
    if log_node is not None:
        logging_config.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            logging_config.file = _resolve_path(config_path, log_file)

    # Database
    db_node = root.find("database")
    db_config = DatabaseConfig()
    if db_node is not None:
        db_config.enabled = _parse_bool(db_node.findtext("enabled"))
        db_config.connection_string = db_node.findtext("connection-string")

    return AppConfig(
        feed_url=feed_url,
        timeout=timeout,
        max_age_days=max_age_days,
        offline=offline,
        logging=logging_config,
        database=db_config,
    )
