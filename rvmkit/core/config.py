"""
Configuration loading for rvmkit.

Configuration is read from ``config.yaml`` in the data directory and can be
overridden through environment variables:

    RVM_MANIFEST_URL   Base URL of the release manifests
    RVM_LOCK_TIMEOUT   Seconds to wait for the store lock
    RVM_OFFLINE        Resolve versions from the cached manifest only

Example config.yaml:

    manifest_url: https://mirror.example.com/resolc-bin
    lock_timeout: 60
    download_timeout: 300
    max_retries: 3
    retry_backoff: 1.0
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rvmkit.core.directory import CONFIG_FILE
from rvmkit.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_URL = (
    "https://raw.githubusercontent.com/paritytech/resolc-bin/refs/heads/main"
)

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class RvmConfig:
    """Runtime settings for resolution, downloads and locking."""

    manifest_url: str = DEFAULT_MANIFEST_URL
    lock_timeout: float = 30.0
    download_timeout: float = 300.0
    manifest_timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 1.0
    offline: bool = False

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.manifest_url:
            raise ConfigError("manifest_url cannot be empty")
        self.manifest_url = self.manifest_url.rstrip("/")
        for name in ("lock_timeout", "download_timeout", "manifest_timeout"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")
        if self.retry_backoff < 0:
            raise ConfigError("retry_backoff must not be negative")


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigError: If the file is required but missing, or cannot be parsed
    """
    if not config_file.exists():
        if required:
            raise ConfigError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigError(f"Configuration in {config_file} must be a mapping")
    return config


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    url = os.environ.get("RVM_MANIFEST_URL")
    if url:
        overrides["manifest_url"] = url

    timeout = os.environ.get("RVM_LOCK_TIMEOUT")
    if timeout:
        try:
            overrides["lock_timeout"] = float(timeout)
        except ValueError:
            raise ConfigError(f"RVM_LOCK_TIMEOUT must be a number, got {timeout!r}")

    offline = os.environ.get("RVM_OFFLINE")
    if offline:
        overrides["offline"] = offline.strip().lower() in _TRUE_VALUES

    return overrides


def load_config(data_dir: Path, config_file: Optional[Path] = None) -> RvmConfig:
    """
    Build the effective configuration.

    Values come from defaults, then ``config.yaml``, then environment variables.

    Args:
        data_dir: Data directory containing ``config.yaml``
        config_file: Explicit configuration file (must exist when given)

    Returns:
        RvmConfig instance

    Raises:
        ConfigError: If the file or an override is invalid
    """
    if config_file is not None:
        values = load_yaml_config(Path(config_file), required=True)
    else:
        values = load_yaml_config(Path(data_dir) / CONFIG_FILE)

    known = {f.name: f.type for f in fields(RvmConfig)}
    unknown = sorted(set(values) - set(known))
    if unknown:
        logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

    settings = {k: v for k, v in values.items() if k in known}
    settings.update(_env_overrides())

    try:
        return RvmConfig(**settings)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
