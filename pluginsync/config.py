"""Runtime configuration — loaded from ``pluginsync.yaml``.

Example::

    registry_path: .pluginsync_registry
    sdk_version: 9.0.0.0
    handler_bases: [Plugin, PluginBase]
    activity_bases: [CodeActivity, Activity]
    unsecure_config_path: config/unsecure.xml
    log_level: DEBUG
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_CONFIG_FILE = "pluginsync.yaml"
REGISTRY_ENV_VAR = "PLUGINSYNC_REGISTRY"


@dataclass
class SyncConfig:
    """Settings shared by the scanner, the processor and the CLI."""

    registry_path: str = ".pluginsync_registry"
    sdk_version: str = "9.0.0.0"
    handler_bases: list[str] = field(default_factory=lambda: ["Plugin", "PluginBase"])
    activity_bases: list[str] = field(default_factory=lambda: ["CodeActivity", "Activity"])
    unsecure_config_path: str | None = None
    log_level: str = "INFO"


def load_config(path: str | Path | None = None) -> SyncConfig:
    """Load configuration from a YAML file.

    With no path, ``pluginsync.yaml`` in the working directory is used when it
    exists, otherwise the defaults. ``PLUGINSYNC_REGISTRY`` overrides the
    registry path either way.
    """
    if path is None and Path(DEFAULT_CONFIG_FILE).exists():
        path = DEFAULT_CONFIG_FILE

    data: dict = {}
    if path is not None:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

    defaults = SyncConfig()
    config = SyncConfig(
        registry_path=str(data.get("registry_path", defaults.registry_path)),
        sdk_version=str(data.get("sdk_version", defaults.sdk_version)),
        handler_bases=list(data.get("handler_bases", defaults.handler_bases)),
        activity_bases=list(data.get("activity_bases", defaults.activity_bases)),
        unsecure_config_path=data.get("unsecure_config_path"),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
    )

    env_registry = os.environ.get(REGISTRY_ENV_VAR)
    if env_registry:
        config.registry_path = env_registry

    return config
