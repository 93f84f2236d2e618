"""
geotax_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  Defaults ship as ``defaults.yaml`` next to
    this module; an optional YAML file overlays them, and the
    ``GEOTAX_DATABASE_URL`` environment variable overrides the database
    URL last.

Architecture position:
    Configuration sits above ``geotax_kernel``.  The kernel and engines
    MUST NEVER import from ``geotax_config``; services receive settings
    objects through their constructors.

Failure modes:
    - ``FileNotFoundError`` -- ``config_path`` does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- a setting fails validation.

Every successful call logs ``settings_loaded`` with the checksum of the
merged settings, so each run can be tied to the configuration it used.
"""

from __future__ import annotations

import os
from pathlib import Path

from geotax_config.loader import (
    DEFAULTS_PATH,
    compute_checksum,
    load_yaml_file,
    merge_settings,
)
from geotax_config.schema import AppSettings, DatabaseSettings, ImportSettings
from geotax_kernel.logging_config import get_logger

logger = get_logger("config")

DATABASE_URL_ENV = "GEOTAX_DATABASE_URL"


def get_active_settings(config_path: Path | str | None = None) -> AppSettings:
    """The ONLY public settings entrypoint."""
    data = load_yaml_file(DEFAULTS_PATH)
    if config_path is not None:
        data = merge_settings(data, load_yaml_file(Path(config_path)))

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        data = merge_settings(data, {"database": {"url": env_url}})

    settings = AppSettings.from_dict(data)
    logger.info(
        "settings_loaded",
        extra={
            "checksum": compute_checksum(settings.to_dict()),
            "config_path": str(config_path) if config_path else None,
            "database_url_from_env": bool(env_url),
        },
    )
    return settings


__all__ = [
    "AppSettings",
    "DATABASE_URL_ENV",
    "DatabaseSettings",
    "ImportSettings",
    "get_active_settings",
]
