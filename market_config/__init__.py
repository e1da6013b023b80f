"""
market_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime.  It is also the only place that reads the environment
    (``MARKET_CONFIG_PATH``, ``DATABASE_URL``).

Architecture position:
    Configuration sits above ``market_kernel`` and ``market_engines`` and
    below ``market_services``.  The kernel never imports from here;
    ``market_config.bridges`` translates config into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- ``MARKET_CONFIG_PATH`` names a missing file.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` -- unknown keys or wrong value types.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from market_config.loader import load_config
from market_config.schema import MarketConfig

_logger = logging.getLogger("market_kernel.config")

CONFIG_PATH_ENV = "MARKET_CONFIG_PATH"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> MarketConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Configuration file overlaying the packaged defaults.
            Defaults to ``$MARKET_CONFIG_PATH`` when set.
        environ: Environment to read (defaults to ``os.environ``).

    Returns:
        A frozen ``MarketConfig``.  ``$DATABASE_URL``, when set, replaces
        the configured database URL.
    """
    env = os.environ if environ is None else environ
    source = path or env.get(CONFIG_PATH_ENV) or None

    config = load_config(source)

    database_url = env.get(DATABASE_URL_ENV)
    if database_url:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=database_url),
        )

    _logger.info(
        "market_config_loaded",
        extra={
            "config_source": str(source) if source else "defaults",
            "checksum": config.checksum,
            "database_dialect": config.database.url.split(":", 1)[0],
            "admin_registry_size": len(config.admin_registry),
        },
    )
    return config


__all__ = ["get_active_config", "load_config", "MarketConfig"]
