# csw_resolver/config.py
"""
Centralized configuration management.

Handles loading defaults, merging in settings from pyproject.toml,
and applying runtime overrides.
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, MutableMapping

try:
    import tomli
except ImportError:
    tomli = None  # type: ignore

log = logging.getLogger(__name__)

# This is the baseline configuration dictionary.
DEFAULT_CONFIG: dict[str, Any] = {
    # --- Probe timeouts (seconds) ---
    "probe_timeout": 3.0,  # plain HEAD existence check
    "service_probe_timeout": 5.0,  # WFS GetFeature test with COUNT=1
    "sniff_timeout": 5.0,  # HEAD used to read the content type
    # --- Catalog and download timeouts ---
    "request_timeout": 30.0,
    "download_timeout": 300.0,
    # WFS servers ignoring COUNT can stream the whole layer; stop reading here.
    "max_probe_bytes": 65_536,
    "user_agent": "csw_resolver/0.1 (+https://pypi.org/project/csw_resolver/)",
    "wfs_version": "2.0.0",
    # --- Catalog listing ---
    "page_size": 10,
    # --- Download ---
    "progress_interval": 0.5,
    # Reject catalog URLs resolving to loopback/private/link-local addresses.
    "check_private_network": True,
    "auth": {
        "username": None,
        "password": None,
    },
}


def _deep_merge_dict(
    base: MutableMapping[str, Any], overrides: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Recursively merge dicts."""
    for key, value in overrides.items():
        if isinstance(value, MutableMapping) and isinstance(
            base.get(key), MutableMapping
        ):
            base[key] = _deep_merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def load_config(pyproject_path: Path | None = None) -> dict[str, Any]:
    """
    Loads configuration from defaults and merges settings from pyproject.toml.

    1. Starts with DEFAULT_CONFIG.
    2. If `tomli` is installed, it looks for `pyproject.toml`.
    3. If `pyproject.toml` is found, it merges settings from
       `[tool.csw_resolver]` over the defaults.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if tomli is None:
        log.debug("tomli not installed. Skipping pyproject.toml configuration.")
        return config

    if pyproject_path is None:
        pyproject_path = Path.cwd() / "pyproject.toml"

    if not pyproject_path.exists():
        log.debug(
            "No pyproject.toml found at %s. Using default config.", pyproject_path
        )
        return config

    try:
        with pyproject_path.open("rb") as f:
            toml_data = tomli.load(f)

        project_config = toml_data.get("tool", {}).get("csw_resolver", {})
        if project_config:
            log.info("Loading config from %s", pyproject_path)
            config = _deep_merge_dict(config, project_config)  # type: ignore
        else:
            log.debug("No [tool.csw_resolver] section in %s.", pyproject_path)

    except (OSError, tomli.TOMLDecodeError) as e:
        log.warning(
            "Failed to load or parse %s: %s. Using default config.",
            pyproject_path,
            e,
            exc_info=True,
        )

    return config
