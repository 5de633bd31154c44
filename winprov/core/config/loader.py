"""
Configuration loader — reads provision.yml into a ProvisionConfig.

The file is optional: with no provision.yml anywhere above the
working directory, the documented defaults are used. An explicitly
given path must exist.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from winprov.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

# Default config filename
PROVISION_CONFIG_FILE = "provision.yml"


class ConfigError(Exception):
    """Raised when provisioning configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for provision.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to provision.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROVISION_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None) -> ProvisionConfig:
    """Load and validate provisioning configuration.

    Args:
        path: Explicit path to provision.yml. If None, searches upward
            and falls back to defaults when nothing is found.

    Returns:
        Validated ProvisionConfig.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.info("No %s found — using defaults", PROVISION_CONFIG_FILE)
            return ProvisionConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading provisioning config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "provision" key or be flat
    if "provision" in data:
        data = data["provision"] or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping under 'provision' in {path}")

    data = _normalize_roles(data)

    try:
        config = ProvisionConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid provisioning configuration: {e}") from e

    logger.info(
        "Loaded config for domain '%s' with %d role(s)", config.domain_name, len(config.roles)
    )
    return config


def _normalize_roles(data: dict) -> dict:
    """Allow roles to be listed as bare identifiers.

    Both forms are accepted:

        roles: [Web-Server, DNS]
        roles:
          - identifier: DHCP
            include_management_tools: false
    """
    roles = data.get("roles")
    if not isinstance(roles, list):
        return data
    normalized = [{"identifier": r} if isinstance(r, str) else r for r in roles]
    return {**data, "roles": normalized}
