"""
Config check use case — validate provision.yml and report issues.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from pathlib import Path

from winprov.core.config.loader import ConfigError, find_config_file, load_config
from winprov.core.models.config import ProvisionConfig
from winprov.core.services.role_config import CONFIGURATORS, scope_network


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "domain_name": self.config.domain_name if self.config else None,
            "role_count": len(self.config.roles) if self.config else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate provisioning configuration and report issues.

    Args:
        config_path: Optional explicit path to provision.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
        if config_path is None:
            result.warnings.append("No provision.yml found — defaults will be used.")
    result.config_path = config_path

    try:
        config = load_config(config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    if not config.roles:
        result.warnings.append("No roles defined. Provisioning will only configure the network.")

    for request in config.roles:
        if request.identifier not in config.role_labels:
            result.warnings.append(
                f"Role '{request.identifier}' has no label; its identifier will be shown."
            )
        if request.identifier not in CONFIGURATORS:
            result.warnings.append(
                f"Role '{request.identifier}' has no post-install step; it is only installed."
            )

    extra_labels = set(config.role_labels) - {r.identifier for r in config.roles}
    if extra_labels:
        result.warnings.append(
            f"Labels for roles that are not requested: {', '.join(sorted(extra_labels))}"
        )

    scope_net = scope_network(config)
    if ipaddress.IPv4Address(config.scope_end) not in scope_net:
        result.errors.append(
            f"Scope range {config.scope_start}-{config.scope_end} does not fit "
            f"subnet mask {config.subnet_mask}"
        )

    # Result
    result.valid = len(result.errors) == 0
    return result
