"""
Provision use cases — load config, pick the host, run a command.

These are the vertical slices behind the CLI commands. Fatal errors
(bad config, not elevated, no active adapter) are returned in
``result.error`` instead of raised, so the CLI can render them in
both text and JSON modes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from winprov.adapters.base import HostPlatform
from winprov.core.config.loader import ConfigError, load_config
from winprov.core.engine.executor import (
    ProvisionReport,
    network_step,
    require_elevation,
    run_provisioning,
)
from winprov.core.errors import NoActiveAdapter, PermissionDenied, PlatformError
from winprov.core.models.config import ProvisionConfig
from winprov.core.models.host import HostState
from winprov.core.models.receipt import Receipt
from winprov.core.services.verify import VerificationLine, verify_roles

logger = logging.getLogger(__name__)


def build_host(mock_mode: bool = False) -> HostPlatform:
    """The host to act on: the local Windows server, or a rehearsal fake."""
    if mock_mode:
        from winprov.adapters.mock import InMemoryHost

        return InMemoryHost.seeded()

    from winprov.adapters.windows.server import WindowsHost

    return WindowsHost()


@dataclass
class ProvisionResult:
    """Result of a full provisioning run."""

    report: ProvisionReport | None = None
    config: ProvisionConfig | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.failed == 0

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {}
        if self.config:
            result["domain_name"] = self.config.domain_name
        if self.report:
            result["report"] = self.report.to_dict()
        return result


@dataclass
class NetworkResult:
    """Result of running only the network step."""

    state: HostState | None = None
    receipt: Receipt | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        address = self.state.address if self.state else None
        return {
            "address": address.model_dump(mode="json") if address else None,
            "receipt": self.receipt.model_dump(mode="json") if self.receipt else None,
        }


@dataclass
class VerifyResult:
    """Result of a verification-only pass."""

    lines: list[VerificationLine] = field(default_factory=list)
    error: str | None = None

    @property
    def all_ok(self) -> bool:
        return self.error is None and all(line.ok for line in self.lines)

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "all_ok": self.all_ok,
            "roles": [line.to_dict() for line in self.lines],
        }


def provision(
    config_path: Path | None = None,
    mock_mode: bool = False,
    skip_network: bool = False,
    host: HostPlatform | None = None,
) -> ProvisionResult:
    """Run the full provisioning sequence.

    Args:
        config_path: Optional explicit path to provision.yml.
        mock_mode: If True, act on an in-memory host.
        skip_network: Leave addressing alone (capture it only).
        host: Optional pre-built host, used instead of ``mock_mode``.
    """
    result = ProvisionResult()

    try:
        result.config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    host = host or build_host(mock_mode)
    logger.debug("Provisioning %r", host)

    try:
        result.report = run_provisioning(host, result.config, skip_network=skip_network)
    except (PermissionDenied, NoActiveAdapter) as e:
        logger.error("Provisioning aborted: %s", e)
        result.error = str(e)
    except PlatformError as e:
        # privilege or adapter queries themselves failed
        logger.error("Provisioning aborted: %s", e)
        result.error = f"Host query failed: {e}"

    return result


def configure_network(
    mock_mode: bool = False,
    host: HostPlatform | None = None,
) -> NetworkResult:
    """Run only the network configurator."""
    result = NetworkResult()
    host = host or build_host(mock_mode)

    try:
        require_elevation(host)
        result.state, result.receipt = network_step(host)
    except (PermissionDenied, NoActiveAdapter) as e:
        result.error = str(e)
    except PlatformError as e:
        result.error = f"Host query failed: {e}"

    return result


def verify(
    config_path: Path | None = None,
    mock_mode: bool = False,
    host: HostPlatform | None = None,
) -> VerifyResult:
    """Probe every configured role without changing anything."""
    result = VerifyResult()

    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    host = host or build_host(mock_mode)

    try:
        require_elevation(host)
    except PermissionDenied as e:
        result.error = str(e)
        return result
    except PlatformError as e:
        result.error = f"Host query failed: {e}"
        return result

    result.lines = verify_roles(host, config.label_map())
    return result
