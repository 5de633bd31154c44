"""
Engine executor — the provisioning run, start to finish.

Flow (strictly linear):
    privilege check → network → install roles → configure roles → verify

Only two conditions abort the run: missing administrator privilege
(checked before anything else) and no active network adapter (checked
before any install). Every other failure is recorded as a receipt and
the run moves on to the next, independent step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from winprov.adapters.base import HostPlatform
from winprov.core.errors import ConfigurationStepFailure, PermissionDenied
from winprov.core.models.config import ProvisionConfig
from winprov.core.models.host import HostState
from winprov.core.models.receipt import Receipt
from winprov.core.services.network import capture_address, ensure_static_address
from winprov.core.services.role_config import configure_roles
from winprov.core.services.roles import install_roles
from winprov.core.services.verify import VerificationLine, verify_roles

logger = logging.getLogger(__name__)


@dataclass
class ProvisionReport:
    """Everything one run did, for display and JSON output."""

    host_state: HostState = field(default_factory=HostState)
    network: Receipt | None = None
    installs: list[Receipt] = field(default_factory=list)
    configurations: list[Receipt] = field(default_factory=list)
    verification: list[VerificationLine] = field(default_factory=list)

    @property
    def receipts(self) -> list[Receipt]:
        head = [self.network] if self.network else []
        return head + self.installs + self.configurations

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def unverified(self) -> list[str]:
        return [line.label for line in self.verification if not line.ok]

    @property
    def restart_needed(self) -> bool:
        return any(r.metadata.get("restart_needed") for r in self.installs)

    @property
    def status(self) -> str:
        if self.failed == 0 and not self.unverified:
            return "ok"
        if self.succeeded > 0 or any(line.ok for line in self.verification):
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        address = self.host_state.address
        return {
            "status": self.status,
            "restart_needed": self.restart_needed,
            "address": address.model_dump(mode="json") if address else None,
            "network": self.network.model_dump(mode="json") if self.network else None,
            "installs": [r.model_dump(mode="json") for r in self.installs],
            "configurations": [r.model_dump(mode="json") for r in self.configurations],
            "verification": [line.to_dict() for line in self.verification],
        }


def require_elevation(host: HostPlatform) -> None:
    """Raise PermissionDenied unless the process is elevated."""
    if not host.is_elevated():
        raise PermissionDenied(
            "This command must run from an elevated (Administrator) session."
        )


def network_step(host: HostPlatform, skip: bool = False) -> tuple[HostState, Receipt]:
    """Run (or skip) the network configurator.

    NoActiveAdapter propagates. Any other network failure becomes a
    failed receipt and the returned state holds the unchanged address,
    if it could be read.
    """
    if skip:
        try:
            address = capture_address(host)
        except ConfigurationStepFailure as e:
            return HostState(), Receipt.failure(step="network", target="address", error=str(e))
        return HostState(address=address), Receipt.skip(
            step="network",
            target=address.interface_alias,
            reason="network configuration skipped",
        )

    try:
        before = capture_address(host)
        address = ensure_static_address(host)
    except ConfigurationStepFailure as e:
        try:
            unchanged = capture_address(host)
        except ConfigurationStepFailure:
            unchanged = None
        return HostState(address=unchanged), Receipt.failure(
            step="network", target="address", error=str(e)
        )

    changed = not before.is_static
    return HostState(address=address), Receipt.success(
        step="network",
        target=address.interface_alias,
        output=(
            f"{address.ip_address}/{address.prefix_length} "
            + ("converted to static" if changed else "already static")
        ),
        changed=changed,
        metadata={"gateway": address.gateway, "dns_servers": address.dns_servers},
    )


def run_provisioning(
    host: HostPlatform,
    config: ProvisionConfig,
    skip_network: bool = False,
) -> ProvisionReport:
    """Provision the host and return the aggregated report.

    Raises:
        PermissionDenied: Not elevated. Raised before any other call.
        NoActiveAdapter: No adapter is up. Raised before any install.
    """
    require_elevation(host)
    report = ProvisionReport()

    logger.info("Step 1/4: network")
    report.host_state, report.network = network_step(host, skip=skip_network)

    logger.info("Step 2/4: installing %d role(s)", len(config.roles))
    report.installs = install_roles(host, config.roles)

    logger.info("Step 3/4: configuring roles")
    report.configurations = configure_roles(host, report.host_state, config)

    logger.info("Step 4/4: verification")
    report.verification = verify_roles(host, config.label_map())

    logger.info(
        "Provisioning finished: %s (%d ok, %d failed)",
        report.status,
        report.succeeded,
        report.failed,
    )
    return report
