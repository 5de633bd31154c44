"""
Role configurator — the post-install step of each managed role.

Each procedure has the shape ``(host, host_state, config) -> Receipt``:

    - skipped when its role is not installed (or a precondition is unmet)
    - 'ok' with changed=False when the host is already configured
    - 'failed' with a ConfigurationStepFailure message on a platform error

The receipt's ``metadata["effects"]`` lists every mutating call made,
in order, so a run can be audited and tests can assert on it.
"""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Callable
from typing import Any

from winprov.adapters.base import HostPlatform
from winprov.core.errors import ConfigurationStepFailure, PlatformError, ProbeNotFound
from winprov.core.models.config import DHCP_ROLE, DNS_ROLE, RDS_ROLE, WEB_ROLE, ProvisionConfig
from winprov.core.models.host import HostState
from winprov.core.models.receipt import Receipt
from winprov.core.services.probe import probe

logger = logging.getLogger(__name__)

TERMINAL_SERVER_KEY = r"HKLM:\System\CurrentControlSet\Control\Terminal Server"
DENY_TS_CONNECTIONS = "fDenyTSConnections"
REMOTE_DESKTOP_FIREWALL_GROUP = "Remote Desktop"

ConfigureStep = Callable[[HostPlatform, HostState, ProvisionConfig], Receipt]


class _EffectLog:
    """Records the mutating calls of one procedure."""

    def __init__(self) -> None:
        self.effects: list[dict[str, Any]] = []

    def add(self, action: str, **params: Any) -> None:
        self.effects.append({"action": action, **params})
        logger.debug("effect: %s %s", action, params)

    @property
    def changed(self) -> bool:
        return bool(self.effects)


def _guard(host: HostPlatform, role: str) -> Receipt | None:
    """Skip receipt if ``role`` is not installed, else None."""
    try:
        installed = probe(host, role)
    except (PlatformError, ProbeNotFound) as e:
        return Receipt.failure(
            step="configure",
            target=role,
            error=str(ConfigurationStepFailure(role, f"cannot probe role: {e}")),
        )
    if not installed:
        logger.info("⊘ %s not installed — configuration skipped", role)
        return Receipt.skip(step="configure", target=role, reason="role not installed")
    return None


def _finish(role: str, log: _EffectLog, summary: str) -> Receipt:
    output = summary if log.changed else "already configured"
    logger.info("✓ %s: %s", role, output)
    return Receipt.success(
        step="configure",
        target=role,
        output=output,
        changed=log.changed,
        metadata={"effects": log.effects},
    )


def _failed(role: str, log: _EffectLog, error: Exception) -> Receipt:
    failure = ConfigurationStepFailure(role, str(error))
    logger.error("✗ %s", failure)
    return Receipt.failure(
        step="configure",
        target=role,
        error=str(failure),
        changed=log.changed,
        metadata={"effects": log.effects},
    )


# ── Web server ──────────────────────────────────────────────────


def configure_web(host: HostPlatform, state: HostState, config: ProvisionConfig) -> Receipt:
    """Make the configured IIS site start automatically."""
    skipped = _guard(host, WEB_ROLE)
    if skipped:
        return skipped

    log = _EffectLog()
    try:
        if host.site_autostart_enabled(config.web_site):
            logger.info("Site '%s' already starts automatically", config.web_site)
        else:
            host.set_site_autostart(config.web_site, True)
            log.add("set_site_autostart", site=config.web_site, enabled=True)
    except PlatformError as e:
        return _failed(WEB_ROLE, log, e)
    return _finish(WEB_ROLE, log, f"autostart enabled for '{config.web_site}'")


# ── DNS server ──────────────────────────────────────────────────


def configure_dns(host: HostPlatform, state: HostState, config: ProvisionConfig) -> Receipt:
    """Create the primary zone and register the upstream forwarder."""
    skipped = _guard(host, DNS_ROLE)
    if skipped:
        return skipped

    log = _EffectLog()
    try:
        if host.dns_zone_exists(config.domain_name):
            logger.info("Zone %s already exists", config.domain_name)
        else:
            host.add_primary_zone(config.domain_name, config.zone_file)
            log.add("add_primary_zone", zone=config.domain_name, zone_file=config.zone_file)

        if config.forwarder_address in host.dns_forwarders():
            logger.info("Forwarder %s already registered", config.forwarder_address)
        else:
            host.add_forwarder(config.forwarder_address)
            log.add("add_forwarder", address=config.forwarder_address)
    except PlatformError as e:
        return _failed(DNS_ROLE, log, e)

    return _finish(
        DNS_ROLE,
        log,
        f"zone {config.domain_name}, forwarder {config.forwarder_address}",
    )


# ── DHCP server ─────────────────────────────────────────────────


def scope_network(config: ProvisionConfig) -> ipaddress.IPv4Network:
    """Network covered by the configured scope range and mask."""
    return ipaddress.IPv4Network(f"{config.scope_start}/{config.subnet_mask}", strict=False)


def check_scope(state: HostState, config: ProvisionConfig) -> str | None:
    """Return a reason the scope does not fit the static address, or None.

    Raises:
        ValueError: If ``state`` holds no static address.
    """
    address = state.static_address
    if address is None:
        raise ValueError("scope check needs a static address")

    scope_net = scope_network(config)
    if ipaddress.IPv4Address(config.scope_end) not in scope_net:
        return (
            f"scope range {config.scope_start}-{config.scope_end} "
            f"spans more than one /{scope_net.prefixlen} subnet"
        )
    if scope_net != address.network:
        return (
            f"scope subnet {scope_net} does not match the static address "
            f"{address.ip_address}/{address.prefix_length}"
        )
    host_ip = ipaddress.IPv4Address(address.ip_address)
    start = ipaddress.IPv4Address(config.scope_start)
    end = ipaddress.IPv4Address(config.scope_end)
    if start <= host_ip <= end:
        return f"scope range includes the server's own address {address.ip_address}"
    return None


def configure_dhcp(host: HostPlatform, state: HostState, config: ProvisionConfig) -> Receipt:
    """Create the lease scope, set its options and authorize the server.

    Router and DNS options always come from the static address in
    ``state`` so they match what the network step established.
    """
    skipped = _guard(host, DHCP_ROLE)
    if skipped:
        return skipped

    address = state.static_address
    if address is None:
        logger.warning("⊘ %s: host has no static address — configuration skipped", DHCP_ROLE)
        return Receipt.skip(
            step="configure",
            target=DHCP_ROLE,
            reason="host has no static address",
        )

    problem = check_scope(state, config)
    if problem:
        return _failed(DHCP_ROLE, _EffectLog(), ValueError(problem))

    scope_id = str(scope_network(config).network_address)
    server_ip = address.ip_address
    log = _EffectLog()

    try:
        if host.dhcp_scope_exists(scope_id):
            logger.info("Scope %s already exists", scope_id)
        else:
            host.add_dhcp_scope(
                config.scope_name, config.scope_start, config.scope_end, config.subnet_mask
            )
            log.add(
                "add_dhcp_scope",
                name=config.scope_name,
                start=config.scope_start,
                end=config.scope_end,
                subnet_mask=config.subnet_mask,
            )

        wanted = {
            "router": server_ip,
            "dns_server": server_ip,
            "dns_domain": config.domain_name,
        }
        if host.dhcp_scope_options(scope_id) == wanted:
            logger.info("Scope %s options already point at %s", scope_id, server_ip)
        else:
            host.set_dhcp_scope_options(scope_id, server_ip, server_ip, config.domain_name)
            log.add("set_dhcp_scope_options", scope_id=scope_id, **wanted)

        dns_name = f"{host.computer_name()}.{config.domain_name}".lower()
        if host.dhcp_in_directory(dns_name, server_ip):
            logger.info("DHCP server %s already authorized", dns_name)
        else:
            host.register_dhcp_in_directory(dns_name, server_ip)
            log.add("register_dhcp_in_directory", dns_name=dns_name, ip_address=server_ip)
    except PlatformError as e:
        return _failed(DHCP_ROLE, log, e)

    return _finish(DHCP_ROLE, log, f"scope {scope_id} serving via {server_ip}")


# ── Remote Desktop ──────────────────────────────────────────────


def configure_remote_desktop(
    host: HostPlatform, state: HostState, config: ProvisionConfig
) -> Receipt:
    """Allow remote desktop connections and open the firewall for them."""
    skipped = _guard(host, RDS_ROLE)
    if skipped:
        return skipped

    log = _EffectLog()
    try:
        if host.registry_value(TERMINAL_SERVER_KEY, DENY_TS_CONNECTIONS) != 0:
            host.set_registry_value(TERMINAL_SERVER_KEY, DENY_TS_CONNECTIONS, 0)
            log.add(
                "set_registry_value", path=TERMINAL_SERVER_KEY, name=DENY_TS_CONNECTIONS, value=0
            )
        if not host.firewall_group_enabled(REMOTE_DESKTOP_FIREWALL_GROUP):
            host.enable_firewall_group(REMOTE_DESKTOP_FIREWALL_GROUP)
            log.add("enable_firewall_group", group=REMOTE_DESKTOP_FIREWALL_GROUP)
    except PlatformError as e:
        return _failed(RDS_ROLE, log, e)
    return _finish(RDS_ROLE, log, "connections allowed, firewall group enabled")


CONFIGURATORS: dict[str, ConfigureStep] = {
    WEB_ROLE: configure_web,
    DNS_ROLE: configure_dns,
    DHCP_ROLE: configure_dhcp,
    RDS_ROLE: configure_remote_desktop,
}


def configure_roles(
    host: HostPlatform, state: HostState, config: ProvisionConfig
) -> list[Receipt]:
    """Run the configurator of every requested role, in fixed order.

    Roles without a configurator (extra features in the config) have
    nothing to do here.
    """
    receipts = []
    for role, step in CONFIGURATORS.items():
        if not config.wants(role):
            continue
        receipts.append(step(host, state, config))
    return receipts
