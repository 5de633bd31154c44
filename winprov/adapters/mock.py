"""
In-memory host — universal test double for the host platform.

Holds a complete picture of host configuration in plain Python state
and records every call it receives. Used by the test-suite and by the
CLI's --mock mode to rehearse a run without touching a real machine.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any

from winprov.adapters.base import HostPlatform
from winprov.core.errors import PlatformError, ProbeNotFound
from winprov.core.models.host import NetAdapterInfo, NetworkAddressState

# Feature names the fake platform knows about
KNOWN_FEATURES = (
    "Web-Server",
    "DNS",
    "DHCP",
    "RDS-RD-Server",
    "AD-Domain-Services",
    "File-Services",
    "Telnet-Client",
)

# Methods that change host state; everything else is a query
MUTATING_METHODS = frozenset({
    "remove_address",
    "remove_default_route",
    "add_address",
    "set_dns_servers",
    "enable_dhcp",
    "install_feature",
    "set_site_autostart",
    "add_primary_zone",
    "add_forwarder",
    "add_dhcp_scope",
    "set_dhcp_scope_options",
    "register_dhcp_in_directory",
    "set_registry_value",
    "enable_firewall_group",
})


@dataclass
class HostCall:
    """One recorded call on the in-memory host."""

    method: str
    args: tuple[Any, ...] = ()

    @property
    def mutating(self) -> bool:
        return self.method in MUTATING_METHODS


@dataclass
class _Interface:
    info: NetAdapterInfo
    ip_address: str | None = None
    prefix_length: int = 24
    origin: str = "Dhcp"
    gateway: str | None = None
    dns_servers: list[str] = field(default_factory=list)
    lease: tuple[str, int, str | None] | None = None


class InMemoryHost(HostPlatform):
    """Fake Windows Server host for tests and rehearsal runs.

    By default it is elevated, has nothing installed and no adapters.
    Use ``add_interface`` to seed network state and ``fail_on`` to
    make a specific method raise PlatformError.
    """

    def __init__(
        self,
        hostname: str = "SRV01",
        elevated: bool = True,
        installed: set[str] | None = None,
        known_features: tuple[str, ...] = KNOWN_FEATURES,
        restart_on_install: set[str] | None = None,
    ):
        self._hostname = hostname
        self._elevated = elevated
        self._known = set(known_features)
        self._restart_on_install = set(restart_on_install or ())
        self._interfaces: dict[int, _Interface] = {}
        self._failures: dict[str, tuple[str, int | None]] = {}
        self._calls: list[HostCall] = []

        self.installed: set[str] = set(installed or ())
        self.site_autostart: dict[str, bool] = {"Default Web Site": False}
        self.dns_zones: dict[str, str] = {}
        self.forwarders: list[str] = []
        self.dhcp_scopes: dict[str, dict[str, str]] = {}
        self.dhcp_options: dict[str, dict[str, str]] = {}
        self.dhcp_authorized: set[tuple[str, str]] = set()
        self.registry: dict[tuple[str, str], int | str] = {}
        self.firewall_groups: set[str] = set()

    @classmethod
    def seeded(cls, **kwargs: Any) -> InMemoryHost:
        """A host with one DHCP-addressed adapter, as used by --mock."""
        host = cls(**kwargs)
        host.add_interface(
            12,
            "Ethernet",
            ip_address="192.168.1.10",
            prefix_length=24,
            gateway="192.168.1.1",
            origin="Dhcp",
            dns_servers=["192.168.1.1"],
        )
        host.registry[
            (r"HKLM:\System\CurrentControlSet\Control\Terminal Server", "fDenyTSConnections")
        ] = 1
        return host

    # ── Test helpers ─────────────────────────────────────────────

    def add_interface(
        self,
        interface_index: int,
        name: str,
        status: str = "Up",
        ip_address: str | None = None,
        prefix_length: int = 24,
        gateway: str | None = None,
        origin: str = "Dhcp",
        dns_servers: list[str] | None = None,
    ) -> None:
        """Seed a network interface."""
        self._interfaces[interface_index] = _Interface(
            info=NetAdapterInfo(interface_index=interface_index, name=name, status=status),
            ip_address=ip_address,
            prefix_length=prefix_length,
            origin=origin,
            gateway=gateway,
            dns_servers=list(dns_servers or []),
            lease=(ip_address, prefix_length, gateway)
            if ip_address and origin == "Dhcp"
            else None,
        )

    def fail_on(
        self,
        method: str,
        message: str = "Simulated failure",
        times: int | None = None,
    ) -> None:
        """Make a platform method raise PlatformError.

        With ``times`` set, only the next ``times`` calls fail.
        """
        self._failures[method] = (message, times)

    def clear_failures(self) -> None:
        self._failures.clear()

    @property
    def calls(self) -> list[HostCall]:
        """Every call this host has received."""
        return self._calls

    @property
    def mutations(self) -> list[HostCall]:
        """Only the calls that change host state."""
        return [c for c in self._calls if c.mutating]

    def called(self, method: str) -> list[HostCall]:
        return [c for c in self._calls if c.method == method]

    def reset_calls(self) -> None:
        self._calls.clear()

    def snapshot(self) -> dict[str, Any]:
        """Comparable copy of all host configuration state."""
        return {
            "interfaces": {
                idx: (
                    iface.ip_address,
                    iface.prefix_length,
                    iface.origin,
                    iface.gateway,
                    tuple(iface.dns_servers),
                )
                for idx, iface in self._interfaces.items()
            },
            "installed": sorted(self.installed),
            "site_autostart": dict(self.site_autostart),
            "dns_zones": dict(self.dns_zones),
            "forwarders": list(self.forwarders),
            "dhcp_scopes": {k: dict(v) for k, v in self.dhcp_scopes.items()},
            "dhcp_options": {k: dict(v) for k, v in self.dhcp_options.items()},
            "dhcp_authorized": sorted(self.dhcp_authorized),
            "registry": dict(self.registry),
            "firewall_groups": sorted(self.firewall_groups),
        }

    def _record(self, method: str, *args: Any) -> None:
        self._calls.append(HostCall(method=method, args=args))
        if method not in self._failures:
            return
        message, remaining = self._failures[method]
        if remaining is not None:
            if remaining <= 1:
                del self._failures[method]
            else:
                self._failures[method] = (message, remaining - 1)
        raise PlatformError(method, message)

    def _iface(self, interface_index: int) -> _Interface:
        try:
            return self._interfaces[interface_index]
        except KeyError:
            raise PlatformError(
                "interface", f"No interface with index {interface_index}"
            ) from None

    # ── HostPlatform ─────────────────────────────────────────────

    @property
    def name(self) -> str:
        return "memory"

    def is_elevated(self) -> bool:
        self._record("is_elevated")
        return self._elevated

    def computer_name(self) -> str:
        self._record("computer_name")
        return self._hostname

    def list_adapters(self) -> list[NetAdapterInfo]:
        self._record("list_adapters")
        return [iface.info for iface in self._interfaces.values()]

    def get_address(self, interface_index: int) -> NetworkAddressState | None:
        self._record("get_address", interface_index)
        iface = self._iface(interface_index)
        if iface.ip_address is None:
            return None
        return NetworkAddressState(
            interface_index=interface_index,
            interface_alias=iface.info.name,
            ip_address=iface.ip_address,
            prefix_length=iface.prefix_length,
            gateway=iface.gateway,
            origin=iface.origin,
            dns_servers=list(iface.dns_servers),
        )

    def remove_address(self, interface_index: int) -> None:
        self._record("remove_address", interface_index)
        iface = self._iface(interface_index)
        iface.ip_address = None

    def remove_default_route(self, interface_index: int) -> None:
        self._record("remove_default_route", interface_index)
        self._iface(interface_index).gateway = None

    def add_address(
        self,
        interface_index: int,
        ip_address: str,
        prefix_length: int,
        gateway: str | None,
    ) -> None:
        self._record("add_address", interface_index, ip_address, prefix_length, gateway)
        iface = self._iface(interface_index)
        iface.ip_address = ip_address
        iface.prefix_length = prefix_length
        iface.gateway = gateway
        iface.origin = "Manual"

    def set_dns_servers(self, interface_index: int, servers: list[str]) -> None:
        self._record("set_dns_servers", interface_index, tuple(servers))
        self._iface(interface_index).dns_servers = list(servers)

    def enable_dhcp(self, interface_index: int) -> None:
        self._record("enable_dhcp", interface_index)
        iface = self._iface(interface_index)
        iface.origin = "Dhcp"
        if iface.lease is not None:
            iface.ip_address, iface.prefix_length, iface.gateway = iface.lease

    def feature_installed(self, identifier: str) -> bool:
        self._record("feature_installed", identifier)
        if identifier not in self._known:
            raise ProbeNotFound(identifier)
        return identifier in self.installed

    def install_feature(self, identifier: str, include_management_tools: bool) -> bool:
        self._record("install_feature", identifier, include_management_tools)
        if identifier not in self._known:
            raise ProbeNotFound(identifier)
        self.installed.add(identifier)
        return identifier in self._restart_on_install

    def site_autostart_enabled(self, site: str) -> bool:
        self._record("site_autostart_enabled", site)
        if site not in self.site_autostart:
            raise PlatformError("site_autostart_enabled", f"Site '{site}' does not exist")
        return self.site_autostart[site]

    def set_site_autostart(self, site: str, enabled: bool) -> None:
        self._record("set_site_autostart", site, enabled)
        if site not in self.site_autostart:
            raise PlatformError("set_site_autostart", f"Site '{site}' does not exist")
        self.site_autostart[site] = enabled

    def dns_zone_exists(self, zone_name: str) -> bool:
        self._record("dns_zone_exists", zone_name)
        return zone_name.lower() in self.dns_zones

    def add_primary_zone(self, zone_name: str, zone_file: str) -> None:
        self._record("add_primary_zone", zone_name, zone_file)
        if zone_name.lower() in self.dns_zones:
            raise PlatformError("add_primary_zone", f"Zone '{zone_name}' already exists")
        self.dns_zones[zone_name.lower()] = zone_file

    def dns_forwarders(self) -> list[str]:
        self._record("dns_forwarders")
        return list(self.forwarders)

    def add_forwarder(self, address: str) -> None:
        self._record("add_forwarder", address)
        if address not in self.forwarders:
            self.forwarders.append(address)

    def dhcp_scope_exists(self, scope_id: str) -> bool:
        self._record("dhcp_scope_exists", scope_id)
        return scope_id in self.dhcp_scopes

    def add_dhcp_scope(self, name: str, start: str, end: str, subnet_mask: str) -> None:
        self._record("add_dhcp_scope", name, start, end, subnet_mask)
        scope_id = str(ipaddress.IPv4Network(f"{start}/{subnet_mask}", strict=False).network_address)
        if scope_id in self.dhcp_scopes:
            raise PlatformError("add_dhcp_scope", f"Scope {scope_id} already exists")
        self.dhcp_scopes[scope_id] = {
            "name": name,
            "start": start,
            "end": end,
            "subnet_mask": subnet_mask,
        }

    def dhcp_scope_options(self, scope_id: str) -> dict[str, str]:
        self._record("dhcp_scope_options", scope_id)
        if scope_id not in self.dhcp_scopes:
            raise PlatformError("dhcp_scope_options", f"Scope {scope_id} not found")
        return dict(self.dhcp_options.get(scope_id, {}))

    def set_dhcp_scope_options(
        self,
        scope_id: str,
        router: str,
        dns_server: str,
        dns_domain: str,
    ) -> None:
        self._record("set_dhcp_scope_options", scope_id, router, dns_server, dns_domain)
        if scope_id not in self.dhcp_scopes:
            raise PlatformError("set_dhcp_scope_options", f"Scope {scope_id} not found")
        self.dhcp_options[scope_id] = {
            "router": router,
            "dns_server": dns_server,
            "dns_domain": dns_domain,
        }

    def dhcp_in_directory(self, dns_name: str, ip_address: str) -> bool:
        self._record("dhcp_in_directory", dns_name, ip_address)
        return (dns_name.lower(), ip_address) in self.dhcp_authorized

    def register_dhcp_in_directory(self, dns_name: str, ip_address: str) -> None:
        self._record("register_dhcp_in_directory", dns_name, ip_address)
        self.dhcp_authorized.add((dns_name.lower(), ip_address))

    def registry_value(self, path: str, name: str) -> int | str | None:
        self._record("registry_value", path, name)
        return self.registry.get((path, name))

    def set_registry_value(self, path: str, name: str, value: int | str) -> None:
        self._record("set_registry_value", path, name, value)
        self.registry[(path, name)] = value

    def firewall_group_enabled(self, display_group: str) -> bool:
        self._record("firewall_group_enabled", display_group)
        return display_group in self.firewall_groups

    def enable_firewall_group(self, display_group: str) -> None:
        self._record("enable_firewall_group", display_group)
        self.firewall_groups.add(display_group)
