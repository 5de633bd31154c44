"""
Host platform base — the contract between the provisioning core and
the machine it configures.

The services only talk to the host through this interface, never to
PowerShell, the registry or WMI directly. Swapping the implementation
(WindowsHost for real runs, InMemoryHost for tests and rehearsals) is
how the whole run is made testable.

Error contract:
    - Query methods return plain values.
    - Any failed call raises PlatformError.
    - Unknown capability identifiers raise ProbeNotFound.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from winprov.core.models.host import NetAdapterInfo, NetworkAddressState


class HostPlatform(ABC):
    """Abstract management surface of a Windows Server host.

    To add a new platform:
        1. Subclass HostPlatform
        2. Implement every abstract method
        3. Pass an instance to run_provisioning()
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Platform identifier (e.g., 'windows', 'memory')."""

    # ── Privilege ────────────────────────────────────────────────

    @abstractmethod
    def is_elevated(self) -> bool:
        """Whether the current process runs with administrator rights."""

    @abstractmethod
    def computer_name(self) -> str:
        """The host's NetBIOS/short name."""

    # ── Network surface ──────────────────────────────────────────

    @abstractmethod
    def list_adapters(self) -> list[NetAdapterInfo]:
        """All physical network adapters, in the platform's order."""

    @abstractmethod
    def get_address(self, interface_index: int) -> NetworkAddressState | None:
        """Current IPv4 address, prefix, origin and default gateway.

        Returns None if the interface has no IPv4 address.
        """

    @abstractmethod
    def remove_address(self, interface_index: int) -> None:
        """Remove every IPv4 address from the interface."""

    @abstractmethod
    def remove_default_route(self, interface_index: int) -> None:
        """Remove the IPv4 default route bound to the interface."""

    @abstractmethod
    def add_address(
        self,
        interface_index: int,
        ip_address: str,
        prefix_length: int,
        gateway: str | None,
    ) -> None:
        """Assign a static IPv4 address (and default gateway if given)."""

    @abstractmethod
    def set_dns_servers(self, interface_index: int, servers: list[str]) -> None:
        """Replace the interface's DNS server list."""

    @abstractmethod
    def enable_dhcp(self, interface_index: int) -> None:
        """Switch the interface back to dynamic addressing."""

    # ── Feature surface ──────────────────────────────────────────

    @abstractmethod
    def feature_installed(self, identifier: str) -> bool:
        """Whether a role/feature is installed. Raises ProbeNotFound."""

    @abstractmethod
    def install_feature(self, identifier: str, include_management_tools: bool) -> bool:
        """Install a role/feature.

        Returns True when the platform asks for a restart.
        """

    # ── Web server ───────────────────────────────────────────────

    @abstractmethod
    def site_autostart_enabled(self, site: str) -> bool:
        """Current serverAutoStart flag of an IIS site."""

    @abstractmethod
    def set_site_autostart(self, site: str, enabled: bool) -> None:
        """Set the serverAutoStart flag of an IIS site."""

    # ── DNS server ───────────────────────────────────────────────

    @abstractmethod
    def dns_zone_exists(self, zone_name: str) -> bool:
        """Whether the DNS server hosts a zone with this name."""

    @abstractmethod
    def add_primary_zone(self, zone_name: str, zone_file: str) -> None:
        """Create a file-backed primary zone."""

    @abstractmethod
    def dns_forwarders(self) -> list[str]:
        """Configured forwarder addresses."""

    @abstractmethod
    def add_forwarder(self, address: str) -> None:
        """Register an upstream forwarder."""

    # ── DHCP server ──────────────────────────────────────────────

    @abstractmethod
    def dhcp_scope_exists(self, scope_id: str) -> bool:
        """Whether an IPv4 scope with this network id exists."""

    @abstractmethod
    def add_dhcp_scope(self, name: str, start: str, end: str, subnet_mask: str) -> None:
        """Create an active IPv4 scope."""

    @abstractmethod
    def dhcp_scope_options(self, scope_id: str) -> dict[str, str]:
        """Router, DNS server and domain options currently set on a scope.

        Keys are ``router``, ``dns_server`` and ``dns_domain``; unset
        options are absent.
        """

    @abstractmethod
    def set_dhcp_scope_options(
        self,
        scope_id: str,
        router: str,
        dns_server: str,
        dns_domain: str,
    ) -> None:
        """Set router (003), DNS server (006) and domain (015) options."""

    @abstractmethod
    def dhcp_in_directory(self, dns_name: str, ip_address: str) -> bool:
        """Whether the DHCP server is already authorized in the directory."""

    @abstractmethod
    def register_dhcp_in_directory(self, dns_name: str, ip_address: str) -> None:
        """Authorize the DHCP server in the directory service."""

    # ── Registry / firewall ──────────────────────────────────────

    @abstractmethod
    def registry_value(self, path: str, name: str) -> int | str | None:
        """Read a registry value, or None if it does not exist."""

    @abstractmethod
    def set_registry_value(self, path: str, name: str, value: int | str) -> None:
        """Write a registry value."""

    @abstractmethod
    def firewall_group_enabled(self, display_group: str) -> bool:
        """Whether the group has rules and every one of them is enabled."""

    @abstractmethod
    def enable_firewall_group(self, display_group: str) -> None:
        """Enable every firewall rule in a display group."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
