"""
Windows Server host — HostPlatform backed by PowerShell cmdlets.

Each method maps onto one cmdlet pipeline (ServerManager, NetTCPIP,
DnsClient, DnsServer, DhcpServer, WebAdministration, NetSecurity).
Structured results are requested with ConvertTo-Json so that nothing
here scrapes formatted console output.

Any failed script raises PlatformError carrying the cmdlet's stderr.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from winprov.adapters.base import HostPlatform
from winprov.adapters.shell.command import PowerShellRunner
from winprov.core.errors import PlatformError, ProbeNotFound
from winprov.core.models.host import NetAdapterInfo, NetworkAddressState

logger = logging.getLogger(__name__)

_NOT_FOUND = "__WINPROV_NOT_FOUND__"

_KNOWN_ORIGINS = {"Manual", "Dhcp", "WellKnown", "Link", "RouterAdvertisement"}

# DHCP option ids: 003 router, 006 DNS servers, 015 DNS domain
_SCOPE_OPTION_KEYS = {3: "router", 6: "dns_server", 15: "dns_domain"}


def ps_quote(value: str) -> str:
    """Quote a value as a single-quoted PowerShell string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def ps_value(value: int | str | bool) -> str:
    """Render a Python value as a PowerShell literal."""
    if isinstance(value, bool):
        return "$true" if value else "$false"
    if isinstance(value, int):
        return str(value)
    return ps_quote(value)


def _as_list(data: Any) -> list[Any]:
    """ConvertTo-Json emits a bare object for single-element arrays."""
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


class WindowsHost(HostPlatform):
    """The local Windows Server, managed through PowerShell."""

    def __init__(self, runner: PowerShellRunner | None = None):
        self.runner = runner or PowerShellRunner()

    @property
    def name(self) -> str:
        return "windows"

    # ── Script helpers ───────────────────────────────────────────

    def _run(self, operation: str, script: str) -> str:
        receipt = self.runner.run(script)
        if receipt.failed:
            logger.debug("%s failed: %s", operation, receipt.error)
            raise PlatformError(operation, receipt.error or "unknown error")
        return receipt.output

    def _run_json(self, operation: str, script: str) -> Any:
        output = self._run(operation, f"{script} | ConvertTo-Json -Compress -Depth 4")
        if not output or output == "null":
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise PlatformError(operation, f"Unparseable output: {output[:200]!r}") from e

    def _run_bool(self, operation: str, script: str) -> bool:
        output = self._run(operation, script)
        return output.strip().lower() == "true"

    # ── Privilege ────────────────────────────────────────────────

    def is_elevated(self) -> bool:
        return self._run_bool(
            "is_elevated",
            "([Security.Principal.WindowsPrincipal]"
            "[Security.Principal.WindowsIdentity]::GetCurrent())"
            ".IsInRole([Security.Principal.WindowsBuiltInRole]::Administrator)",
        )

    def computer_name(self) -> str:
        return self._run("computer_name", "$env:COMPUTERNAME").strip()

    # ── Network surface ──────────────────────────────────────────

    def list_adapters(self) -> list[NetAdapterInfo]:
        data = self._run_json(
            "list_adapters",
            "Get-NetAdapter -Physical | Select-Object "
            "@{n='ifIndex';e={$_.ifIndex}},@{n='Name';e={$_.Name}},"
            "@{n='Status';e={\"$($_.Status)\"}}",
        )
        return [
            NetAdapterInfo(
                interface_index=int(item["ifIndex"]),
                name=item.get("Name", ""),
                status=item.get("Status", ""),
            )
            for item in _as_list(data)
        ]

    def get_address(self, interface_index: int) -> NetworkAddressState | None:
        idx = int(interface_index)
        data = self._run_json(
            "get_address",
            f"$ip = Get-NetIPAddress -InterfaceIndex {idx} -AddressFamily IPv4 "
            "-ErrorAction SilentlyContinue | Select-Object -First 1; "
            f"$gw = Get-NetRoute -InterfaceIndex {idx} -DestinationPrefix '0.0.0.0/0' "
            "-ErrorAction SilentlyContinue | Select-Object -First 1; "
            f"$dns = (Get-DnsClientServerAddress -InterfaceIndex {idx} -AddressFamily IPv4 "
            "-ErrorAction SilentlyContinue).ServerAddresses; "
            "if ($ip) { [pscustomobject]@{ "
            "IPAddress = $ip.IPAddress; PrefixLength = [int]$ip.PrefixLength; "
            "PrefixOrigin = \"$($ip.PrefixOrigin)\"; InterfaceAlias = $ip.InterfaceAlias; "
            "NextHop = $gw.NextHop; DnsServers = @($dns) } } else { $null }",
        )
        if not data:
            return None

        origin = data.get("PrefixOrigin") or "Other"
        if origin not in _KNOWN_ORIGINS:
            origin = "Other"
        gateway = data.get("NextHop") or None
        if gateway == "0.0.0.0":
            gateway = None

        return NetworkAddressState(
            interface_index=idx,
            interface_alias=data.get("InterfaceAlias") or "",
            ip_address=data["IPAddress"],
            prefix_length=int(data["PrefixLength"]),
            gateway=gateway,
            origin=origin,
            dns_servers=[s for s in _as_list(data.get("DnsServers")) if s],
        )

    def remove_address(self, interface_index: int) -> None:
        self._run(
            "remove_address",
            f"Remove-NetIPAddress -InterfaceIndex {int(interface_index)} "
            "-AddressFamily IPv4 -Confirm:$false",
        )

    def remove_default_route(self, interface_index: int) -> None:
        self._run(
            "remove_default_route",
            f"Get-NetRoute -InterfaceIndex {int(interface_index)} "
            "-DestinationPrefix '0.0.0.0/0' -ErrorAction SilentlyContinue | "
            "Remove-NetRoute -Confirm:$false",
        )

    def add_address(
        self,
        interface_index: int,
        ip_address: str,
        prefix_length: int,
        gateway: str | None,
    ) -> None:
        script = (
            f"New-NetIPAddress -InterfaceIndex {int(interface_index)} "
            f"-IPAddress {ps_quote(ip_address)} -PrefixLength {int(prefix_length)}"
        )
        if gateway:
            script += f" -DefaultGateway {ps_quote(gateway)}"
        self._run("add_address", script + " | Out-Null")

    def set_dns_servers(self, interface_index: int, servers: list[str]) -> None:
        if servers:
            addresses = ",".join(ps_quote(s) for s in servers)
            self._run(
                "set_dns_servers",
                f"Set-DnsClientServerAddress -InterfaceIndex {int(interface_index)} "
                f"-ServerAddresses @({addresses})",
            )
        else:
            self._run(
                "set_dns_servers",
                f"Set-DnsClientServerAddress -InterfaceIndex {int(interface_index)} "
                "-ResetServerAddresses",
            )

    def enable_dhcp(self, interface_index: int) -> None:
        self._run(
            "enable_dhcp",
            f"Set-NetIPInterface -InterfaceIndex {int(interface_index)} -Dhcp Enabled",
        )

    # ── Feature surface ──────────────────────────────────────────

    def feature_installed(self, identifier: str) -> bool:
        output = self._run(
            "feature_installed",
            f"$f = Get-WindowsFeature -Name {ps_quote(identifier)}; "
            f"if (-not $f) {{ '{_NOT_FOUND}' }} else {{ $f.Installed }}",
        ).strip()
        if output == _NOT_FOUND:
            raise ProbeNotFound(identifier)
        return output.lower() == "true"

    def install_feature(self, identifier: str, include_management_tools: bool) -> bool:
        tools = " -IncludeManagementTools" if include_management_tools else ""
        data = self._run_json(
            "install_feature",
            f"$r = Install-WindowsFeature -Name {ps_quote(identifier)}{tools}; "
            "[pscustomobject]@{ Success = [bool]$r.Success; "
            "RestartNeeded = \"$($r.RestartNeeded)\"; ExitCode = \"$($r.ExitCode)\" }",
        )
        if not data:
            raise PlatformError("install_feature", f"No result for '{identifier}'")
        if not data.get("Success"):
            raise PlatformError(
                "install_feature",
                f"Install-WindowsFeature reported failure (exit code {data.get('ExitCode')})",
            )
        return str(data.get("RestartNeeded", "")).lower() == "yes"

    # ── Web server ───────────────────────────────────────────────

    def site_autostart_enabled(self, site: str) -> bool:
        site_path = "IIS:\\Sites\\" + site
        return self._run_bool(
            "site_autostart_enabled",
            "Import-Module WebAdministration; "
            f"[bool](Get-Item -Path {ps_quote(site_path)}).serverAutoStart",
        )

    def set_site_autostart(self, site: str, enabled: bool) -> None:
        site_path = "IIS:\\Sites\\" + site
        self._run(
            "set_site_autostart",
            "Import-Module WebAdministration; "
            f"Set-ItemProperty -Path {ps_quote(site_path)} "
            f"-Name serverAutoStart -Value {ps_value(enabled)}",
        )

    # ── DNS server ───────────────────────────────────────────────

    def dns_zone_exists(self, zone_name: str) -> bool:
        return self._run_bool(
            "dns_zone_exists",
            f"[bool](Get-DnsServerZone -Name {ps_quote(zone_name)} "
            "-ErrorAction SilentlyContinue)",
        )

    def add_primary_zone(self, zone_name: str, zone_file: str) -> None:
        self._run(
            "add_primary_zone",
            f"Add-DnsServerPrimaryZone -Name {ps_quote(zone_name)} "
            f"-ZoneFile {ps_quote(zone_file)}",
        )

    def dns_forwarders(self) -> list[str]:
        data = self._run_json(
            "dns_forwarders",
            "@((Get-DnsServerForwarder).IPAddress | "
            "ForEach-Object { $_.IPAddressToString })",
        )
        return [s for s in _as_list(data) if s]

    def add_forwarder(self, address: str) -> None:
        self._run("add_forwarder", f"Add-DnsServerForwarder -IPAddress {ps_quote(address)}")

    # ── DHCP server ──────────────────────────────────────────────

    def dhcp_scope_exists(self, scope_id: str) -> bool:
        return self._run_bool(
            "dhcp_scope_exists",
            f"[bool](Get-DhcpServerv4Scope -ScopeId {ps_quote(scope_id)} "
            "-ErrorAction SilentlyContinue)",
        )

    def add_dhcp_scope(self, name: str, start: str, end: str, subnet_mask: str) -> None:
        self._run(
            "add_dhcp_scope",
            f"Add-DhcpServerv4Scope -Name {ps_quote(name)} "
            f"-StartRange {ps_quote(start)} -EndRange {ps_quote(end)} "
            f"-SubnetMask {ps_quote(subnet_mask)} -State Active",
        )

    def dhcp_scope_options(self, scope_id: str) -> dict[str, str]:
        data = self._run_json(
            "dhcp_scope_options",
            f"Get-DhcpServerv4OptionValue -ScopeId {ps_quote(scope_id)} | "
            "Select-Object OptionId, @{n='Value';e={@($_.Value)}}",
        )
        options: dict[str, str] = {}
        for item in _as_list(data):
            key = _SCOPE_OPTION_KEYS.get(int(item.get("OptionId", 0)))
            values = [v for v in _as_list(item.get("Value")) if v]
            if key and values:
                options[key] = str(values[0])
        return options

    def set_dhcp_scope_options(
        self,
        scope_id: str,
        router: str,
        dns_server: str,
        dns_domain: str,
    ) -> None:
        self._run(
            "set_dhcp_scope_options",
            f"Set-DhcpServerv4OptionValue -ScopeId {ps_quote(scope_id)} "
            f"-Router {ps_quote(router)} -DnsServer {ps_quote(dns_server)} "
            f"-DnsDomain {ps_quote(dns_domain)} -Force",
        )

    def dhcp_in_directory(self, dns_name: str, ip_address: str) -> bool:
        return self._run_bool(
            "dhcp_in_directory",
            "[bool](Get-DhcpServerInDC -ErrorAction SilentlyContinue | Where-Object { "
            f"$_.IPAddress.IPAddressToString -eq {ps_quote(ip_address)} -or "
            f"$_.DnsName -eq {ps_quote(dns_name)} }})",
        )

    def register_dhcp_in_directory(self, dns_name: str, ip_address: str) -> None:
        self._run(
            "register_dhcp_in_directory",
            f"Add-DhcpServerInDC -DnsName {ps_quote(dns_name)} "
            f"-IPAddress {ps_quote(ip_address)}",
        )

    # ── Registry / firewall ──────────────────────────────────────

    def registry_value(self, path: str, name: str) -> int | str | None:
        return self._run_json(
            "registry_value",
            f"$p = Get-ItemProperty -Path {ps_quote(path)} -Name {ps_quote(name)} "
            "-ErrorAction SilentlyContinue; "
            f"if ($p) {{ $p.PSObject.Properties[{ps_quote(name)}].Value }} else {{ $null }}",
        )

    def set_registry_value(self, path: str, name: str, value: int | str) -> None:
        self._run(
            "set_registry_value",
            f"Set-ItemProperty -Path {ps_quote(path)} -Name {ps_quote(name)} "
            f"-Value {ps_value(value)}",
        )

    def firewall_group_enabled(self, display_group: str) -> bool:
        return self._run_bool(
            "firewall_group_enabled",
            f"$r = @(Get-NetFirewallRule -DisplayGroup {ps_quote(display_group)} "
            "-ErrorAction SilentlyContinue); "
            "($r.Count -gt 0) -and -not ($r | Where-Object { \"$($_.Enabled)\" -ne 'True' })",
        )

    def enable_firewall_group(self, display_group: str) -> None:
        self._run(
            "enable_firewall_group",
            f"Enable-NetFirewallRule -DisplayGroup {ps_quote(display_group)}",
        )
