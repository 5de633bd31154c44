"""
Tests for the host platform adapters — in-memory host, PowerShell
runner, and the Windows host's cmdlet mapping.
"""

import subprocess

import pytest

from winprov.adapters.mock import InMemoryHost
from winprov.adapters.shell.command import PowerShellRunner
from winprov.adapters.windows.server import WindowsHost, ps_quote, ps_value
from winprov.core.errors import PlatformError, ProbeNotFound
from winprov.core.models.receipt import Receipt

# ── In-memory host ──────────────────────────────────────────────────


class TestInMemoryHost:
    def test_seeded(self):
        host = InMemoryHost.seeded()
        adapters = host.list_adapters()
        assert len(adapters) == 1
        address = host.get_address(adapters[0].interface_index)
        assert address.origin == "Dhcp"
        assert address.gateway == "192.168.1.1"

    def test_probe_unknown(self):
        host = InMemoryHost()
        with pytest.raises(ProbeNotFound):
            host.feature_installed("No-Such-Feature")

    def test_install_and_probe(self):
        host = InMemoryHost()
        assert not host.feature_installed("DNS")
        assert host.install_feature("DNS", True) is False
        assert host.feature_installed("DNS")

    def test_restart_flag(self):
        host = InMemoryHost(restart_on_install={"RDS-RD-Server"})
        assert host.install_feature("RDS-RD-Server", True) is True

    def test_call_log_and_mutations(self):
        host = InMemoryHost()
        host.feature_installed("DNS")
        host.install_feature("DNS", True)
        assert [c.method for c in host.calls] == ["feature_installed", "install_feature"]
        assert [c.method for c in host.mutations] == ["install_feature"]
        host.reset_calls()
        assert host.calls == []

    def test_fail_on(self):
        host = InMemoryHost()
        host.fail_on("add_forwarder", "DNS service stopped")
        with pytest.raises(PlatformError, match="DNS service stopped"):
            host.add_forwarder("8.8.8.8")
        host.clear_failures()
        host.add_forwarder("8.8.8.8")
        assert host.forwarders == ["8.8.8.8"]

    def test_fail_on_limited_times(self):
        host = InMemoryHost()
        host.fail_on("add_forwarder", "busy", times=1)
        with pytest.raises(PlatformError, match="busy"):
            host.add_forwarder("8.8.8.8")
        host.add_forwarder("8.8.8.8")
        assert host.forwarders == ["8.8.8.8"]

    def test_static_address_then_dhcp_restores_lease(self, dhcp_host):
        dhcp_host.remove_address(7)
        assert dhcp_host.get_address(7) is None
        dhcp_host.enable_dhcp(7)
        address = dhcp_host.get_address(7)
        assert address.ip_address == "10.0.0.5"
        assert address.origin == "Dhcp"

    def test_duplicate_zone_rejected(self):
        host = InMemoryHost()
        host.add_primary_zone("lab.local", "lab.local.dns")
        with pytest.raises(PlatformError, match="already exists"):
            host.add_primary_zone("LAB.local", "lab.local.dns")

    def test_scope_options_need_scope(self):
        host = InMemoryHost()
        with pytest.raises(PlatformError, match="not found"):
            host.set_dhcp_scope_options("10.0.0.0", "10.0.0.5", "10.0.0.5", "lab.local")

    def test_read_backs(self):
        host = InMemoryHost.seeded()
        assert host.site_autostart_enabled("Default Web Site") is False
        assert host.registry_value(
            r"HKLM:\System\CurrentControlSet\Control\Terminal Server", "fDenyTSConnections"
        ) == 1
        assert host.registry_value(r"HKLM:\Nowhere", "x") is None
        assert not host.firewall_group_enabled("Remote Desktop")
        host.add_dhcp_scope("Lab", "192.168.1.100", "192.168.1.200", "255.255.255.0")
        assert host.dhcp_scope_options("192.168.1.0") == {}
        with pytest.raises(PlatformError, match="not found"):
            host.dhcp_scope_options("10.9.9.0")
        assert host.mutations == [c for c in host.calls if c.method == "add_dhcp_scope"]

    def test_scope_id_is_network_address(self):
        host = InMemoryHost()
        host.add_dhcp_scope("Lab", "10.0.0.100", "10.0.0.200", "255.255.255.0")
        assert host.dhcp_scope_exists("10.0.0.0")

    def test_unknown_interface(self):
        with pytest.raises(PlatformError, match="No interface"):
            InMemoryHost().get_address(99)

    def test_repr(self):
        assert "memory" in repr(InMemoryHost())


# ── PowerShell runner ───────────────────────────────────────────────


class _Completed:
    def __init__(self, returncode: int, stdout: str = "", stderr: str = ""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class TestPowerShellRunner:
    def test_build_command(self):
        runner = PowerShellRunner(executable="pwsh")
        argv = runner.build_command("Get-Date")
        assert argv[0] == "pwsh"
        assert "-NonInteractive" in argv
        assert argv[-1].endswith("Get-Date")
        assert "$ErrorActionPreference = 'Stop'" in argv[-1]

    def test_unavailable(self, monkeypatch):
        monkeypatch.setattr("shutil.which", lambda name: None)
        runner = PowerShellRunner()
        receipt = runner.run("Get-Date")
        assert receipt.failed
        assert "not available" in receipt.error

    def test_success(self, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run", lambda *a, **kw: _Completed(0, stdout="True\n")
        )
        receipt = PowerShellRunner(executable="pwsh").run("Get-Thing")
        assert receipt.ok
        assert receipt.output == "True"
        assert receipt.metadata["return_code"] == 0

    def test_failure_uses_stderr(self, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run", lambda *a, **kw: _Completed(1, stderr="Access denied")
        )
        receipt = PowerShellRunner(executable="pwsh").run("Get-Thing")
        assert receipt.failed
        assert receipt.error == "Access denied"

    def test_failure_without_stderr(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda *a, **kw: _Completed(3))
        receipt = PowerShellRunner(executable="pwsh").run("Get-Thing")
        assert "code 3" in receipt.error

    def test_timeout(self, monkeypatch):
        def _raise(*args, **kwargs):
            raise subprocess.TimeoutExpired(cmd="pwsh", timeout=5)

        monkeypatch.setattr(subprocess, "run", _raise)
        receipt = PowerShellRunner(executable="pwsh", timeout=5).run("Install-WindowsFeature")
        assert receipt.failed
        assert "timed out after 5s" in receipt.error

    def test_os_error(self, monkeypatch):
        def _raise(*args, **kwargs):
            raise FileNotFoundError("pwsh")

        monkeypatch.setattr(subprocess, "run", _raise)
        receipt = PowerShellRunner(executable="pwsh").run("Get-Date")
        assert receipt.failed
        assert "execution error" in receipt.error


# ── Windows host ────────────────────────────────────────────────────


class FakeRunner:
    """Records scripts and replies with queued outputs."""

    def __init__(self, outputs: list[str] | None = None, fail: str | None = None):
        self.scripts: list[str] = []
        self._outputs = list(outputs or [])
        self._fail = fail

    def run(self, script: str, timeout: int | None = None) -> Receipt:
        self.scripts.append(script)
        if self._fail:
            return Receipt.failure(step="shell", target="ps", error=self._fail)
        output = self._outputs.pop(0) if self._outputs else ""
        return Receipt.success(step="shell", target="ps", output=output)


class TestPowerShellQuoting:
    def test_quote_escapes(self):
        assert ps_quote("O'Brien") == "'O''Brien'"

    def test_values(self):
        assert ps_value(True) == "$true"
        assert ps_value(False) == "$false"
        assert ps_value(0) == "0"
        assert ps_value("x") == "'x'"


class TestWindowsHost:
    def test_is_elevated(self):
        runner = FakeRunner(["True"])
        assert WindowsHost(runner).is_elevated()
        assert "IsInRole" in runner.scripts[0]

    def test_list_adapters_single_object(self):
        runner = FakeRunner(['{"ifIndex":12,"Name":"Ethernet","Status":"Up"}'])
        adapters = WindowsHost(runner).list_adapters()
        assert len(adapters) == 1
        assert adapters[0].interface_index == 12
        assert adapters[0].is_up

    def test_list_adapters_many(self):
        runner = FakeRunner([
            '[{"ifIndex":3,"Name":"A","Status":"Disconnected"},'
            '{"ifIndex":4,"Name":"B","Status":"Up"}]'
        ])
        adapters = WindowsHost(runner).list_adapters()
        assert [a.name for a in adapters] == ["A", "B"]

    def test_get_address(self):
        runner = FakeRunner([
            '{"IPAddress":"10.0.0.5","PrefixLength":24,"PrefixOrigin":"Dhcp",'
            '"InterfaceAlias":"Ethernet","NextHop":"10.0.0.1","DnsServers":["10.0.0.1"]}'
        ])
        state = WindowsHost(runner).get_address(12)
        assert state.ip_address == "10.0.0.5"
        assert state.origin == "Dhcp"
        assert state.gateway == "10.0.0.1"
        assert state.dns_servers == ["10.0.0.1"]
        assert "-InterfaceIndex 12" in runner.scripts[0]
        assert "ConvertTo-Json" in runner.scripts[0]

    def test_get_address_none(self):
        assert WindowsHost(FakeRunner(["null"])).get_address(12) is None

    def test_get_address_odd_origin(self):
        runner = FakeRunner([
            '{"IPAddress":"10.0.0.5","PrefixLength":24,"PrefixOrigin":"Weird",'
            '"InterfaceAlias":"Ethernet","NextHop":"0.0.0.0","DnsServers":null}'
        ])
        state = WindowsHost(runner).get_address(12)
        assert state.origin == "Other"
        assert state.gateway is None
        assert state.dns_servers == []

    def test_unparseable_json(self):
        with pytest.raises(PlatformError, match="Unparseable"):
            WindowsHost(FakeRunner(["WARNING: something"])).list_adapters()

    def test_add_address_with_gateway(self):
        runner = FakeRunner()
        WindowsHost(runner).add_address(12, "10.0.0.5", 24, "10.0.0.1")
        script = runner.scripts[0]
        assert script.startswith("New-NetIPAddress -InterfaceIndex 12")
        assert "-IPAddress '10.0.0.5' -PrefixLength 24" in script
        assert "-DefaultGateway '10.0.0.1'" in script

    def test_add_address_without_gateway(self):
        runner = FakeRunner()
        WindowsHost(runner).add_address(12, "10.0.0.5", 24, None)
        assert "DefaultGateway" not in runner.scripts[0]

    def test_set_dns_servers(self):
        runner = FakeRunner()
        host = WindowsHost(runner)
        host.set_dns_servers(12, ["10.0.0.5"])
        host.set_dns_servers(12, [])
        assert "-ServerAddresses @('10.0.0.5')" in runner.scripts[0]
        assert "-ResetServerAddresses" in runner.scripts[1]

    def test_feature_installed(self):
        runner = FakeRunner(["True"])
        assert WindowsHost(runner).feature_installed("DNS")
        assert "Get-WindowsFeature -Name 'DNS'" in runner.scripts[0]

    def test_feature_not_found(self):
        runner = FakeRunner(["__WINPROV_NOT_FOUND__"])
        with pytest.raises(ProbeNotFound):
            WindowsHost(runner).feature_installed("Bogus")

    def test_install_feature(self):
        runner = FakeRunner(['{"Success":true,"RestartNeeded":"Yes","ExitCode":"SuccessRestartRequired"}'])
        assert WindowsHost(runner).install_feature("DHCP", True) is True
        assert "-IncludeManagementTools" in runner.scripts[0]

    def test_install_feature_without_tools(self):
        runner = FakeRunner(['{"Success":true,"RestartNeeded":"No","ExitCode":"Success"}'])
        assert WindowsHost(runner).install_feature("DHCP", False) is False
        assert "-IncludeManagementTools" not in runner.scripts[0]

    def test_install_feature_reports_failure(self):
        runner = FakeRunner(['{"Success":false,"RestartNeeded":"No","ExitCode":"Failed"}'])
        with pytest.raises(PlatformError, match="Failed"):
            WindowsHost(runner).install_feature("DHCP", True)

    def test_failed_script_raises(self):
        with pytest.raises(PlatformError, match="Access is denied"):
            WindowsHost(FakeRunner(fail="Access is denied")).add_forwarder("8.8.8.8")

    def test_site_autostart(self):
        runner = FakeRunner()
        WindowsHost(runner).set_site_autostart("Default Web Site", True)
        assert "Import-Module WebAdministration" in runner.scripts[0]
        assert "'IIS:\\Sites\\Default Web Site'" in runner.scripts[0]
        assert "-Value $true" in runner.scripts[0]

    def test_dns_cmdlets(self):
        runner = FakeRunner(["False", "", '["8.8.8.8"]', ""])
        host = WindowsHost(runner)
        assert not host.dns_zone_exists("lab.local")
        host.add_primary_zone("lab.local", "lab.local.dns")
        assert host.dns_forwarders() == ["8.8.8.8"]
        host.add_forwarder("1.1.1.1")
        assert "Add-DnsServerPrimaryZone -Name 'lab.local' -ZoneFile 'lab.local.dns'" in runner.scripts[1]
        assert "Add-DnsServerForwarder -IPAddress '1.1.1.1'" in runner.scripts[3]

    def test_empty_forwarders(self):
        assert WindowsHost(FakeRunner([""])).dns_forwarders() == []

    def test_dhcp_cmdlets(self):
        runner = FakeRunner(["False", "", "", "True", ""])
        host = WindowsHost(runner)
        assert not host.dhcp_scope_exists("10.0.0.0")
        host.add_dhcp_scope("Lab", "10.0.0.100", "10.0.0.200", "255.255.255.0")
        host.set_dhcp_scope_options("10.0.0.0", "10.0.0.5", "10.0.0.5", "lab.local")
        assert host.dhcp_in_directory("srv01.lab.local", "10.0.0.5")
        host.register_dhcp_in_directory("srv01.lab.local", "10.0.0.5")
        assert "-StartRange '10.0.0.100' -EndRange '10.0.0.200'" in runner.scripts[1]
        assert "-Router '10.0.0.5' -DnsServer '10.0.0.5' -DnsDomain 'lab.local'" in runner.scripts[2]
        assert "Add-DhcpServerInDC -DnsName 'srv01.lab.local' -IPAddress '10.0.0.5'" in runner.scripts[4]

    def test_registry_and_firewall(self):
        runner = FakeRunner()
        host = WindowsHost(runner)
        host.set_registry_value(r"HKLM:\System\X", "fDenyTSConnections", 0)
        host.enable_firewall_group("Remote Desktop")
        assert "-Name 'fDenyTSConnections' -Value 0" in runner.scripts[0]
        assert "Enable-NetFirewallRule -DisplayGroup 'Remote Desktop'" in runner.scripts[1]

    def test_site_autostart_read(self):
        runner = FakeRunner(["True"])
        assert WindowsHost(runner).site_autostart_enabled("Default Web Site")
        assert "(Get-Item -Path 'IIS:\\Sites\\Default Web Site').serverAutoStart" in runner.scripts[0]

    def test_dhcp_scope_options_read(self):
        runner = FakeRunner([
            '[{"OptionId":3,"Value":["10.0.0.5"]},'
            '{"OptionId":6,"Value":["10.0.0.5","10.0.0.6"]},'
            '{"OptionId":15,"Value":"lab.local"},'
            '{"OptionId":51,"Value":["691200"]}]'
        ])
        options = WindowsHost(runner).dhcp_scope_options("10.0.0.0")
        assert options == {
            "router": "10.0.0.5",
            "dns_server": "10.0.0.5",
            "dns_domain": "lab.local",
        }
        assert "Get-DhcpServerv4OptionValue -ScopeId '10.0.0.0'" in runner.scripts[0]

    def test_dhcp_scope_options_empty(self):
        assert WindowsHost(FakeRunner([""])).dhcp_scope_options("10.0.0.0") == {}

    def test_registry_and_firewall_read(self):
        runner = FakeRunner(["1", "null", "False"])
        host = WindowsHost(runner)
        assert host.registry_value(r"HKLM:\System\X", "fDenyTSConnections") == 1
        assert host.registry_value(r"HKLM:\System\X", "Missing") is None
        assert not host.firewall_group_enabled("Remote Desktop")
        assert "Get-NetFirewallRule -DisplayGroup 'Remote Desktop'" in runner.scripts[2]
