"""
Shared test fixtures and configuration.
"""

import logging

import pytest

from winprov.adapters.mock import InMemoryHost
from winprov.core.models.config import ProvisionConfig


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """CLI tests reconfigure logging; give every test a clean root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config() -> ProvisionConfig:
    """Config whose scope fits the 10.0.0.0/24 test network."""
    return ProvisionConfig(
        domain_name="lab.local",
        forwarder_address="1.1.1.1",
        scope_name="Lab",
        scope_start="10.0.0.100",
        scope_end="10.0.0.200",
        subnet_mask="255.255.255.0",
    )


@pytest.fixture
def dhcp_host() -> InMemoryHost:
    """Elevated host with one DHCP-addressed adapter and nothing installed."""
    host = InMemoryHost(hostname="SRV01")
    host.add_interface(
        7,
        "Ethernet0",
        ip_address="10.0.0.5",
        prefix_length=24,
        gateway="10.0.0.1",
        origin="Dhcp",
        dns_servers=["10.0.0.1"],
    )
    return host


@pytest.fixture
def static_host() -> InMemoryHost:
    """Same network as dhcp_host, but already statically addressed."""
    host = InMemoryHost(hostname="SRV01")
    host.add_interface(
        7,
        "Ethernet0",
        ip_address="10.0.0.5",
        prefix_length=24,
        gateway="10.0.0.1",
        origin="Manual",
        dns_servers=["10.0.0.5"],
    )
    return host
