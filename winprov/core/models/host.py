"""
Host models — transient views of the machine being provisioned.

Nothing here is persisted. Values are captured from the host, used
by one step, and discarded at the end of the run.
"""

from __future__ import annotations

import ipaddress
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

AddressOrigin = Literal[
    "Manual",
    "Dhcp",
    "WellKnown",
    "Link",
    "RouterAdvertisement",
    "Other",
]


class NetAdapterInfo(BaseModel):
    """A network interface as listed by the host."""

    interface_index: int
    name: str
    status: str = "Up"  # Up, Down, Disconnected, ...

    @property
    def is_up(self) -> bool:
        return self.status.lower() == "up"


class NetworkAddressState(BaseModel):
    """IPv4 addressing of one interface at a point in time.

    ``origin`` decides whether the network step runs: anything other
    than Manual is converted to a static assignment.
    """

    interface_index: int
    interface_alias: str = ""
    ip_address: str
    prefix_length: int = Field(ge=0, le=32)
    gateway: str | None = None
    origin: AddressOrigin = "Dhcp"
    dns_servers: list[str] = Field(default_factory=list)

    @property
    def is_static(self) -> bool:
        return self.origin == "Manual"

    @property
    def network(self) -> ipaddress.IPv4Network:
        """The subnet this address belongs to."""
        return ipaddress.IPv4Network(
            f"{self.ip_address}/{self.prefix_length}", strict=False
        )

    @property
    def subnet_mask(self) -> str:
        return str(self.network.netmask)


class CapabilityRequest(BaseModel):
    """A server role or feature to install."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    include_management_tools: bool = True


class CapabilityStatus(BaseModel):
    """Probe result for one capability."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    installed: bool


class HostState(BaseModel):
    """State threaded through the components of one run.

    ``address`` is whatever the network step produced (or captured, if
    the step was skipped or failed). Role steps read it instead of
    querying the host again, so every step sees the same address.
    """

    address: NetworkAddressState | None = None

    @property
    def static_address(self) -> NetworkAddressState | None:
        """The address, only if it is statically assigned."""
        if self.address is not None and self.address.is_static:
            return self.address
        return None
