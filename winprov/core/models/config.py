"""
Provisioning configuration — the fixed parameters of a run.

Loaded from provision.yml. Every field has a default so a run without
a config file still has a complete, documented parameter set.
"""

from __future__ import annotations

import ipaddress

from pydantic import BaseModel, Field, field_validator, model_validator

from winprov.core.models.host import CapabilityRequest

# Windows Server feature names for the four managed roles
WEB_ROLE = "Web-Server"
DNS_ROLE = "DNS"
DHCP_ROLE = "DHCP"
RDS_ROLE = "RDS-RD-Server"

DEFAULT_ROLES: list[CapabilityRequest] = [
    CapabilityRequest(identifier=WEB_ROLE),
    CapabilityRequest(identifier=DNS_ROLE),
    CapabilityRequest(identifier=DHCP_ROLE),
    CapabilityRequest(identifier=RDS_ROLE),
]

DEFAULT_ROLE_LABELS: dict[str, str] = {
    WEB_ROLE: "IIS Web Server",
    DNS_ROLE: "DNS Server",
    DHCP_ROLE: "DHCP Server",
    RDS_ROLE: "Remote Desktop Session Host",
}


def _validate_ipv4(value: str) -> str:
    try:
        ipaddress.IPv4Address(value)
    except ValueError as e:
        raise ValueError(f"not a valid IPv4 address: {value!r}") from e
    return value


class ProvisionConfig(BaseModel):
    """All fixed literals used by the role configuration steps."""

    domain_name: str = "corp.local"
    zone_file: str = ""
    forwarder_address: str = "8.8.8.8"

    scope_name: str = "LAN"
    scope_start: str = "192.168.1.100"
    scope_end: str = "192.168.1.200"
    subnet_mask: str = "255.255.255.0"

    web_site: str = "Default Web Site"

    roles: list[CapabilityRequest] = Field(default_factory=lambda: list(DEFAULT_ROLES))
    role_labels: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_ROLE_LABELS))

    @field_validator("forwarder_address", "scope_start", "scope_end")
    @classmethod
    def _check_address(cls, value: str) -> str:
        return _validate_ipv4(value)

    @field_validator("subnet_mask")
    @classmethod
    def _check_mask(cls, value: str) -> str:
        try:
            ipaddress.IPv4Network(f"0.0.0.0/{value}")
        except ValueError as e:
            raise ValueError(f"not a valid subnet mask: {value!r}") from e
        return value

    @field_validator("domain_name")
    @classmethod
    def _check_domain(cls, value: str) -> str:
        value = value.strip().rstrip(".")
        if not value or " " in value:
            raise ValueError(f"invalid domain name: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> ProvisionConfig:
        if not self.zone_file:
            self.zone_file = f"{self.domain_name}.dns"

        start = ipaddress.IPv4Address(self.scope_start)
        end = ipaddress.IPv4Address(self.scope_end)
        if start > end:
            raise ValueError(
                f"scope_start {self.scope_start} is after scope_end {self.scope_end}"
            )

        ids = [r.identifier for r in self.roles]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"duplicate role identifiers: {', '.join(dupes)}")
        return self

    @property
    def prefix_length(self) -> int:
        return ipaddress.IPv4Network(f"0.0.0.0/{self.subnet_mask}").prefixlen

    def label_map(self) -> dict[str, str]:
        """Identifier → display label, limited to the requested roles."""
        return {
            r.identifier: self.role_labels.get(r.identifier, r.identifier)
            for r in self.roles
        }

    def wants(self, identifier: str) -> bool:
        """Whether a role is part of the requested set."""
        return any(r.identifier == identifier for r in self.roles)
