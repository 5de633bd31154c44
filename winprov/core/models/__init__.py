"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from winprov.core.models import ProvisionConfig, HostState, Receipt
"""

from winprov.core.models.config import (
    DEFAULT_ROLE_LABELS,
    DEFAULT_ROLES,
    DHCP_ROLE,
    DNS_ROLE,
    RDS_ROLE,
    WEB_ROLE,
    ProvisionConfig,
)
from winprov.core.models.host import (
    AddressOrigin,
    CapabilityRequest,
    CapabilityStatus,
    HostState,
    NetAdapterInfo,
    NetworkAddressState,
)
from winprov.core.models.receipt import Receipt

__all__ = [
    # host.py
    "AddressOrigin",
    "CapabilityRequest",
    "CapabilityStatus",
    # config.py
    "DEFAULT_ROLES",
    "DEFAULT_ROLE_LABELS",
    "DHCP_ROLE",
    "DNS_ROLE",
    "HostState",
    "NetAdapterInfo",
    "NetworkAddressState",
    "ProvisionConfig",
    "RDS_ROLE",
    # receipt.py
    "Receipt",
    "WEB_ROLE",
]
