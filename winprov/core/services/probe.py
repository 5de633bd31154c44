"""
Capability probe — is a role or feature installed on the host?
"""

from __future__ import annotations

import logging

from winprov.adapters.base import HostPlatform
from winprov.core.models.host import CapabilityStatus

logger = logging.getLogger(__name__)


def probe(host: HostPlatform, identifier: str) -> bool:
    """Return whether ``identifier`` is installed.

    Raises:
        ProbeNotFound: The platform does not know the identifier.
        PlatformError: The query itself failed.
    """
    installed = host.feature_installed(identifier)
    logger.debug("Probe %s → %s", identifier, "installed" if installed else "absent")
    return installed


def probe_status(host: HostPlatform, identifier: str) -> CapabilityStatus:
    """Probe and wrap the result as a CapabilityStatus."""
    return CapabilityStatus(identifier=identifier, installed=probe(host, identifier))
