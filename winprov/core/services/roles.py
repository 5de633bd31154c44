"""
Role installer — install the requested server roles, one receipt each.

Installation is idempotent: a role that is already present produces an
'ok' receipt without any install call. A failed install is recorded and
the remaining roles are still attempted.
"""

from __future__ import annotations

import logging
import time

from winprov.adapters.base import HostPlatform
from winprov.core.errors import InstallFailure, PlatformError, ProbeNotFound
from winprov.core.models.host import CapabilityRequest
from winprov.core.models.receipt import Receipt
from winprov.core.services.probe import probe

logger = logging.getLogger(__name__)


def install_role(host: HostPlatform, request: CapabilityRequest) -> Receipt:
    """Install one capability, returning a receipt (never raises)."""
    identifier = request.identifier
    start = time.monotonic()

    try:
        if probe(host, identifier):
            logger.info("✓ %s already installed", identifier)
            return Receipt.success(
                step="install",
                target=identifier,
                output="already installed",
                changed=False,
            )

        logger.info(
            "Installing %s%s",
            identifier,
            " (with management tools)" if request.include_management_tools else "",
        )
        restart_needed = host.install_feature(identifier, request.include_management_tools)

    except (PlatformError, ProbeNotFound) as e:
        failure = InstallFailure(identifier, str(e))
        logger.error("✗ %s", failure)
        return Receipt.failure(
            step="install",
            target=identifier,
            error=str(failure),
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    elapsed_ms = int((time.monotonic() - start) * 1000)
    if restart_needed:
        logger.warning("%s installed; a restart is required", identifier)
    else:
        logger.info("✓ %s installed", identifier)

    return Receipt.success(
        step="install",
        target=identifier,
        output="installed",
        changed=True,
        duration_ms=elapsed_ms,
        metadata={
            "restart_needed": restart_needed,
            "include_management_tools": request.include_management_tools,
        },
    )


def install_roles(host: HostPlatform, requests: list[CapabilityRequest]) -> list[Receipt]:
    """Install every requested capability, preserving request order."""
    return [install_role(host, request) for request in requests]
