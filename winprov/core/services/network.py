"""
Network configurator — convert the active adapter to a static address.

The address the host already has is kept: it is captured, the dynamic
assignment is removed, and the same address/prefix/gateway is applied
again as a Manual entry. DNS resolution is then pointed at the host
itself, since it is about to become the DNS server.

Re-running on a host that is already static performs no mutating call.

If any mutating step fails, the adapter would be left without an
address. Instead, the captured snapshot is used to put the adapter
back on dynamic addressing with its previous DNS servers, and the
failure is raised as ConfigurationStepFailure.
"""

from __future__ import annotations

import logging

from winprov.adapters.base import HostPlatform
from winprov.core.errors import ConfigurationStepFailure, NoActiveAdapter, PlatformError
from winprov.core.models.host import NetAdapterInfo, NetworkAddressState

logger = logging.getLogger(__name__)


def select_active_adapter(host: HostPlatform) -> NetAdapterInfo:
    """Return the first adapter whose link status is Up.

    Raises:
        NoActiveAdapter: If no adapter is up.
    """
    for adapter in host.list_adapters():
        if adapter.is_up:
            logger.debug("Active adapter: %s (ifIndex %d)", adapter.name, adapter.interface_index)
            return adapter
    raise NoActiveAdapter()


def capture_address(host: HostPlatform) -> NetworkAddressState:
    """Read the current IPv4 state of the active adapter without changing it.

    Raises:
        NoActiveAdapter: If no adapter is up.
        ConfigurationStepFailure: If the adapter carries no IPv4 address.
    """
    adapter = select_active_adapter(host)
    try:
        state = host.get_address(adapter.interface_index)
    except PlatformError as e:
        raise ConfigurationStepFailure("network", f"Cannot read address: {e}") from e

    if state is None:
        raise ConfigurationStepFailure(
            "network",
            f"Adapter '{adapter.name}' is up but has no IPv4 address",
        )
    if not state.interface_alias:
        state = state.model_copy(update={"interface_alias": adapter.name})
    return state


def ensure_static_address(host: HostPlatform) -> NetworkAddressState:
    """Make the active adapter's current address a static assignment.

    Returns:
        The resulting address state (origin Manual).

    Raises:
        NoActiveAdapter: If no adapter is up.
        ConfigurationStepFailure: If reading or reconfiguring fails. The
            adapter has been restored on a best-effort basis.
    """
    current = capture_address(host)

    if current.is_static:
        logger.info(
            "Address %s/%d on '%s' is already static",
            current.ip_address,
            current.prefix_length,
            current.interface_alias,
        )
        return current

    idx = current.interface_index
    logger.info(
        "Converting %s/%d (gateway %s, origin %s) on '%s' to static",
        current.ip_address,
        current.prefix_length,
        current.gateway or "none",
        current.origin,
        current.interface_alias,
    )

    try:
        host.remove_address(idx)
        if current.gateway:
            host.remove_default_route(idx)
        host.add_address(idx, current.ip_address, current.prefix_length, current.gateway)
        host.set_dns_servers(idx, [current.ip_address])
    except PlatformError as e:
        logger.error("Static address change failed on '%s': %s", current.interface_alias, e)
        restored = restore_address(host, current)
        detail = str(e)
        detail += " (previous addressing restored)" if restored else " (restore FAILED)"
        raise ConfigurationStepFailure("network", detail) from e

    return current.model_copy(
        update={"origin": "Manual", "dns_servers": [current.ip_address]}
    )


def restore_address(host: HostPlatform, snapshot: NetworkAddressState) -> bool:
    """Best-effort return to the addressing captured in ``snapshot``.

    A DHCP-origin address is restored by re-enabling DHCP. Any other
    origin has its captured address re-applied, unless the interface
    still holds it.

    Returns True only if every restore call succeeded and the interface
    has an address again (the captured one, for non-DHCP origins).
    """
    idx = snapshot.interface_index
    dynamic = snapshot.origin == "Dhcp"
    ok = True

    try:
        if dynamic:
            host.enable_dhcp(idx)
        else:
            current = host.get_address(idx)
            if current is None or current.ip_address != snapshot.ip_address:
                host.add_address(
                    idx, snapshot.ip_address, snapshot.prefix_length, snapshot.gateway
                )
    except PlatformError as e:
        logger.error("Restore: cannot bring back the previous address: %s", e)
        ok = False

    try:
        host.set_dns_servers(idx, list(snapshot.dns_servers))
    except PlatformError as e:
        logger.error("Restore: cannot reset DNS servers: %s", e)
        ok = False

    try:
        after = host.get_address(idx)
    except PlatformError as e:
        logger.error("Restore: cannot read back the address: %s", e)
        after = None

    if after is None:
        logger.error("Restore: '%s' has no IPv4 address", snapshot.interface_alias or idx)
        return False
    if not dynamic and after.ip_address != snapshot.ip_address:
        logger.error(
            "Restore: '%s' holds %s, expected %s",
            snapshot.interface_alias or idx,
            after.ip_address,
            snapshot.ip_address,
        )
        return False

    if ok:
        logger.warning(
            "Restored '%s' to %s addressing (%s)",
            snapshot.interface_alias or idx,
            "dynamic" if dynamic else "its previous",
            after.ip_address,
        )
    return ok
