"""
Provisioning error taxonomy.

Two errors are fatal and abort a run immediately:
    - PermissionDenied  (process is not elevated)
    - NoActiveAdapter   (no network interface is up)

Everything else is caught by the services and recorded in a Receipt,
so later, unrelated steps still run and the final report can show a
partial success.
"""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for all provisioning errors."""


class PermissionDenied(ProvisionError):
    """Raised when the process lacks administrator privilege."""

    def __init__(self, detail: str = "Administrator privileges are required."):
        self.detail = detail
        super().__init__(detail)


class NoActiveAdapter(ProvisionError):
    """Raised when no network adapter reports link status 'Up'."""

    def __init__(self, detail: str = "No network adapter with status 'Up' was found."):
        self.detail = detail
        super().__init__(detail)


class InstallFailure(ProvisionError):
    """A capability could not be installed."""

    def __init__(self, capability: str, detail: str):
        self.capability = capability
        self.detail = detail
        super().__init__(f"Install of '{capability}' failed: {detail}")


class ConfigurationStepFailure(ProvisionError):
    """A configuration step (network or per-role) failed."""

    def __init__(self, step: str, detail: str):
        self.step = step
        self.detail = detail
        super().__init__(f"Configuration step '{step}' failed: {detail}")


class ProbeNotFound(ProvisionError):
    """The platform does not know the requested capability identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Unknown capability: '{identifier}'")


class PlatformError(ProvisionError):
    """A call into the host management surface failed."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation}: {detail}")
