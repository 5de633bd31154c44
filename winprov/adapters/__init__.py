"""Adapters — bindings to the host management surface.

Public re-exports for convenient access.
"""

from winprov.adapters.base import HostPlatform
from winprov.adapters.mock import InMemoryHost
from winprov.adapters.windows.server import WindowsHost

__all__ = [
    "HostPlatform",
    "InMemoryHost",
    "WindowsHost",
]
