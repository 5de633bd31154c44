"""winprov — idempotent Windows Server role provisioning."""

__version__ = "0.1.0"
