"""
Verification reporter — re-probe every requested role and report.

The report says only whether each role is installed, never why not.
It is followed by a fixed checklist of things an operator still has
to confirm by hand.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from winprov.adapters.base import HostPlatform
from winprov.core.errors import PlatformError, ProbeNotFound
from winprov.core.services.probe import probe

logger = logging.getLogger(__name__)

MANUAL_CHECKLIST: tuple[str, ...] = (
    "Browse to http://localhost to confirm the default web site responds.",
    "Run 'nslookup' against this server to confirm the new zone resolves.",
    "Connect a client and confirm it receives a lease from the new scope.",
    "Open a Remote Desktop session to this server from another machine.",
    "Restart the server if any role reported that a restart is required.",
)


@dataclass
class VerificationLine:
    """One role's verification outcome."""

    identifier: str
    label: str
    ok: bool

    def to_dict(self) -> dict:
        return asdict(self)


def verify_roles(host: HostPlatform, labels: dict[str, str]) -> list[VerificationLine]:
    """Probe each identifier in ``labels`` and return one line per entry.

    Only the identifiers in ``labels`` are queried. A probe that fails
    for any reason counts as not installed.
    """
    lines = []
    for identifier, label in labels.items():
        try:
            ok = probe(host, identifier)
        except (PlatformError, ProbeNotFound) as e:
            logger.debug("Verification probe for %s failed: %s", identifier, e)
            ok = False
        lines.append(VerificationLine(identifier=identifier, label=label, ok=ok))
    return lines


def render_report(
    lines: list[VerificationLine],
    checklist: tuple[str, ...] = MANUAL_CHECKLIST,
) -> list[str]:
    """Printable text lines for the verification report."""
    out = ["Role verification:"]
    for line in lines:
        marker = "✓" if line.ok else "✗"
        outcome = "installed" if line.ok else "NOT installed"
        out.append(f"  {marker} {line.label}: {outcome}")
    out.append("")
    out.append("Manual checks:")
    for item in checklist:
        out.append(f"  [ ] {item}")
    return out
