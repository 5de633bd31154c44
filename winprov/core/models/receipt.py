"""
Receipt model — the outcome of one provisioning step.

Every service returns Receipts instead of raising for recoverable
failures. The engine collects them into the final report, which is
what makes a partial run reportable.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Receipt(BaseModel):
    """Result of a single step against the host.

    ``step`` names the phase (network, install, configure, shell) and
    ``target`` the thing acted on (a capability id, a role, a command).
    ``changed`` is False when the host was already in the desired state.
    """

    step: str
    target: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    changed: bool = False

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the step succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the step failed."""
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def success(
        cls,
        step: str,
        target: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(step=step, target=target, status="ok", output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        step: str,
        target: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(step=step, target=target, status="failed", error=error, **kwargs)

    @classmethod
    def skip(
        cls,
        step: str,
        target: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(step=step, target=target, status="skipped", output=reason, **kwargs)
