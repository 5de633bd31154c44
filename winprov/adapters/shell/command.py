"""
PowerShell command runner — execute management cmdlets on the host.

This is the lowest layer of the Windows platform: it runs one script
block and captures its output. It never raises; every outcome,
including timeouts and a missing interpreter, comes back as a Receipt.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from winprov.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

# Interpreters tried in order: Windows PowerShell, then PowerShell 7
POWERSHELL_CANDIDATES = ("powershell.exe", "powershell", "pwsh")

DEFAULT_TIMEOUT = 900  # feature installs can take several minutes


class PowerShellRunner:
    """Run PowerShell script blocks and capture output.

    Args:
        executable: Explicit interpreter path. Auto-detected if None.
        timeout: Timeout in seconds per script.
    """

    def __init__(self, executable: str | None = None, timeout: int = DEFAULT_TIMEOUT):
        self._executable = executable
        self.timeout = timeout

    @property
    def executable(self) -> str | None:
        """Resolved interpreter, or None if none is on PATH."""
        if self._executable:
            return self._executable
        for candidate in POWERSHELL_CANDIDATES:
            found = shutil.which(candidate)
            if found:
                self._executable = found
                return found
        return None

    def is_available(self) -> bool:
        return self.executable is not None

    def build_command(self, script: str) -> list[str]:
        """Argument vector for running a script block."""
        return [
            self.executable or POWERSHELL_CANDIDATES[0],
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            "$ErrorActionPreference = 'Stop'; " + script,
        ]

    def run(self, script: str, timeout: int | None = None) -> Receipt:
        """Execute a script block and return a receipt."""
        timeout = timeout or self.timeout
        target = script.split(" ", 1)[0]

        if not self.is_available():
            return Receipt.failure(
                step="shell",
                target=target,
                error="PowerShell is not available on this host",
                metadata={"script": script},
            )

        logger.debug("PowerShell: %s", script)
        start = time.monotonic()

        try:
            result = subprocess.run(
                self.build_command(script),
                capture_output=True,
                text=True,
                timeout=timeout,
            )

            elapsed_ms = int((time.monotonic() - start) * 1000)
            output = result.stdout.strip()
            stderr = result.stderr.strip()

            if result.returncode == 0:
                return Receipt.success(
                    step="shell",
                    target=target,
                    output=output,
                    duration_ms=elapsed_ms,
                    metadata={
                        "script": script,
                        "return_code": result.returncode,
                        "stderr": stderr,
                    },
                )
            else:
                return Receipt.failure(
                    step="shell",
                    target=target,
                    error=stderr or f"PowerShell exited with code {result.returncode}",
                    duration_ms=elapsed_ms,
                    metadata={
                        "script": script,
                        "return_code": result.returncode,
                        "stdout": output,
                    },
                )

        except subprocess.TimeoutExpired:
            return Receipt.failure(
                step="shell",
                target=target,
                error=f"PowerShell timed out after {timeout}s",
                metadata={"script": script, "timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                step="shell",
                target=target,
                error=f"PowerShell execution error: {e}",
                metadata={"script": script},
            )
