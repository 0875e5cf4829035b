"""Local command runner used by the shell and deploy capabilities."""

from __future__ import annotations

import logging
import shlex
import subprocess

from agent_loop.state.models import ProviderHealth
from agent_loop.tools.http import health
from agent_loop.tools.schemas import ShellInput, ShellOutput

logger = logging.getLogger(__name__)

OUTPUT_LIMIT = 4000


class ShellRunner:
    def __init__(self, *, default_cwd: str, timeout_s: float = 30.0) -> None:
        self.default_cwd = default_cwd
        self.timeout_s = timeout_s

    def is_configured(self) -> bool:
        return True

    def health(self) -> ProviderHealth:
        return health(True, "Command execution available in current runtime")

    def run(self, payload: ShellInput) -> ShellOutput:
        args = shlex.split(payload.command)
        cwd = payload.cwd or self.default_cwd
        logger.info("shell command starting cwd=%s program=%s", cwd, args[0] if args else "")
        try:
            completed = subprocess.run(
                args,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return ShellOutput(ok=False, code=-1, stderr=f"Command timed out after {self.timeout_s:.0f}s")
        except (FileNotFoundError, PermissionError) as exc:
            return ShellOutput(ok=False, code=127, stderr=str(exc))
        return ShellOutput(
            ok=completed.returncode == 0,
            code=completed.returncode,
            stdout=completed.stdout[-OUTPUT_LIMIT:],
            stderr=completed.stderr[-OUTPUT_LIMIT:],
        )
