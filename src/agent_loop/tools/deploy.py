"""Vercel deployments through the local CLI."""

from __future__ import annotations

from agent_loop.state.models import ProviderHealth
from agent_loop.tools.http import ProviderError, health
from agent_loop.tools.schemas import DeployInput, DeployOutput, ShellInput
from agent_loop.tools.shell import ShellRunner


class VercelDeployer:
    def __init__(self, token: str, runner: ShellRunner) -> None:
        self.token = token
        self.runner = runner

    def is_configured(self) -> bool:
        return bool(self.token)

    def health(self) -> ProviderHealth:
        return health(self.is_configured(), "Ready" if self.is_configured() else "Missing VERCEL_TOKEN")

    def deploy(self, payload: DeployInput) -> DeployOutput:
        if not self.token:
            raise ProviderError("Vercel is not configured")
        command = "npx vercel deploy --yes"
        if payload.production:
            command += " --prod"
        result = self.runner.run(ShellInput(command=f"{command} --token {self.token}", cwd=payload.cwd))
        url = None
        for line in reversed(result.stdout.splitlines()):
            if line.strip().startswith("https://"):
                url = line.strip()
                break
        return DeployOutput(
            ok=result.ok,
            code=result.code,
            url=url,
            stdout=result.stdout.replace(self.token, "***"),
            stderr=result.stderr.replace(self.token, "***"),
        )
