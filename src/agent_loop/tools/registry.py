"""Capability registry: named execution paths bound to provider clients."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel

from agent_loop.config.settings import Settings
from agent_loop.state.models import ProviderHealth
from agent_loop.tools.deploy import VercelDeployer
from agent_loop.tools.mailbox import AgentMailClient
from agent_loop.tools.memory import SupermemoryClient
from agent_loop.tools.notifier import SlackNotifier
from agent_loop.tools.research import BrowserUseClient
from agent_loop.tools.schemas import (
    DeployInput,
    DeployOutput,
    MailboxInput,
    MailboxOutput,
    MemoryAddInput,
    MemoryAddOutput,
    MemorySearchInput,
    MemorySearchOutput,
    NotifyInput,
    NotifyOutput,
    ResearchInput,
    ResearchOutput,
    ShellInput,
    ShellOutput,
)
from agent_loop.tools.shell import ShellRunner


@dataclass(frozen=True)
class CapabilitySpec:
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    fn: Callable[[BaseModel], BaseModel]
    ready: Callable[[], bool] = lambda: True
    implementation: str = "local"


@dataclass(frozen=True)
class Providers:
    """Provider clients built once from settings and shared across cycles."""

    research: BrowserUseClient
    memory: SupermemoryClient
    mailbox: AgentMailClient
    shell: ShellRunner
    deploy: VercelDeployer
    notifier: SlackNotifier

    def health(self) -> dict[str, ProviderHealth]:
        return {
            "browser-use": self.research.health(),
            "supermemory": self.memory.health(),
            "agentmail": self.mailbox.health(),
            "shell": self.shell.health(),
            "vercel": self.deploy.health(),
            "slack": self.notifier.health(),
        }


def build_providers(settings: Settings) -> Providers:
    timeout_s = settings.tool_timeout_s
    shell = ShellRunner(default_cwd=str(settings.workspace_path()), timeout_s=timeout_s)
    return Providers(
        research=BrowserUseClient(settings.resolved_browser_use_api_key(), timeout_s=timeout_s),
        memory=SupermemoryClient(settings.resolved_supermemory_api_key(), timeout_s=timeout_s),
        mailbox=AgentMailClient(settings.resolved_agentmail_api_key(), timeout_s=timeout_s),
        shell=shell,
        deploy=VercelDeployer(settings.resolved_vercel_token(), shell),
        notifier=SlackNotifier(
            settings.resolved_slack_bot_token(),
            settings.resolved_slack_channel(),
            timeout_s=timeout_s,
        ),
    )


def build_registry(providers: Providers) -> dict[str, CapabilitySpec]:
    return {
        "research": CapabilitySpec(
            input_model=ResearchInput,
            output_model=ResearchOutput,
            fn=providers.research.run_task,
            ready=providers.research.is_configured,
            implementation="browser-use",
        ),
        "memory_add": CapabilitySpec(
            input_model=MemoryAddInput,
            output_model=MemoryAddOutput,
            fn=providers.memory.add,
            ready=providers.memory.is_configured,
            implementation="supermemory",
        ),
        "memory_search": CapabilitySpec(
            input_model=MemorySearchInput,
            output_model=MemorySearchOutput,
            fn=providers.memory.recall,
            ready=providers.memory.is_configured,
            implementation="supermemory",
        ),
        "mailbox": CapabilitySpec(
            input_model=MailboxInput,
            output_model=MailboxOutput,
            fn=providers.mailbox.create_inbox,
            ready=providers.mailbox.is_configured,
            implementation="agentmail",
        ),
        "shell": CapabilitySpec(
            input_model=ShellInput,
            output_model=ShellOutput,
            fn=providers.shell.run,
            ready=providers.shell.is_configured,
        ),
        "deploy": CapabilitySpec(
            input_model=DeployInput,
            output_model=DeployOutput,
            fn=providers.deploy.deploy,
            ready=providers.deploy.is_configured,
            implementation="vercel",
        ),
        "notify": CapabilitySpec(
            input_model=NotifyInput,
            output_model=NotifyOutput,
            fn=providers.notifier.post,
            ready=providers.notifier.is_configured,
            implementation="slack",
        ),
    }


def list_capabilities(registry: dict[str, CapabilitySpec]) -> list[dict[str, Any]]:
    return [
        {"name": name, "implementation": spec.implementation, "ready": spec.ready()}
        for name, spec in sorted(registry.items())
    ]
