"""Named capabilities the agent can execute, plus the operator notifier."""

from agent_loop.tools.gateway import CapabilityGateway
from agent_loop.tools.notifier import SlackNotifier
from agent_loop.tools.registry import (
    CapabilitySpec,
    Providers,
    build_providers,
    build_registry,
    list_capabilities,
)

__all__ = [
    "CapabilityGateway",
    "CapabilitySpec",
    "Providers",
    "SlackNotifier",
    "build_providers",
    "build_registry",
    "list_capabilities",
]
