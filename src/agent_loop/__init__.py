"""Run-cycle orchestrator for a long-running, operator-steerable agent."""

__version__ = "0.1.0"

__all__ = ["__version__"]
