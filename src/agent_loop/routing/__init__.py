"""Task selection, execution routing and result classification."""

from agent_loop.routing.outcomes import FAILURE_TOKENS, is_failure
from agent_loop.routing.router import ExecutionOutcome, TaskRouter
from agent_loop.routing.selector import Selection, TaskSelector, rank_candidates

__all__ = [
    "ExecutionOutcome",
    "FAILURE_TOKENS",
    "Selection",
    "TaskRouter",
    "TaskSelector",
    "is_failure",
    "rank_candidates",
]
