"""Plan document parsing, write-back and task synchronization."""

from agent_loop.plan.document import PlanDocument, PlanSyncError, parse_plan, reduce_plan_text
from agent_loop.plan.sync import reconcile_tasks

__all__ = [
    "PlanDocument",
    "PlanSyncError",
    "parse_plan",
    "reconcile_tasks",
    "reduce_plan_text",
]
