"""planloop: LLM-planned workflows interpreted against a shared memory."""

from .errors import (
    CycleBudgetExceededError,
    NoAnswerError,
    PlanDecodeError,
    PlanLoopError,
    PlanningError,
    StateDecodeError,
    StateFileNotFoundError,
    StateSaveError,
    UnsupportedToolError,
)
from .executor import Executor
from .memory import Completed, Failed, InProgress, Memory
from .models import ActionStep, BranchStep, FinishStep, LoopStep, Plan, parse_plan
from .planner import Planner
from .runner import PlanLoopRunner

__all__ = [
    "PlanLoopRunner",
    "Planner",
    "Executor",
    "Memory",
    "InProgress",
    "Completed",
    "Failed",
    "Plan",
    "ActionStep",
    "BranchStep",
    "LoopStep",
    "FinishStep",
    "parse_plan",
    "PlanLoopError",
    "PlanDecodeError",
    "PlanningError",
    "UnsupportedToolError",
    "CycleBudgetExceededError",
    "NoAnswerError",
    "StateDecodeError",
    "StateFileNotFoundError",
    "StateSaveError",
]
