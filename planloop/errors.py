"""Exception hierarchy for planloop.

Every failure in the core is raised as a ``PlanLoopError`` subclass and aborts
the current run; nothing here is retried.
"""

from __future__ import annotations


class PlanLoopError(RuntimeError):
    """Base class for all planloop errors."""


class PlanDecodeError(PlanLoopError):
    """A plan or condition JSON value does not match the plan schema."""


class PlanningError(PlanLoopError):
    """The planner could not produce a usable plan."""


class UnsupportedToolError(PlanLoopError):
    """An action step names a tool the executor cannot run."""

    def __init__(self, tool: str, step_id: str) -> None:
        super().__init__(f"Unsupported tool '{tool}' for action {step_id}")
        self.tool = tool
        self.step_id = step_id


class CycleBudgetExceededError(PlanLoopError):
    """The runner used up its plan/execute cycles without finishing."""

    def __init__(self, max_cycles: int) -> None:
        super().__init__(
            f"Reached max planner cycles ({max_cycles}) without finishing"
        )
        self.max_cycles = max_cycles


class NoAnswerError(PlanLoopError):
    """A plan finished but neither an answer nor a last result was recorded."""

    def __init__(self) -> None:
        super().__init__("Agent finished without producing an answer")


class StateDecodeError(PlanLoopError):
    """A persisted memory payload could not be decoded."""


class StateFileNotFoundError(PlanLoopError):
    """A state file passed to ``Memory.load`` does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"State file not found: {path}")
        self.path = path


class StateSaveError(PlanLoopError):
    """A memory could not be written to its state file."""
