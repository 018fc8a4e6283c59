"""Data models for plans: the step tree produced by the planner.

A plan is an ordered list of steps. Branch and Loop steps own nested step
lists, so a plan is a tree that the executor walks depth-first. Plans are
immutable once decoded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

from .conditions import Condition, parse_condition
from .errors import PlanDecodeError
from .memory import json_text


@dataclass(frozen=True)
class ActionStep:
    """Ask the step-runner to perform one instruction and store the reply."""

    id: str
    label: str
    prompt: str
    tool: Optional[str] = None
    save_as: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": "action",
            "id": self.id,
            "label": self.label,
            "prompt": self.prompt,
            "tool": self.tool,
            "save_as": self.save_as,
        }


@dataclass(frozen=True)
class BranchStep:
    id: str
    condition: Condition
    if_true: list["Step"] = field(default_factory=list)
    if_false: list["Step"] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "type": "branch",
            "id": self.id,
            "condition": self.condition.to_dict(),
            "if_true": [s.to_dict() for s in self.if_true],
            "if_false": [s.to_dict() for s in self.if_false],
        }


@dataclass(frozen=True)
class LoopStep:
    """Repeat *body* while *condition* holds, at most *max_iterations* times.

    A missing or non-positive ``max_iterations`` means the executor's default.
    """

    id: str
    condition: Condition
    body: list["Step"] = field(default_factory=list)
    max_iterations: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "type": "loop",
            "id": self.id,
            "condition": self.condition.to_dict(),
            "body": [s.to_dict() for s in self.body],
            "max_iterations": self.max_iterations,
        }


@dataclass(frozen=True)
class FinishStep:
    id: str
    summary: Optional[str] = None

    def to_dict(self) -> dict:
        return {"type": "finish", "id": self.id, "summary": self.summary}


Step = Union[ActionStep, BranchStep, LoopStep, FinishStep]


@dataclass(frozen=True)
class Plan:
    """An ordered sequence of steps. Never mutated once decoded."""

    steps: list[Step]
    raw: str = ""  # Raw LLM output, preserved for debugging

    def __len__(self) -> int:
        return len(self.steps)

    def walk(self) -> Iterator[Step]:
        """Yield every step in the tree, depth-first in execution order."""
        yield from _walk(self.steps)

    def get_step(self, step_id: str) -> Optional[Step]:
        return next((s for s in self.walk() if s.id == step_id), None)

    def to_dict(self) -> dict:
        return {"plan": [s.to_dict() for s in self.steps]}


def _walk(steps: list[Step]) -> Iterator[Step]:
    for step in steps:
        yield step
        if isinstance(step, BranchStep):
            yield from _walk(step.if_true)
            yield from _walk(step.if_false)
        elif isinstance(step, LoopStep):
            yield from _walk(step.body)


def describe_step(step: Step) -> str:
    if isinstance(step, ActionStep):
        return f"Action({step.id} -> {step.label})"
    if isinstance(step, BranchStep):
        return f"Branch({step.id} if {step.condition})"
    if isinstance(step, LoopStep):
        return f"Loop({step.id} while {step.condition})"
    return f"Finish({step.id})"


def describe_plan(plan: Plan) -> str:
    return "[" + "; ".join(describe_step(s) for s in plan.steps) + "]"


# ── decoding ──────────────────────────────────────────────────────────────────


def _string_field(data: dict, name: str) -> str:
    if name not in data:
        raise PlanDecodeError(f"Missing string field '{name}'")
    value = data[name]
    if not isinstance(value, str):
        raise PlanDecodeError(f"Field '{name}' must be string")
    return value


def _opt_string_field(data: dict, name: str) -> Optional[str]:
    value = data.get(name)
    if value is None or isinstance(value, str):
        return value
    raise PlanDecodeError(f"Field '{name}' must be string or null")


def _opt_int_field(data: dict, name: str) -> Optional[int]:
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool):
        raise PlanDecodeError(f"Field '{name}' must be int")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError) as exc:
            raise PlanDecodeError(f"Field '{name}' must be int") from exc
    raise PlanDecodeError(f"Field '{name}' must be int")


def _step_list(data: dict, name: str, owner: str) -> list[Step]:
    if name not in data:
        return []
    items = data[name]
    if not isinstance(items, list):
        raise PlanDecodeError(f"{owner} '{name}' must be list")
    return [parse_step(item) for item in items]


def _required_condition(data: dict, owner: str) -> Condition:
    if "condition" not in data:
        raise PlanDecodeError(f"{owner} missing condition")
    return parse_condition(data["condition"])


def _label(data: dict) -> str:
    for name in ("label", "description"):
        value = data.get(name)
        if isinstance(value, str):
            return value
    return _string_field(data, "id")


def parse_step(data: Any) -> Step:
    """Decode one step from its JSON representation.

    Raises:
        PlanDecodeError: naming the offending field or type when *data* does
            not match the step schema.
    """
    if not isinstance(data, dict):
        raise PlanDecodeError(f"Node must be object, got {json_text(data)}")
    if "type" not in data:
        raise PlanDecodeError(f"Node missing 'type': {json_text(data)}")
    kind = data["type"]
    if not isinstance(kind, str):
        raise PlanDecodeError("Node 'type' must be string")

    if kind == "action":
        label = _label(data)
        return ActionStep(
            id=_string_field(data, "id"),
            label=label,
            prompt=_string_field(data, "prompt"),
            tool=_opt_string_field(data, "tool"),
            save_as=_opt_string_field(data, "save_as"),
        )
    if kind == "branch":
        condition = _required_condition(data, "Branch")
        return BranchStep(
            id=_string_field(data, "id"),
            condition=condition,
            if_true=_step_list(data, "if_true", "Branch"),
            if_false=_step_list(data, "if_false", "Branch"),
        )
    if kind == "loop":
        condition = _required_condition(data, "Loop")
        return LoopStep(
            id=_string_field(data, "id"),
            condition=condition,
            body=_step_list(data, "body", "Loop"),
            max_iterations=_opt_int_field(data, "max_iterations"),
        )
    if kind == "finish":
        return FinishStep(
            id=_string_field(data, "id"),
            summary=_opt_string_field(data, "summary"),
        )
    raise PlanDecodeError(f"Unsupported node type '{kind}'")


def parse_plan(data: Any, raw: str = "") -> Plan:
    """Decode a plan from parsed JSON.

    Accepts ``{"plan": [...]}``, ``{"nodes": [...]}`` or a bare list of steps.
    """
    if isinstance(data, list):
        return Plan(steps=[parse_step(item) for item in data], raw=raw)
    if not isinstance(data, dict):
        raise PlanDecodeError("Plan JSON must be object or list")
    for name in ("plan", "nodes"):
        if name in data:
            items = data[name]
            if not isinstance(items, list):
                raise PlanDecodeError(f"'{name}' must be list")
            return Plan(steps=[parse_step(item) for item in items], raw=raw)
    raise PlanDecodeError("Plan JSON must contain 'plan' or 'nodes'")
