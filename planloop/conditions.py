"""Boolean condition language evaluated against a Memory.

Conditions drive Branch and Loop steps. They are small immutable trees, decoded
from the planner's JSON by :func:`parse_condition` and evaluated by
:func:`evaluate_condition`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .errors import PlanDecodeError
from .memory import Memory, json_text


@dataclass(frozen=True)
class Always:
    def to_dict(self) -> dict:
        return {"type": "always"}

    def __str__(self) -> str:
        return "always"


@dataclass(frozen=True)
class HasVariable:
    key: str

    def to_dict(self) -> dict:
        return {"type": "has_variable", "key": self.key}

    def __str__(self) -> str:
        return f"has_variable({self.key})"


@dataclass(frozen=True)
class NotHasVariable:
    key: str

    def to_dict(self) -> dict:
        return {"type": "not_has_variable", "key": self.key}

    def __str__(self) -> str:
        return f"not_has_variable({self.key})"


@dataclass(frozen=True)
class Equals:
    key: str
    value: str

    def to_dict(self) -> dict:
        return {"type": "equals", "key": self.key, "value": self.value}

    def __str__(self) -> str:
        return f"equals({self.key},{self.value})"


@dataclass(frozen=True)
class Not:
    condition: "Condition"

    def to_dict(self) -> dict:
        return {"type": "not", "condition": self.condition.to_dict()}

    def __str__(self) -> str:
        return f"not({self.condition})"


Condition = Union[Always, HasVariable, NotHasVariable, Equals, Not]


def evaluate_condition(memory: Memory, condition: Condition) -> bool:
    """Evaluate *condition* against the current variables of *memory*.

    ``Equals`` compares string variables verbatim and any other JSON value by
    its compact JSON text, so ``42`` equals ``"42"`` and ``True`` equals
    ``"true"``.
    """
    if isinstance(condition, Always):
        return True
    if isinstance(condition, HasVariable):
        return memory.has_variable(condition.key)
    if isinstance(condition, NotHasVariable):
        return not memory.has_variable(condition.key)
    if isinstance(condition, Equals):
        if not memory.has_variable(condition.key):
            return False
        stored = memory.get_variable(condition.key)
        if isinstance(stored, str):
            return stored == condition.value
        return json_text(stored) == condition.value
    if isinstance(condition, Not):
        return not evaluate_condition(memory, condition.condition)
    raise TypeError(f"Not a condition: {condition!r}")


# ── decoding ──────────────────────────────────────────────────────────────────


def _string_field(data: dict, field: str) -> str:
    if field not in data:
        raise PlanDecodeError(f"Missing string field '{field}'")
    value = data[field]
    if not isinstance(value, str):
        raise PlanDecodeError(f"Field '{field}' must be string")
    return value


def parse_condition(data: Any) -> Condition:
    """Decode a condition from its JSON representation."""
    if not isinstance(data, dict):
        raise PlanDecodeError(f"Condition must be object, got {json_text(data)}")
    if "type" not in data:
        raise PlanDecodeError(f"Condition must contain 'type': {json_text(data)}")
    kind = data["type"]
    if not isinstance(kind, str):
        raise PlanDecodeError("Condition 'type' must be string")

    if kind == "always":
        return Always()
    if kind == "has_variable":
        return HasVariable(_string_field(data, "key"))
    if kind == "not_has_variable":
        return NotHasVariable(_string_field(data, "key"))
    if kind == "equals":
        return Equals(_string_field(data, "key"), _string_field(data, "value"))
    if kind == "not":
        if "condition" not in data:
            raise PlanDecodeError("Missing 'condition' field inside NOT")
        return Not(parse_condition(data["condition"]))
    raise PlanDecodeError(f"Unsupported condition type '{kind}'")
