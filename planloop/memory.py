"""Per-run state container shared by the planner and the executor.

A :class:`Memory` records the goal, a key/value store of JSON values, the most
recent textual result, the run status and the number of executed plans. It can
be persisted to a versioned JSON document and loaded back to resume a run.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from .errors import StateDecodeError, StateFileNotFoundError, StateSaveError

_log = logging.getLogger(__name__)

SCHEMA_VERSION = 1
FINAL_ANSWER_KEY = "final_answer"
MAX_SUMMARY_LENGTH = 1200


def json_text(value: Any) -> str:
    """Return the compact JSON text of *value* (``[1,"a"]``, ``true``, ``1.5``)."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


# ── status ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class InProgress:
    name = "in_progress"

    def to_dict(self) -> dict:
        return {"type": self.name}


@dataclass(frozen=True)
class Completed:
    answer: str
    name = "completed"

    def to_dict(self) -> dict:
        return {"type": self.name, "answer": self.answer}


@dataclass(frozen=True)
class Failed:
    reason: str
    name = "failed"

    def to_dict(self) -> dict:
        return {"type": self.name, "reason": self.reason}


Status = Union[InProgress, Completed, Failed]


def _status_from_dict(data: Any) -> Status:
    if not isinstance(data, dict):
        raise StateDecodeError("Failed to parse status: expected object")
    kind = data.get("type")
    if not isinstance(kind, str):
        raise StateDecodeError("Failed to parse status: 'type' must be string")
    if kind == "in_progress":
        return InProgress()
    if kind == "completed":
        answer = data.get("answer")
        if not isinstance(answer, str):
            raise StateDecodeError("Failed to parse status: 'answer' must be string")
        return Completed(answer)
    if kind == "failed":
        reason = data.get("reason")
        if not isinstance(reason, str):
            raise StateDecodeError("Failed to parse status: 'reason' must be string")
        return Failed(reason)
    raise StateDecodeError(f"Unknown status type: {kind}")


def _require_int(data: dict, field: str) -> int:
    value = data.get(field)
    if isinstance(value, bool) or not isinstance(value, int):
        raise StateDecodeError(
            f"Failed to parse memory: '{field}' must be int, got {value!r}"
        )
    return value


def _require_str(data: dict, field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str):
        raise StateDecodeError(
            f"Failed to parse memory: '{field}' must be string, got {value!r}"
        )
    return value


# ── memory ────────────────────────────────────────────────────────────────────


class Memory:
    """Mutable state for a single goal.

    Variables keep insertion order for display and persistence, but behave as
    a map: writing an existing key replaces its value.
    """

    def __init__(self, goal: str) -> None:
        self._goal = goal
        self._variables: dict[str, Any] = {}
        self.status: Status = InProgress()
        self.last_result: str | None = None
        self.iterations = 0

    def __repr__(self) -> str:
        return (
            f"Memory(goal={self._goal!r}, status={self.status!r}, "
            f"iterations={self.iterations}, variables={len(self._variables)})"
        )

    @property
    def goal(self) -> str:
        return self._goal

    # variables

    def get_variable(self, key: str, default: Any = None) -> Any:
        return self._variables.get(key, default)

    def has_variable(self, key: str) -> bool:
        return key in self._variables

    def set_variable(self, key: str, value: Any) -> None:
        self._variables[key] = value

    def set_variable_string(self, key: str, value: str) -> None:
        self._variables[key] = str(value)

    def ensure_default(self, key: str, value: Any) -> None:
        """Set *key* to *value* only if it has no value yet."""
        self._variables.setdefault(key, value)

    def variables(self) -> dict[str, Any]:
        """Return a shallow copy of the variable map."""
        return dict(self._variables)

    # status and results

    def set_status(self, status: Status) -> None:
        self.status = status

    def set_last_result(self, value: str) -> None:
        self.last_result = value

    def bump_iteration(self) -> None:
        self.iterations += 1

    def mark_completed(self, answer: str) -> None:
        """Complete the run, recording *answer* as status, last result and final_answer."""
        self.status = Completed(answer)
        self.last_result = answer
        self._variables[FINAL_ANSWER_KEY] = answer

    def mark_failed(self, reason: str) -> None:
        self.status = Failed(reason)
        self.last_result = reason

    def get_answer(self) -> str | None:
        """Return the final answer, if one has been recorded.

        A completed status wins; otherwise a string ``final_answer`` variable
        seeded by the caller is returned.
        """
        if isinstance(self.status, Completed):
            return self.status.answer
        value = self._variables.get(FINAL_ANSWER_KEY)
        return value if isinstance(value, str) else None

    def summary(self) -> str:
        """Human-readable snapshot used in planner and executor prompts."""
        items = [
            f"{key}: {value if isinstance(value, str) else json_text(value)}"
            for key, value in self._variables.items()
        ]
        variables_text = "; ".join(items) if items else "<empty>"
        last = self.last_result if self.last_result is not None else "<none>"
        return (
            f"Goal: {self._goal}\n"
            f"Status: {self.status.name}\n"
            f"Last result: {last}\n"
            f"Variables: {variables_text}"
        )

    # ── persistence ───────────────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "version": SCHEMA_VERSION,
            "goal": self._goal,
            "status": self.status.to_dict(),
            "last_result": self.last_result,
            "iterations": self.iterations,
            "variables": [
                {"key": key, "value": value} for key, value in self._variables.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Memory":
        """Decode a persisted memory document.

        Raises:
            StateDecodeError: if the version is not 1 or any field has the
                wrong shape. No partially decoded memory is ever returned.
        """
        if not isinstance(data, dict):
            raise StateDecodeError("Failed to parse memory: expected JSON object")
        version = _require_int(data, "version")
        if version != SCHEMA_VERSION:
            raise StateDecodeError(f"Unsupported schema version: {version}")

        goal = _require_str(data, "goal")
        status = _status_from_dict(data.get("status"))
        last_result = data.get("last_result")
        if last_result is not None and not isinstance(last_result, str):
            raise StateDecodeError(
                "Failed to parse memory: 'last_result' must be string or null"
            )
        iterations = _require_int(data, "iterations")
        entries = data.get("variables")
        if not isinstance(entries, list):
            raise StateDecodeError("Failed to parse memory: 'variables' must be list")

        variables: dict[str, Any] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                raise StateDecodeError(
                    "Failed to parse memory: variable entries must be objects"
                )
            key = _require_str(entry, "key")
            # Later duplicates replace earlier ones.
            variables.pop(key, None)
            variables[key] = entry.get("value")

        memory = cls(goal)
        memory.status = status
        memory.last_result = last_result
        memory.iterations = iterations
        memory._variables = variables
        return memory

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "Memory":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StateDecodeError(f"Failed to parse state file: {exc}") from exc
        return cls.from_dict(data)

    def save(self, path: str | Path) -> None:
        """Write the memory to *path* as pretty-printed JSON."""
        path = Path(path)
        try:
            path.write_text(self.to_json(), encoding="utf-8")
        except OSError as exc:
            _log.error("Failed to save state to %s: %s", path, exc)
            raise StateSaveError(f"Failed to save state: {exc}") from exc
        _log.debug("Saved memory (%d variables) to %s", len(self._variables), path)

    @classmethod
    def load(cls, path: str | Path) -> "Memory":
        """Load a memory previously written by :meth:`save`."""
        path = Path(path)
        if not path.is_file():
            raise StateFileNotFoundError(str(path))
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StateDecodeError(f"Failed to load state: {exc}") from exc
        memory = cls.from_json(text)
        _log.debug("Loaded memory from %s (iterations=%d)", path, memory.iterations)
        return memory


def summary_excerpt(memory: Memory, limit: int = MAX_SUMMARY_LENGTH) -> str:
    """Return ``memory.summary()`` cut to at most *limit* characters."""
    text = memory.summary()
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text
