"""LLM-based plan generation.

The planner asks the LLM for a JSON plan describing the next workflow to run,
given the goal and a snapshot of the memory. It is responsible for digging the
JSON out of the reply; schema problems are reported as planning failures and
never retried here.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .errors import PlanDecodeError, PlanningError
from .llm import LLMBackend
from .memory import Memory, summary_excerpt
from .models import Plan, describe_plan, parse_plan

_log = logging.getLogger(__name__)

PLANNER_SYSTEM_PROMPT = """\
You are a planning module that outputs structured JSON describing agent workflows.
Respond ONLY with valid JSON using this schema:
{
  "plan": [
    {
      "id": "unique_step_id",
      "type": "action" | "branch" | "loop" | "finish",
      "label": "human readable summary",
      "prompt": "instruction for executor (required for action)",
      "tool": "llm" (optional for action),
      "save_as": "memory_key" (optional for action),
      "condition": { ... } (required for branch/loop),
      "if_true": [ ... ] (for branch),
      "if_false": [ ... ]  (for branch),
      "body": [ ... ] (for loop),
      "max_iterations": 2 (optional for loop),
      "summary": "text" (for finish)
    }
  ]
}
Supported condition types:
- {"type": "always"}
- {"type": "has_variable", "key": "name"}
- {"type": "not_has_variable", "key": "name"}
- {"type": "equals", "key": "name", "value": "literal"}
- {"type": "not", "condition": { ... }}
Always provide one finish node to mark completion.
"""

_USER_PROMPT = """\
Current goal: {goal}
Shared memory snapshot:
{memory}

Design a plan leveraging available tools. Prefer short, actionable steps.
Return only JSON following the schema.
"""


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence (with optional language tag)."""
    text = text.strip()
    if not text.startswith("```"):
        return text
    _, newline, rest = text.partition("\n")
    if not newline:
        return text
    rest = rest.strip()
    if rest.endswith("```"):
        rest = rest[:-3]
    return rest.strip()


def extract_json(raw: str) -> Any:
    """Extract a JSON value from an LLM response.

    Tries the whole (fence-stripped) text first, then the span between the
    first ``{`` and the last ``}``.

    Raises:
        PlanningError: if no parseable JSON can be found.
    """
    text = strip_code_fence(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise PlanningError(
            f"Planner response did not include JSON object. Raw response: {raw}"
        )
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise PlanningError(
            f"Planner response did not contain valid JSON (parse error: {exc}).\n"
            f"Raw: {raw}"
        ) from exc


class Planner:
    """Produces plans for a goal using an LLM.

    Args:
        llm: Backend used for planning calls.
        system_prompt: Instructions describing the plan JSON schema.
        temperature: Sampling temperature for planning calls.
    """

    def __init__(
        self,
        llm: LLMBackend,
        system_prompt: str = PLANNER_SYSTEM_PROMPT,
        temperature: float = 0.1,
    ) -> None:
        self._llm = llm
        self._system_prompt = system_prompt
        self._temperature = temperature

    def generate_plan(self, goal: str, memory: Memory) -> Plan:
        """Ask the LLM for the next plan for *goal*.

        Args:
            goal: The task the agent is working on.
            memory: Current memory; its summary is included in the prompt.

        Returns:
            The decoded Plan, with the raw LLM reply attached.

        Raises:
            PlanningError: if the reply holds no JSON or the JSON does not
                match the plan schema.
        """
        prompt = _USER_PROMPT.format(goal=goal, memory=summary_excerpt(memory))
        raw = self._llm.generate(
            prompt, temperature=self._temperature, system=self._system_prompt
        )
        data = extract_json(raw)
        try:
            plan = parse_plan(data, raw=raw)
        except PlanDecodeError as exc:
            raise PlanningError(f"Planner JSON schema error: {exc}\nRaw: {raw}") from exc
        _log.info("Planner produced %s", describe_plan(plan))
        return plan
