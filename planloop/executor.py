"""Tree-walking executor for plans.

The executor runs a plan's steps strictly in order against a Memory:

  Action  → render a prompt, ask the LLM backend, store the reply.
  Branch  → evaluate the condition and run one of the two step lists.
  Loop    → re-check the condition before every pass, bounded by a cap.
  Finish  → mark the memory completed and stop the whole plan.

A Finish reached anywhere, however deeply nested, stops every enclosing step
list. Any error aborts the plan immediately.
"""

from __future__ import annotations

import logging

from .conditions import evaluate_condition
from .errors import UnsupportedToolError
from .llm import LLMBackend
from .memory import Memory, summary_excerpt
from .models import ActionStep, BranchStep, FinishStep, LoopStep, Plan, Step

_log = logging.getLogger(__name__)

DEFAULT_LOOP_ITERATIONS = 3
DEFAULT_TOOL = "llm"
NO_RESULT = "<no result>"

EXECUTOR_SYSTEM_PROMPT = (
    "You are a precise tool executor. Always provide concise outputs "
    "without commentary."
)

_ACTION_PROMPT = """\
You are executing action '{id}' ({label}).
Goal: {goal}
Current memory summary:
{memory}

Follow the instruction below and reply with the direct result (no commentary):
{prompt}
"""

__all__ = [
    "DEFAULT_LOOP_ITERATIONS",
    "EXECUTOR_SYSTEM_PROMPT",
    "Executor",
    "evaluate_condition",
    "render_action_prompt",
    "resolve_tool",
    "save_key",
]


def resolve_tool(action: ActionStep) -> str:
    """Return the lower-cased tool name, defaulting to ``llm``."""
    tool = (action.tool or "").lower()
    return tool or DEFAULT_TOOL


def save_key(action: ActionStep) -> str:
    """Return the variable name an action's result is stored under."""
    if action.save_as and action.save_as.strip():
        return action.save_as.strip()
    return action.id


def render_action_prompt(action: ActionStep, goal: str, memory: Memory) -> str:
    return _ACTION_PROMPT.format(
        id=action.id,
        label=action.label,
        goal=goal,
        memory=summary_excerpt(memory),
        prompt=action.prompt,
    )


class Executor:
    """Runs plans against a Memory, using an LLM backend for action steps.

    Args:
        llm: Backend that turns a rendered action prompt into text.
        default_loop_iterations: Cap for loops without a positive
            ``max_iterations``.
        temperature: Sampling temperature for action calls.
    """

    def __init__(
        self,
        llm: LLMBackend,
        default_loop_iterations: int = DEFAULT_LOOP_ITERATIONS,
        temperature: float = 0.2,
    ) -> None:
        self._llm = llm
        self.default_loop_iterations = default_loop_iterations
        self._temperature = temperature
        _log.debug(
            "Creating executor with default_loop_iterations=%d", default_loop_iterations
        )

    async def execute(self, plan: Plan, memory: Memory, goal: str) -> tuple[Memory, bool]:
        """Run *plan* once and report whether a Finish step was reached.

        The memory's iteration counter is bumped once per call, before any
        step runs.
        """
        _log.info("Executing plan with %d nodes", len(plan.steps))
        memory.bump_iteration()
        finished = await self._run_steps(plan.steps, memory, goal)
        return memory, finished

    async def _run_steps(self, steps: list[Step], memory: Memory, goal: str) -> bool:
        for step in steps:
            if await self._run_step(step, memory, goal):
                return True
        return False

    async def _run_step(self, step: Step, memory: Memory, goal: str) -> bool:
        if isinstance(step, ActionStep):
            return await self._run_action(step, memory, goal)
        if isinstance(step, BranchStep):
            return await self._run_branch(step, memory, goal)
        if isinstance(step, LoopStep):
            return await self._run_loop(step, memory, goal)
        if isinstance(step, FinishStep):
            return self._run_finish(step, memory)
        raise TypeError(f"Not a plan step: {step!r}")

    async def _run_action(self, action: ActionStep, memory: Memory, goal: str) -> bool:
        tool = resolve_tool(action)
        if tool != DEFAULT_TOOL:
            _log.error("Unsupported tool '%s' for action %s", tool, action.id)
            raise UnsupportedToolError(tool, action.id)

        _log.info("Executing LLM action: %s (%s)", action.id, action.label)
        prompt = render_action_prompt(action, goal, memory)
        response = self._llm.generate(
            prompt, temperature=self._temperature, system=EXECUTOR_SYSTEM_PROMPT
        )
        key = save_key(action)
        _log.debug("Saving action result to key: %s", key)
        memory.set_variable_string(key, response)
        memory.set_last_result(response)
        return False

    async def _run_branch(self, branch: BranchStep, memory: Memory, goal: str) -> bool:
        result = evaluate_condition(memory, branch.condition)
        _log.debug("Branch %s condition %s evaluated to: %s", branch.id, branch.condition, result)
        path = branch.if_true if result else branch.if_false
        return await self._run_steps(path, memory, goal)

    async def _run_loop(self, loop: LoopStep, memory: Memory, goal: str) -> bool:
        if loop.max_iterations is not None and loop.max_iterations > 0:
            max_iterations = loop.max_iterations
        else:
            max_iterations = self.default_loop_iterations
        _log.debug("Starting loop %s with max_iterations=%d", loop.id, max_iterations)

        iteration = 0
        while True:
            if not evaluate_condition(memory, loop.condition):
                _log.debug("Loop condition false at iteration %d", iteration)
                return False
            if iteration >= max_iterations:
                _log.debug("Loop reached max_iterations at %d", iteration)
                return False
            _log.debug("Loop iteration %d/%d", iteration + 1, max_iterations)
            if await self._run_steps(loop.body, memory, goal):
                return True
            iteration += 1

    def _run_finish(self, finish: FinishStep, memory: Memory) -> bool:
        _log.info("Reached finish node %s", finish.id)
        if finish.summary and finish.summary.strip():
            answer = finish.summary
        elif memory.last_result and memory.last_result.strip():
            answer = memory.last_result
        else:
            answer = NO_RESULT
        memory.mark_completed(answer)
        return True
