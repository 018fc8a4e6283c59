"""Entry-point runner that alternates planning and execution.

Each cycle asks the planner for a plan and runs it against the same Memory:

  cycle 0:  Planner.generate_plan → Executor.execute → finished?  done
  cycle 1:  Planner.generate_plan → Executor.execute → finished?  done
  ...
  cycle N = max_cycles: give up with CycleBudgetExceededError

There are no retries: the first planning or execution error ends the run.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .errors import CycleBudgetExceededError, NoAnswerError
from .executor import DEFAULT_LOOP_ITERATIONS, Executor
from .llm import LLMBackend
from .memory import Memory
from .models import Plan
from .planner import Planner

_log = logging.getLogger(__name__)

DEFAULT_MAX_CYCLES = 4

PlanCallback = Callable[[int, Plan], None]


class PlanLoopRunner:
    """Runs a goal through repeated plan/execute cycles until it finishes.

    Usage::

        from planloop import PlanLoopRunner
        from planloop.llm import OpenAILLM

        runner = PlanLoopRunner(llm=OpenAILLM())
        answer = await runner.run("Summarize the latest Python release notes")

    Args:
        llm: LLM backend shared by the default planner and executor.
        max_cycles: Number of plan/execute cycles allowed per run.
        default_loop_iterations: Loop cap used when a loop step sets none.
        planner: Override the planner (defaults to ``Planner(llm)``).
        executor: Override the executor (defaults to ``Executor(llm)``).
        on_plan: Called with ``(cycle, plan)`` before each plan is executed.
    """

    def __init__(
        self,
        llm: LLMBackend,
        max_cycles: int = DEFAULT_MAX_CYCLES,
        default_loop_iterations: int = DEFAULT_LOOP_ITERATIONS,
        planner: Optional[Planner] = None,
        executor: Optional[Executor] = None,
        on_plan: Optional[PlanCallback] = None,
    ) -> None:
        self.max_cycles = max_cycles
        self._planner = planner if planner is not None else Planner(llm)
        self._executor = (
            executor
            if executor is not None
            else Executor(llm, default_loop_iterations=default_loop_iterations)
        )
        self._on_plan = on_plan

    async def run(self, goal: str) -> str:
        """Run *goal* from a fresh memory and return the final answer."""
        memory = Memory(goal)
        await self._loop_cycles(memory, cycle=0)
        return _resolve_answer(memory)

    async def run_with_memory(self, memory: Memory) -> tuple[str, Memory]:
        """Resume a run from an existing memory.

        The cycle count starts at ``memory.iterations``, so a memory reloaded
        from disk keeps the budget it had already used.
        """
        await self._loop_cycles(memory, cycle=memory.iterations)
        return _resolve_answer(memory), memory

    async def _loop_cycles(self, memory: Memory, cycle: int) -> None:
        goal = memory.goal
        while True:
            if cycle >= self.max_cycles:
                _log.warning("Reached max planner cycles (%d) for goal: %s", self.max_cycles, goal)
                raise CycleBudgetExceededError(self.max_cycles)

            _log.info("Cycle %d/%d: planning", cycle + 1, self.max_cycles)
            plan = self._planner.generate_plan(goal, memory)
            if self._on_plan is not None:
                self._on_plan(cycle, plan)

            memory, finished = await self._executor.execute(plan, memory, goal)
            if finished:
                _log.info("Plan finished after %d cycle(s).", cycle + 1)
                return
            cycle += 1


def _resolve_answer(memory: Memory) -> str:
    answer = memory.get_answer()
    if answer is not None:
        return answer
    if memory.last_result is not None:
        return memory.last_result
    raise NoAnswerError()
