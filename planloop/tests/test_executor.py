"""Tests for the plan Executor."""

from __future__ import annotations

import pytest

from planloop.conditions import Always, Equals, HasVariable, Not
from planloop.errors import UnsupportedToolError
from planloop.executor import (
    EXECUTOR_SYSTEM_PROMPT,
    Executor,
    render_action_prompt,
    resolve_tool,
    save_key,
)
from planloop.llm import LLMError
from planloop.memory import Completed, InProgress, Memory
from planloop.models import ActionStep, BranchStep, FinishStep, LoopStep, Plan


def _action(
    id: str = "a",
    prompt: str = "p",
    save_as: str | None = None,
    tool: str | None = None,
) -> ActionStep:
    return ActionStep(id=id, label=f"Label {id}", prompt=prompt, tool=tool, save_as=save_as)


async def _execute(llm, steps, goal="G", memory=None, **kwargs):
    memory = memory if memory is not None else Memory(goal)
    return await Executor(llm, **kwargs).execute(Plan(steps=steps), memory, goal)


# ── helpers ───────────────────────────────────────────────────────────────────


class TestHelpers:
    @pytest.mark.parametrize("tool", [None, "", "llm", "LLM", "Llm"])
    def test_resolve_tool_defaults_to_llm(self, tool):
        assert resolve_tool(_action(tool=tool)) == "llm"

    @pytest.mark.parametrize("tool", [" ", " llm "])
    def test_resolve_tool_keeps_whitespace(self, tool):
        assert resolve_tool(_action(tool=tool)) == tool

    def test_resolve_tool_lowercases(self):
        assert resolve_tool(_action(tool="Email")) == "email"

    def test_save_key_prefers_trimmed_save_as(self):
        assert save_key(_action(id="a", save_as="  result ")) == "result"

    @pytest.mark.parametrize("save_as", [None, "", "   "])
    def test_save_key_falls_back_to_id(self, save_as):
        assert save_key(_action(id="step_1", save_as=save_as)) == "step_1"

    def test_render_action_prompt(self):
        mem = Memory("Goal text")
        mem.set_variable_string("x", "y")
        prompt = render_action_prompt(
            ActionStep(id="s1", label="Say hi", prompt="Say hello"), "Goal text", mem
        )
        assert "action 's1' (Say hi)" in prompt
        assert "Goal: Goal text" in prompt
        assert "Variables: x: y" in prompt
        assert prompt.rstrip().endswith("Say hello")

    def test_render_action_prompt_truncates_memory(self):
        mem = Memory("G")
        mem.set_variable_string("big", "z" * 10_000)
        prompt = render_action_prompt(_action(), "G", mem)
        assert "z" * 1200 not in prompt
        assert "..." in prompt


# ── execution ─────────────────────────────────────────────────────────────────


@pytest.mark.anyio
async def test_empty_plan_not_finished(mock_llm):
    llm = mock_llm("X")
    memory, finished = await _execute(llm, [])
    assert finished is False
    assert memory.iterations == 1
    assert llm.calls == 0


@pytest.mark.anyio
async def test_action_then_finish(mock_llm):
    llm = mock_llm("X")
    memory, finished = await _execute(
        llm, [_action(id="a", prompt="p", save_as="r"), FinishStep(id="f", summary="Done")]
    )
    assert finished is True
    assert memory.get_variable("r") == "X"
    assert memory.status == Completed("Done")
    assert memory.iterations == 1
    assert llm.calls == 1


@pytest.mark.anyio
async def test_action_uses_executor_system_prompt(mock_llm):
    llm = mock_llm("X")
    await _execute(llm, [_action(prompt="Provide output")])
    assert llm.systems == [EXECUTOR_SYSTEM_PROMPT]
    assert "Provide output" in llm.prompts[0]


@pytest.mark.anyio
async def test_action_saves_under_id_and_last_result(mock_llm):
    llm = mock_llm("Stub result")
    memory, finished = await _execute(llm, [_action(id="action")])
    assert finished is False
    assert memory.get_variable("action") == "Stub result"
    assert memory.last_result == "Stub result"
    assert memory.status == InProgress()


@pytest.mark.anyio
async def test_later_action_sees_earlier_result(sequential_llm):
    llm = sequential_llm(["first", "second"])
    await _execute(llm, [_action(id="a"), _action(id="b")])
    assert "a: first" in llm.prompts[1]


@pytest.mark.anyio
async def test_iterations_bumped_once_per_execute(mock_llm):
    llm = mock_llm("X")
    memory = Memory("G")
    executor = Executor(llm)
    plan = Plan(steps=[_action(id="a"), _action(id="b"), LoopStep(id="l", condition=Always(), body=[_action()])])
    await executor.execute(plan, memory, "G")
    await executor.execute(plan, memory, "G")
    assert memory.iterations == 2


@pytest.mark.anyio
async def test_unsupported_tool_aborts(mock_llm):
    llm = mock_llm("X")
    with pytest.raises(UnsupportedToolError) as info:
        await _execute(
            llm,
            [_action(id="send", tool="email"), _action(id="after"), FinishStep(id="f")],
        )
    assert info.value.tool == "email"
    assert info.value.step_id == "send"
    assert "Unsupported tool 'email' for action send" in str(info.value)
    assert llm.calls == 0


@pytest.mark.anyio
async def test_padded_tool_name_is_unsupported(mock_llm):
    llm = mock_llm("X")
    with pytest.raises(UnsupportedToolError, match="Unsupported tool ' llm '"):
        await _execute(llm, [_action(id="a", tool=" llm ")])
    assert llm.calls == 0


@pytest.mark.anyio
async def test_unsupported_tool_after_action_keeps_earlier_write(mock_llm):
    llm = mock_llm("X")
    memory = Memory("G")
    with pytest.raises(UnsupportedToolError):
        await _execute(llm, [_action(id="a"), _action(id="b", tool="search")], memory=memory)
    assert memory.get_variable("a") == "X"
    assert llm.calls == 1


@pytest.mark.anyio
async def test_backend_error_propagates(failing_llm):
    llm = failing_llm(LLMError("timeout"))
    with pytest.raises(LLMError, match="timeout"):
        await _execute(llm, [_action(id="a"), _action(id="b")])
    assert llm.calls == 1


# ── branch ────────────────────────────────────────────────────────────────────


@pytest.mark.anyio
async def test_branch_false_path(mock_llm):
    llm = mock_llm("X")
    memory, finished = await _execute(
        llm,
        [
            BranchStep(
                id="b",
                condition=HasVariable("missing"),
                if_true=[FinishStep(id="t", summary="T")],
                if_false=[FinishStep(id="f", summary="F")],
            )
        ],
    )
    assert finished is True
    assert memory.status == Completed("F")


@pytest.mark.anyio
async def test_branch_true_path_sees_earlier_action(mock_llm):
    llm = mock_llm("yes")
    memory, _ = await _execute(
        llm,
        [
            _action(id="check", save_as="answer"),
            BranchStep(
                id="b",
                condition=Equals("answer", "yes"),
                if_true=[FinishStep(id="t", summary="T")],
                if_false=[FinishStep(id="f", summary="F")],
            ),
        ],
    )
    assert memory.get_answer() == "T"


@pytest.mark.anyio
async def test_branch_without_finish_continues_with_siblings(mock_llm):
    llm = mock_llm("X")
    memory, finished = await _execute(
        llm,
        [
            BranchStep(id="b", condition=Always(), if_true=[_action(id="inner")]),
            _action(id="outer"),
        ],
    )
    assert finished is False
    assert memory.has_variable("inner")
    assert memory.has_variable("outer")
    assert llm.calls == 2


@pytest.mark.anyio
async def test_branch_empty_path(mock_llm):
    llm = mock_llm("X")
    _, finished = await _execute(
        llm, [BranchStep(id="b", condition=Not(Always()), if_true=[FinishStep(id="f")])]
    )
    assert finished is False


# ── loop ──────────────────────────────────────────────────────────────────────


@pytest.mark.anyio
async def test_loop_respects_max_iterations(sequential_llm):
    llm = sequential_llm(["1", "2", "3"])
    memory, finished = await _execute(
        llm,
        [
            LoopStep(
                id="loop",
                condition=Always(),
                body=[_action(id="loop_action", save_as="r")],
                max_iterations=2,
            ),
            FinishStep(id="finish", summary="Loop done"),
        ],
    )
    assert finished is True
    assert llm.calls == 2
    assert memory.get_variable("r") == "2"
    assert memory.get_answer() == "Loop done"


@pytest.mark.anyio
async def test_loop_default_cap_is_three(mock_llm):
    llm = mock_llm("X")
    await _execute(llm, [LoopStep(id="l", condition=Always(), body=[_action()])])
    assert llm.calls == 3


@pytest.mark.anyio
@pytest.mark.parametrize("max_iterations", [0, -5])
async def test_loop_non_positive_cap_uses_default(mock_llm, max_iterations):
    llm = mock_llm("X")
    await _execute(
        llm,
        [LoopStep(id="l", condition=Always(), body=[_action()], max_iterations=max_iterations)],
    )
    assert llm.calls == 3


@pytest.mark.anyio
async def test_loop_configured_default_cap(mock_llm):
    llm = mock_llm("X")
    await _execute(
        llm,
        [LoopStep(id="l", condition=Always(), body=[_action()])],
        default_loop_iterations=5,
    )
    assert llm.calls == 5


@pytest.mark.anyio
async def test_loop_condition_false_never_runs_body(mock_llm):
    llm = mock_llm("should not run")
    memory, finished = await _execute(
        llm,
        [
            LoopStep(
                id="loop",
                condition=HasVariable("ready"),
                body=[_action(id="loop_action", save_as="loop_result")],
                max_iterations=3,
            ),
            FinishStep(id="finish", summary="No iterations"),
        ],
    )
    assert finished is True
    assert llm.calls == 0
    assert not memory.has_variable("loop_result")
    assert memory.get_answer() == "No iterations"


@pytest.mark.anyio
async def test_loop_condition_rechecked_each_iteration(sequential_llm):
    llm = sequential_llm(["working", "working", "done", "extra"])
    memory, _ = await _execute(
        llm,
        [
            LoopStep(
                id="l",
                condition=Not(Equals("state", "done")),
                body=[_action(save_as="state")],
                max_iterations=10,
            )
        ],
    )
    assert llm.calls == 3
    assert memory.get_variable("state") == "done"


@pytest.mark.anyio
async def test_finish_inside_loop_stops_everything(mock_llm):
    llm = mock_llm("X")
    memory, finished = await _execute(
        llm,
        [
            LoopStep(
                id="l",
                condition=Always(),
                body=[_action(id="a"), FinishStep(id="f", summary="early"), _action(id="b")],
                max_iterations=3,
            ),
            _action(id="after"),
        ],
    )
    assert finished is True
    assert llm.calls == 1
    assert not memory.has_variable("b")
    assert not memory.has_variable("after")
    assert memory.get_answer() == "early"


# ── finish ────────────────────────────────────────────────────────────────────


@pytest.mark.anyio
async def test_finish_short_circuits_siblings(mock_llm):
    llm = mock_llm("X")
    memory, finished = await _execute(
        llm, [FinishStep(id="f", summary="S"), _action(id="never")]
    )
    assert finished is True
    assert llm.calls == 0
    assert not memory.has_variable("never")


@pytest.mark.anyio
@pytest.mark.parametrize("summary", [None, "", "   "])
async def test_finish_blank_summary_uses_last_result(mock_llm, summary):
    llm = mock_llm("from action")
    memory, _ = await _execute(llm, [_action(), FinishStep(id="f", summary=summary)])
    assert memory.status == Completed("from action")
    assert memory.get_variable("final_answer") == "from action"


@pytest.mark.anyio
async def test_finish_blank_last_result_uses_placeholder(mock_llm):
    llm = mock_llm("   ")
    memory, _ = await _execute(llm, [_action(), FinishStep(id="f")])
    assert memory.status == Completed("<no result>")


@pytest.mark.anyio
async def test_finish_without_anything_uses_placeholder(mock_llm):
    memory, finished = await _execute(mock_llm(), [FinishStep(id="f")])
    assert finished is True
    assert memory.get_answer() == "<no result>"
    assert memory.last_result == "<no result>"
