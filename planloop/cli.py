"""CLI entry point for the planloop runner.

Usage:
    planloop "What is 2 + 2?"
    planloop --platform litellm --model-id GCP/claude-4-sonnet --show-plan "Draft a haiku"
    planloop --state run.json --max-cycles 6 "Compare three sorting algorithms"
    planloop --json "Summarize the latest Python release"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .errors import PlanLoopError
from .memory import Memory
from .models import BranchStep, LoopStep, Plan, describe_step

_log = logging.getLogger(__name__)

_PLATFORMS = ["openai", "litellm", "watsonx"]

_DEFAULT_MODELS = {
    "openai": "gpt-5",
    "litellm": "GCP/claude-4-sonnet",
    "watsonx": "meta-llama/llama-4-maverick-17b-128e-instruct-fp8",
}

_LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_LOG_DATE_FORMAT = "%H:%M:%S"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="planloop",
        description="Run a goal through repeated LLM plan/execute cycles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
environment variables:
  OPENAI_API_KEY        OpenAI API key (required for --platform openai)
  OPENAI_BASE_URL       OpenAI-compatible base URL (optional)

  LITELLM_API_KEY       LiteLLM API key (required for --platform litellm)
  LITELLM_BASE_URL      LiteLLM base URL (required for --platform litellm)

  WATSONX_APIKEY        IBM WatsonX API key (required for --platform watsonx)
  WATSONX_PROJECT_ID    IBM WatsonX project ID (required for --platform watsonx)
  WATSONX_URL           IBM WatsonX endpoint (optional, defaults to us-south)

Variables may also be set in a .env file in the working directory.

examples:
  planloop "What is 2 + 2?"
  planloop --platform litellm --show-plan "Draft a haiku about autumn"
  planloop --state run.json "Compare three sorting algorithms"
""",
    )
    parser.add_argument("goal", help="The goal or task for the agent.")
    parser.add_argument(
        "--platform",
        choices=_PLATFORMS,
        default="openai",
        help="LLM platform to use (default: openai).",
    )
    parser.add_argument(
        "--model-id",
        default=None,
        metavar="MODEL_ID",
        help="Model ID string for the selected platform (default depends on --platform).",
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=4,
        metavar="N",
        help="Maximum plan/execute cycles before giving up (default: 4).",
    )
    parser.add_argument(
        "--loop-iterations",
        type=int,
        default=3,
        metavar="N",
        help="Iteration cap for loop steps that set none (default: 3).",
    )
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        metavar="PATH",
        help=(
            "Resume from the memory stored at PATH if it exists, and write the "
            "memory back to PATH when the run ends."
        ),
    )
    parser.add_argument(
        "--show-plan",
        action="store_true",
        help="Print each generated plan before it is executed.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="output_json",
        help="Output the answer and final memory as JSON.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show INFO-level progress logs on stderr (default: WARNING+ only).",
    )
    return parser


def _setup_logging(verbose: bool) -> None:
    """Configure root logger to stderr; level depends on --verbose."""
    level = logging.INFO if verbose else logging.WARNING
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT))
    logging.root.handlers.clear()
    logging.root.addHandler(handler)
    logging.root.setLevel(level)


def _build_llm(platform: str, model_id: str | None):
    """Instantiate the LLM backend for the given platform."""
    model_id = model_id or _DEFAULT_MODELS[platform]
    try:
        if platform == "openai":
            from .llm.openai import OpenAILLM

            return OpenAILLM(model_id=model_id)
        if platform == "litellm":
            from .llm.litellm import LiteLLMLLM

            return LiteLLMLLM(model_id=model_id)
        if platform == "watsonx":
            from .llm.watsonx import WatsonXLLM

            return WatsonXLLM(model_id=model_id)
    except KeyError as exc:
        print(f"error: missing environment variable {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"error: unknown platform {platform!r}", file=sys.stderr)
    sys.exit(1)


def _print_section(title: str) -> None:
    print(f"\n{'─' * 60}")
    print(f"  {title}")
    print(f"{'─' * 60}")


def _print_steps(steps, depth: int = 1) -> None:
    for step in steps:
        print(f"{'  ' * depth}{describe_step(step)}")
        if isinstance(step, BranchStep):
            print(f"{'  ' * (depth + 1)}if true:")
            _print_steps(step.if_true, depth + 2)
            print(f"{'  ' * (depth + 1)}if false:")
            _print_steps(step.if_false, depth + 2)
        elif isinstance(step, LoopStep):
            _print_steps(step.body, depth + 1)


def _show_plan(cycle: int, plan: Plan) -> None:
    _print_section(f"Plan (cycle {cycle + 1})")
    _print_steps(plan.steps)


def _load_memory(goal: str, state_path: Path | None) -> Memory:
    if state_path is not None and state_path.exists():
        memory = Memory.load(state_path)
        if memory.goal != goal:
            _log.warning(
                "Resuming stored goal %r; ignoring command-line goal %r",
                memory.goal, goal,
            )
        return memory
    return Memory(goal)


def _save_memory(memory: Memory, state_path: Path) -> bool:
    try:
        memory.save(state_path)
    except PlanLoopError as exc:
        print(f"error: could not save state to {state_path}: {exc}", file=sys.stderr)
        return False
    return True


async def _run(args: argparse.Namespace) -> int:
    from .runner import PlanLoopRunner

    llm = _build_llm(args.platform, args.model_id)
    runner = PlanLoopRunner(
        llm=llm,
        max_cycles=args.max_cycles,
        default_loop_iterations=args.loop_iterations,
        on_plan=_show_plan if args.show_plan else None,
    )

    try:
        memory = _load_memory(args.goal, args.state)
    except PlanLoopError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    saved = True
    try:
        answer, memory = await runner.run_with_memory(memory)
    except PlanLoopError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        if args.state is not None:
            saved = _save_memory(memory, args.state)

    if args.output_json:
        output = {
            "goal": memory.goal,
            "answer": answer,
            "iterations": memory.iterations,
            "state": memory.to_dict(),
        }
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return 0 if saved else 1

    _print_section("Answer")
    print(answer)
    print()
    return 0 if saved else 1


def main() -> None:
    from dotenv import load_dotenv

    load_dotenv()
    args = _build_parser().parse_args()
    _setup_logging(args.verbose)
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
