"""Shared fixtures for planloop unit tests."""

from __future__ import annotations

from typing import Optional

import pytest

from planloop.llm import LLMBackend


class MockLLM(LLMBackend):
    """Deterministic LLM that returns a canned response — no network calls."""

    def __init__(self, response: str = "") -> None:
        self._response = response
        self.prompts: list[str] = []
        self.systems: list[Optional[str]] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate(
        self,
        prompt: str,
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        self.prompts.append(prompt)
        self.systems.append(system)
        return self._response


class SequentialMockLLM(MockLLM):
    """Returns responses in order across successive generate() calls."""

    def __init__(self, responses: list[str]) -> None:
        super().__init__()
        self._responses = iter(responses)

    def generate(
        self,
        prompt: str,
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        super().generate(prompt, temperature, system)
        return next(self._responses, "")


class FailingLLM(MockLLM):
    """Raises the given exception on every call."""

    def __init__(self, exc: Exception) -> None:
        super().__init__()
        self._exc = exc

    def generate(
        self,
        prompt: str,
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        super().generate(prompt, temperature, system)
        raise self._exc


@pytest.fixture
def mock_llm():
    """Factory fixture: MockLLM(response='')."""

    def _factory(response: str = "") -> MockLLM:
        return MockLLM(response)

    return _factory


@pytest.fixture
def sequential_llm():
    """Factory fixture: SequentialMockLLM(responses=[...])."""

    def _factory(responses: list[str]) -> SequentialMockLLM:
        return SequentialMockLLM(responses)

    return _factory


@pytest.fixture
def failing_llm():
    """Factory fixture: FailingLLM(exc)."""

    def _factory(exc: Exception) -> FailingLLM:
        return FailingLLM(exc)

    return _factory
