"""Abstract LLM backend interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..errors import PlanLoopError

_log = logging.getLogger(__name__)


class LLMError(PlanLoopError):
    """A backend request failed or returned an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMBackend(ABC):
    """Abstract interface for LLM backends.

    A backend performs one request/response exchange per call and never
    touches planloop state; callers write the returned text back themselves.
    """

    @abstractmethod
    def generate(
        self,
        prompt: str,
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        """Generate text given a prompt and an optional system instruction."""
        ...


def post_json(
    url: str,
    *,
    headers: dict[str, str],
    payload: Any = None,
    data: Optional[str] = None,
    timeout: float = 120,
) -> Any:
    """POST to *url* and return the decoded JSON body.

    Transport errors, non-2xx responses and non-JSON bodies raise
    :class:`LLMError`.
    """
    import requests

    try:
        resp = requests.post(url, headers=headers, json=payload, data=data, timeout=timeout)
    except requests.RequestException as exc:
        _log.error("Request to %s failed: %s", url, exc)
        raise LLMError(f"Request to {url} failed: {exc}") from exc

    if not resp.ok:
        _log.error("Request to %s failed (%d): %s", url, resp.status_code, resp.text)
        raise LLMError(
            f"Request failed ({resp.status_code}): {resp.text}",
            status_code=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as exc:
        raise LLMError(f"Response from {url} was not JSON: {resp.text[:200]}") from exc
