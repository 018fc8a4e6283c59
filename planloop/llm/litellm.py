"""LiteLLM backend via Anthropic Messages API endpoint."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .base import LLMBackend, LLMError, post_json

_log = logging.getLogger(__name__)


class LiteLLMLLM(LLMBackend):
    """LiteLLM backend using the Anthropic Messages API endpoint.

    Reads credentials from environment variables:
        LITELLM_API_KEY    — required
        LITELLM_BASE_URL   — required (e.g. https://your-litellm-host.example.com)

    Args:
        model_id: Model string passed to LiteLLM (e.g. "GCP/claude-4-sonnet").
        max_tokens: Upper bound on generated tokens per call.
    """

    def __init__(self, model_id: str = "GCP/claude-4-sonnet", max_tokens: int = 2048) -> None:
        self._api_key = os.environ["LITELLM_API_KEY"]
        base_url = os.environ["LITELLM_BASE_URL"]
        self._messages_url = base_url.rstrip("/") + "/v1/messages"
        self._model_id = model_id
        self._max_tokens = max_tokens

    def generate(
        self,
        prompt: str,
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        payload = {
            "model": self._model_id,
            "max_tokens": self._max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system
        _log.info("Sending messages request (model=%s, temperature=%.2f)", self._model_id, temperature)
        data = post_json(
            self._messages_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            payload=payload,
        )
        try:
            return data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(f"Unexpected LiteLLM response shape: {data!r}") from exc
