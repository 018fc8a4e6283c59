"""OpenAI chat-completions backend."""

from __future__ import annotations

import logging
import os
from typing import Optional

from .base import LLMBackend, LLMError, post_json

_log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-5"


class OpenAILLM(LLMBackend):
    """Backend for the OpenAI (or any compatible) chat-completions API.

    Reads credentials from environment variables:
        OPENAI_API_KEY    — required
        OPENAI_BASE_URL   — optional (defaults to https://api.openai.com/v1)

    gpt-5 models only accept their default temperature, so the field is left
    out of the request for them.

    Args:
        model_id: Chat model name, e.g. "gpt-5" or "gpt-4o-mini".
    """

    def __init__(self, model_id: str = DEFAULT_MODEL) -> None:
        self._api_key = os.environ["OPENAI_API_KEY"]
        base_url = os.environ.get("OPENAI_BASE_URL", DEFAULT_BASE_URL)
        self._completions_url = base_url.rstrip("/") + "/chat/completions"
        self._model_id = model_id

    def generate(
        self,
        prompt: str,
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        payload = {"model": self._model_id, "stream": False, "messages": messages}
        if self._model_id.startswith("gpt-5"):
            _log.info("Sending chat request (model=%s, temperature=default, messages=%d)",
                      self._model_id, len(messages))
        else:
            payload["temperature"] = temperature
            _log.info("Sending chat request (model=%s, temperature=%.2f, messages=%d)",
                      self._model_id, temperature, len(messages))

        data = post_json(
            self._completions_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            payload=payload,
        )
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(f"Unexpected chat completion shape: {data!r}") from exc
