"""WatsonX LLM backend."""

from __future__ import annotations

import logging
import os
import time
from typing import Optional

from .base import LLMBackend, LLMError, post_json

_log = logging.getLogger(__name__)


class WatsonXLLM(LLMBackend):
    """WatsonX LLM backend using the WatsonX text-generation REST API.

    The text-generation endpoint takes a single input string, so a system
    instruction is prepended to the prompt.

    Reads credentials from environment variables:
        WATSONX_APIKEY       — required
        WATSONX_PROJECT_ID   — required
        WATSONX_URL          — optional (defaults to us-south)

    Args:
        model_id: WatsonX model ID string, e.g.
                  "meta-llama/llama-4-maverick-17b-128e-instruct-fp8".
    """

    _IAM_URL = "https://iam.cloud.ibm.com/identity/token"
    _GENERATION_PATH = "/ml/v1/text/generation?version=2023-05-29"

    def __init__(self, model_id: str = "meta-llama/llama-4-maverick-17b-128e-instruct-fp8") -> None:
        self._api_key = os.environ["WATSONX_APIKEY"]
        self._project_id = os.environ["WATSONX_PROJECT_ID"]
        base_url = os.environ.get("WATSONX_URL", "https://us-south.ml.cloud.ibm.com")
        self._generation_url = base_url.rstrip("/") + self._GENERATION_PATH
        self._model_name = model_id
        self._token: str | None = None
        self._token_expiry: float = 0.0

    def _get_token(self) -> str:
        """Return a valid IAM bearer token, refreshing if within 60 s of expiry."""
        if self._token and time.time() < self._token_expiry - 60:
            return self._token
        _log.debug("Refreshing WatsonX IAM token")
        data = post_json(
            self._IAM_URL,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data=(
                "grant_type=urn:ibm:params:oauth:grant-type:apikey"
                f"&apikey={self._api_key}"
            ),
            timeout=30,
        )
        try:
            self._token = data["access_token"]
        except (KeyError, TypeError) as exc:
            raise LLMError("WatsonX IAM response did not include an access token") from exc
        self._token_expiry = time.time() + data.get("expires_in", 3600)
        return self._token

    def generate(
        self,
        prompt: str,
        temperature: float = 0.0,
        system: Optional[str] = None,
    ) -> str:
        text = f"{system}\n\n{prompt}" if system else prompt
        _log.info("Sending generation request (model=%s, temperature=%.2f)", self._model_name, temperature)
        data = post_json(
            self._generation_url,
            headers={
                "Authorization": f"Bearer {self._get_token()}",
                "Content-Type": "application/json",
            },
            payload={
                "model_id": self._model_name,
                "input": text,
                "parameters": {"max_new_tokens": 2048, "temperature": temperature},
                "project_id": self._project_id,
            },
        )
        try:
            return data["results"][0]["generated_text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError(f"Unexpected WatsonX response shape: {data!r}") from exc
