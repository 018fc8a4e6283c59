"""LLM backend implementations for planloop."""

from .base import LLMBackend, LLMError
from .litellm import LiteLLMLLM
from .openai import OpenAILLM
from .watsonx import WatsonXLLM

__all__ = ["LLMBackend", "LLMError", "LiteLLMLLM", "OpenAILLM", "WatsonXLLM"]
