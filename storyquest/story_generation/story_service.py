"""
Service layer for requesting story themes and pages via LiteLLM-compatible models.
"""

from __future__ import annotations

import os
from typing import Any

from storyquest.common import ChatResult, CompletionCallable, call_chat_completion

from .config import StoryConfig
from .context import StepContext
from .prompting import StoryPrompt, build_theme_prompt

DEFAULT_TEXT_MODEL = "gemini/gemini-2.5-flash"


class StoryWriter:
    """
    Issues the raw text-generation requests for a story session.

    Responses are returned untouched; parsing and retries belong to the caller.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        completion_fn: CompletionCallable | None = None,
    ) -> None:
        self._api_key = (
            api_key
            or os.getenv("STORYQUEST_API_KEY")
            or os.getenv("GEMINI_API_KEY")
            or os.getenv("LITELLM_API_KEY")
        )
        self._model = (
            model
            or os.getenv("STORYQUEST_TEXT_MODEL")
            or os.getenv("LITELLM_MODEL")
            or DEFAULT_TEXT_MODEL
        )
        self._completion_fn: CompletionCallable = completion_fn or call_chat_completion

    @property
    def model(self) -> str:
        """Return the model identifier in use."""
        return self._model

    def request_themes(
        self,
        config: StoryConfig,
        *,
        temperature: float = 0.9,
        max_output_tokens: int = 800,
        **response_kwargs: Any,
    ) -> str:
        prompt: StoryPrompt = build_theme_prompt(config)
        messages = [
            {"role": "system", "content": prompt.system},
            {"role": "user", "content": prompt.user},
        ]
        return self._complete(messages, temperature, max_output_tokens, **response_kwargs)

    def request_step(
        self,
        context: StepContext,
        *,
        temperature: float = 0.8,
        max_output_tokens: int = 1600,
        **response_kwargs: Any,
    ) -> str:
        return self._complete(
            context.as_messages(), temperature, max_output_tokens, **response_kwargs
        )

    def _complete(
        self,
        messages: list[dict[str, Any]],
        temperature: float,
        max_output_tokens: int | None,
        **response_kwargs: Any,
    ) -> str:
        result: ChatResult = self._completion_fn(
            model=self._model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_output_tokens,
            api_key=self._api_key,
            json_output=True,
            **response_kwargs,
        )
        return result.text
