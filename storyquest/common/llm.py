"""
LiteLLM-powered chat completion helper utilities.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, MutableMapping, Sequence

from litellm import completion

from .errors import ServiceError

ChatMessage = Mapping[str, Any]

JSON_RESPONSE_FORMAT = {"type": "json_object"}


@dataclass
class ChatResult:
    """
    Structured response returned from an LLM chat completion.
    """

    text: str
    raw: Any


CompletionCallable = Callable[..., ChatResult]


def call_chat_completion(
    *,
    model: str,
    messages: Sequence[ChatMessage],
    temperature: float | None = None,
    max_tokens: int | None = None,
    api_key: str | None = None,
    json_output: bool = False,
    **extra_kwargs: Any,
) -> ChatResult:
    """
    Invoke LiteLLM's `completion` API and return the consolidated text.

    Transport failures surface as LiteLLM's own exceptions. A response without any
    text raises :class:`ServiceError` so the caller can retry it.
    """
    payload: MutableMapping[str, Any] = {
        "model": model,
        "messages": list(messages),
    }

    if temperature is not None:
        payload["temperature"] = temperature

    if max_tokens is not None:
        payload["max_tokens"] = max_tokens

    if api_key is not None:
        payload["api_key"] = api_key

    if json_output:
        payload["response_format"] = JSON_RESPONSE_FORMAT

    payload.update(extra_kwargs)

    response = completion(**payload)

    try:
        message = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ServiceError("Unexpected LiteLLM response format.") from exc

    text = str(message).strip() if message is not None else ""
    if not text:
        raise ServiceError("Connection failed: the model returned no content.")

    return ChatResult(text=text, raw=response)
