"""Chat-completion client over an OpenAI-compatible endpoint, one client per credential."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from monolith.config import settings
from monolith.services import logger as log_service


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class Completion:
    text: str
    model: str
    usage: Usage = field(default_factory=Usage)


def get_client(api_key: str) -> Any:
    """Build an AsyncOpenAI client bound to one credential.

    SDK-level retries are disabled; rotation across credentials is handled
    by the rotated executor.
    """
    from openai import AsyncOpenAI

    base_url = settings.llm_base_url.strip() or "https://api.longcat.chat/openai/v1"
    return AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        max_retries=0,
    )


def get_model(reasoning: bool = False) -> str:
    """Get the model id for normal or reasoning mode."""
    if reasoning and settings.reasoning_model:
        return settings.reasoning_model
    return settings.default_model


def get_planner_model() -> str:
    override = settings.planner_model.strip()
    return override or settings.default_model


_clients: dict[str, Any] = {}


def client(api_key: str) -> Any:
    """Get or create the client for a credential."""
    if api_key not in _clients:
        _clients[api_key] = get_client(api_key)
    return _clients[api_key]


def _from_openai_response(response: Any, model: str) -> Completion:
    choices = getattr(response, "choices", None) or []
    text = ""
    if choices:
        message = getattr(choices[0], "message", None)
        text = getattr(message, "content", None) or ""
    usage = getattr(response, "usage", None)
    return Completion(
        text=text,
        model=model,
        usage=Usage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        ),
    )


async def complete(
    api_key: str,
    messages: list[dict[str, Any]],
    *,
    model: str,
    max_tokens: int,
    temperature: float,
    caller: str,
    response_format: dict[str, Any] | None = None,
    timeout: float | None = None,
) -> Completion:
    """Run one non-streaming chat completion and log its usage."""
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "stream": False,
    }
    if response_format:
        kwargs["response_format"] = response_format
    if timeout is not None:
        kwargs["timeout"] = timeout

    t0 = time.monotonic()
    try:
        response = await client(api_key).chat.completions.create(**kwargs)
    except Exception as e:
        log_service.log_llm_call(
            model=model,
            caller=caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=type(e).__name__,
        )
        raise
    completion = _from_openai_response(response, model)
    log_service.log_llm_call(
        model=model,
        caller=caller,
        input_tokens=completion.usage.input_tokens,
        output_tokens=completion.usage.output_tokens,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    return completion
