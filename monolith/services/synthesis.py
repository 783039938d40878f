"""Grounded synthesis: build the chat request for the final answer and run it.

The system preamble depends only on the mode and the caller's custom
instructions, so it stays identical across turns. Everything that changes
per turn (documents, current time, search strategy) travels in a simulated
`web_retrieval` tool exchange placed after the user's query.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

from monolith import llm_client
from monolith.config import settings
from monolith.errors import ProviderExhausted, SynthesisFailure
from monolith.models.research import EffectiveModes, RankedDocument, SearchPlan
from monolith.services.credentials import CredentialPool, execute_rotated
from monolith.services.prompt_store import render_prompt
from monolith.tools import web_utils

RETRIEVAL_TOOL_NAME = "web_retrieval"
RETRIEVAL_CALL_ID = "call_web_retrieval"
HISTORY_ROLES = ("user", "assistant")


@dataclass(frozen=True)
class SynthesisRequest:
    system_instructions: str
    conversation_history: tuple[dict[str, str], ...]
    user_query: str
    grounding_documents: tuple[RankedDocument, ...]
    grounding_context: dict[str, Any]
    model: str
    max_tokens: int
    temperature: float
    timeout: float

    @property
    def offline(self) -> bool:
        return not self.grounding_documents

    def to_messages(self) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": self.system_instructions}]
        messages.extend(dict(turn) for turn in self.conversation_history)
        if self.offline:
            messages.append(
                {
                    "role": "system",
                    "content": f"Current Date/Time: {self.grounding_context['current_datetime']}",
                }
            )
        messages.append({"role": "user", "content": self.user_query})
        if self.offline:
            return messages

        messages.append(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": RETRIEVAL_CALL_ID,
                        "type": "function",
                        "function": {
                            "name": RETRIEVAL_TOOL_NAME,
                            "arguments": json.dumps({"query": self.user_query}),
                        },
                    }
                ],
            }
        )
        messages.append(
            {
                "role": "tool",
                "tool_call_id": RETRIEVAL_CALL_ID,
                "content": json.dumps(
                    {
                        **self.grounding_context,
                        "documents": [
                            _document_payload(position, doc)
                            for position, doc in enumerate(self.grounding_documents, start=1)
                        ],
                    },
                    ensure_ascii=False,
                ),
            }
        )
        return messages


def _document_payload(position: int, doc: RankedDocument) -> dict[str, Any]:
    result = doc.result
    payload: dict[str, Any] = {
        "id": position,
        "title": result.title,
        "url": result.url,
        "content": web_utils.clean_content(result.content, settings.grounding_snippet_chars),
    }
    if result.published_at:
        payload["published"] = result.published_at.isoformat()
    elif result.last_crawled_at:
        payload["cached"] = result.last_crawled_at.isoformat()
    return payload


def context_limit(deep: bool) -> int:
    return max(int(settings.context_limit_deep if deep else settings.context_limit), 1)


def _clean_history(history: Sequence[dict[str, Any]]) -> tuple[dict[str, str], ...]:
    cleaned: list[dict[str, str]] = []
    for turn in history:
        role = str(turn.get("role", "")).lower()
        content = turn.get("content")
        if role not in HISTORY_ROLES or not isinstance(content, str) or not content.strip():
            continue
        cleaned.append({"role": role, "content": content})
    return tuple(cleaned)


def build_system_instructions(
    custom_instructions: str | None, *, deep: bool, offline: bool
) -> str:
    sections = [render_prompt("synthesis.guidelines")]
    if custom_instructions and custom_instructions.strip():
        sections.append(render_prompt("synthesis.custom", custom_prompt=custom_instructions.strip()))
    sections.append(
        render_prompt("synthesis.tone_exhaustive" if deep else "synthesis.tone_conversational")
    )
    sections.append(render_prompt("synthesis.offline" if offline else "synthesis.grounded"))
    return "\n\n".join(sections)


def assemble(
    plan: SearchPlan,
    query: str,
    history: Sequence[dict[str, Any]],
    documents: Sequence[RankedDocument],
    custom_instructions: str | None,
    *,
    modes: EffectiveModes,
    now: datetime | None = None,
) -> SynthesisRequest:
    now = now or datetime.now(timezone.utc)
    top = tuple(documents[: context_limit(modes.deep)])

    if modes.reasoning:
        max_tokens = settings.synthesis_reasoning_max_tokens
    elif modes.deep:
        max_tokens = settings.synthesis_deep_max_tokens
    else:
        max_tokens = settings.synthesis_max_tokens

    return SynthesisRequest(
        system_instructions=build_system_instructions(
            custom_instructions, deep=modes.deep, offline=not top
        ),
        conversation_history=_clean_history(history),
        user_query=query,
        grounding_documents=top,
        grounding_context={
            "current_datetime": now.strftime("%A, %B %d, %Y %H:%M:%S UTC"),
            "search_strategy": {
                "freshness": plan.freshness.value,
                "time_sensitive": plan.use_hour_layer,
                "depth": plan.depth_label.value,
            },
        },
        model=llm_client.get_model(reasoning=modes.reasoning),
        max_tokens=max_tokens,
        temperature=settings.synthesis_temperature,
        timeout=(
            settings.synthesis_deep_timeout_seconds
            if modes.deep or modes.reasoning
            else settings.synthesis_timeout_seconds
        ),
    )


async def synthesize(request: SynthesisRequest, *, pool: CredentialPool) -> str:
    """Run the synthesis call through the rotated executor and return the answer text."""
    messages = request.to_messages()
    try:
        completion = await execute_rotated(
            pool,
            lambda api_key: llm_client.complete(
                api_key,
                messages,
                model=request.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                caller="synthesis",
                timeout=request.timeout,
            ),
        )
    except ProviderExhausted as exc:
        raise SynthesisFailure(
            "Answer generation failed: the language-model provider is unavailable.",
            details=exc.details,
        ) from exc
    except Exception as exc:
        raise SynthesisFailure(
            "Answer generation failed: the language-model provider rejected the request.",
            details={"error": type(exc).__name__},
        ) from exc

    answer = completion.text.strip()
    if not answer:
        raise SynthesisFailure("Answer generation failed: the model returned an empty answer.")
    return answer
