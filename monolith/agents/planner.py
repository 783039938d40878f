from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Sequence

from pydantic import BaseModel, ValidationError, field_validator

from monolith import llm_client
from monolith.config import settings
from monolith.errors import PlanningFailure, ProviderExhausted
from monolith.models.research import (
    AutoApplied,
    DepthLabel,
    EffectiveModes,
    Freshness,
    RequestFlags,
    SearchPlan,
)
from monolith.services.credentials import CredentialPool, execute_rotated
from monolith.services.logger import logger
from monolith.services.prompt_store import render_prompt

GREETING_PATTERNS = [
    r"(hi|hello|hey|hiya|howdy|yo|greetings|sup)( there| monolith| everyone| all)?",
    r"good (morning|afternoon|evening|night|day)( monolith)?",
    r"(thanks|thank you|thx|ty|cheers)( so much| a lot| very much| monolith)?",
    r"how are (you|u)( doing)?( today)?",
    r"what'?s up",
    r"(bye|goodbye|see you|see ya|later|good bye)",
    r"(ok|okay|cool|great|nice|awesome|got it|sounds good|perfect)",
    r"who are you",
]
_GREETING_RE = re.compile(r"^(?:" + "|".join(GREETING_PATTERNS) + r")$")


def is_conversational(query: str) -> bool:
    """True for greetings and small talk that need no web search."""
    normalized = query.lower().replace("’", "'").replace("‘", "'")
    normalized = re.sub(r"[^\w\s']", " ", normalized)
    normalized = " ".join(normalized.split())
    return bool(normalized) and bool(_GREETING_RE.match(normalized))


class PlannerOutput(BaseModel):
    """Structured output contract for the planning call."""

    queries: list[str] = []
    depth_label: DepthLabel = DepthLabel.STANDARD
    freshness: Freshness = Freshness.ALL
    use_hour_layer: bool = False
    needs_search: bool = True
    needs_reasoning: bool = False
    reasoning: str = ""

    @field_validator("depth_label", "freshness", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("queries", mode="before")
    @classmethod
    def _drop_non_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str)]
        return value


def extract_json_object(raw_text: str) -> dict[str, Any]:
    text = raw_text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise json.JSONDecodeError("object not found", text, 0)
    parsed = json.loads(text[start : end + 1])
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("not an object", text, 0)
    return parsed


def normalize_query_paths(
    candidates: Sequence[str],
    *,
    max_paths: int,
    original: str | None = None,
) -> tuple[str, ...]:
    """Trim, dedupe case-insensitively and cap; `original` always comes first."""
    ordered: list[str] = []
    seen: set[str] = set()
    for candidate in ([original] if original else []) + list(candidates):
        cleaned = " ".join(str(candidate).split()).strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        ordered.append(cleaned)
        if len(ordered) >= max(max_paths, 1):
            break
    return tuple(ordered)


def _resolve_depth(label: DepthLabel, deep: bool) -> DepthLabel:
    if deep:
        return DepthLabel.ELITE if label in (DepthLabel.DEEP, DepthLabel.ELITE) else DepthLabel.DEEP
    return DepthLabel.DEEP if label is DepthLabel.ELITE else label


def resolve_modes(plan: SearchPlan, flags: RequestFlags) -> tuple[EffectiveModes, AutoApplied]:
    """Combine caller flags with the plan. Modes can be switched on, never off."""
    search = not plan.skip_search
    deep = flags.deep or plan.depth_label in (DepthLabel.DEEP, DepthLabel.ELITE)
    reasoning = flags.thinking or plan.suggest_reasoning
    auto = AutoApplied(
        search=search and not flags.search,
        deep=deep and not flags.deep,
        reasoning=reasoning and not flags.thinking,
    )
    return EffectiveModes(search=search, deep=deep, reasoning=reasoning), auto


class StrategyPlanner:
    """Turns a raw query (plus history) into an immutable SearchPlan."""

    def __init__(self, llm_pool: CredentialPool):
        self.pool = llm_pool
        self.model = llm_client.get_planner_model()
        self.max_paths = max(int(settings.planner_max_query_paths), 1)

    async def plan(
        self,
        query: str,
        history: Sequence[dict[str, str]],
        flags: RequestFlags,
        *,
        queries: Sequence[str] | None = None,
        now: datetime | None = None,
    ) -> SearchPlan:
        if is_conversational(query):
            logger.info(f"[Planner] Conversational turn, skipping search: {query[:60]!r}")
            return SearchPlan(
                query_paths=(query.strip(),),
                freshness=Freshness.ALL,
                depth_label=DepthLabel.SURFACE,
                skip_search=True,
                rationale="conversational",
            )

        explicit = normalize_query_paths(queries or [], max_paths=len(queries or []) or 1)
        if queries and explicit:
            return SearchPlan(
                query_paths=explicit,
                freshness=Freshness.ALL,
                use_hour_layer=flags.deep,
                depth_label=DepthLabel.DEEP if flags.deep else DepthLabel.STANDARD,
                skip_search=False,
                rationale="caller-supplied query paths",
            )

        output = await self._classify(query, history, now or datetime.now(timezone.utc))
        plan = SearchPlan(
            query_paths=normalize_query_paths(
                output.queries, max_paths=self.max_paths, original=query
            ),
            freshness=output.freshness,
            use_hour_layer=output.use_hour_layer,
            depth_label=_resolve_depth(output.depth_label, flags.deep),
            skip_search=not (flags.search or output.needs_search),
            suggest_reasoning=output.needs_reasoning,
            rationale=output.reasoning,
        )
        logger.info(
            f"[Planner] {plan.depth_label.value} depth, freshness={plan.freshness.value}, "
            f"hour_layer={plan.use_hour_layer}, paths={len(plan.query_paths)}, skip={plan.skip_search}"
        )
        return plan

    def _build_messages(
        self, query: str, history: Sequence[dict[str, str]], now: datetime
    ) -> list[dict[str, str]]:
        recent = list(history)[-max(int(settings.planner_history_turns), 0) :] if history else []
        history_block = ""
        if recent:
            turns = "\n".join(
                f"{str(turn.get('role', 'user')).upper()}: {str(turn.get('content', ''))[:500]}"
                for turn in recent
            )
            history_block = render_prompt("planner.history_block", turns=turns)
        return [
            {"role": "system", "content": render_prompt("planner.system", max_paths=self.max_paths)},
            {
                "role": "user",
                "content": render_prompt(
                    "planner.user",
                    today=now.strftime("%A, %B %d, %Y %H:%M UTC"),
                    history_block=history_block,
                    query=query,
                ),
            },
        ]

    async def _classify(
        self, query: str, history: Sequence[dict[str, str]], now: datetime
    ) -> PlannerOutput:
        messages = self._build_messages(query, history, now)
        try:
            completion = await execute_rotated(
                self.pool,
                lambda api_key: llm_client.complete(
                    api_key,
                    messages,
                    model=self.model,
                    max_tokens=512,
                    temperature=settings.planner_temperature,
                    caller="planner",
                    response_format={"type": "json_object"},
                    timeout=settings.planner_timeout_seconds,
                ),
            )
        except ProviderExhausted as exc:
            raise PlanningFailure(
                "Search planning failed: the language-model provider is unavailable.",
                details=exc.details,
            ) from exc
        except Exception as exc:
            raise PlanningFailure(
                "Search planning failed: the language-model provider rejected the request.",
                details={"error": type(exc).__name__},
            ) from exc

        try:
            return PlannerOutput.model_validate(extract_json_object(completion.text))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise PlanningFailure(
                "Search planning failed: the planner returned malformed output.",
                details={"error": type(exc).__name__},
            ) from exc
