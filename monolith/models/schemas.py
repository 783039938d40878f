from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from monolith.models.research import RequestFlags


# --- Requests ---


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ResearchRequest(BaseModel):
    query: str = ""
    history: list[ChatTurn] = []
    deep: bool = False
    search: bool = True
    thinking: bool = False
    custom_prompt: str | None = None
    queries: list[str] | None = None

    def flags(self) -> RequestFlags:
        return RequestFlags(search=self.search, deep=self.deep, thinking=self.thinking)

    def history_dicts(self) -> list[dict[str, str]]:
        return [turn.model_dump() for turn in self.history]


# --- Responses ---


class SourceResponse(BaseModel):
    url: str
    title: str
    snippet: str
    summary: str | None = None
    published_at: str | None = None
    origin_freshness: str
    relevance_score: float | None = None
    composite_score: float | None = None


class AutoAppliedResponse(BaseModel):
    search: bool
    deep: bool
    reasoning: bool


class PlanResponse(BaseModel):
    freshness: str
    depth_label: str
    use_hour_layer: bool
    skip_search: bool


class OrchestrationResponse(BaseModel):
    answer: str
    sources: list[SourceResponse]
    all_sources: list[SourceResponse]
    search_queries: list[str]
    auto_applied: AutoAppliedResponse
    plan: PlanResponse


class ErrorResponse(BaseModel):
    error: str
    code: str
    details: dict[str, Any] = {}
