from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Freshness(str, Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class DepthLabel(str, Enum):
    SURFACE = "surface"
    STANDARD = "standard"
    DEEP = "deep"
    ELITE = "elite"


@dataclass(frozen=True, slots=True)
class RequestFlags:
    """Modes the caller asked for."""

    search: bool = True
    deep: bool = False
    thinking: bool = False


@dataclass(frozen=True, slots=True)
class EffectiveModes:
    """Modes actually used after the planner's auto-toggles."""

    search: bool
    deep: bool
    reasoning: bool


@dataclass(frozen=True, slots=True)
class AutoApplied:
    search: bool = False
    deep: bool = False
    reasoning: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {"search": self.search, "deep": self.deep, "reasoning": self.reasoning}


@dataclass(frozen=True, slots=True)
class SearchPlan:
    query_paths: tuple[str, ...]
    freshness: Freshness = Freshness.ALL
    use_hour_layer: bool = False
    depth_label: DepthLabel = DepthLabel.STANDARD
    skip_search: bool = False
    suggest_reasoning: bool = False
    rationale: str = ""

    def __post_init__(self) -> None:
        if not self.query_paths:
            raise ValueError("SearchPlan requires at least one query path")

    def to_dict(self) -> dict[str, Any]:
        return {
            "query_paths": list(self.query_paths),
            "freshness": self.freshness.value,
            "use_hour_layer": self.use_hour_layer,
            "depth_label": self.depth_label.value,
            "skip_search": self.skip_search,
            "suggest_reasoning": self.suggest_reasoning,
        }


@dataclass(frozen=True, slots=True)
class SearchLayer:
    query_path: str
    freshness: Freshness
    layer_index: int
    path_index: int = 0


@dataclass(frozen=True, slots=True)
class RawResult:
    url: str
    title: str = ""
    snippet: str = ""
    summary: str | None = None
    published_at: datetime | None = None
    last_crawled_at: datetime | None = None
    origin_freshness: Freshness = Freshness.ALL

    @property
    def content(self) -> str:
        return self.summary or self.snippet or self.title

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "snippet": self.snippet,
            "summary": self.summary,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "origin_freshness": self.origin_freshness.value,
        }


@dataclass(frozen=True, slots=True)
class RankedDocument:
    result: RawResult
    relevance_score: float = 0.0
    composite_score: float = 0.0
    aggregation_index: int = 0

    @property
    def url(self) -> str:
        return self.result.url

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.result.to_dict(),
            "relevance_score": self.relevance_score,
            "composite_score": self.composite_score,
        }


@dataclass(slots=True)
class LayerOutcome:
    layer: SearchLayer
    results: list[RawResult] = field(default_factory=list)
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class OrchestrationResult:
    answer: str
    sources: list[RankedDocument]
    all_sources: list[RawResult]
    search_queries: list[str]
    auto_applied: AutoApplied
    plan: SearchPlan

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [doc.to_dict() for doc in self.sources],
            "all_sources": [result.to_dict() for result in self.all_sources],
            "search_queries": list(self.search_queries),
            "auto_applied": self.auto_applied.to_dict(),
            "plan": {
                "freshness": self.plan.freshness.value,
                "depth_label": self.plan.depth_label.value,
                "use_hour_layer": self.plan.use_hour_layer,
                "skip_search": self.plan.skip_search,
            },
        }
