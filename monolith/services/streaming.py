from __future__ import annotations

from typing import Any

from monolith.models.events import EventType, SSEEvent
from monolith.models.research import (
    AutoApplied,
    LayerOutcome,
    OrchestrationResult,
    RankedDocument,
    SearchPlan,
)


def plan_created(plan: SearchPlan, auto_applied: AutoApplied) -> SSEEvent:
    return SSEEvent(
        event=EventType.PLAN_CREATED,
        data={**plan.to_dict(), "auto_applied": auto_applied.to_dict()},
    )


def search_result(outcome: LayerOutcome) -> SSEEvent:
    layer = outcome.layer
    data: dict[str, Any] = {
        "layer": layer.layer_index,
        "path": layer.path_index,
        "query": layer.query_path,
        "freshness": layer.freshness.value,
        "results_count": len(outcome.results),
        "success": outcome.succeeded,
    }
    if outcome.error is not None:
        data["error"] = str(outcome.error)
    return SSEEvent(event=EventType.SEARCH_RESULT, data=data)


def sources_aggregated(layers_run: int, layers_failed: int, unique_sources: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.SOURCES_AGGREGATED,
        data={
            "layers_run": layers_run,
            "layers_failed": layers_failed,
            "unique_sources": unique_sources,
        },
    )


def rerank_completed(documents: list[RankedDocument], top_n: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.RERANK_COMPLETED,
        data={
            "ranked": len(documents),
            "top": [doc.to_dict() for doc in documents[:top_n]],
        },
    )


def synthesis_started(sources_count: int, model: str, offline: bool) -> SSEEvent:
    return SSEEvent(
        event=EventType.SYNTHESIS_STARTED,
        data={"sources_count": sources_count, "model": model, "offline": offline},
    )


def research_complete(result: OrchestrationResult, runtime_ms: int | None = None) -> SSEEvent:
    data: dict[str, Any] = result.to_dict()
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.RESEARCH_COMPLETE, data=data)


def error(message: str, code: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if code:
        data["code"] = code
    return SSEEvent(event=EventType.ERROR, data=data)
