from __future__ import annotations

import time
from typing import Any, AsyncGenerator, Sequence
from uuid import uuid4

from monolith.agents.planner import StrategyPlanner, resolve_modes
from monolith.errors import InvalidRequest
from monolith.models.events import SSEEvent
from monolith.models.research import (
    LayerOutcome,
    OrchestrationResult,
    RankedDocument,
    RequestFlags,
)
from monolith.services import credentials, streaming
from monolith.services import logger as log_service
from monolith.services.aggregator import aggregate_outcomes
from monolith.services.reranker import EliteReranker
from monolith.services.search_executor import run_layered_search
from monolith.services.synthesis import assemble, context_limit, synthesize
from monolith.tools.search_provider import SearchProvider, get_search_provider


class ResearchOrchestrator:
    """Runs one research request end to end.

    Flow:
      1. Plan the search strategy (greeting fast-path, caller paths, or LLM planner)
      2. Fan out layered searches under rotated, paced credentials
      3. Aggregate: dedupe by URL, cap results per host
      4. Elite rerank: chunked semantic scores + reputation/freshness/recency boosts
      5. Assemble the grounded request and synthesize the answer

    `research` yields SSE events as each stage completes; `run` drives it to
    completion and returns the OrchestrationResult. Fatal errors propagate;
    search layer and rerank chunk failures degrade locally.
    """

    def __init__(
        self,
        *,
        pools: credentials.CredentialPools | None = None,
        provider: SearchProvider | None = None,
        request_id: str | None = None,
    ):
        self._pools = pools
        self._provider = provider
        self.request_id = request_id or uuid4().hex[:12]
        self.result: OrchestrationResult | None = None

    @property
    def pools(self) -> credentials.CredentialPools:
        if self._pools is None:
            self._pools = credentials.pools()
        return self._pools

    @property
    def provider(self) -> SearchProvider:
        if self._provider is None:
            self._provider = get_search_provider()
        return self._provider

    async def research(
        self,
        query: str,
        *,
        history: Sequence[dict[str, Any]] = (),
        flags: RequestFlags = RequestFlags(),
        custom_prompt: str | None = None,
        queries: Sequence[str] | None = None,
    ) -> AsyncGenerator[SSEEvent, None]:
        if not isinstance(query, str) or not query.strip():
            raise InvalidRequest("A non-empty query is required.")
        query = query.strip()
        t0 = time.monotonic()
        log_service.log_event(
            event_type="research_started",
            message="Research started",
            request_id=self.request_id,
            query=query[:100],
            deep=flags.deep,
            search=flags.search,
            thinking=flags.thinking,
        )

        # 1. Plan
        planner = StrategyPlanner(self.pools.llm)
        plan = await planner.plan(query, list(history), flags, queries=queries)
        modes, auto_applied = resolve_modes(plan, flags)
        log_service.log_research_step(
            self.request_id,
            "plan",
            "completed",
            {**plan.to_dict(), "auto_applied": auto_applied.to_dict()},
        )
        yield streaming.plan_created(plan, auto_applied)

        # 2. Layered search
        outcomes: list[LayerOutcome] = []
        if modes.search:
            outcomes, search_events = await run_layered_search(
                plan,
                deep=modes.deep,
                pool=self.pools.search,
                provider=self.provider,
            )
            for event in search_events:
                yield event

        # 3. Aggregate
        all_sources = aggregate_outcomes(outcomes)
        failed_layers = sum(1 for outcome in outcomes if not outcome.succeeded)
        log_service.log_research_step(
            self.request_id,
            "search",
            "completed",
            {"layers": len(outcomes), "failed": failed_layers, "unique_sources": len(all_sources)},
        )
        yield streaming.sources_aggregated(len(outcomes), failed_layers, len(all_sources))

        # 4. Rerank
        top_n = context_limit(modes.deep)
        ranked: list[RankedDocument] = []
        if all_sources:
            reranker = EliteReranker(self.pools.search, self.provider)
            ranked = await reranker.rerank(query, all_sources, offset_base=len(outcomes))
            yield streaming.rerank_completed(ranked, top_n)
        top_documents = ranked[:top_n]

        # 5. Synthesis
        request = assemble(
            plan,
            query,
            history,
            top_documents,
            custom_prompt,
            modes=modes,
        )
        yield streaming.synthesis_started(
            len(request.grounding_documents), request.model, request.offline
        )
        answer = await synthesize(request, pool=self.pools.llm)

        runtime_ms = int((time.monotonic() - t0) * 1000)
        self.result = OrchestrationResult(
            answer=answer,
            sources=list(top_documents),
            all_sources=all_sources,
            search_queries=list(plan.query_paths),
            auto_applied=auto_applied,
            plan=plan,
        )
        log_service.log_event(
            event_type="research_complete",
            message="Research complete",
            request_id=self.request_id,
            runtime_ms=runtime_ms,
            sources=len(top_documents),
            offline=request.offline,
        )
        yield streaming.research_complete(self.result, runtime_ms=runtime_ms)

    async def run(self, query: str, **kwargs: Any) -> OrchestrationResult:
        """Drive `research` to completion and return its result."""
        async for _ in self.research(query, **kwargs):
            pass
        if self.result is None:
            raise RuntimeError("Research finished without producing a result")
        return self.result
