from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from conftest import FakeProvider, completion, http_error, make_pool
from monolith.agents.orchestrator import ResearchOrchestrator
from monolith.config import settings
from monolith.errors import InvalidRequest, PlanningFailure
from monolith.models.research import Freshness, RawResult, RequestFlags
from monolith.services.credentials import CredentialPools

NEWS_QUERY = "What happened in the news today?"


def _pools() -> CredentialPools:
    return CredentialPools(search=make_pool(2), llm=make_pool(2, "llm"))


def _two_per_layer(query: str, freshness: Freshness) -> list[RawResult]:
    host = f"p{len(query)}-{freshness.value}.example.com"
    return [
        RawResult(url=f"https://{host}/a", title=f"{query} a", snippet="a", origin_freshness=freshness),
        RawResult(url=f"https://{host}/b", title=f"{query} b", snippet="b", origin_freshness=freshness),
    ]


def _fake_llm(planner_reply: dict, answer: str = "Here is what happened today."):
    calls: list[dict] = []

    async def fake_complete(api_key, messages, *, caller, **kwargs):
        calls.append({"caller": caller, "messages": messages, **kwargs})
        if caller == "planner":
            return completion(json.dumps(planner_reply))
        return completion(answer, model=kwargs.get("model", "m"))

    return fake_complete, calls


NEWS_PLAN = {
    "queries": ["world news today"],
    "depth_label": "standard",
    "freshness": "day",
    "use_hour_layer": True,
    "needs_search": True,
    "needs_reasoning": False,
    "reasoning": "time-sensitive news",
}


@pytest.mark.asyncio
async def test_news_query_runs_full_pipeline():
    provider = FakeProvider(_two_per_layer)
    fake_complete, calls = _fake_llm(NEWS_PLAN)
    orchestrator = ResearchOrchestrator(pools=_pools(), provider=provider)

    with patch("monolith.llm_client.complete", side_effect=fake_complete):
        events = [event async for event in orchestrator.research(NEWS_QUERY)]

    names = [event.event.value for event in events]
    assert names[0] == "plan_created"
    assert names[1:6] == ["search_result"] * 5
    assert names[6:] == ["sources_aggregated", "rerank_completed", "synthesis_started", "research_complete"]

    searched = sorted((query, freshness.value) for _, query, freshness, _ in provider.search_calls)
    assert searched == [
        (NEWS_QUERY, "all"),
        (NEWS_QUERY, "day"),
        (NEWS_QUERY, "hour"),
        ("world news today", "day"),
        ("world news today", "hour"),
    ]

    result = orchestrator.result
    assert result is not None
    assert result.answer == "Here is what happened today."
    assert result.search_queries == [NEWS_QUERY, "world news today"]
    assert len(result.all_sources) == 10
    assert len(result.sources) == 10
    assert result.auto_applied.to_dict() == {"search": False, "deep": False, "reasoning": False}

    # The synthesis call carries the ranked documents in a retrieval tool turn.
    synthesis_call = next(call for call in calls if call["caller"] == "synthesis")
    tool_turn = json.loads(synthesis_call["messages"][-1]["content"])
    assert len(tool_turn["documents"]) == 10
    assert tool_turn["search_strategy"]["freshness"] == "day"

    complete = events[-1].data
    assert complete["answer"] == result.answer
    assert complete["plan"]["use_hour_layer"] is True
    assert "runtime_ms" in complete


@pytest.mark.asyncio
async def test_greeting_answers_offline_without_searching():
    provider = FakeProvider()
    fake_complete, calls = _fake_llm(NEWS_PLAN, answer="Hello! How can I help?")
    orchestrator = ResearchOrchestrator(pools=_pools(), provider=provider)

    with patch("monolith.llm_client.complete", side_effect=fake_complete):
        result = await orchestrator.run("hi")

    assert provider.search_calls == []
    assert provider.rerank_calls == []
    assert [call["caller"] for call in calls] == ["synthesis"]
    assert result.answer == "Hello! How can I help?"
    assert result.sources == []
    assert result.plan.skip_search


@pytest.mark.asyncio
async def test_planner_can_auto_enable_deep_and_reasoning():
    provider = FakeProvider(_two_per_layer)
    reply = {**NEWS_PLAN, "depth_label": "deep", "needs_reasoning": True, "freshness": "week", "use_hour_layer": False}
    fake_complete, calls = _fake_llm(reply)
    orchestrator = ResearchOrchestrator(pools=_pools(), provider=provider)

    with patch("monolith.llm_client.complete", side_effect=fake_complete):
        result = await orchestrator.run("Compare the 2026 EU and US chip subsidies")

    assert result.auto_applied.to_dict() == {"search": False, "deep": True, "reasoning": True}
    # Deep mode adds an unfiltered layer to every path.
    all_layers = [query for _, query, freshness, _ in provider.search_calls if freshness is Freshness.ALL]
    assert len(all_layers) == 2
    synthesis_call = next(call for call in calls if call["caller"] == "synthesis")
    assert synthesis_call["model"] == settings.reasoning_model


@pytest.mark.asyncio
async def test_failed_search_still_produces_an_offline_answer():
    def always_fail(query, freshness):
        raise http_error(400)

    provider = FakeProvider(always_fail)
    fake_complete, calls = _fake_llm(NEWS_PLAN, answer="I could not find recent sources.")
    orchestrator = ResearchOrchestrator(pools=_pools(), provider=provider)

    with patch("monolith.llm_client.complete", side_effect=fake_complete):
        events = [event async for event in orchestrator.research(NEWS_QUERY)]

    aggregated = next(e for e in events if e.event.value == "sources_aggregated")
    assert aggregated.data["layers_failed"] == aggregated.data["layers_run"] == 5
    assert "rerank_completed" not in [e.event.value for e in events]
    started = next(e for e in events if e.event.value == "synthesis_started")
    assert started.data["offline"] is True
    assert orchestrator.result.answer == "I could not find recent sources."


@pytest.mark.asyncio
async def test_planning_failure_propagates():
    async def broken_planner(api_key, messages, *, caller, **kwargs):
        return completion("not json")

    orchestrator = ResearchOrchestrator(pools=_pools(), provider=FakeProvider())

    with patch("monolith.llm_client.complete", side_effect=broken_planner):
        with pytest.raises(PlanningFailure):
            await orchestrator.run(NEWS_QUERY)


@pytest.mark.asyncio
async def test_empty_query_is_rejected_before_any_provider_use():
    orchestrator = ResearchOrchestrator()

    with pytest.raises(InvalidRequest):
        await orchestrator.run("   ")

    assert orchestrator._pools is None


@pytest.mark.asyncio
async def test_caller_queries_skip_the_planner_call():
    provider = FakeProvider(_two_per_layer)
    fake_complete, calls = _fake_llm(NEWS_PLAN)
    orchestrator = ResearchOrchestrator(pools=_pools(), provider=provider)

    with patch("monolith.llm_client.complete", side_effect=fake_complete):
        result = await orchestrator.run(
            "ignored", flags=RequestFlags(), queries=["rust async runtimes"]
        )

    assert [call["caller"] for call in calls] == ["synthesis"]
    assert {query for _, query, _, _ in provider.search_calls} == {"rust async runtimes"}
    assert result.search_queries == ["rust async runtimes"]
