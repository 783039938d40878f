from __future__ import annotations

from typing import Callable
from unittest.mock import patch

import httpx
import pytest

from monolith.config import settings
from monolith.llm_client import Completion
from monolith.models.research import Freshness, RawResult
from monolith.services.credentials import CredentialPool
from monolith.tools.langsearch import RerankScore


def http_error(status: int, url: str = "https://api.example.test/v1/web-search") -> httpx.HTTPStatusError:
    request = httpx.Request("POST", url)
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


def make_pool(size: int, provider: str = "search") -> CredentialPool:
    return CredentialPool(provider, [f"{provider}-key-{i}" for i in range(size)])


def default_results(query: str, freshness: Freshness) -> list[RawResult]:
    slug = "-".join(query.lower().split())
    return [
        RawResult(
            url=f"https://{slug}.example.com/{freshness.value}",
            title=f"{query} ({freshness.value})",
            snippet=f"snippet for {query}",
            origin_freshness=freshness,
        )
    ]


class FakeProvider:
    """In-memory search provider recording every call it receives."""

    name = "fake"

    def __init__(
        self,
        results: Callable[[str, Freshness], list[RawResult]] = default_results,
        *,
        failing_layers: set[tuple[str, Freshness]] | None = None,
        rerank_scores: Callable[[list[str]], list[RerankScore]] | None = None,
        rerank_error: Exception | None = None,
    ):
        self.results = results
        self.failing_layers = failing_layers or set()
        self.rerank_scores = rerank_scores
        self.rerank_error = rerank_error
        self.search_calls: list[tuple[str, str, Freshness, int]] = []
        self.rerank_calls: list[tuple[str, str, list[str]]] = []

    async def search(self, api_key, query, *, freshness=Freshness.ALL, count=10):
        self.search_calls.append((api_key, query, freshness, count))
        if (query, freshness) in self.failing_layers:
            raise http_error(500)
        return self.results(query, freshness)

    async def rerank(self, api_key, query, documents):
        self.rerank_calls.append((api_key, query, list(documents)))
        if self.rerank_error is not None:
            raise self.rerank_error
        if self.rerank_scores is not None:
            return self.rerank_scores(documents)
        return [RerankScore(index=i, relevance_score=0.5) for i in range(len(documents))]


def completion(text: str, model: str = "test-model") -> Completion:
    return Completion(text=text, model=model)


@pytest.fixture(autouse=True)
def no_pacing():
    """Zero every rotation and layer delay so tests never sleep."""
    with (
        patch.object(settings, "rotation_delay_seconds", 0.0),
        patch.object(settings, "rate_limit_delay_seconds", 0.0),
        patch.object(settings, "layer_pacing_seconds", 0.0),
    ):
        yield
