from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from monolith.config import settings
from monolith.models.research import Freshness, RawResult
from monolith.tools import web_utils


@dataclass(frozen=True, slots=True)
class RerankScore:
    index: int
    relevance_score: float


def _headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def _map_result(item: dict[str, Any], freshness: Freshness) -> RawResult | None:
    url = item.get("url")
    if not isinstance(url, str) or not url.strip():
        return None
    summary = item.get("summary")
    return RawResult(
        url=url.strip(),
        title=str(item.get("name") or item.get("title") or ""),
        snippet=str(item.get("snippet") or ""),
        summary=summary if isinstance(summary, str) and summary.strip() else None,
        published_at=web_utils.parse_timestamp(item.get("datePublished")),
        last_crawled_at=web_utils.parse_timestamp(item.get("dateLastCrawled")),
        origin_freshness=freshness,
    )


class LangSearchProvider:
    """Web search + semantic rerank over the LangSearch HTTP API."""

    name = "langsearch"

    def __init__(self, base_url: str | None = None):
        self.base_url = (base_url or settings.search_base_url).rstrip("/")

    async def search(
        self,
        api_key: str,
        query: str,
        *,
        freshness: Freshness = Freshness.ALL,
        count: int = 10,
    ) -> list[RawResult]:
        """Execute one web search and normalize results."""
        payload = {
            "query": query,
            "freshness": freshness.value,
            "summary": True,
            "count": count,
        }
        async with httpx.AsyncClient(timeout=settings.search_timeout_seconds) as client:
            response = await client.post(
                f"{self.base_url}/web-search",
                json=payload,
                headers=_headers(api_key),
            )
            response.raise_for_status()
            body = response.json()

        raw_results = ((body.get("data") or {}).get("webPages") or {}).get("value") or []
        mapped: list[RawResult] = []
        for item in raw_results:
            if not isinstance(item, dict):
                continue
            result = _map_result(item, freshness)
            if result is not None:
                mapped.append(result)
        return mapped

    async def rerank(
        self,
        api_key: str,
        query: str,
        documents: list[str],
    ) -> list[RerankScore]:
        """Score documents against the query; indices refer to `documents`."""
        if not documents:
            return []
        payload = {
            "model": settings.rerank_model,
            "query": query,
            "documents": documents,
            "top_n": len(documents),
            "return_documents": False,
        }
        async with httpx.AsyncClient(timeout=settings.rerank_timeout_seconds) as client:
            response = await client.post(
                f"{self.base_url}/rerank",
                json=payload,
                headers=_headers(api_key),
            )
            response.raise_for_status()
            body = response.json()

        scores: list[RerankScore] = []
        for item in body.get("results") or []:
            index = item.get("index")
            if not isinstance(index, int) or not 0 <= index < len(documents):
                continue
            scores.append(
                RerankScore(index=index, relevance_score=float(item.get("relevance_score") or 0.0))
            )
        return scores
