from __future__ import annotations

from typing import Protocol

from monolith.config import settings
from monolith.models.research import Freshness, RawResult
from monolith.tools.langsearch import LangSearchProvider, RerankScore


class SearchProvider(Protocol):
    """What the engine needs from a web-search vendor."""

    name: str

    async def search(
        self,
        api_key: str,
        query: str,
        *,
        freshness: Freshness = Freshness.ALL,
        count: int = 10,
    ) -> list[RawResult]: ...

    async def rerank(
        self,
        api_key: str,
        query: str,
        documents: list[str],
    ) -> list[RerankScore]: ...


def get_search_provider() -> SearchProvider:
    provider = settings.search_provider.lower().strip()
    if provider == "langsearch":
        return LangSearchProvider()
    raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")
