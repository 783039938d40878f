from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Mapping, Sequence

from monolith.config import settings
from monolith.errors import RerankChunkFailure
from monolith.models.research import Freshness, RankedDocument, RawResult
from monolith.services.credentials import CredentialPool, execute_rotated
from monolith.services.logger import logger
from monolith.tools import web_utils
from monolith.tools.search_provider import SearchProvider


@dataclass(frozen=True)
class BoostWeights:
    """Additive score boosts layered on top of provider relevance."""

    domain_reputation: Mapping[str, float] = field(default_factory=dict)
    freshness_hour: float = 0.15
    freshness_day: float = 0.08
    recency: float = 0.05
    recency_window_days: int = 15

    @classmethod
    def from_settings(cls) -> "BoostWeights":
        return cls(
            domain_reputation={
                suffix.lower().strip("."): float(weight)
                for suffix, weight in settings.domain_reputation.items()
            },
            freshness_hour=settings.freshness_boost_hour,
            freshness_day=settings.freshness_boost_day,
            recency=settings.recency_boost,
            recency_window_days=settings.recency_window_days,
        )


def domain_boost(host: str, table: Mapping[str, float]) -> float:
    """Weight of the longest label-aligned suffix of `host` found in `table`."""
    labels = [label for label in host.lower().split(".") if label]
    for start in range(len(labels)):
        suffix = ".".join(labels[start:])
        if suffix in table:
            return table[suffix]
    return 0.0


def freshness_boost(freshness: Freshness, weights: BoostWeights) -> float:
    if freshness is Freshness.HOUR:
        return weights.freshness_hour
    if freshness is Freshness.DAY:
        return weights.freshness_day
    return 0.0


def recency_boost(published_at: datetime | None, now: datetime, weights: BoostWeights) -> float:
    if published_at is None:
        return 0.0
    age = now - published_at
    # Allow a day of clock skew for items stamped slightly in the future.
    if timedelta(days=-1) <= age <= timedelta(days=weights.recency_window_days):
        return weights.recency
    return 0.0


def score_document(
    result: RawResult,
    relevance_score: float,
    weights: BoostWeights,
    now: datetime,
) -> float:
    return (
        relevance_score
        + domain_boost(web_utils.hostname(result.url), weights.domain_reputation)
        + freshness_boost(result.origin_freshness, weights)
        + recency_boost(result.published_at, now, weights)
    )


class EliteReranker:
    """Chunked semantic rerank fused with reputation, freshness and recency boosts."""

    def __init__(
        self,
        pool: CredentialPool,
        provider: SearchProvider,
        weights: BoostWeights | None = None,
    ):
        self.pool = pool
        self.provider = provider
        self.weights = weights or BoostWeights.from_settings()
        self.chunk_size = max(int(settings.rerank_chunk_size), 1)
        self.max_documents = max(int(settings.rerank_max_documents), 0)
        self.snippet_chars = max(int(settings.rerank_snippet_chars), 1)
        self.failures: list[RerankChunkFailure] = []

    async def _score_chunk(
        self,
        query: str,
        chunk_index: int,
        chunk: Sequence[RawResult],
        start_offset: int,
    ) -> dict[int, float]:
        documents = [
            web_utils.sanitize_for_rerank(item.content, self.snippet_chars) for item in chunk
        ]
        try:
            scores = await execute_rotated(
                self.pool,
                lambda api_key: self.provider.rerank(api_key, query, documents),
                start_offset=start_offset,
            )
        except Exception as exc:
            failure = RerankChunkFailure(
                f"Rerank chunk {chunk_index} failed: {exc}",
                details={"chunk": chunk_index, "size": len(chunk), "error": type(exc).__name__},
            )
            self.failures.append(failure)
            logger.warning(f"[Rerank] Chunk {chunk_index} failed, falling back to boosts only: {exc}")
            return {}
        return {score.index: score.relevance_score for score in scores}

    async def rerank(
        self,
        query: str,
        results: Sequence[RawResult],
        *,
        offset_base: int = 0,
        now: datetime | None = None,
    ) -> list[RankedDocument]:
        """Return every result as a RankedDocument, best composite score first."""
        if not results:
            return []
        now = now or datetime.now(timezone.utc)

        candidates = list(results[: self.max_documents])
        chunks = [
            candidates[start : start + self.chunk_size]
            for start in range(0, len(candidates), self.chunk_size)
        ]
        chunk_scores = await asyncio.gather(
            *(
                self._score_chunk(query, index, chunk, offset_base + index)
                for index, chunk in enumerate(chunks)
            )
        )

        relevance: dict[int, float] = {}
        for chunk_index, scores in enumerate(chunk_scores):
            base = chunk_index * self.chunk_size
            for local_index, score in scores.items():
                relevance[base + local_index] = score

        ranked = [
            RankedDocument(
                result=result,
                relevance_score=relevance.get(position, 0.0),
                composite_score=score_document(
                    result, relevance.get(position, 0.0), self.weights, now
                ),
                aggregation_index=position,
            )
            for position, result in enumerate(results)
        ]
        ranked.sort(key=lambda doc: doc.composite_score, reverse=True)
        logger.info(
            f"[Rerank] Ranked {len(ranked)} sources in {len(chunks)} chunks "
            f"({len(self.failures)} failed)"
        )
        return ranked
