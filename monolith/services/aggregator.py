from __future__ import annotations

from collections import Counter
from typing import Iterable

from monolith.config import settings
from monolith.models.research import LayerOutcome, RawResult
from monolith.tools import web_utils


def aggregate(
    layer_results: Iterable[Iterable[RawResult]],
    *,
    max_per_host: int | None = None,
) -> list[RawResult]:
    """Merge layer outputs into one pool, unique by URL and capped per host.

    Order is preserved: the first occurrence of a URL wins, and once a host
    has `max_per_host` entries its later results are dropped.
    See `web_utils.normalize_url_key` for the URL equivalence rule.
    """
    cap = settings.max_results_per_host if max_per_host is None else max_per_host
    seen: set[str] = set()
    per_host: Counter[str] = Counter()
    merged: list[RawResult] = []

    for results in layer_results:
        for result in results:
            if not web_utils.is_valid_url(result.url):
                continue
            key = web_utils.normalize_url_key(result.url)
            if key in seen:
                continue
            host = web_utils.hostname(result.url)
            if per_host[host] >= cap:
                continue
            seen.add(key)
            per_host[host] += 1
            merged.append(result)
    return merged


def aggregate_outcomes(outcomes: Iterable[LayerOutcome]) -> list[RawResult]:
    return aggregate(outcome.results for outcome in outcomes if outcome.succeeded)
