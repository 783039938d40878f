from __future__ import annotations

import asyncio
from collections import defaultdict

from monolith.config import settings
from monolith.errors import SearchLayerFailure
from monolith.models.events import SSEEvent
from monolith.models.research import (
    DepthLabel,
    Freshness,
    LayerOutcome,
    SearchLayer,
    SearchPlan,
)
from monolith.services import streaming
from monolith.services.credentials import CredentialPool, execute_rotated
from monolith.services.logger import logger
from monolith.tools.search_provider import SearchProvider


def derive_layers(plan: SearchPlan, *, deep: bool) -> list[SearchLayer]:
    """Expand a plan into (query path x freshness) layers.

    Per path: the plan's freshness when it is not `all`, an `hour` layer
    when requested and not already covered, and an `all` layer for the
    primary path, in deep mode, or when the plan's freshness is `all`.
    """
    layers: list[SearchLayer] = []
    for path_index, query_path in enumerate(plan.query_paths):
        freshness_set: list[Freshness] = []
        if plan.freshness is not Freshness.ALL:
            freshness_set.append(plan.freshness)
        if plan.use_hour_layer and Freshness.HOUR not in freshness_set:
            freshness_set.append(Freshness.HOUR)
        if path_index == 0 or deep or plan.freshness is Freshness.ALL:
            freshness_set.append(Freshness.ALL)

        for freshness in freshness_set:
            layers.append(
                SearchLayer(
                    query_path=query_path,
                    freshness=freshness,
                    layer_index=len(layers),
                    path_index=path_index,
                )
            )
    return layers


def results_per_call(depth: DepthLabel) -> int:
    counts = settings.depth_result_counts
    return max(int(counts.get(depth.value, counts.get("standard", 20))), 1)


async def run_layered_search(
    plan: SearchPlan,
    *,
    deep: bool,
    pool: CredentialPool,
    provider: SearchProvider,
) -> tuple[list[LayerOutcome], list[SSEEvent]]:
    """Run every layer of the plan and collect outcomes in completion order.

    Paths run concurrently, each starting at its own credential offset.
    Layers of one path run in sequence with a short pacing gap. Failed
    layers are recorded and logged; this function never raises.
    """
    if plan.skip_search:
        return [], []

    layers = derive_layers(plan, deep=deep)
    count = results_per_call(plan.depth_label)
    pacing = max(float(settings.layer_pacing_seconds), 0.0)
    semaphore = asyncio.Semaphore(max(min(settings.search_max_parallel_requests, pool.size), 1))

    by_path: dict[int, list[SearchLayer]] = defaultdict(list)
    for layer in layers:
        by_path[layer.path_index].append(layer)

    outcomes: list[LayerOutcome] = []
    events: list[SSEEvent] = []

    async def run_layer(layer: SearchLayer) -> LayerOutcome:
        try:
            async with semaphore:
                results = await execute_rotated(
                    pool,
                    lambda api_key: provider.search(
                        api_key,
                        layer.query_path,
                        freshness=layer.freshness,
                        count=count,
                    ),
                    start_offset=layer.path_index,
                )
        except Exception as exc:
            failure = SearchLayerFailure(
                f"Search layer {layer.layer_index} [{layer.freshness.value}] failed: {exc}",
                details={"layer": layer.layer_index, "error": type(exc).__name__},
            )
            logger.warning(
                f"[Search] Layer {layer.layer_index + 1}/{len(layers)} "
                f"[{layer.freshness.value}] {layer.query_path!r} failed, proceeding: {exc}"
            )
            return LayerOutcome(layer=layer, error=failure)
        return LayerOutcome(layer=layer, results=list(results))

    async def run_path(path_layers: list[SearchLayer]) -> None:
        for position, layer in enumerate(path_layers):
            if position > 0 and pacing:
                await asyncio.sleep(pacing)
            logger.info(
                f"[Search] Fetching layer {layer.layer_index + 1}/{len(layers)}: "
                f"[{layer.freshness.value}] {layer.query_path}"
            )
            outcome = await run_layer(layer)
            outcomes.append(outcome)
            events.append(streaming.search_result(outcome))

    await asyncio.gather(*(run_path(path_layers) for path_layers in by_path.values()))

    failed = sum(1 for outcome in outcomes if not outcome.succeeded)
    logger.info(
        f"[Search] {len(outcomes) - failed}/{len(outcomes)} layers succeeded "
        f"across {len(by_path)} query paths"
    )
    return outcomes, events
