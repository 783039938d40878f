"""Monolith - Research Orchestrator

Simple CLI for running research queries.
"""

import argparse
import asyncio
import sys

from monolith.agents.orchestrator import ResearchOrchestrator
from monolith.errors import MonolithError
from monolith.models.research import RequestFlags


async def run_research(
    query: str,
    flags: RequestFlags,
    custom_prompt: str | None = None,
    queries: list[str] | None = None,
) -> int:
    """Run research on the given query and print each stage."""
    print(f"Research query: {query}")
    print("-" * 50)

    orchestrator = ResearchOrchestrator()

    try:
        async for event in orchestrator.research(
            query, flags=flags, custom_prompt=custom_prompt, queries=queries
        ):
            event_type = event.event.value
            data = event.data

            if event_type == "plan_created":
                paths = data.get("query_paths", [])
                print(f"\n[*] Search Plan ({len(paths)} paths, depth={data.get('depth_label')}, "
                      f"freshness={data.get('freshness')}):")
                for i, path in enumerate(paths, 1):
                    print(f"  {i}. {path[:80]}")
                applied = [k for k, v in data.get("auto_applied", {}).items() if v]
                if applied:
                    print(f"  Auto-applied: {', '.join(applied)}")
                if data.get("skip_search"):
                    print("  Search skipped")

            elif event_type == "search_result":
                status = "+" if data.get("success") else "!"
                print(f"  [{status}] path {data.get('path')} / {data.get('freshness')}: "
                      f"{data.get('results_count')} results")

            elif event_type == "sources_aggregated":
                print(f"\n[~] {data.get('unique_sources')} unique sources "
                      f"from {data.get('layers_run')} layers ({data.get('layers_failed')} failed)")

            elif event_type == "rerank_completed":
                print(f"[~] Reranked {data.get('ranked')} sources")

            elif event_type == "synthesis_started":
                mode = "offline" if data.get("offline") else f"{data.get('sources_count')} sources"
                print(f"\n[+] Synthesizing with {data.get('model')} ({mode})...")

            elif event_type == "research_complete":
                print(f"\n\n[*] Research Complete!")
                print(f"   Runtime: {data.get('runtime_ms')}ms")
                print(f"   Sources: {len(data.get('sources', []))}")
                print(f"\n{'='*50}")
                print("ANSWER:")
                print(f"{'='*50}")
                print(data.get("answer", ""))
                for source in data.get("sources", []):
                    print(f"  - {source.get('title')} <{source.get('url')}>")
    except MonolithError as e:
        print(f"\n[!] Error ({e.code.value}): {e.message}")
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(description="Monolith Research Orchestrator")
    parser.add_argument("--query", "-q", required=True, help="Research query")
    parser.add_argument("--deep", action="store_true", help="Exhaustive research mode")
    parser.add_argument("--thinking", action="store_true", help="Use the reasoning model")
    parser.add_argument("--no-search", action="store_true",
                        help="Let the planner decide whether to search")
    parser.add_argument("--custom-prompt", help="Extra instructions for the answer")
    parser.add_argument("--query-path", action="append", dest="queries",
                        help="Explicit search query (repeatable); skips the planner")

    args = parser.parse_args()
    flags = RequestFlags(search=not args.no_search, deep=args.deep, thinking=args.thinking)

    sys.exit(asyncio.run(run_research(args.query, flags, args.custom_prompt, args.queries)))


if __name__ == "__main__":
    main()
