from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    PLAN_CREATED = "plan_created"
    SEARCH_RESULT = "search_result"
    SOURCES_AGGREGATED = "sources_aggregated"
    RERANK_COMPLETED = "rerank_completed"
    SYNTHESIS_STARTED = "synthesis_started"
    RESEARCH_COMPLETE = "research_complete"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> dict[str, str]:
        """Payload shape accepted by sse-starlette's EventSourceResponse."""
        return {"event": self.event.value, "data": json.dumps(self.data)}
