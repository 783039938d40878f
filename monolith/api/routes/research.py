from __future__ import annotations

from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse

from monolith.agents.orchestrator import ResearchOrchestrator
from monolith.errors import ErrorCode, InvalidRequest, MonolithError
from monolith.models.schemas import ErrorResponse, OrchestrationResponse, ResearchRequest
from monolith.services import logger as log_service
from monolith.services import streaming

router = APIRouter(prefix="/api/research", tags=["research"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post("", response_model=OrchestrationResponse, responses=ERROR_RESPONSES)
async def run_research(request: ResearchRequest):
    """Plan, search, rank and answer one query. Returns the full result as JSON."""
    orchestrator = ResearchOrchestrator()
    result = await orchestrator.run(
        request.query,
        history=request.history_dicts(),
        flags=request.flags(),
        custom_prompt=request.custom_prompt,
        queries=request.queries,
    )
    return OrchestrationResponse.model_validate(result.to_dict())


@router.post("/stream", responses=ERROR_RESPONSES)
async def stream_research(request: ResearchRequest):
    """SSE endpoint that streams stage events and ends with research_complete or error."""
    if not request.query.strip():
        raise InvalidRequest("A non-empty query is required.")

    async def event_generator():
        orchestrator = ResearchOrchestrator()
        try:
            async for event in orchestrator.research(
                request.query,
                history=request.history_dicts(),
                flags=request.flags(),
                custom_prompt=request.custom_prompt,
                queries=request.queries,
            ):
                yield event.to_sse()
        except MonolithError as e:
            log_service.log_event(
                event_type="stream_error",
                message=e.message,
                code=e.code.value,
                request_id=orchestrator.request_id,
            )
            yield streaming.error(e.message, code=e.code.value).to_sse()
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in research stream",
                error=str(e),
                request_id=orchestrator.request_id,
            )
            yield streaming.error(
                "Research stream failed unexpectedly.", code=ErrorCode.INTERNAL_ERROR.value
            ).to_sse()

    return EventSourceResponse(event_generator())
