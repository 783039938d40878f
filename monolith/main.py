from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from monolith.api.routes import research
from monolith.config import settings
from monolith.errors import ErrorCode, MonolithError
from monolith.services import credentials
from monolith.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    yield
    # Shutdown


app = FastAPI(
    title="Monolith",
    description="Research orchestration engine: planned, rotated web search with grounded synthesis",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(research.router)


@app.exception_handler(MonolithError)
async def monolith_error_handler(request: Request, exc: MonolithError):
    log_service.log_event(
        event_type="request_failed",
        message=exc.message,
        code=exc.code.value,
        path=request.url.path,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log_service.log_event(
        event_type="request_failed",
        message="Unhandled error",
        code=ErrorCode.INTERNAL_ERROR.value,
        error=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error.", "code": ErrorCode.INTERNAL_ERROR.value},
    )


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "monolith"}


@app.get("/api/health/credentials")
async def credential_health():
    """Per-credential success and failure counters, keyed by index."""
    pools = credentials.pools()
    return {"search": pools.search.stats(), "llm": pools.llm.stats()}
