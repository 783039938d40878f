"""
Error taxonomy for the research engine.

Fatal errors (InvalidRequest, PlanningFailure, SynthesisFailure,
ProviderExhausted when it escapes, ConfigurationError) surface to the caller
as a single error object built from `to_dict()`. SearchLayerFailure and
RerankChunkFailure are local: they are recorded and logged by the component
that owns them and never raised past it.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INVALID_REQUEST = "invalid_request"
    PLANNING_FAILED = "planning_failed"
    SEARCH_LAYER_FAILED = "search_layer_failed"
    RERANK_CHUNK_FAILED = "rerank_chunk_failed"
    SYNTHESIS_FAILED = "synthesis_failed"
    PROVIDER_EXHAUSTED = "provider_exhausted"
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class MonolithError(Exception):
    """Base exception carrying a code, an HTTP status and optional details."""

    code: ErrorCode = ErrorCode.INVALID_REQUEST
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "error": self.message,
            "code": self.code.value,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidRequest(MonolithError):
    code = ErrorCode.INVALID_REQUEST
    status_code = 400


class ConfigurationError(MonolithError):
    code = ErrorCode.CONFIGURATION_ERROR
    status_code = 500


class ProviderExhausted(MonolithError):
    """Every credential in a pool failed with a rotatable error."""

    code = ErrorCode.PROVIDER_EXHAUSTED
    status_code = 503

    def __init__(self, provider: str, attempts: int, last_status: Optional[int] = None):
        self.provider = provider
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"All {attempts} {provider} credentials are exhausted or the provider is unavailable.",
            details={"provider": provider, "attempts": attempts, "last_status": last_status},
        )


class PlanningFailure(MonolithError):
    code = ErrorCode.PLANNING_FAILED
    status_code = 502


class SynthesisFailure(MonolithError):
    code = ErrorCode.SYNTHESIS_FAILED
    status_code = 502


class SearchLayerFailure(MonolithError):
    code = ErrorCode.SEARCH_LAYER_FAILED
    status_code = 502


class RerankChunkFailure(MonolithError):
    code = ErrorCode.RERANK_CHUNK_FAILED
    status_code = 502
