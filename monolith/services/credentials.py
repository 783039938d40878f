from __future__ import annotations

import asyncio
import threading
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Sequence, TypeVar

import httpx
import openai

from monolith.config import settings
from monolith.errors import ConfigurationError, ProviderExhausted
from monolith.services.logger import logger

T = TypeVar("T")


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNAUTHORIZED = "unauthorized"
    SERVER_ERROR = "server_error"
    TRANSPORT = "transport"
    FATAL = "fatal"

    @property
    def rotatable(self) -> bool:
        return self is not FailureKind.FATAL


def status_of(exc: BaseException) -> int | None:
    """Return the HTTP status carried by a provider error, if any."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code
    status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def classify_failure(exc: BaseException) -> FailureKind:
    """Decide whether a failed provider call should move on to the next credential."""
    if isinstance(
        exc,
        (httpx.TransportError, openai.APIConnectionError, asyncio.TimeoutError, TimeoutError),
    ):
        return FailureKind.TRANSPORT

    status = status_of(exc)
    if status is None:
        return FailureKind.FATAL
    if status == 429:
        return FailureKind.RATE_LIMITED
    if status == 402:
        return FailureKind.QUOTA_EXCEEDED
    if status in (401, 403):
        return FailureKind.UNAUTHORIZED
    if status >= 500:
        return FailureKind.SERVER_ERROR
    return FailureKind.FATAL


class CredentialPool:
    """Ordered credentials for one provider plus a shared rotation cursor.

    The cursor survives across requests so the next call starts where the
    previous one left off. All mutation goes through `advance` and
    `record_*`, which hold the pool's lock.
    """

    def __init__(self, provider: str, credentials: Sequence[str]):
        cleaned = [c.strip() for c in credentials if c and c.strip()]
        if not cleaned:
            raise ConfigurationError(
                f"No credentials configured for {provider}",
                details={"provider": provider},
            )
        if len(set(cleaned)) != len(cleaned):
            raise ConfigurationError(
                f"Duplicate credentials configured for {provider}",
                details={"provider": provider},
            )
        self.provider = provider
        self._credentials: tuple[str, ...] = tuple(cleaned)
        self._cursor = 0
        self._lock = threading.Lock()
        self._failures: list[Counter[str]] = [Counter() for _ in cleaned]
        self._successes: list[int] = [0 for _ in cleaned]

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def size(self) -> int:
        return len(self._credentials)

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    def credential_at(self, index: int) -> str:
        return self._credentials[index % self.size]

    def start_index(self, offset: int = 0) -> int:
        with self._lock:
            return (self._cursor + offset) % self.size

    def advance(self) -> int:
        """Move the shared cursor one step, wrapping at the pool size."""
        with self._lock:
            self._cursor = (self._cursor + 1) % self.size
            return self._cursor

    def record_failure(self, index: int, kind: FailureKind) -> None:
        with self._lock:
            self._failures[index % self.size][kind.value] += 1

    def record_success(self, index: int) -> None:
        with self._lock:
            self._successes[index % self.size] += 1

    def stats(self) -> list[dict]:
        """Per-credential counters, keyed by index so secrets never leak."""
        with self._lock:
            return [
                {
                    "index": index,
                    "successes": self._successes[index],
                    "failures": dict(self._failures[index]),
                }
                for index in range(self.size)
            ]


def _pacing_delay(kind: FailureKind) -> float:
    if kind is FailureKind.RATE_LIMITED:
        return settings.rate_limit_delay_seconds
    return settings.rotation_delay_seconds


async def execute_rotated(
    pool: CredentialPool,
    request_fn: Callable[[str], Awaitable[T]],
    start_offset: int = 0,
) -> T:
    """Run `request_fn` with successive credentials until one succeeds.

    At most `pool.size` attempts are made. Non-rotatable failures propagate
    immediately; after `pool.size` rotatable failures ProviderExhausted is
    raised.
    """
    start = pool.start_index(start_offset)
    last_status: int | None = None

    for attempt in range(pool.size):
        index = (start + attempt) % pool.size
        try:
            result = await request_fn(pool.credential_at(index))
        except Exception as exc:
            kind = classify_failure(exc)
            if not kind.rotatable:
                raise
            last_status = status_of(exc)
            pool.record_failure(index, kind)
            pool.advance()
            logger.warning(
                f"[{pool.provider}] credential {index} failed ({kind.value}, status={last_status}); "
                f"rotating ({attempt + 1}/{pool.size})"
            )
            if attempt + 1 < pool.size:
                await asyncio.sleep(_pacing_delay(kind))
            continue
        pool.record_success(index)
        return result

    raise ProviderExhausted(pool.provider, pool.size, last_status)


@dataclass
class CredentialPools:
    search: CredentialPool
    llm: CredentialPool

    @classmethod
    def from_settings(cls) -> "CredentialPools":
        return cls(
            search=CredentialPool("search", settings.search_key_list),
            llm=CredentialPool("llm", settings.llm_key_list),
        )


_pools: CredentialPools | None = None


def pools() -> CredentialPools:
    """Get or create the process-wide credential pools."""
    global _pools
    if _pools is None:
        _pools = CredentialPools.from_settings()
    return _pools
