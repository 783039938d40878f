from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import http_error, make_pool
from monolith.config import settings
from monolith.errors import ConfigurationError, ProviderExhausted
from monolith.services.credentials import (
    CredentialPool,
    FailureKind,
    classify_failure,
    execute_rotated,
)


def test_pool_rejects_empty_and_duplicate_credentials():
    with pytest.raises(ConfigurationError):
        CredentialPool("search", [])
    with pytest.raises(ConfigurationError):
        CredentialPool("search", [" ", ""])
    with pytest.raises(ConfigurationError):
        CredentialPool("search", ["a", "b", "a"])


@pytest.mark.parametrize(
    "exc, kind",
    [
        (http_error(429), FailureKind.RATE_LIMITED),
        (http_error(402), FailureKind.QUOTA_EXCEEDED),
        (http_error(401), FailureKind.UNAUTHORIZED),
        (http_error(403), FailureKind.UNAUTHORIZED),
        (http_error(503), FailureKind.SERVER_ERROR),
        (http_error(400), FailureKind.FATAL),
        (httpx.ConnectError("refused"), FailureKind.TRANSPORT),
        (asyncio.TimeoutError(), FailureKind.TRANSPORT),
        (ValueError("bad payload"), FailureKind.FATAL),
    ],
)
def test_classify_failure(exc, kind):
    assert classify_failure(exc) is kind


@pytest.mark.asyncio
async def test_execute_rotated_returns_first_success_and_records_it():
    pool = make_pool(3)
    seen: list[str] = []

    async def request(api_key: str) -> str:
        seen.append(api_key)
        return f"ok:{api_key}"

    result = await execute_rotated(pool, request)

    assert result == "ok:search-key-0"
    assert seen == ["search-key-0"]
    assert pool.cursor == 0
    assert pool.stats()[0]["successes"] == 1


@pytest.mark.asyncio
async def test_execute_rotated_makes_exactly_pool_size_attempts_then_exhausts():
    pool = make_pool(3)
    seen: list[str] = []

    async def request(api_key: str) -> str:
        seen.append(api_key)
        raise http_error(429)

    with pytest.raises(ProviderExhausted) as excinfo:
        await execute_rotated(pool, request)

    assert seen == ["search-key-0", "search-key-1", "search-key-2"]
    assert excinfo.value.details["attempts"] == 3
    assert excinfo.value.details["last_status"] == 429
    assert excinfo.value.status_code == 503
    # Secrets never leak into the error object.
    assert "search-key" not in str(excinfo.value.to_dict())


@pytest.mark.asyncio
async def test_execute_rotated_rotates_past_failing_credentials():
    pool = make_pool(3)
    seen: list[str] = []

    async def request(api_key: str) -> str:
        seen.append(api_key)
        if api_key != "search-key-2":
            raise http_error(401)
        return "ok"

    assert await execute_rotated(pool, request) == "ok"
    assert seen == ["search-key-0", "search-key-1", "search-key-2"]
    stats = pool.stats()
    assert stats[0]["failures"] == {"unauthorized": 1}
    assert stats[2]["successes"] == 1


@pytest.mark.asyncio
async def test_execute_rotated_propagates_fatal_errors_without_rotating():
    pool = make_pool(3)
    seen: list[str] = []

    async def request(api_key: str) -> str:
        seen.append(api_key)
        raise http_error(400)

    with pytest.raises(httpx.HTTPStatusError):
        await execute_rotated(pool, request)
    assert seen == ["search-key-0"]
    assert pool.cursor == 0


@pytest.mark.asyncio
async def test_execute_rotated_start_offset_spreads_load():
    pool = make_pool(4)
    seen: list[str] = []

    async def request(api_key: str) -> str:
        seen.append(api_key)
        return api_key

    await execute_rotated(pool, request, start_offset=2)
    await execute_rotated(pool, request, start_offset=5)

    assert seen == ["search-key-2", "search-key-1"]


@pytest.mark.asyncio
async def test_cursor_persists_across_calls():
    pool = make_pool(3)
    failing = {"search-key-0"}
    seen: list[str] = []

    async def request(api_key: str) -> str:
        seen.append(api_key)
        if api_key in failing:
            raise http_error(402)
        return api_key

    await execute_rotated(pool, request)
    assert pool.cursor == 1

    await execute_rotated(pool, request)
    assert seen == ["search-key-0", "search-key-1", "search-key-1"]


@pytest.mark.asyncio
async def test_rate_limited_failures_wait_longer_than_other_failures():
    pool = make_pool(3)
    errors = iter([http_error(429), http_error(500)])

    async def request(api_key: str) -> str:
        exc = next(errors, None)
        if exc is not None:
            raise exc
        return "ok"

    sleep = AsyncMock()
    with (
        patch.object(settings, "rotation_delay_seconds", 1.0),
        patch.object(settings, "rate_limit_delay_seconds", 2.0),
        patch("monolith.services.credentials.asyncio.sleep", new=sleep),
    ):
        assert await execute_rotated(pool, request) == "ok"

    assert [call.args[0] for call in sleep.await_args_list] == [2.0, 1.0]


@pytest.mark.asyncio
async def test_no_delay_after_the_last_attempt():
    pool = make_pool(2)

    async def request(api_key: str) -> str:
        raise httpx.ReadTimeout("slow")

    sleep = AsyncMock()
    with patch("monolith.services.credentials.asyncio.sleep", new=sleep):
        with pytest.raises(ProviderExhausted):
            await execute_rotated(pool, request)

    assert sleep.await_count == 1
