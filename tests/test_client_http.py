import httpx
import pytest

from admission_portal.client.errors import (
    ApiError,
    RateLimitError,
    RequestTimeoutError,
    ServerValidationError,
    TransportError,
)
from conftest import mock_api


def _raising(exc_type):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type("upstream gone", request=request)

    return handler


@pytest.mark.asyncio
@pytest.mark.parametrize("exc_type", [httpx.ReadTimeout, httpx.ConnectTimeout, httpx.PoolTimeout])
async def test_timeouts_map_to_request_timeout_error(exc_type) -> None:
    with pytest.raises(RequestTimeoutError) as exc:
        await mock_api(_raising(exc_type)).list_students({"session": "2024-25"})
    assert "fewer items" in exc.value.message


@pytest.mark.asyncio
@pytest.mark.parametrize("exc_type", [httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError])
async def test_connection_failures_map_to_transport_error(exc_type) -> None:
    with pytest.raises(TransportError) as exc:
        await mock_api(_raising(exc_type)).get_sessions()
    assert not isinstance(exc.value, RequestTimeoutError)
    assert exc.value.message == "Network error. Check your connection and try again."


@pytest.mark.asyncio
async def test_error_statuses_map_to_api_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/sessions"):
            return httpx.Response(503, content=b"<html>down</html>")
        if request.url.path.endswith("/status"):
            return httpx.Response(422, json={"detail": [{"loc": ["body", "status"], "msg": "invalid"}]})
        return httpx.Response(429, json={"detail": "Slow down"}, headers={"Retry-After": "30"})

    api = mock_api(handler)
    with pytest.raises(ApiError) as exc:
        await api.get_sessions()
    assert exc.value.status_code == 503
    assert exc.value.message == "Request failed with status 503"

    with pytest.raises(ServerValidationError) as exc:
        await api.update_status("s1", {"status": "NOPE"})
    assert exc.value.errors == ["status: invalid"]

    with pytest.raises(RateLimitError) as exc:
        await api.get_student("s1")
    assert exc.value.retry_after == 30
