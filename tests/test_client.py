import httpx
import pytest
import respx

from swipefeed.services.client import UpstreamClient
from swipefeed.services.errors import (
    UpstreamBadRequestError,
    UpstreamHTTPError,
    UpstreamParseError,
    UpstreamTimeoutError,
)

URL = "https://upstream.example.com/items"


@pytest.mark.asyncio
async def test_json_body(upstream_client):
    async with respx.mock() as router:
        router.get(URL).mock(return_value=httpx.Response(200, json={"ok": True}))
        assert await upstream_client.get_json("svc", URL) == {"ok": True}


@pytest.mark.asyncio
async def test_invalid_json_is_parse_error(upstream_client):
    async with respx.mock() as router:
        router.get(URL).mock(return_value=httpx.Response(200, text="<html>"))
        with pytest.raises(UpstreamParseError):
            await upstream_client.get_json("svc", URL)


@pytest.mark.asyncio
async def test_server_error_keeps_status(upstream_client):
    async with respx.mock() as router:
        router.get(URL).mock(return_value=httpx.Response(503, text="down"))
        with pytest.raises(UpstreamHTTPError) as exc:
            await upstream_client.get_text("svc", URL)
    assert exc.value.status_code == 503
    assert not isinstance(exc.value, UpstreamBadRequestError)


@pytest.mark.asyncio
async def test_bad_request_default_message(upstream_client):
    async with respx.mock() as router:
        router.get(URL).mock(return_value=httpx.Response(400, text="nope"))
        with pytest.raises(UpstreamBadRequestError) as exc:
            await upstream_client.get_text("svc", URL)
    assert exc.value.upstream_message == "check API credentials"


@pytest.mark.asyncio
async def test_extractor_failure_does_not_mask_bad_request(upstream_client):
    def broken(response):
        raise KeyError("message")

    async with respx.mock() as router:
        router.get(URL).mock(return_value=httpx.Response(400, text="nope"))
        with pytest.raises(UpstreamBadRequestError):
            await upstream_client.get_text("svc", URL, error_message=broken)


@pytest.mark.asyncio
async def test_timeout(upstream_client):
    async with respx.mock() as router:
        router.get(URL).mock(side_effect=httpx.ConnectTimeout("slow"))
        with pytest.raises(UpstreamTimeoutError) as exc:
            await upstream_client.get_text("svc", URL, timeout=0.5)
    assert exc.value.timeout == 0.5
    assert exc.value.service_id == "svc"


@pytest.mark.asyncio
async def test_transport_error(upstream_client):
    async with respx.mock() as router:
        router.get(URL).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(UpstreamHTTPError) as exc:
            await upstream_client.get_text("svc", URL)
    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_injected_client_not_closed():
    http_client = httpx.AsyncClient()
    async with UpstreamClient(http_client=http_client):
        pass
    assert http_client.is_closed is False
    await http_client.aclose()
