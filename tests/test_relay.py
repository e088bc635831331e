import httpx
import pytest

from zulu7.proxy.relay import filter_headers, stream_upstream


async def _open(mock_client, body: bytes) -> httpx.Response:
    client = mock_client(lambda request: httpx.Response(200, content=body))
    return await client.send(client.build_request("GET", "https://cdn.lan/clip.mp4"), stream=True)


@pytest.mark.asyncio
async def test_upstream_closed_when_browser_hangs_up(mock_client):
    upstream = await _open(mock_client, b"x" * 64)
    body = stream_upstream(upstream, []).body_iterator

    assert await body.__anext__() == b"x" * 64
    # the server stops iterating when the client disconnects
    await body.aclose()
    assert upstream.is_closed


@pytest.mark.asyncio
async def test_upstream_closed_after_full_body(mock_client):
    upstream = await _open(mock_client, b"abc")
    chunks = [chunk async for chunk in stream_upstream(upstream, []).body_iterator]

    assert b"".join(chunks) == b"abc"
    assert upstream.is_closed


def test_filter_headers_drops_hop_by_hop_and_listed():
    headers = httpx.Headers([("Connection", "keep-alive"), ("X-Frame-Options", "DENY"), ("ETag", "v1")])
    assert filter_headers(headers, drop=("x-frame-options",)) == [("etag", "v1")]
