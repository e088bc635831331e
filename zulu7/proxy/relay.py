"""Streams an upstream httpx response back to the browser without buffering it."""

import logging
from typing import AsyncIterator, Iterable, List, Tuple

import httpx
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import StreamingResponse

from zulu7.http_client import HOP_BY_HOP

log = logging.getLogger("zulu7.relay")

# Request headers never forwarded upstream
REQUEST_SKIP = HOP_BY_HOP | {"host", "content-length"}


def forward_request_headers(request: Request, skip: Iterable[str] = ()) -> List[Tuple[str, str]]:
    drop = REQUEST_SKIP | {s.lower() for s in skip}
    return [(k, v) for k, v in request.headers.items() if k.lower() not in drop]


def filter_headers(headers: httpx.Headers, drop: Iterable[str] = ()) -> List[Tuple[str, str]]:
    """Upstream response headers minus hop-by-hop and anything in `drop` (case-insensitive)."""
    dropped = HOP_BY_HOP | {d.lower() for d in drop}
    return [(k, v) for k, v in headers.multi_items() if k.lower() not in dropped]


async def _relay_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    finally:
        # also reached when the browser hangs up mid-stream
        await upstream.aclose()


def stream_upstream(upstream: httpx.Response, headers: List[Tuple[str, str]]) -> StreamingResponse:
    """
    Relay status, the given headers, and the raw (still encoded) body.
    The upstream response is closed once the body is done or abandoned.
    """
    response = StreamingResponse(
        _relay_body(upstream),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose),
    )
    # raw_headers keeps repeated headers such as Set-Cookie intact
    response.raw_headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers]
    return response
