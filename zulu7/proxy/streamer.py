"""
Camera streamer pass-through.

The camera widgets talk to a separate streaming server (STREAMER_URL). Its
HTTP API and player scripts are relayed unchanged under the same paths so
the dashboard only ever talks to one origin. The player's signalling
socket (/api/ws) is relayed frame by frame in both directions.
"""

import asyncio
import logging
import re

import httpx
import websockets
from starlette.requests import Request
from starlette.responses import Response
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState
from websockets.exceptions import ConnectionClosed, WebSocketException

from zulu7.config import STREAMER_URL, WS_OPEN_TIMEOUT
from zulu7.proxy.relay import filter_headers, forward_request_headers, stream_upstream

log = logging.getLogger("zulu7.streamer")


async def relay_to_streamer(client: httpx.AsyncClient, request: Request, base_url: str = STREAMER_URL) -> Response:
    target = base_url + request.url.path
    if request.url.query:
        target += "?" + request.url.query

    body = None
    if request.method not in ("GET", "HEAD"):
        body = await request.body()

    upstream_req = client.build_request(
        request.method, target, headers=forward_request_headers(request), content=body
    )
    try:
        upstream = await client.send(upstream_req, stream=True, follow_redirects=False)
    except httpx.HTTPError as e:
        log.error(f"Streamer unreachable at {base_url}: {e}")
        return Response(f"Streamer Error: {e}", status_code=502, media_type="text/plain")

    return stream_upstream(upstream, filter_headers(upstream.headers))


# ── WebSocket ─────────────────────────────────────────────────

def streamer_ws_url(base_url: str, path: str, query: str = "") -> str:
    """http(s)://host → ws(s)://host + path[?query]"""
    target = re.sub(r"^http", "ws", base_url, count=1) + path
    return f"{target}?{query}" if query else target


async def _browser_to_streamer(websocket: WebSocket, upstream) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        if message.get("bytes") is not None:
            await upstream.send(message["bytes"])
        elif message.get("text") is not None:
            await upstream.send(message["text"])


async def _streamer_to_browser(websocket: WebSocket, upstream) -> None:
    async for message in upstream:
        if isinstance(message, bytes):
            await websocket.send_bytes(message)
        else:
            await websocket.send_text(message)


async def relay_websocket(websocket: WebSocket, base_url: str = STREAMER_URL) -> None:
    """
    Accepts the browser only once the streamer has accepted us, then pumps
    frames both ways until either side closes.
    """
    target = streamer_ws_url(base_url, websocket.url.path, websocket.url.query)
    try:
        async with websockets.connect(target, open_timeout=WS_OPEN_TIMEOUT, max_size=None) as upstream:
            await websocket.accept()
            pumps = [
                asyncio.ensure_future(_browser_to_streamer(websocket, upstream)),
                asyncio.ensure_future(_streamer_to_browser(websocket, upstream)),
            ]
            done, pending = await asyncio.wait(pumps, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                try:
                    task.result()
                except (ConnectionClosed, WebSocketDisconnect) as e:
                    log.debug(f"WS relay closed: {e}")
    except (OSError, asyncio.TimeoutError, WebSocketException) as e:
        log.error(f"Streamer WS unreachable at {target}: {e}")
        if websocket.application_state == WebSocketState.CONNECTING:
            await websocket.close(code=1011)
            return

    if (websocket.application_state == WebSocketState.CONNECTED
            and websocket.client_state == WebSocketState.CONNECTED):
        await websocket.close()
