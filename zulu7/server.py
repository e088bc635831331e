"""
Zulu7 — Dashboard Server
─────────────────────────
The dashboard's only backend: a thin proxy/cache in front of the third
party services its widgets use, plus the published-config store and the
compiled UI.

Resources (HTTP pool, caches, config store) are built once in create_app()
and hung off app.state; tests pass in their own.
"""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, Response

from zulu7.cache.redis_client import connect_redis
from zulu7.cache.ttl_cache import Caches, build_caches
from zulu7.config import (
    DIST_DIR, PUBLISHED_DIR, REDIS_URL, STREAMER_PATHS, STREAMER_URL, STREAMER_WS_PATH,
)
from zulu7.errors import BadRequest, UpstreamError, Zulu7Error
from zulu7.fetchers import feeds, finance
from zulu7.fetchers.media_folder import list_media_folder
from zulu7.http_client import build_client
from zulu7.probes.health import PROBE_TYPES, HealthProber
from zulu7.proxy.drive import open_drive_download, playback_headers
from zulu7.proxy.frame_proxy import proxy_request
from zulu7.proxy.relay import stream_upstream
from zulu7.proxy.streamer import relay_to_streamer, relay_websocket
from zulu7.scheduler import start_scheduler, stop_scheduler
from zulu7.store.published import PublishedConfigStore
from zulu7.system import system_load

log = logging.getLogger("zulu7.server")

# Endpoints that answer errors as plain text, like the bytes they normally stream
TEXT_ERROR_PATHS = ("/api/video-proxy", "/api/proxy")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise BadRequest(f"Missing {name}")
    return value


def create_app(
    client: Optional[httpx.AsyncClient] = None,
    caches: Optional[Caches] = None,
    store: Optional[PublishedConfigStore] = None,
    prober: Optional[HealthProber] = None,
    published_dir: str = PUBLISHED_DIR,
    dist_dir: str = DIST_DIR,
    streamer_url: str = STREAMER_URL,
    run_jobs: bool = True,
) -> FastAPI:

    own_client = client is None
    own_caches = caches is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        redis = None
        if own_caches and REDIS_URL:
            redis = await connect_redis(REDIS_URL)
            if redis is not None:
                app.state.caches = build_caches(redis)
        app.state.redis = redis
        if run_jobs:
            start_scheduler(app.state.store)
        yield
        if run_jobs:
            stop_scheduler()
        if own_client:
            await app.state.client.aclose()
        if redis is not None:
            await redis.aclose()

    app = FastAPI(
        title="Zulu7",
        description="Proxy, cache and config store for the Zulu7 dashboard.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.client = client or build_client()
    app.state.caches = caches or build_caches()
    app.state.store  = store or PublishedConfigStore(published_dir)
    app.state.prober = prober or HealthProber(app.state.client)
    app.state.redis  = None

    @app.exception_handler(Zulu7Error)
    async def zulu7_error_handler(request: Request, exc: Zulu7Error):
        if exc.http_status >= 500:
            log.error(f"{request.url.path}: {exc.message}")
        else:
            log.debug(f"{request.url.path}: {exc.message}")
        if request.url.path.startswith(TEXT_ERROR_PATHS):
            return PlainTextResponse(exc.message, status_code=exc.http_status)
        return JSONResponse(exc.to_dict(), status_code=exc.http_status)

    # ── Status ────────────────────────────────────────────────
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "redis": "connected" if app.state.redis else "unavailable (using memory cache)",
            "timestamp": int(time.time()),
        }

    # ── Drive video ───────────────────────────────────────────
    @app.get("/api/video-proxy")
    async def video_proxy(request: Request, id: Optional[str] = None):
        file_id = _require(id, "id")
        try:
            upstream = await open_drive_download(
                app.state.client, file_id, request.headers.get("range")
            )
        except httpx.HTTPError as e:
            log.error(f"Video Proxy Error: {e}")
            raise UpstreamError(str(e) or "Drive request failed")
        return stream_upstream(upstream, playback_headers(upstream))

    # ── Published configs ─────────────────────────────────────
    @app.post("/api/publish")
    async def publish(request: Request):
        try:
            config = await request.json()
        except ValueError:
            raise BadRequest("Invalid JSON body")
        key = app.state.store.publish(config)
        return {"success": True, "key": key, "url": f"/?zulu7={key}"}

    @app.get("/api/config")
    def get_config(config_id: Optional[str] = Query(None, alias="id")):
        return app.state.store.load(config_id)

    # ── Finance ───────────────────────────────────────────────
    @app.get("/api/market-data")
    async def market_data(symbol: Optional[str] = None):
        symbol = _require(symbol, "symbol")
        return await finance.market_data(app.state.client, app.state.caches.market, symbol)

    @app.get("/api/finance-quote")
    async def finance_quote(symbol: Optional[str] = None):
        status, payload = await finance.finance_quote(app.state.client, _require(symbol, "symbol"))
        return JSONResponse(payload, status_code=status)

    @app.get("/api/finance-search")
    async def finance_search(symbol: Optional[str] = None):
        status, payload = await finance.finance_search(app.state.client, _require(symbol, "symbol"))
        return JSONResponse(payload, status_code=status)

    # ── Feeds & scrapers ──────────────────────────────────────
    @app.get("/api/fetch-title")
    async def fetch_title(url: Optional[str] = None):
        title = await feeds.fetch_title(app.state.client, app.state.caches.titles, _require(url, "url"))
        return {"title": title}

    @app.get("/api/media-folder")
    async def media_folder(url: Optional[str] = None):
        files = await list_media_folder(app.state.client, app.state.caches.folders, _require(url, "url"))
        return {"files": files}

    @app.get("/api/rss")
    async def rss(url: Optional[str] = None):
        xml = await feeds.fetch_rss(app.state.client, _require(url, "url"))
        return Response(content=xml, media_type="text/xml")

    # ── Health checks ─────────────────────────────────────────
    @app.get("/api/health-check")
    async def health_check(
        type: Optional[str] = None,
        url: Optional[str] = None,
        port: Optional[str] = None,
        recheck: bool = False,
    ):
        if not type or not url:
            raise BadRequest("Missing parameters")
        if type not in PROBE_TYPES:
            raise BadRequest("Invalid health check type")
        if type == "tcp" and not (port or "").strip().isdigit():
            raise BadRequest("Invalid port")

        prober = app.state.prober
        probe  = prober.probe_with_recheck if recheck else prober.probe
        status = await probe(type, url, port)
        return JSONResponse({"status": status}, headers=NO_CACHE_HEADERS)

    # ── System ────────────────────────────────────────────────
    @app.get("/api/system-load")
    def get_system_load():
        try:
            return system_load()
        except (OSError, AttributeError) as e:
            raise Zulu7Error(f"Load average unavailable: {e}")

    # ── Frame proxy ───────────────────────────────────────────
    @app.api_route("/api/proxy", methods=ALL_METHODS)
    async def frame_proxy(request: Request):
        return await proxy_request(app.state.client, request)

    @app.api_route("/api/proxy/{sub_path:path}", methods=ALL_METHODS)
    async def frame_proxy_sub(request: Request, sub_path: str):
        return await proxy_request(app.state.client, request, sub_path)

    # ── Camera streamer ───────────────────────────────────────
    async def streamer(request: Request):
        return await relay_to_streamer(app.state.client, request, streamer_url)

    for path in STREAMER_PATHS:
        app.add_api_route(path, streamer, methods=ALL_METHODS, include_in_schema=False)
    app.add_api_route("/api/streams/{rest:path}", streamer, methods=ALL_METHODS, include_in_schema=False)

    @app.websocket(STREAMER_WS_PATH)
    async def streamer_ws(websocket: WebSocket):
        await relay_websocket(websocket, streamer_url)

    # ── Compiled UI (SPA) ─────────────────────────────────────
    dist = Path(dist_dir).resolve()
    if dist.is_dir():
        index = dist / "index.html"

        @app.get("/{full_path:path}", include_in_schema=False)
        async def spa(full_path: str):
            candidate = (dist / full_path).resolve()
            if full_path and candidate.is_file() and candidate.is_relative_to(dist):
                return FileResponse(candidate)
            if index.is_file():
                return FileResponse(index)
            return PlainTextResponse("Not Found", status_code=404)
    else:
        log.info(f"No UI build at {dist}, serving API only")

    return app
