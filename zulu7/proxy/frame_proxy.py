"""
Zulu7 — Frame Proxy
────────────────────
/api/proxy?url=<page>          (any method)
/api/proxy/<sub-path>          (sub-resources of a proxied page)

Lets the iframe widget embed sites that refuse to be framed.
The page is fetched server side and its anti-framing headers are removed:

  X-Frame-Options             dropped
  Content-Security-Policy     frame-ancestors / frame-src directives removed,
                              every other directive kept
  X-Content-Security-Policy   dropped (legacy duplicate)
  X-Webkit-CSP                dropped (legacy duplicate)
  Access-Control-Allow-Origin forced to *

Relative sub-resources of a proxied page arrive without ?url=. Their
Referer is the proxied page's own /api/proxy?url=… address, so the target
origin is recovered from it and the request path is resolved against it.
"""

import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import parse_qs, urljoin, urlsplit

import httpx
from starlette.requests import Request
from starlette.responses import Response

from zulu7.errors import BadRequest
from zulu7.http_client import ensure_scheme
from zulu7.proxy.relay import filter_headers, forward_request_headers, stream_upstream

log = logging.getLogger("zulu7.frame_proxy")

FRAMING_HEADERS = (
    "x-frame-options",
    "x-content-security-policy",
    "x-webkit-csp",
    "access-control-allow-origin",
)

_FRAME_DIRECTIVE = re.compile(r"^\s*(frame-ancestors|frame-src)(\s|$)", re.IGNORECASE)


def strip_frame_directives(csp: str) -> str:
    kept = [d.strip() for d in csp.split(";") if d.strip() and not _FRAME_DIRECTIVE.match(d)]
    return "; ".join(kept)


def rewrite_response_headers(headers: httpx.Headers) -> List[Tuple[str, str]]:
    out = []
    for key, value in filter_headers(headers, drop=FRAMING_HEADERS):
        if key.lower() == "content-security-policy":
            value = strip_frame_directives(value)
            if not value:
                continue
        out.append((key, value))
    out.append(("access-control-allow-origin", "*"))
    return out


def resolve_target(url_param: Optional[str], referer: Optional[str], path_qs: str = "/") -> Optional[str]:
    """Explicit ?url= wins; otherwise fall back to the Referer's own ?url=."""
    if url_param:
        return ensure_scheme(url_param)
    if not referer:
        return None

    try:
        ref_target = parse_qs(urlsplit(referer).query).get("url", [None])[0]
        if not ref_target:
            return None
        base = urlsplit(ensure_scheme(ref_target))
    except ValueError:
        return None
    if not base.netloc:
        return None
    return urljoin(f"{base.scheme}://{base.netloc}", path_qs or "/")


def parse_target(target: str) -> httpx.URL:
    try:
        url = httpx.URL(target)
    except (httpx.InvalidURL, ValueError):
        raise BadRequest("Invalid URL")
    if url.scheme not in ("http", "https") or not url.host:
        raise BadRequest("Invalid URL")
    return url


async def open_upstream(client: httpx.AsyncClient, request: Request, target: httpx.URL) -> httpx.Response:
    origin  = f"{target.scheme}://{target.netloc.decode('ascii')}"
    headers = forward_request_headers(request, skip=("referer", "origin"))
    headers += [("Referer", origin), ("Origin", origin)]

    body = None
    if request.method not in ("GET", "HEAD"):
        body = await request.body()

    upstream_req = client.build_request(request.method, target, headers=headers, content=body)
    return await client.send(upstream_req, stream=True, follow_redirects=False)


async def proxy_request(client: httpx.AsyncClient, request: Request, sub_path: str = "") -> Response:
    path_qs = "/" + sub_path.lstrip("/")
    if request.url.query:
        path_qs += "?" + request.url.query

    target = resolve_target(
        request.query_params.get("url"),
        request.headers.get("referer"),
        path_qs,
    )
    if not target:
        raise BadRequest("Missing url parameter")
    url = parse_target(target)

    try:
        upstream = await open_upstream(client, request, url)
    except httpx.HTTPError as e:
        log.error(f"Proxy Error for {url}: {e}")
        return Response(f"Proxy Error: {e}", status_code=500, media_type="text/plain")

    log.debug(f"{request.method} {url} -> {upstream.status_code}")
    return stream_upstream(upstream, rewrite_response_headers(upstream.headers))
