"""
Zulu7 — Shared Outbound HTTP Client
────────────────────────────────────
One keep-alive pool for every upstream call (Yahoo, Drive, RSS, health
probes, the frame proxy). TLS verification is off so self-signed home-lab
services can be probed and proxied.
"""

import logging
from typing import Optional

import httpx

from zulu7.config import (
    POOL_KEEPALIVE_S, POOL_MAX_CONNECTIONS, POOL_MAX_KEEPALIVE, REQUEST_TIMEOUT,
)

log = logging.getLogger("zulu7.http")

HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailer", "trailers", "transfer-encoding", "upgrade",
}


def build_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_S,
        ),
        timeout=REQUEST_TIMEOUT,
        verify=False,
        transport=transport,
    )


def ensure_scheme(url: str, scheme: str = "https") -> str:
    """Prefix `scheme` when the URL has none. An existing scheme is kept, even a non-http one."""
    return url if "://" in url else f"{scheme}://{url}"
