"""
RSS passthrough and page-title scraping.

Both follow redirects and fetch with the Zulu7Bot user agent. Scheme-less
URLs are treated as https.
"""

import logging
import re

import httpx

from zulu7.cache.ttl_cache import TTLCache
from zulu7.config import BOT_UA, RSS_UA
from zulu7.errors import UpstreamError
from zulu7.http_client import ensure_scheme

log = logging.getLogger("zulu7.feeds")

_TITLE_RE = re.compile(r"<title>([^<]*)</title>", re.IGNORECASE)

RSS_HEADERS = {
    "User-Agent": RSS_UA,
    "Accept": "application/rss+xml, application/xml, text/xml, */*",
}


async def fetch_rss(client: httpx.AsyncClient, url: str) -> bytes:
    """Raw feed body; the widget parses the XML itself."""
    target = ensure_scheme(url)
    try:
        r = await client.get(target, headers=RSS_HEADERS, follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.error(f"RSS Fetch Error for {target}: {e}")
        raise UpstreamError(str(e) or "RSS fetch failed")
    if not r.is_success:
        log.warning(f"RSS {target}: HTTP {r.status_code}")
        raise UpstreamError(f"Fetch failed: {r.status_code}")
    return r.content


def extract_title(html: str) -> str:
    match = _TITLE_RE.search(html)
    return match.group(1).strip() if match else ""


async def fetch_title(client: httpx.AsyncClient, cache: TTLCache, url: str) -> str:
    """Page <title>, or "" on any failure. Failures are not cached."""
    cached = await cache.get(url)
    if cached is not None:
        return cached

    try:
        r = await client.get(ensure_scheme(url), headers={"User-Agent": BOT_UA}, follow_redirects=True)
        if not r.is_success:
            raise UpstreamError(f"Fetch failed: {r.status_code}")
        title = extract_title(r.text)
    except (httpx.HTTPError, httpx.InvalidURL, UpstreamError) as e:
        log.warning(f"Fetch Title Error for {url}: {e}")
        return ""

    await cache.set(url, title)
    return title
