"""
Zulu7 — Yahoo Finance Passthrough
──────────────────────────────────
The ticker widgets want Yahoo's raw JSON; we only add a User-Agent the
endpoints accept and a one-minute cache on the chart feed.

  /api/market-data    v8/chart   (cached 60 s, query1 then query2)
  /api/finance-quote  v7/quote   (names / metadata)
  /api/finance-search v1/search  (symbol lookup)
"""

import json
import logging
from typing import Any, Tuple
from urllib.parse import quote

import httpx

from zulu7.cache.ttl_cache import TTLCache
from zulu7.config import YAHOO_UA
from zulu7.errors import UpstreamError

log = logging.getLogger("zulu7.finance")

YAHOO_CHART_URL          = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}?interval=60m&range=5d"
YAHOO_CHART_FALLBACK_URL = "https://query2.finance.yahoo.com/v8/finance/chart/{symbol}?interval=60m&range=5d"
YAHOO_QUOTE_URL          = "https://query1.finance.yahoo.com/v7/finance/quote?symbols={symbol}"
YAHOO_SEARCH_URL         = "https://query2.finance.yahoo.com/v1/finance/search?q={query}"

HEADERS = {
    "User-Agent": YAHOO_UA,
    "Accept": "*/*",
}


async def market_data(client: httpx.AsyncClient, cache: TTLCache, symbol: str) -> Any:
    cached = await cache.get(symbol)
    if cached is not None:
        return cached

    last_error = None
    for url_template in (YAHOO_CHART_URL, YAHOO_CHART_FALLBACK_URL):
        url = url_template.format(symbol=quote(symbol, safe="=^.-"))
        try:
            r = await client.get(url, headers=HEADERS)
            if r.status_code != 200:
                last_error = f"Yahoo Proxy Failed: {r.status_code}"
                log.warning(f"{symbol}: HTTP {r.status_code} from {url[:60]}")
                continue
            data = r.json()
        except httpx.TimeoutException:
            last_error = f"Timeout fetching {symbol}"
            log.warning(last_error)
            continue
        except (httpx.HTTPError, httpx.InvalidURL, json.JSONDecodeError) as e:
            last_error = str(e)
            log.warning(f"Error fetching {symbol}: {e}")
            continue

        await cache.set(symbol, data)
        return data

    raise UpstreamError(last_error or "Yahoo Proxy Failed")


async def _relay(client: httpx.AsyncClient, url: str, label: str) -> Tuple[int, Any]:
    """
    Returns (status, payload). A non-200 from Yahoo is passed back with its
    status and raw body so the widget can decide whether to retry elsewhere.
    """
    try:
        r = await client.get(url, headers=HEADERS)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.error(f"{label} Proxy Error: {e}")
        raise UpstreamError(str(e) or f"{label} request failed")

    if r.status_code != 200:
        log.warning(f"{label} Failed: {r.status_code}")
        return r.status_code, {"error": f"Yahoo {label} Failed: {r.status_code}", "body": r.text}

    try:
        return 200, r.json()
    except json.JSONDecodeError as e:
        raise UpstreamError(f"Invalid JSON from Yahoo {label}: {e}")


async def finance_quote(client: httpx.AsyncClient, symbol: str) -> Tuple[int, Any]:
    return await _relay(client, YAHOO_QUOTE_URL.format(symbol=quote(symbol, safe=",=^.-")), "Quote")


async def finance_search(client: httpx.AsyncClient, query: str) -> Tuple[int, Any]:
    return await _relay(client, YAHOO_SEARCH_URL.format(query=quote(query, safe="")), "Search")
