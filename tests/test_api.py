import httpx
import pytest
from fastapi.testclient import TestClient

from zulu7.probes.health import HealthProber
from zulu7.server import NO_CACHE_HEADERS


def yahoo(request):
    path = request.url.path
    if path.startswith("/v8/finance/chart/"):
        return httpx.Response(200, json={"chart": {"result": [{"meta": {"symbol": path.rsplit("/", 1)[-1]}}]}})
    if path == "/v7/finance/quote":
        if request.url.params["symbols"] == "LOCKED":
            return httpx.Response(401, text="Unauthorized")
        return httpx.Response(200, json={"quoteResponse": {"result": [{"shortName": "Apple Inc."}]}})
    if path == "/v1/finance/search":
        return httpx.Response(200, json={"quotes": [{"symbol": "AAPL"}], "q": request.url.params["q"]})
    return httpx.Response(404)


# ── Status ────────────────────────────────────────────────────

def test_health(make_app):
    r = TestClient(make_app()).get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert "memory" in r.json()["redis"]


def test_cors_allows_any_origin(make_app):
    r = TestClient(make_app()).get("/health", headers={"Origin": "http://dashboard.lan"})
    assert r.headers["access-control-allow-origin"] == "*"


def test_system_load(make_app):
    r = TestClient(make_app()).get("/api/system-load")
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"load1", "load5", "load15", "cores"}
    assert body["load1"].count(".") == 1 and len(body["load1"].split(".")[1]) == 2
    assert body["cores"] >= 1


# ── Finance ───────────────────────────────────────────────────

def test_market_data(make_app):
    r = TestClient(make_app(yahoo)).get("/api/market-data", params={"symbol": "AAPL"})
    assert r.status_code == 200
    assert r.json()["chart"]["result"][0]["meta"]["symbol"] == "AAPL"


def test_market_data_upstream_failure(make_app):
    r = TestClient(make_app(lambda request: httpx.Response(503))).get("/api/market-data", params={"symbol": "AAPL"})
    assert r.status_code == 500
    assert "503" in r.json()["error"]


@pytest.mark.parametrize("path", ["/api/market-data", "/api/finance-quote", "/api/finance-search"])
def test_finance_requires_symbol(make_app, path):
    r = TestClient(make_app(yahoo)).get(path)
    assert r.status_code == 400
    assert r.json() == {"error": "Missing symbol"}


def test_finance_quote(make_app):
    r = TestClient(make_app(yahoo)).get("/api/finance-quote", params={"symbol": "AAPL"})
    assert r.status_code == 200
    assert r.json()["quoteResponse"]["result"][0]["shortName"] == "Apple Inc."


def test_finance_quote_passes_upstream_status_through(make_app):
    r = TestClient(make_app(yahoo)).get("/api/finance-quote", params={"symbol": "LOCKED"})
    assert r.status_code == 401
    assert r.json() == {"error": "Yahoo Quote Failed: 401", "body": "Unauthorized"}


def test_finance_search_encodes_query(make_app):
    r = TestClient(make_app(yahoo)).get("/api/finance-search", params={"symbol": "S&P 500"})
    assert r.status_code == 200
    assert r.json()["q"] == "S&P 500"


# ── Feeds & titles ────────────────────────────────────────────

def test_rss_passthrough(make_app):
    feed = b"<?xml version='1.0'?><rss><channel><title>News</title></channel></rss>"
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, content=feed, headers={"content-type": "application/rss+xml"})

    r = TestClient(make_app(handler)).get("/api/rss", params={"url": "news.example.com/feed"})
    assert r.status_code == 200
    assert r.content == feed
    assert r.headers["content-type"].startswith("text/xml")
    assert str(seen[0].url) == "https://news.example.com/feed"


def test_rss_upstream_failure(make_app):
    r = TestClient(make_app(lambda request: httpx.Response(404))).get("/api/rss", params={"url": "https://x.lan/rss"})
    assert r.status_code == 500
    assert r.json() == {"error": "Fetch failed: 404"}


def test_fetch_title(make_app):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, html="<html><head><TITLE> Grafana </TITLE></head></html>")

    client = TestClient(make_app(handler))
    assert client.get("/api/fetch-title", params={"url": "grafana.lan"}).json() == {"title": "Grafana"}
    assert client.get("/api/fetch-title", params={"url": "grafana.lan"}).json() == {"title": "Grafana"}
    assert len(calls) == 1
    assert "Zulu7Bot" in calls[0].headers["user-agent"]


def test_fetch_title_failure_is_empty(make_app):
    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    r = TestClient(make_app(refused)).get("/api/fetch-title", params={"url": "down.lan"})
    assert r.status_code == 200
    assert r.json() == {"title": ""}


# ── Health checks ─────────────────────────────────────────────

def _probing_app(make_app, handler):
    app = make_app(handler)
    app.state.prober = HealthProber(app.state.client, recheck_delay=0)
    return app


def test_health_check_http(make_app):
    client = TestClient(_probing_app(make_app, lambda request: httpx.Response(403)))
    r = client.get("/api/health-check", params={"type": "https", "url": "nas.lan"})

    assert r.status_code == 200
    assert r.json() == {"status": "up"}
    for key, value in NO_CACHE_HEADERS.items():
        assert r.headers[key] == value


def test_health_check_down(make_app):
    client = TestClient(_probing_app(make_app, lambda request: httpx.Response(502)))
    r = client.get("/api/health-check", params={"type": "http", "url": "nas.lan", "port": "8080"})
    assert r.json() == {"status": "down"}


def test_health_check_recheck(make_app):
    codes = iter([503, 200])
    client = TestClient(_probing_app(make_app, lambda request: httpx.Response(next(codes))))
    r = client.get("/api/health-check", params={"type": "http", "url": "nas.lan", "recheck": "1"})
    assert r.json() == {"status": "up"}


@pytest.mark.parametrize("params,error", [
    ({"url": "nas.lan"}, "Missing parameters"),
    ({"type": "http"}, "Missing parameters"),
    ({"type": "udp", "url": "nas.lan"}, "Invalid health check type"),
    ({"type": "tcp", "url": "nas.lan"}, "Invalid port"),
    ({"type": "tcp", "url": "nas.lan", "port": "22; rm -rf /"}, "Invalid port"),
])
def test_health_check_bad_requests(make_app, params, error):
    r = TestClient(make_app()).get("/api/health-check", params=params)
    assert r.status_code == 400
    assert r.json() == {"error": error}


# ── Compiled UI ───────────────────────────────────────────────

def test_spa_serves_files_and_falls_back_to_index(make_app, tmp_path):
    dist = tmp_path / "dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "index.html").write_text("<div id=app></div>")
    (dist / "assets" / "main.js").write_text("console.log(1)")
    (tmp_path / "secret.txt").write_text("nope")

    client = TestClient(make_app(dist_dir=str(dist)))
    assert client.get("/assets/main.js").text == "console.log(1)"
    assert client.get("/workspace/2").text == "<div id=app></div>"
    assert client.get("/").text == "<div id=app></div>"
    assert "nope" not in client.get("/..%2Fsecret.txt").text
    # API routes still win over the catch-all
    assert client.get("/health").json()["status"] == "healthy"


def test_no_spa_without_build(make_app):
    assert TestClient(make_app()).get("/some/page").status_code == 404
