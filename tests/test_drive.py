import httpx
import pytest
from fastapi.testclient import TestClient

from zulu7.errors import DriveInterstitialError, RedirectLimitExceeded
from zulu7.proxy.drive import drive_download_url, open_drive_download

FILE_ID = "1nWJ8D9ULYOM9KwfdZSC8R9bf5joPSiAC"


def redirecting(hops, final=None, seen=None):
    """Redirect `hops` times through relative Locations, then answer with `final`."""
    def handler(request):
        if seen is not None:
            seen.append(request)
        n = int(request.url.params.get("hop", "0"))
        if n < hops:
            return httpx.Response(302, headers={"location": f"/next?hop={n + 1}"})
        if final is not None:
            return final
        return httpx.Response(
            200,
            content=b"\x00\x00\x00\x18ftypmp42",
            headers={
                "content-type": "video/mp4",
                "content-security-policy": "default-src 'none'",
                "x-frame-options": "DENY",
                "strict-transport-security": "max-age=31536000",
                "accept-ranges": "bytes",
            },
        )
    return handler


def test_download_url():
    assert drive_download_url(FILE_ID) == f"https://drive.google.com/uc?export=download&id={FILE_ID}"


@pytest.mark.asyncio
async def test_five_redirects_are_followed(mock_client):
    seen = []
    response = await open_drive_download(mock_client(redirecting(5, seen=seen)), FILE_ID, "bytes=0-99")
    try:
        assert response.status_code == 200
        assert len(seen) == 6
        # relative Locations resolve against the previous hop
        assert all(r.url.host == "drive.google.com" for r in seen)
        assert all(r.headers["range"] == "bytes=0-99" for r in seen)
    finally:
        await response.aclose()


@pytest.mark.asyncio
async def test_sixth_redirect_fails(mock_client):
    with pytest.raises(RedirectLimitExceeded):
        await open_drive_download(mock_client(redirecting(6)), FILE_ID)


@pytest.mark.asyncio
async def test_html_warning_page_fails(mock_client):
    warning = httpx.Response(200, html="<html>Google Drive can't scan this file for viruses</html>")
    with pytest.raises(DriveInterstitialError):
        await open_drive_download(mock_client(redirecting(1, final=warning)), FILE_ID)


def test_endpoint_streams_video_without_blocking_headers(make_app):
    client = TestClient(make_app(redirecting(2)))
    r = client.get("/api/video-proxy", params={"id": FILE_ID}, headers={"Range": "bytes=0-"})

    assert r.status_code == 200
    assert r.content == b"\x00\x00\x00\x18ftypmp42"
    assert r.headers["content-type"] == "video/mp4"
    assert r.headers["accept-ranges"] == "bytes"
    assert r.headers["access-control-allow-origin"] == "*"
    for blocked in ("content-security-policy", "x-frame-options", "strict-transport-security"):
        assert blocked not in r.headers


def test_endpoint_redirect_loop_is_500(make_app):
    r = TestClient(make_app(redirecting(6))).get("/api/video-proxy", params={"id": FILE_ID})
    assert r.status_code == 500
    assert r.text == "Too many redirects"


def test_endpoint_warning_page_is_500(make_app):
    warning = httpx.Response(200, html="<html>virus scan warning</html>")
    r = TestClient(make_app(redirecting(0, final=warning))).get("/api/video-proxy", params={"id": FILE_ID})
    assert r.status_code == 500
    assert "keyless bypass failed" in r.text


def test_endpoint_partial_content_status_is_kept(make_app):
    partial = httpx.Response(206, content=b"abc", headers={"content-type": "video/mp4", "content-range": "bytes 0-2/10"})
    r = TestClient(make_app(redirecting(0, final=partial))).get(
        "/api/video-proxy", params={"id": FILE_ID}, headers={"Range": "bytes=0-2"}
    )
    assert r.status_code == 206
    assert r.headers["content-range"] == "bytes 0-2/10"


def test_endpoint_upstream_error_is_500(make_app):
    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    r = TestClient(make_app(refused)).get("/api/video-proxy", params={"id": FILE_ID})
    assert r.status_code == 500
    assert "connection refused" in r.text


def test_endpoint_requires_id(make_app):
    r = TestClient(make_app()).get("/api/video-proxy")
    assert r.status_code == 400
    assert r.text == "Missing id"
