"""Shared fixtures: fake clocks and an app wired to a mocked upstream."""

import httpx
import pytest

from zulu7.cache.ttl_cache import build_caches
from zulu7.http_client import build_client
from zulu7.server import create_app
from zulu7.store.published import PublishedConfigStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_client():
    def _make(handler):
        return build_client(transport=httpx.MockTransport(handler))
    return _make


@pytest.fixture
def make_app(tmp_path, clock, mock_client):
    """create_app() with upstream traffic answered by `handler`."""
    def _make(handler=None, **kwargs):
        handler = handler or (lambda request: httpx.Response(404))
        kwargs.setdefault("caches", build_caches(clock=clock))
        kwargs.setdefault("store", PublishedConfigStore(tmp_path / "published"))
        kwargs.setdefault("dist_dir", str(tmp_path / "no-dist"))
        kwargs.setdefault("run_jobs", False)
        return create_app(client=mock_client(handler), **kwargs)
    return _make
