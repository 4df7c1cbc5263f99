"""Pytest configuration and fixtures for elevation tile tests."""

import asyncio
import re
import sys
from functools import lru_cache
from pathlib import Path

import numpy as np
import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from rasterio.io import MemoryFile  # noqa: E402

TILE_URL_RE = re.compile(r'/(\d+)/(\d+)/(\d+)\.tif$')


def geotiff_bytes(arr, nodata=None):
    """Encode a 2-D array as a single-band GeoTIFF in memory."""
    arr = np.asarray(arr)
    with MemoryFile() as memfile:
        with memfile.open(
            driver='GTiff',
            height=arr.shape[0],
            width=arr.shape[1],
            count=1,
            dtype=arr.dtype.name,
            nodata=nodata,
        ) as ds:
            ds.write(arr, 1)
        return memfile.read()


@lru_cache(maxsize=64)
def constant_tile(value, size=512):
    """GeoTIFF tile filled with one elevation value (cached, tiles are large)."""
    return geotiff_bytes(np.full((size, size), value, dtype=np.float32))


def parse_tile_url(url):
    """(z, x, y) from a tile URL."""
    m = TILE_URL_RE.search(url)
    assert m, url
    return tuple(int(v) for v in m.groups())


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(self, status=200, body=b'', payload=None):
        self.status = status
        self.body = body
        self.payload = payload
        self.released = False

    async def read(self):
        return self.body

    async def json(self, content_type=None):
        return self.payload

    def release(self):
        self.released = True


class _RequestContext:
    """Awaitable and async context manager, like aiohttp's request object."""

    def __init__(self, coro):
        self._coro = coro
        self._resp = None

    def __await__(self):
        return self._coro.__await__()

    async def __aenter__(self):
        self._resp = await self._coro
        return self._resp

    async def __aexit__(self, *exc):
        self._resp.release()


class FakeClient:
    """
    Stand-in for aiohttp.ClientSession.

    handler(url, params) returns a FakeResponse or an exception instance to
    raise. Tracks calls and the peak number of concurrent requests.
    """

    def __init__(self, handler, delay=0.0):
        self.handler = handler
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': dict(params or {}), 'headers': headers})
        return _RequestContext(self._get(url, params or {}))

    async def _get(self, url, params):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            result = self.handler(url, params)
            if isinstance(result, BaseException):
                raise result
            return result
        finally:
            self.in_flight -= 1

    async def close(self):
        self.closed = True


def tile_handler(values=None, statuses=None, default=100.0):
    """
    Handler serving constant tiles.

    values: {(z, x, y): elevation}; statuses: {(z, x, y): status or exception}.
    """
    values = values or {}
    statuses = statuses or {}

    def handler(url, params):
        key = parse_tile_url(url)
        override = statuses.get(key)
        if isinstance(override, BaseException):
            return override
        if override is not None:
            return FakeResponse(status=override)
        return FakeResponse(body=constant_tile(values.get(key, default)))

    return handler


@pytest.fixture
def make_geotiff():
    return geotiff_bytes


@pytest.fixture
def fake_client():
    """Factory: fake_client(handler, delay=0.0) -> FakeClient."""
    return FakeClient


@pytest.fixture
def serve_tiles():
    """Factory: serve_tiles(values=None, statuses=None, default=100.0) -> FakeClient."""

    def _make(values=None, statuses=None, default=100.0, delay=0.0):
        return FakeClient(tile_handler(values, statuses, default), delay=delay)

    return _make


@pytest.fixture
def fast_transport():
    from domain.models import TransportConfig

    return TransportConfig(timeout=5.0, retries=2, backoff=0.0)
