from __future__ import annotations

import logging
import os
import ssl
from collections.abc import Mapping
from dataclasses import dataclass, field

import aiohttp
import certifi

from domain.errors import SourceUnavailableError
from domain.models import TileCoordinate
from shared.constants import (
    API_KEY_ENV_VAR,
    API_KEY_PARAM,
    API_KEY_VISIBLE_PREFIX_LEN,
    AWS_TERRAIN_BASE,
    HTTP_FORBIDDEN,
    HTTP_OK,
    HTTP_PROBE_TIMEOUT,
    HTTP_UNAUTHORIZED,
    MAX_ZOOM,
    NEXTZEN_TERRAIN_BASE,
    TILE_EXTENSION,
    TILE_SIZE,
    USER_AGENT,
    TileSource,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceSpec:
    """Endpoint template and key/header policy of one tile source."""

    source: TileSource
    base_url: str
    tile_px: int = TILE_SIZE
    max_zoom: int = MAX_ZOOM
    # Send the API key (when known) as a query parameter
    accepts_key: bool = False
    headers: Mapping[str, str] = field(default_factory=dict)

    def tile_path(self, coord: TileCoordinate) -> str:
        """Tile URL without query string (safe to log)."""
        return f'{self.base_url}/{coord.z}/{coord.x}/{coord.y}.{TILE_EXTENSION}'

    def query_params(self, api_key: str | None) -> dict[str, str]:
        if self.accepts_key and api_key:
            return {API_KEY_PARAM: api_key}
        return {}


TILE_SOURCES: dict[TileSource, SourceSpec] = {
    TileSource.NEXTZEN: SourceSpec(
        source=TileSource.NEXTZEN,
        base_url=NEXTZEN_TERRAIN_BASE,
        accepts_key=True,
    ),
    TileSource.AWS: SourceSpec(
        source=TileSource.AWS,
        base_url=AWS_TERRAIN_BASE,
    ),
}


def get_source_spec(source: TileSource | str) -> SourceSpec:
    try:
        return TILE_SOURCES[TileSource(source)]
    except ValueError:
        known = ', '.join(s.value for s in TileSource)
        msg = f'Unknown tile source {source!r}; expected one of: {known}'
        raise ValueError(msg) from None


def resolve_api_key(
    explicit: str | None,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Explicit key wins, then the environment; empty values count as missing."""
    if explicit:
        return explicit
    env = os.environ if environ is None else environ
    return env.get(API_KEY_ENV_VAR) or None


def mask_api_key(api_key: str | None) -> str:
    if not api_key:
        return '<none>'
    return api_key[:API_KEY_VISIBLE_PREFIX_LEN] + '***'


def make_http_session(
    headers: Mapping[str, str] | None = None,
    *,
    limit: int = 0,
) -> aiohttp.ClientSession:
    """Session with certifi CA bundle; `limit` caps open connections (0 = no cap)."""
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context, limit=limit)
    base_headers = {'User-Agent': USER_AGENT}
    if headers:
        base_headers.update(headers)
    return aiohttp.ClientSession(connector=connector, headers=base_headers)


async def validate_tile_source(
    source: TileSource | str,
    api_key: str | None = None,
    *,
    client: aiohttp.ClientSession | None = None,
) -> None:
    """Quick availability check of a tile source (requests tile 0/0/0)."""
    spec = get_source_spec(source)
    path = spec.tile_path(TileCoordinate(0, 0, 0))
    timeout = aiohttp.ClientTimeout(total=HTTP_PROBE_TIMEOUT)
    own_client = client is None
    session = make_http_session(spec.headers) if own_client else client
    try:
        async with session.get(
            path,
            params=spec.query_params(api_key),
            timeout=timeout,
        ) as resp:
            sc = resp.status
            if sc == HTTP_OK:
                return
            if sc in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
                msg = (
                    f'{spec.source.value} rejected API key '
                    f'{mask_api_key(api_key)} (HTTP {sc})'
                )
                raise SourceUnavailableError(msg)
            msg = f'{spec.source.value} answered HTTP {sc} for {path}'
            raise SourceUnavailableError(msg)
    except (TimeoutError, aiohttp.ClientError) as e:
        msg = f'{spec.source.value} is unreachable: {e}'
        raise SourceUnavailableError(msg) from e
    finally:
        if own_client:
            await session.close()
