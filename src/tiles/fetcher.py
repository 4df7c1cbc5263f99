from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import aiohttp

from domain.errors import ErrorKind
from domain.models import RawTile, TileCoordinate, TransportConfig
from infrastructure.http.client import get_source_spec
from shared.constants import (
    DOWNLOAD_CONCURRENCY,
    HTTP_5XX_MAX,
    HTTP_5XX_MIN,
    HTTP_FORBIDDEN,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_TOO_MANY_REQUESTS,
    HTTP_UNAUTHORIZED,
    LOG_MEMORY_EVERY_TILES,
    TileSource,
)
from shared.diagnostics import log_memory_usage
from tiles.executor import run_bounded

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)


class TileFetcher:
    """
    Download terrain tiles of one source with bounded concurrency.

    Every tile yields exactly one RawTile; HTTP and network problems are
    recorded on the result instead of being raised.

    Usage:
        fetcher = TileFetcher(session, TileSource.AWS, concurrency=8)
        raw_tiles = await fetcher.fetch_all(coords)
    """

    def __init__(
        self,
        client: aiohttp.ClientSession,
        source: TileSource | str,
        *,
        api_key: str | None = None,
        transport: TransportConfig | None = None,
        concurrency: int = DOWNLOAD_CONCURRENCY,
    ) -> None:
        self.client = client
        self.spec = get_source_spec(source)
        self.api_key = api_key
        self.transport = transport or TransportConfig()
        self.concurrency = max(1, int(concurrency))
        self._fetched = 0

    def _log_request(self, msg: str, *args: object) -> None:
        level = logging.INFO if self.transport.verbose else logging.DEBUG
        logger.log(level, msg, *args)

    async def fetch_tile(self, coord: TileCoordinate) -> RawTile:
        """
        Download one tile, retrying rate limits, 5xx and network errors.

        - 401/403 -> UNAUTHORIZED, 404 -> NOT_FOUND: no retry;
        - 429 -> RATE_LIMITED, 5xx/network -> NETWORK_ERROR after the last attempt;
        - 200 with an empty body -> DECODE_ERROR.
        The API key never appears in logs; the path is logged without query.
        """
        path = self.spec.tile_path(coord)
        params = self.spec.query_params(self.api_key)
        headers = {**self.spec.headers, **self.transport.headers}
        timeout = aiohttp.ClientTimeout(total=self.transport.timeout)
        retries = self.transport.retries

        last_kind = ErrorKind.NETWORK_ERROR
        last_detail = ''
        for attempt in range(retries):
            self._log_request('GET %s (attempt %d/%d)', path, attempt + 1, retries)
            try:
                resp = await self.client.get(
                    path,
                    params=params,
                    headers=headers,
                    timeout=timeout,
                )
                try:
                    sc = resp.status
                    if sc == HTTP_OK:
                        data = await resp.read()
                        if not data:
                            return RawTile(coord, error=ErrorKind.DECODE_ERROR, detail='empty body')
                        return RawTile(coord, data=data)
                    if sc in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
                        return RawTile(coord, error=ErrorKind.UNAUTHORIZED, detail=f'HTTP {sc}')
                    if sc == HTTP_NOT_FOUND:
                        return RawTile(coord, error=ErrorKind.NOT_FOUND, detail=f'HTTP {sc}')
                    if sc == HTTP_TOO_MANY_REQUESTS:
                        last_kind, last_detail = ErrorKind.RATE_LIMITED, f'HTTP {sc}'
                    elif HTTP_5XX_MIN <= sc < HTTP_5XX_MAX:
                        last_kind, last_detail = ErrorKind.NETWORK_ERROR, f'HTTP {sc}'
                    else:
                        return RawTile(
                            coord,
                            error=ErrorKind.NETWORK_ERROR,
                            detail=f'unexpected HTTP {sc}',
                        )
                finally:
                    resp.release()
            except (TimeoutError, aiohttp.ClientError) as e:
                last_kind = ErrorKind.NETWORK_ERROR
                last_detail = f'{type(e).__name__}: {e}' if str(e) else type(e).__name__
            if attempt + 1 < retries:
                await asyncio.sleep(self.transport.backoff * (2**attempt))

        logger.debug('Tile %s failed after %d attempts: %s', coord, retries, last_detail)
        return RawTile(coord, error=last_kind, detail=last_detail)

    async def _counted_fetch(self, coord: TileCoordinate) -> RawTile:
        raw = await self.fetch_tile(coord)
        self._fetched += 1
        if self._fetched % LOG_MEMORY_EVERY_TILES == 0:
            log_memory_usage(f'after {self._fetched} tiles')
        return raw

    async def fetch_all(
        self,
        coords: Iterable[TileCoordinate],
        *,
        on_progress: Callable[[int], Awaitable[None]] | None = None,
    ) -> list[RawTile]:
        """Fetch all tiles concurrently; one RawTile per coordinate."""
        coords = list(coords)
        logger.info(
            'Fetching %d tiles from %s (concurrency=%d)',
            len(coords),
            self.spec.source.value,
            self.concurrency,
        )
        results = await run_bounded(
            coords,
            self._counted_fetch,
            concurrency=self.concurrency,
            progress_step=on_progress,
        )
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning('%d of %d tiles failed to download', failed, len(results))
        return results
