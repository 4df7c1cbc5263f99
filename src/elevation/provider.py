"""Elevation raster retrieval: indexing -> fetch -> decode -> mosaic.

Usage:
    options = RasterRequestOptions(source=TileSource.AWS, expand=0.01)
    raster = get_elevation_raster(bbox, zoom=10, options=options)
    raster.grid, raster.transform, raster.failed_tiles
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from dem.builder import mask_negative, merge_tiles
from dem.decoder import decode_tile
from domain.errors import AllTilesFailedError, IncompleteMosaicError, RequestTimeoutError
from domain.models import RasterRequestOptions
from geo.topography import clip_bbox_to_world
from infrastructure.http.client import (
    get_source_spec,
    make_http_session,
    mask_api_key,
    resolve_api_key,
)
from shared.constants import TileSource
from shared.diagnostics import log_request_diagnostics
from tiles.coverage import compute_tiles, normalize_bbox, validate_zoom
from tiles.fetcher import TileFetcher

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import aiohttp

    from domain.models import BoundingBox, MosaicRaster, RawTile

logger = logging.getLogger(__name__)


def _decode_and_merge(
    raw_tiles: list[RawTile],
    bbox: BoundingBox,
    *,
    tile_px: int,
    keep_full_extent: bool,
) -> MosaicRaster:
    # Runs in a worker thread; decoded grids are dropped once merged
    results = [decode_tile(raw, tile_px=tile_px) for raw in raw_tiles]
    return merge_tiles(results, bbox, keep_full_extent=keep_full_extent)


async def fetch_elevation_raster(
    bbox: BoundingBox,
    zoom: int,
    options: RasterRequestOptions | None = None,
    *,
    client: aiohttp.ClientSession | None = None,
    on_progress: Callable[[int], Awaitable[None]] | None = None,
) -> MosaicRaster:
    """
    Retrieve an elevation raster for bbox at zoom.

    The region must already be in EPSG:4326 or EPSG:3857 (see
    geo.projection.reproject_bbox for other CRS).

    Args:
        bbox: Requested region
        zoom: Tile zoom level
        options: Source, margins, concurrency and failure policy
        client: Session to reuse; a private one is opened and closed otherwise
        on_progress: Awaited with 1 after each finished tile

    Returns:
        MosaicRaster in EPSG:3857; failed tiles are NaN holes listed in
        raster.failures

    Raises:
        UnsupportedRegionError, InvalidZoomError, TooManyTilesError: bad request
        AllTilesFailedError: no usable data
        IncompleteMosaicError: tiles failed and options.allow_partial is False
        RequestTimeoutError: options.request_timeout elapsed

    """
    options = options or RasterRequestOptions()
    spec = get_source_spec(options.source)
    validate_zoom(zoom, spec.max_zoom)

    api_key = resolve_api_key(options.api_key)
    if spec.source == TileSource.NEXTZEN and not api_key:
        logger.warning('No API key for %s; requests may be rate limited', spec.source.value)

    # Crop and index the same wrapped box
    bbox = normalize_bbox(bbox)
    region = bbox
    if options.expand > 0:
        region = clip_bbox_to_world(bbox.expanded(options.expand))
    tiles = compute_tiles(
        region,
        zoom,
        max_zoom=spec.max_zoom,
        max_tiles=options.max_tiles,
    )
    logger.info(
        'Elevation raster z=%d: %d tiles from %s (key=%s)',
        zoom,
        len(tiles),
        spec.source.value,
        mask_api_key(api_key),
    )

    own_client = client is None
    session = make_http_session(options.transport.headers) if own_client else client
    try:
        fetcher = TileFetcher(
            session,
            spec.source,
            api_key=api_key,
            transport=options.transport,
            concurrency=options.concurrency,
        )
        fetch = fetcher.fetch_all(tiles, on_progress=on_progress)
        raw_tiles: list[RawTile]
        if options.request_timeout is None:
            raw_tiles = await fetch
        else:
            try:
                raw_tiles = await asyncio.wait_for(fetch, timeout=options.request_timeout)
            except TimeoutError:
                log_request_diagnostics(f'timeout z={zoom}')
                msg = (
                    f'Raster request timed out after {options.request_timeout}s; '
                    f'{len(tiles)} tile fetches cancelled'
                )
                raise RequestTimeoutError(msg) from None
    finally:
        if own_client:
            await session.close()

    try:
        raster = await asyncio.to_thread(
            _decode_and_merge,
            raw_tiles,
            bbox,
            tile_px=spec.tile_px,
            keep_full_extent=options.keep_full_extent,
        )
    except AllTilesFailedError:
        log_request_diagnostics(f'all tiles failed z={zoom}')
        raise
    if options.neg_to_nodata:
        mask_negative(raster)

    for warning in raster.warnings:
        logger.warning('Mosaic gap: %s', warning)
    if raster.failures and not options.allow_partial:
        raise IncompleteMosaicError(raster)
    return raster


def get_elevation_raster(
    bbox: BoundingBox,
    zoom: int,
    options: RasterRequestOptions | None = None,
) -> MosaicRaster:
    """Blocking wrapper around fetch_elevation_raster."""
    return asyncio.run(fetch_elevation_raster(bbox, zoom, options))
