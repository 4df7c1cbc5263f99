"""Point elevation lookups.

Two sources: sampling the terrain tile mosaic, or one USGS EPQS request per
point. Points are (lng, lat) in EPSG:4326; missing values come back as None.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING

import aiohttp

from domain.models import BoundingBox, RasterRequestOptions
from elevation.provider import fetch_elevation_raster
from geo.topography import lnglat_to_mercator
from infrastructure.http.client import make_http_session
from shared.constants import (
    CRS_WGS84,
    EPQS_NODATA_VALUE,
    EPQS_URL,
    HTTP_OK,
    POINT_SAMPLE_MARGIN_DEG,
    POINT_SAMPLE_ZOOM,
    WGS84_CODE,
    PointSource,
)
from tiles.executor import run_bounded

if TYPE_CHECKING:
    from collections.abc import Sequence

    from domain.models import MosaicRaster

logger = logging.getLogger(__name__)


def sample_raster(
    raster: MosaicRaster,
    points: Sequence[tuple[float, float]],
) -> list[float | None]:
    """Nearest-cell elevation for each (lng, lat); None outside grid or on no-data."""
    h, w = raster.shape
    inv = ~raster.transform
    values: list[float | None] = []
    for lng, lat in points:
        col_f, row_f = inv * lnglat_to_mercator(lng, lat)
        row, col = math.floor(row_f), math.floor(col_f)
        if not (0 <= row < h and 0 <= col < w):
            values.append(None)
            continue
        v = float(raster.grid[row, col])
        values.append(None if math.isnan(v) else v)
    return values


async def fetch_epqs_elevation(
    client: aiohttp.ClientSession,
    lng: float,
    lat: float,
    *,
    timeout: float,
) -> float | None:
    """Query the USGS Elevation Point Query Service for one point (metres)."""
    params = {
        'x': f'{lng}',
        'y': f'{lat}',
        'wkid': f'{WGS84_CODE}',
        'units': 'Meters',
        'includeDate': 'false',
    }
    try:
        async with client.get(
            EPQS_URL,
            params=params,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            if resp.status != HTTP_OK:
                logger.warning('EPQS HTTP %s for (%s, %s)', resp.status, lng, lat)
                return None
            payload = await resp.json(content_type=None)
    except (TimeoutError, aiohttp.ClientError, ValueError) as e:
        logger.warning('EPQS request failed for (%s, %s): %s', lng, lat, e)
        return None

    try:
        value = float(payload['value'])
    except (KeyError, TypeError, ValueError):
        logger.warning('EPQS returned no value for (%s, %s): %r', lng, lat, payload)
        return None
    if value <= EPQS_NODATA_VALUE:
        return None
    return value


async def fetch_point_elevations(
    points: Sequence[tuple[float, float]],
    *,
    source: PointSource | str = PointSource.TILES,
    zoom: int = POINT_SAMPLE_ZOOM,
    options: RasterRequestOptions | None = None,
    client: aiohttp.ClientSession | None = None,
) -> list[float | None]:
    """
    Elevation (metres) for each (lng, lat) point, in input order.

    With PointSource.TILES one raster covering all points is fetched at zoom
    and sampled; a request-level failure (e.g. all tiles failed) propagates.
    With PointSource.EPQS each point is one request; failed points are None.
    """
    source = PointSource(source)
    points = list(points)
    if not points:
        return []
    options = options or RasterRequestOptions()

    if source == PointSource.TILES:
        bbox = BoundingBox.from_points(points, POINT_SAMPLE_MARGIN_DEG, crs=CRS_WGS84)
        raster = await fetch_elevation_raster(bbox, zoom, options, client=client)
        return sample_raster(raster, points)

    own_client = client is None
    session = make_http_session(options.transport.headers) if own_client else client
    try:

        async def _one(point: tuple[float, float]) -> float | None:
            return await fetch_epqs_elevation(
                session,
                point[0],
                point[1],
                timeout=options.transport.timeout,
            )

        return await run_bounded(points, _one, concurrency=options.concurrency)
    finally:
        if own_client:
            await session.close()


def get_point_elevations(
    points: Sequence[tuple[float, float]],
    *,
    source: PointSource | str = PointSource.TILES,
    zoom: int = POINT_SAMPLE_ZOOM,
    options: RasterRequestOptions | None = None,
) -> list[float | None]:
    """Blocking wrapper around fetch_point_elevations."""
    return asyncio.run(
        fetch_point_elevations(points, source=source, zoom=zoom, options=options),
    )
