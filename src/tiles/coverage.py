"""Tile coverage calculation: which XYZ tiles cover a bounding box."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from domain.errors import InvalidZoomError, TooManyTilesError, UnsupportedRegionError
from domain.models import BoundingBox, TileCoordinate
from geo.topography import lnglat_to_normalized, mercator_to_normalized
from shared.constants import (
    CRS_WEB_MERCATOR,
    CRS_WGS84,
    MAX_ZOOM,
    WORLD_HALF_SIZE_M,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
    WORLD_SIZE_M,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TileCoverage:
    """Inclusive tile index ranges covering a region at one zoom."""

    zoom: int
    x_min: int
    x_max: int
    y_min: int
    y_max: int

    @property
    def tiles_x(self) -> int:
        return self.x_max - self.x_min + 1

    @property
    def tiles_y(self) -> int:
        return self.y_max - self.y_min + 1

    @property
    def count(self) -> int:
        return self.tiles_x * self.tiles_y

    @property
    def tiles(self) -> list[TileCoordinate]:
        """Tiles in row-major order (north to south, west to east)."""
        return [
            TileCoordinate(self.zoom, x, y)
            for y in range(self.y_min, self.y_max + 1)
            for x in range(self.x_min, self.x_max + 1)
        ]


def validate_zoom(zoom: int, max_zoom: int = MAX_ZOOM) -> int:
    if isinstance(zoom, bool) or not isinstance(zoom, int):
        msg = f'Zoom must be an integer, got {zoom!r}'
        raise InvalidZoomError(msg)
    if not (0 <= zoom <= max_zoom):
        msg = f'Zoom {zoom} outside supported range 0..{max_zoom}'
        raise InvalidZoomError(msg)
    return zoom


def _x_span(crs: str) -> tuple[float, float]:
    if crs == CRS_WGS84:
        return WORLD_LNG_HALF_SPAN_DEG, WORLD_LNG_SPAN_DEG
    if crs == CRS_WEB_MERCATOR:
        return WORLD_HALF_SIZE_M, WORLD_SIZE_M
    msg = (
        f'Region CRS {crs} is not supported; reproject to '
        f'{CRS_WGS84} or {CRS_WEB_MERCATOR} first'
    )
    raise UnsupportedRegionError(msg)


def _wrap(value: float, half_span: float, span: float) -> float:
    if value > half_span:
        return value - span
    if value < -half_span:
        return value + span
    return value


def normalize_bbox(bbox: BoundingBox) -> BoundingBox:
    """
    Bring bbox x values into the world by wrapping each one once.

    Returns bbox itself when nothing needed wrapping. A box that ends up with
    min_x >= max_x crosses the anti-meridian and is rejected, as is any CRS
    other than EPSG:4326 / EPSG:3857.
    """
    half, span = _x_span(bbox.crs)
    min_x = _wrap(bbox.min_x, half, span)
    max_x = _wrap(bbox.max_x, half, span)
    if min_x >= max_x:
        msg = f'Region {bbox.as_tuple()} crosses the anti-meridian'
        raise UnsupportedRegionError(msg)
    if (min_x, max_x) == (bbox.min_x, bbox.max_x):
        return bbox
    return bbox.model_copy(update={'min_x': min_x, 'max_x': max_x})


def normalized_extent(bbox: BoundingBox) -> tuple[float, float, float, float]:
    """
    Project bbox into normalized tiling space.

    Returns (west, north, east, south); y grows southwards. X values are
    wrapped first (see normalize_bbox).
    """
    bbox = normalize_bbox(bbox)
    to_norm = lnglat_to_normalized if bbox.crs == CRS_WGS84 else mercator_to_normalized
    west, south = to_norm(bbox.min_x, bbox.min_y)
    east, north = to_norm(bbox.max_x, bbox.max_y)
    return west, north, east, south


def _index_range(lo: float, hi: float, n: int) -> tuple[int, int]:
    # Closed interval: an edge lying exactly on a tile border pulls in both neighbours
    first = math.ceil(lo * n) - 1
    last = math.floor(hi * n)
    return max(0, min(n - 1, first)), max(0, min(n - 1, last))


def compute_coverage(bbox: BoundingBox, zoom: int, *, max_zoom: int = MAX_ZOOM) -> TileCoverage:
    """Compute the inclusive tile index ranges covering bbox at zoom."""
    validate_zoom(zoom, max_zoom)
    west, north, east, south = normalized_extent(bbox)
    n = 2**zoom
    x_min, x_max = _index_range(west, east, n)
    y_min, y_max = _index_range(north, south, n)
    return TileCoverage(zoom=zoom, x_min=x_min, x_max=x_max, y_min=y_min, y_max=y_max)


def compute_tiles(
    bbox: BoundingBox,
    zoom: int,
    *,
    max_zoom: int = MAX_ZOOM,
    max_tiles: int | None = None,
) -> list[TileCoordinate]:
    """
    List the tiles covering bbox at zoom.

    Args:
        bbox: Region in EPSG:4326 or EPSG:3857
        zoom: Zoom level
        max_zoom: Highest zoom the source serves
        max_tiles: Refuse regions needing more tiles than this

    Returns:
        Unique tile coordinates, row-major

    """
    coverage = compute_coverage(bbox, zoom, max_zoom=max_zoom)
    if max_tiles is not None and coverage.count > max_tiles:
        raise TooManyTilesError(coverage.count, max_tiles)
    logger.debug(
        'Coverage z=%d x=%d..%d y=%d..%d (%d tiles)',
        zoom,
        coverage.x_min,
        coverage.x_max,
        coverage.y_min,
        coverage.y_max,
        coverage.count,
    )
    return coverage.tiles
