"""Web Mercator / XYZ tiling math.

Normalized coordinates put the world in [0, 1] x [0, 1], x growing east and
y growing south, so tile (x, y) at zoom z spans [x, x + 1] / 2**z.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from rasterio.transform import from_origin

from domain.errors import UnsupportedRegionError
from domain.models import BoundingBox
from shared.constants import (
    CRS_WEB_MERCATOR,
    CRS_WGS84,
    EARTH_RADIUS_M,
    MERCATOR_MAX_LAT_DEG,
    TILE_SIZE,
    WORLD_HALF_SIZE_M,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
    WORLD_SIZE_M,
)

if TYPE_CHECKING:
    from rasterio.transform import Affine

    from domain.models import TileCoordinate


def clamp_lat(lat_deg: float) -> float:
    return min(max(lat_deg, -MERCATOR_MAX_LAT_DEG), MERCATOR_MAX_LAT_DEG)


def lnglat_to_mercator(lng_deg: float, lat_deg: float) -> tuple[float, float]:
    """WGS84 (lng, lat) -> Web Mercator metres."""
    lat = math.radians(clamp_lat(lat_deg))
    x = EARTH_RADIUS_M * math.radians(lng_deg)
    y = EARTH_RADIUS_M * math.log(math.tan(math.pi / 4 + lat / 2))
    return x, y


def mercator_to_lnglat(x: float, y: float) -> tuple[float, float]:
    """Web Mercator metres -> WGS84 (lng, lat)."""
    lng = math.degrees(x / EARTH_RADIUS_M)
    lat = math.degrees(2 * math.atan(math.exp(y / EARTH_RADIUS_M)) - math.pi / 2)
    return lng, lat


def lnglat_to_normalized(lng_deg: float, lat_deg: float) -> tuple[float, float]:
    """WGS84 (lng, lat) -> normalized tiling space."""
    siny = math.sin(math.radians(clamp_lat(lat_deg)))
    nx = (lng_deg + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG
    ny = 0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)
    return nx, ny


def mercator_to_normalized(x: float, y: float) -> tuple[float, float]:
    """Web Mercator metres -> normalized tiling space."""
    nx = (x + WORLD_HALF_SIZE_M) / WORLD_SIZE_M
    ny = (WORLD_HALF_SIZE_M - y) / WORLD_SIZE_M
    return nx, ny


def world_extent(crs: str) -> tuple[float, float, float, float]:
    """Valid (min_x, min_y, max_x, max_y) of the tiling scheme in crs units."""
    if crs == CRS_WGS84:
        return (
            -WORLD_LNG_HALF_SPAN_DEG,
            -MERCATOR_MAX_LAT_DEG,
            WORLD_LNG_HALF_SPAN_DEG,
            MERCATOR_MAX_LAT_DEG,
        )
    if crs == CRS_WEB_MERCATOR:
        return -WORLD_HALF_SIZE_M, -WORLD_HALF_SIZE_M, WORLD_HALF_SIZE_M, WORLD_HALF_SIZE_M
    msg = f'No world extent for {crs}'
    raise ValueError(msg)


def clip_bbox_to_world(bbox: BoundingBox) -> BoundingBox:
    """Clip bbox to the world extent of its CRS."""
    wx0, wy0, wx1, wy1 = world_extent(bbox.crs)
    x0, y0 = max(bbox.min_x, wx0), max(bbox.min_y, wy0)
    x1, y1 = min(bbox.max_x, wx1), min(bbox.max_y, wy1)
    if x0 >= x1 or y0 >= y1:
        msg = f'Region {bbox.as_tuple()} lies outside the {bbox.crs} world extent'
        raise UnsupportedRegionError(msg)
    return BoundingBox(min_x=x0, min_y=y0, max_x=x1, max_y=y1, crs=bbox.crs)


def bbox_to_mercator(bbox: BoundingBox) -> tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) of bbox in Web Mercator metres."""
    if bbox.crs == CRS_WEB_MERCATOR:
        return bbox.as_tuple()
    if bbox.crs == CRS_WGS84:
        x0, y0 = lnglat_to_mercator(bbox.min_x, bbox.min_y)
        x1, y1 = lnglat_to_mercator(bbox.max_x, bbox.max_y)
        return x0, y0, x1, y1
    msg = f'Cannot convert {bbox.crs} to Web Mercator without reprojection'
    raise ValueError(msg)


def tile_span_m(zoom: int) -> float:
    """Side of one tile at zoom, in metres."""
    return WORLD_SIZE_M / (2**zoom)


def pixel_size_m(zoom: int, tile_px: int = TILE_SIZE) -> float:
    """Projected pixel size at zoom (equator ground resolution)."""
    return tile_span_m(zoom) / tile_px


def meters_per_pixel(lat_deg: float, zoom: int, tile_px: int = TILE_SIZE) -> float:
    """Ground resolution at a given latitude and zoom."""
    return math.cos(math.radians(lat_deg)) * pixel_size_m(zoom, tile_px)


def tile_bounds_m(coord: TileCoordinate) -> tuple[float, float, float, float]:
    """(left, bottom, right, top) of a tile in Web Mercator metres."""
    span = tile_span_m(coord.z)
    left = -WORLD_HALF_SIZE_M + coord.x * span
    top = WORLD_HALF_SIZE_M - coord.y * span
    return left, top - span, left + span, top


def tile_transform(z: int, x: int, y: int, tile_px: int = TILE_SIZE) -> Affine:
    """Geotransform of tile z/x/y, derived only from its index."""
    span = tile_span_m(z)
    res = span / tile_px
    return from_origin(-WORLD_HALF_SIZE_M + x * span, WORLD_HALF_SIZE_M - y * span, res, res)
