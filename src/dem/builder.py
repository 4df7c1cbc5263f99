"""
DEM mosaic assembly.

Decoded tiles of one zoom are placed on a shared tile-aligned canvas by pure
translation, then cropped to the requested region.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

import numpy as np
from rasterio.transform import Affine

from domain.errors import AllTilesFailedError
from domain.models import MosaicRaster, TileResult
from geo.topography import bbox_to_mercator, tile_transform
from shared.constants import NODATA_VALUE, XY_EPSILON

if TYPE_CHECKING:
    from collections.abc import Iterable

    from domain.models import BoundingBox

logger = logging.getLogger(__name__)


def crop_window(
    transform: Affine,
    shape: tuple[int, int],
    bounds_m: tuple[float, float, float, float],
) -> tuple[int, int, int, int]:
    """
    Smallest pixel window covering bounds_m, clipped to the grid.

    Returns:
        (row_start, row_stop, col_start, col_stop); empty when rows or cols
        do not overlap

    """
    h, w = shape
    min_x, min_y, max_x, max_y = bounds_m
    inv = ~transform
    col0, row0 = inv * (min_x, max_y)
    col1, row1 = inv * (max_x, min_y)
    c0 = max(0, math.floor(col0 + XY_EPSILON))
    r0 = max(0, math.floor(row0 + XY_EPSILON))
    c1 = min(w, math.ceil(col1 - XY_EPSILON))
    r1 = min(h, math.ceil(row1 - XY_EPSILON))
    return r0, max(r0, r1), c0, max(c0, c1)


def assemble_dem(results: list[TileResult]) -> tuple[np.ndarray, Affine]:
    """
    Place successful tiles onto one canvas.

    All tiles must share zoom and pixel size. Cells not covered by a tile
    stay NaN.
    """
    zoom = results[0].coordinate.z
    tile_px = results[0].grid.shape[0]
    seen = set()
    for r in results:
        if r.coordinate.z != zoom:
            msg = f'Cannot merge zoom {r.coordinate.z} with zoom {zoom}'
            raise ValueError(msg)
        if r.grid.shape != (tile_px, tile_px):
            msg = f'Tile {r.coordinate} is {r.grid.shape}, expected {(tile_px, tile_px)}'
            raise ValueError(msg)
        if r.coordinate in seen:
            msg = f'Duplicate tile {r.coordinate}'
            raise ValueError(msg)
        seen.add(r.coordinate)

    x0 = min(r.coordinate.x for r in results)
    x1 = max(r.coordinate.x for r in results)
    y0 = min(r.coordinate.y for r in results)
    y1 = max(r.coordinate.y for r in results)

    canvas = np.full(
        ((y1 - y0 + 1) * tile_px, (x1 - x0 + 1) * tile_px),
        NODATA_VALUE,
        dtype=np.float32,
    )
    for r in results:
        base_y = (r.coordinate.y - y0) * tile_px
        base_x = (r.coordinate.x - x0) * tile_px
        canvas[base_y : base_y + tile_px, base_x : base_x + tile_px] = r.grid

    return canvas, tile_transform(zoom, x0, y0, tile_px)


def merge_tiles(
    results: Iterable[TileResult],
    bbox: BoundingBox | None = None,
    *,
    keep_full_extent: bool = False,
) -> MosaicRaster:
    """
    Merge decoded tiles into one raster.

    Args:
        results: Tile results of one request (failed ones included)
        bbox: Requested region; the mosaic is cropped to it
        keep_full_extent: Skip cropping, return the whole tile grid

    Returns:
        MosaicRaster whose failures list the tiles that did not contribute

    Raises:
        AllTilesFailedError: no tile succeeded, or none overlaps bbox

    """
    results = list(results)
    ok = [r for r in results if r.ok]
    failures = tuple(r.to_failure() for r in results if not r.ok)
    if not ok:
        raise AllTilesFailedError(failures)

    canvas, transform = assemble_dem(ok)

    if bbox is not None and not keep_full_extent:
        r0, r1, c0, c1 = crop_window(transform, canvas.shape, bbox_to_mercator(bbox))
        if r1 == r0 or c1 == c0:
            msg = 'No successful tile overlaps the requested region'
            raise AllTilesFailedError(failures, msg)
        # Copy so the full canvas can be released
        canvas = canvas[r0:r1, c0:c1].copy()
        transform = transform * Affine.translation(c0, r0)

    logger.debug(
        'Mosaic %dx%d px from %d tiles (%d failed)',
        canvas.shape[1],
        canvas.shape[0],
        len(ok),
        len(failures),
    )
    return MosaicRaster(
        grid=canvas,
        transform=transform,
        zoom=ok[0].coordinate.z,
        tiles=tuple(sorted((r.coordinate for r in ok), key=lambda c: (c.y, c.x))),
        failures=failures,
    )


def mask_negative(raster: MosaicRaster) -> MosaicRaster:
    """Set elevations below zero to no-data (in place)."""
    with np.errstate(invalid='ignore'):
        raster.grid[raster.grid < 0] = NODATA_VALUE
    return raster
