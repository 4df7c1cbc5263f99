"""Reprojection of caller regions into a CRS the tile indexer accepts."""

from __future__ import annotations

import logging
import math
from functools import lru_cache

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from domain.errors import UnsupportedRegionError
from domain.models import BoundingBox
from shared.constants import CRS_WEB_MERCATOR, CRS_WGS84

logger = logging.getLogger(__name__)

SUPPORTED_TILING_CRS = (CRS_WGS84, CRS_WEB_MERCATOR)

# Densification points per edge when transforming box bounds
_BOUNDS_DENSIFY_PTS = 21


@lru_cache(maxsize=32)
def _transformer(src: str, dst: str) -> Transformer:
    return Transformer.from_crs(CRS.from_user_input(src), CRS.from_user_input(dst), always_xy=True)


def reproject_bbox(bbox: BoundingBox, dst_crs: str = CRS_WGS84) -> BoundingBox:
    """
    Transform bbox bounds to dst_crs.

    Edges are densified so curved edges in the target CRS stay inside the
    returned box.

    Raises:
        UnsupportedRegionError: the CRS is unknown or the box cannot be
            represented in dst_crs.
    """
    dst = dst_crs.strip().upper()
    if bbox.crs == dst:
        return bbox
    try:
        transformer = _transformer(bbox.crs, dst)
        x0, y0, x1, y1 = transformer.transform_bounds(
            *bbox.as_tuple(),
            densify_pts=_BOUNDS_DENSIFY_PTS,
        )
    except (CRSError, ProjError) as e:
        msg = f'Cannot reproject {bbox.crs} -> {dst}: {e}'
        raise UnsupportedRegionError(msg) from e
    finite = all(math.isfinite(v) for v in (x0, y0, x1, y1))
    if not (finite and x0 < x1 and y0 < y1):
        msg = f'Region {bbox.as_tuple()} has no valid extent in {dst}'
        raise UnsupportedRegionError(msg)
    logger.debug('Reprojected %s %s -> %s %s', bbox.crs, bbox.as_tuple(), dst, (x0, y0, x1, y1))
    return BoundingBox(min_x=x0, min_y=y0, max_x=x1, max_y=y1, crs=dst)


def ensure_tiling_crs(bbox: BoundingBox) -> BoundingBox:
    """Return bbox unchanged if the indexer accepts its CRS, else reproject to WGS84."""
    if bbox.crs in SUPPORTED_TILING_CRS:
        return bbox
    return reproject_bbox(bbox, CRS_WGS84)
