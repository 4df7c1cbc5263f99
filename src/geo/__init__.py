"""Geo module - Web Mercator math and reprojection."""

from .projection import ensure_tiling_crs, reproject_bbox
from .topography import (
    bbox_to_mercator,
    lnglat_to_mercator,
    meters_per_pixel,
    pixel_size_m,
    tile_bounds_m,
    tile_transform,
)

__all__ = [
    'bbox_to_mercator',
    'ensure_tiling_crs',
    'lnglat_to_mercator',
    'meters_per_pixel',
    'pixel_size_m',
    'reproject_bbox',
    'tile_bounds_m',
    'tile_transform',
]
