"""Elevation module - raster retrieval and point lookups."""

from .points import fetch_point_elevations, get_point_elevations, sample_raster
from .provider import fetch_elevation_raster, get_elevation_raster

__all__ = [
    'fetch_elevation_raster',
    'fetch_point_elevations',
    'get_elevation_raster',
    'get_point_elevations',
    'sample_raster',
]
