"""Tile indexing and fetching.

This module provides:
- compute_tiles: XYZ tiles covering a bounding box
- normalize_bbox: wrap x values into the world once
- TileFetcher: concurrent HTTP download with per-tile failure results
- run_bounded: bounded-concurrency task pool
"""

from tiles.coverage import (
    TileCoverage,
    compute_coverage,
    compute_tiles,
    normalize_bbox,
    validate_zoom,
)
from tiles.executor import run_bounded
from tiles.fetcher import TileFetcher

__all__ = [
    'TileCoverage',
    'TileFetcher',
    'compute_coverage',
    'compute_tiles',
    'normalize_bbox',
    'run_bounded',
    'validate_zoom',
]
