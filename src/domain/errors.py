"""Error hierarchy for elevation retrieval.

Per-tile fetch/decode problems are reported as ``ErrorKind`` values on the
tile results; only request-level conditions are raised.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from domain.models import MosaicRaster, TileFailure


class ErrorKind(str, Enum):
    """Why a single tile could not be used."""

    NETWORK_ERROR = 'NetworkError'
    NOT_FOUND = 'NotFound'
    RATE_LIMITED = 'RateLimited'
    DECODE_ERROR = 'DecodeError'
    UNAUTHORIZED = 'Unauthorized'


class ElevationError(Exception):
    """Base error for elevation retrieval."""


class UnsupportedRegionError(ElevationError):
    """Region crosses the anti-meridian or is in an unsupported CRS."""


class InvalidZoomError(ElevationError):
    """Zoom level is outside the range served by the source."""


class TooManyTilesError(ElevationError):
    """Request covers more tiles than the configured limit."""

    def __init__(self, tile_count: int, max_tiles: int) -> None:
        self.tile_count = tile_count
        self.max_tiles = max_tiles
        super().__init__(
            f'Region needs {tile_count} tiles, limit is {max_tiles}; '
            'lower the zoom or raise max_tiles',
        )


class TileDecodeError(ElevationError):
    """Tile body is not a readable single-band GeoTIFF of the expected size."""


class AllTilesFailedError(ElevationError):
    """No tile produced usable data."""

    def __init__(self, failures: Sequence[TileFailure], message: str = '') -> None:
        self.failures = list(failures)
        super().__init__(
            message or f'All {len(self.failures)} tiles failed; no elevation data',
        )


class IncompleteMosaicError(ElevationError):
    """Some tiles failed and partial mosaics are not allowed.

    Attributes:
        raster: The partial mosaic, for callers that still want it.
    """

    def __init__(self, raster: MosaicRaster) -> None:
        self.raster = raster
        failed = ', '.join(str(f.coordinate) for f in raster.failures)
        super().__init__(f'{len(raster.failures)} tiles failed: {failed}')


class RequestTimeoutError(ElevationError):
    """Request did not finish in time; in-flight fetches were cancelled."""


class SourceUnavailableError(ElevationError):
    """Tile or point source rejected the probe request or is unreachable."""
