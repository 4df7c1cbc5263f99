"""
GeoTIFF terrain tile decoding.

Tiles are read in memory with rasterio; georeferencing comes from the tile
index, never from tags embedded in the file.
"""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING

import numpy as np
from rasterio.errors import NotGeoreferencedWarning, RasterioError
from rasterio.io import MemoryFile

from domain.errors import ErrorKind, TileDecodeError
from domain.models import RawTile, TileCoordinate, TileResult
from geo.topography import tile_transform
from shared.constants import NODATA_VALUE, TILE_SIZE

if TYPE_CHECKING:
    from rasterio.transform import Affine

logger = logging.getLogger(__name__)


def read_geotiff_band(
    data: bytes,
    coord: TileCoordinate,
    *,
    tile_px: int = TILE_SIZE,
) -> tuple[np.ndarray, Affine]:
    """
    Decode a single-band GeoTIFF tile into a float32 elevation grid.

    Args:
        data: Raw tile body
        coord: Tile the body belongs to
        tile_px: Expected width and height

    Returns:
        (grid with NaN for no-data, tile geotransform)

    Raises:
        TileDecodeError: empty, truncated or malformed body, no bands, wrong size

    """
    if not data:
        msg = f'Tile {coord}: empty body'
        raise TileDecodeError(msg)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', NotGeoreferencedWarning)
            with MemoryFile(data) as memfile, memfile.open() as ds:
                if ds.count < 1:
                    msg = f'Tile {coord}: no raster bands'
                    raise TileDecodeError(msg)
                if (ds.height, ds.width) != (tile_px, tile_px):
                    msg = (
                        f'Tile {coord}: expected {tile_px}x{tile_px} px, '
                        f'got {ds.width}x{ds.height}'
                    )
                    raise TileDecodeError(msg)
                band = ds.read(1, masked=True)
    except (RasterioError, ValueError, OSError) as e:
        msg = f'Tile {coord}: unreadable GeoTIFF ({e})'
        raise TileDecodeError(msg) from e

    grid = np.ma.filled(band.astype(np.float32), NODATA_VALUE)
    return grid, tile_transform(coord.z, coord.x, coord.y, tile_px)


def decode_tile(raw: RawTile, *, tile_px: int = TILE_SIZE) -> TileResult:
    """Turn a downloaded tile into a TileResult; failures pass through."""
    if not raw.ok:
        return TileResult.failed(
            raw.coordinate,
            raw.error or ErrorKind.NETWORK_ERROR,
            raw.detail,
        )
    try:
        grid, transform = read_geotiff_band(raw.data, raw.coordinate, tile_px=tile_px)
    except TileDecodeError as e:
        logger.warning('%s', e)
        return TileResult.failed(raw.coordinate, ErrorKind.DECODE_ERROR, str(e))
    return TileResult(coordinate=raw.coordinate, grid=grid, transform=transform)
