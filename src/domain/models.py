from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator, model_validator

from domain.errors import ErrorKind
from shared.constants import (
    CRS_WEB_MERCATOR,
    CRS_WGS84,
    DOWNLOAD_CONCURRENCY,
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    MAX_TILES_DEFAULT,
    NODATA_VALUE,
    TileSource,
    default_tile_source,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy as np
    from rasterio.transform import Affine


class BoundingBox(BaseModel):
    """Immutable region in EPSG:4326 (lon/lat degrees) or EPSG:3857 (metres)."""

    model_config = {'frozen': True}

    min_x: float
    min_y: float
    max_x: float
    max_y: float
    crs: str = CRS_WGS84

    @field_validator('crs')
    @classmethod
    def normalize_crs(cls, v: str) -> str:
        return str(v).strip().upper()

    @model_validator(mode='after')
    def check_order(self) -> BoundingBox:
        if not (self.min_x < self.max_x and self.min_y < self.max_y):
            msg = (
                f'Bounding box must satisfy min < max on both axes, got '
                f'({self.min_x}, {self.min_y}, {self.max_x}, {self.max_y})'
            )
            raise ValueError(msg)
        return self

    @classmethod
    def from_points(
        cls,
        points: Iterable[tuple[float, float]],
        margin: float,
        crs: str = CRS_WGS84,
    ) -> BoundingBox:
        """Smallest box holding all (x, y) points, grown by margin."""
        pts = list(points)
        if not pts:
            msg = 'At least one point is required'
            raise ValueError(msg)
        xs = [p[0] for p in pts]
        ys = [p[1] for p in pts]
        return cls(
            min_x=min(xs) - margin,
            min_y=min(ys) - margin,
            max_x=max(xs) + margin,
            max_y=max(ys) + margin,
            crs=crs,
        )

    @property
    def is_geographic(self) -> bool:
        return self.crs == CRS_WGS84

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.min_x, self.min_y, self.max_x, self.max_y

    def expanded(self, margin: float) -> BoundingBox:
        """Return the box grown by margin (in the box's own units) on every side."""
        if margin == 0:
            return self
        return BoundingBox(
            min_x=self.min_x - margin,
            min_y=self.min_y - margin,
            max_x=self.max_x + margin,
            max_y=self.max_y + margin,
            crs=self.crs,
        )


@dataclass(frozen=True)
class TileCoordinate:
    """Key for one XYZ tile."""

    z: int
    x: int
    y: int

    def __str__(self) -> str:
        return f'{self.z}/{self.x}/{self.y}'


@dataclass
class RawTile:
    """Outcome of downloading one tile: body bytes or a failure kind."""

    coordinate: TileCoordinate
    data: bytes | None = None
    error: ErrorKind | None = None
    detail: str = ''

    @property
    def ok(self) -> bool:
        return self.error is None and self.data is not None


@dataclass(frozen=True)
class TileFailure:
    coordinate: TileCoordinate
    error: ErrorKind
    detail: str = ''

    def __str__(self) -> str:
        suffix = f': {self.detail}' if self.detail else ''
        return f'tile {self.coordinate} {self.error.value}{suffix}'


@dataclass(eq=False)
class TileResult:
    """Decoded tile (grid + geotransform) or the reason it is missing."""

    coordinate: TileCoordinate
    grid: np.ndarray | None = None
    transform: Affine | None = None
    error: ErrorKind | None = None
    detail: str = ''

    @property
    def ok(self) -> bool:
        return self.error is None and self.grid is not None

    @classmethod
    def failed(
        cls,
        coordinate: TileCoordinate,
        error: ErrorKind,
        detail: str = '',
    ) -> TileResult:
        return cls(coordinate=coordinate, error=error, detail=detail)

    def to_failure(self) -> TileFailure:
        return TileFailure(
            coordinate=self.coordinate,
            error=self.error or ErrorKind.DECODE_ERROR,
            detail=self.detail,
        )


@dataclass(eq=False)
class MosaicRaster:
    """Merged elevation grid with its geotransform (EPSG:3857)."""

    grid: np.ndarray
    transform: Affine
    zoom: int
    tiles: tuple[TileCoordinate, ...] = ()
    failures: tuple[TileFailure, ...] = ()
    crs: str = CRS_WEB_MERCATOR
    nodata: float = NODATA_VALUE

    @property
    def shape(self) -> tuple[int, int]:
        h, w = self.grid.shape
        return h, w

    @property
    def resolution(self) -> tuple[float, float]:
        return self.transform.a, -self.transform.e

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(left, bottom, right, top) in the raster CRS."""
        h, w = self.shape
        left, top = self.transform * (0, 0)
        right, bottom = self.transform * (w, h)
        return left, bottom, right, top

    @property
    def failed_tiles(self) -> list[TileCoordinate]:
        return [f.coordinate for f in self.failures]

    @property
    def warnings(self) -> list[str]:
        return [str(f) for f in self.failures]


class TransportConfig(BaseModel):
    """HTTP settings passed through to every tile request."""

    model_config = {'extra': 'ignore'}

    # Total time per request (seconds)
    timeout: float = HTTP_TIMEOUT_DEFAULT
    # Attempts per tile (1 = no retry)
    retries: int = HTTP_RETRIES_DEFAULT
    # Base delay between attempts, doubled each retry (seconds)
    backoff: float = HTTP_BACKOFF_FACTOR
    # Log every request at INFO instead of DEBUG
    verbose: bool = False
    # Extra request headers
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        v = float(v)
        if v <= 0:
            msg = 'timeout must be positive'
            raise ValueError(msg)
        return v

    @field_validator('retries')
    @classmethod
    def validate_retries(cls, v: int) -> int:
        v = int(v)
        if v < 1:
            msg = 'retries must be at least 1'
            raise ValueError(msg)
        return v

    @field_validator('backoff')
    @classmethod
    def validate_backoff(cls, v: float) -> float:
        v = float(v)
        if v < 0:
            msg = 'backoff cannot be negative'
            raise ValueError(msg)
        return v


class RasterRequestOptions(BaseModel):
    """Options of one raster request."""

    model_config = {'extra': 'ignore'}

    source: TileSource = default_tile_source()
    # Explicit key; falls back to the environment when not set
    api_key: str | None = Field(default=None, repr=False)
    # Margin added to the region before tiling (units of the bbox)
    expand: float = 0.0
    # Keep the whole tile grid instead of cropping to the region
    keep_full_extent: bool = False
    # Treat elevations below zero as no-data
    neg_to_nodata: bool = False
    # Parallel downloads
    concurrency: int = DOWNLOAD_CONCURRENCY
    # Refuse requests needing more tiles than this
    max_tiles: int = MAX_TILES_DEFAULT
    # False: any failed tile fails the whole request
    allow_partial: bool = True
    # Deadline for the whole request (seconds); None = no deadline
    request_timeout: float | None = None
    transport: TransportConfig = Field(default_factory=TransportConfig)

    @field_validator('expand')
    @classmethod
    def validate_expand(cls, v: float) -> float:
        v = float(v)
        if v < 0:
            msg = 'expand cannot be negative'
            raise ValueError(msg)
        return v

    @field_validator('concurrency', 'max_tiles')
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        v = int(v)
        if v < 1:
            msg = 'Value must be at least 1'
            raise ValueError(msg)
        return v

    @field_validator('request_timeout')
    @classmethod
    def validate_request_timeout(cls, v: float | None) -> float | None:
        if v is None:
            return None
        v = float(v)
        if v <= 0:
            msg = 'request_timeout must be positive'
            raise ValueError(msg)
        return v
