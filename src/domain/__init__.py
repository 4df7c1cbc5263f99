"""Domain layer - request models, errors and profiles."""
from domain.errors import (
    AllTilesFailedError,
    ElevationError,
    ErrorKind,
    IncompleteMosaicError,
    InvalidZoomError,
    RequestTimeoutError,
    SourceUnavailableError,
    TileDecodeError,
    TooManyTilesError,
    UnsupportedRegionError,
)
from domain.models import (
    BoundingBox,
    MosaicRaster,
    RasterRequestOptions,
    RawTile,
    TileCoordinate,
    TileFailure,
    TileResult,
    TransportConfig,
)
from domain.profiles import (
    delete_profile,
    ensure_profiles_dir,
    list_profiles,
    load_options,
    save_options,
)

__all__ = [
    'AllTilesFailedError',
    'BoundingBox',
    'ElevationError',
    'ErrorKind',
    'IncompleteMosaicError',
    'InvalidZoomError',
    'MosaicRaster',
    'RasterRequestOptions',
    'RawTile',
    'RequestTimeoutError',
    'SourceUnavailableError',
    'TileCoordinate',
    'TileDecodeError',
    'TileFailure',
    'TileResult',
    'TooManyTilesError',
    'TransportConfig',
    'UnsupportedRegionError',
    'delete_profile',
    'ensure_profiles_dir',
    'list_profiles',
    'load_options',
    'save_options',
]
