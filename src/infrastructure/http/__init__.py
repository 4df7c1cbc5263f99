"""HTTP client infrastructure."""
from infrastructure.http.client import (
    TILE_SOURCES,
    SourceSpec,
    get_source_spec,
    make_http_session,
    mask_api_key,
    resolve_api_key,
    validate_tile_source,
)

__all__ = [
    'TILE_SOURCES',
    'SourceSpec',
    'get_source_spec',
    'make_http_session',
    'mask_api_key',
    'resolve_api_key',
    'validate_tile_source',
]
