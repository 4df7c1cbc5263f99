from enum import Enum

# Web Mercator earth radius (metres)
EARTH_RADIUS_M = 6378137.0

# Full width (and height) of the Web Mercator world square (metres)
WORLD_SIZE_M = 2 * 3.141592653589793 * EARTH_RADIUS_M

# Half of the world width; origin of the tiling scheme is (-HALF, +HALF)
WORLD_HALF_SIZE_M = WORLD_SIZE_M / 2.0

# Latitude limit of the Web Mercator projection (degrees)
MERCATOR_MAX_LAT_DEG = 85.0511287798066

WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0

# CRS identifiers accepted by the tile indexer
WGS84_CODE = 4326
WEB_MERCATOR_CODE = 3857
CRS_WGS84 = f'EPSG:{WGS84_CODE}'
CRS_WEB_MERCATOR = f'EPSG:{WEB_MERCATOR_CODE}'

# Tolerance for float comparisons against tile / pixel edges
XY_EPSILON = 1e-9

# Pixel size of one GeoTIFF terrain tile
TILE_SIZE = 512

# Highest zoom served by the terrain tile sources
MAX_ZOOM = 15

# No-data sentinel for elevation grids (float32)
NODATA_VALUE = float('nan')

# Upper bound on tiles per request (memory / rate-limit guard)
MAX_TILES_DEFAULT = 256

# Parallel tile downloads per request
DOWNLOAD_CONCURRENCY = 8

# Log memory usage every N fetched tiles
LOG_MEMORY_EVERY_TILES = 64


class TileSource(str, Enum):
    # Cached CDN; unlimited rate when an API key is supplied
    NEXTZEN = 'nextzen'
    # Uncached, unauthenticated S3 bucket
    AWS = 'aws'


def default_tile_source() -> TileSource:
    return TileSource.AWS


# Tile endpoints (GeoTIFF encoding only)
NEXTZEN_TERRAIN_BASE = 'https://tile.nextzen.org/tilezen/terrain/v1/geotiff'
AWS_TERRAIN_BASE = 'https://s3.amazonaws.com/elevation-tiles-prod/geotiff'
TILE_EXTENSION = 'tif'

# Query parameter that carries the API key
API_KEY_PARAM = 'api_key'

# Environment variable with the default API key
API_KEY_ENV_VAR = 'NEXTZEN_API_KEY'

# Number of visible API key characters when masked in logs
API_KEY_VISIBLE_PREFIX_LEN = 4


class PointSource(str, Enum):
    # USGS Elevation Point Query Service (single point per request)
    EPQS = 'epqs'
    # Sample the terrain tile mosaic
    TILES = 'tiles'


EPQS_URL = 'https://epqs.nationalmap.gov/v1/json'

# EPQS answers this value for points outside its coverage
EPQS_NODATA_VALUE = -1000000.0

# Default zoom used to sample points from terrain tiles
POINT_SAMPLE_ZOOM = 12

# Margin around sampled points (degrees)
POINT_SAMPLE_MARGIN_DEG = 0.001

# HTTP
HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429
HTTP_5XX_MIN = 500
HTTP_5XX_MAX = 600

HTTP_TIMEOUT_DEFAULT = 20.0
HTTP_RETRIES_DEFAULT = 4
HTTP_BACKOFF_FACTOR = 0.5

# Timeout of the source availability probe (seconds)
HTTP_PROBE_TIMEOUT = 10.0

USER_AGENT = 'elevation-tiles/0.1'

PROFILES_DIR = 'configs/profiles'
