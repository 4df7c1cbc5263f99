"""Tests for tiles.coverage module."""

import math

import pytest

from domain.errors import InvalidZoomError, TooManyTilesError, UnsupportedRegionError
from domain.models import BoundingBox, TileCoordinate
from geo.topography import bbox_to_mercator, lnglat_to_mercator, tile_bounds_m
from shared.constants import WORLD_HALF_SIZE_M
from tiles.coverage import compute_coverage, compute_tiles, normalize_bbox

SAMPLE_BOXES = [
    BoundingBox(min_x=10.0, min_y=45.0, max_x=12.0, max_y=47.0),
    BoundingBox(min_x=-122.6, min_y=37.6, max_x=-122.3, max_y=37.9),
    BoundingBox(min_x=-0.5, min_y=-0.5, max_x=0.5, max_y=0.5),
    BoundingBox(min_x=140.1, min_y=-38.2, max_x=141.7, max_y=-36.9),
]


def _slippy_tile(lng, lat, zoom):
    """Standard OSM tile formula, independent of the module under test."""
    n = 2**zoom
    lat_r = math.radians(lat)
    x = int((lng + 180.0) / 360.0 * n)
    y = int((1.0 - math.asinh(math.tan(lat_r)) / math.pi) / 2.0 * n)
    return x, y


class TestComputeTiles:
    """Tests for compute_tiles function."""

    def test_zoom_zero_is_single_tile(self):
        """Any region at zoom 0 is covered by the world tile."""
        tiles = compute_tiles(SAMPLE_BOXES[1], 0)
        assert tiles == [TileCoordinate(0, 0, 0)]

    def test_two_degree_box_at_zoom_9(self):
        """2x2 degree box at z9 needs the analytically expected 4 x 5 tiles."""
        bbox = SAMPLE_BOXES[0]
        tiles = compute_tiles(bbox, 9)

        x0, y_top = _slippy_tile(bbox.min_x, bbox.max_y, 9)
        x1, y_bottom = _slippy_tile(bbox.max_x, bbox.min_y, 9)
        expected = (x1 - x0 + 1) * (y_bottom - y_top + 1)

        assert len(tiles) == expected == 20
        assert {t.x for t in tiles} == set(range(270, 274))
        assert {t.y for t in tiles} == set(range(180, 185))

    def test_no_duplicates(self):
        """No tile coordinate repeats."""
        for bbox in SAMPLE_BOXES:
            for zoom in (3, 8, 12):
                tiles = compute_tiles(bbox, zoom)
                assert len(tiles) == len(set(tiles))

    def test_row_major_order(self):
        """Tiles are ordered north to south, then west to east."""
        tiles = compute_tiles(SAMPLE_BOXES[0], 9)
        assert tiles == sorted(tiles, key=lambda t: (t.y, t.x))

    def test_tiles_cover_bbox(self):
        """Combined tile extent contains the bbox."""
        for bbox in SAMPLE_BOXES:
            for zoom in (2, 7, 11):
                tiles = compute_tiles(bbox, zoom)
                bounds = [tile_bounds_m(t) for t in tiles]
                left = min(b[0] for b in bounds)
                bottom = min(b[1] for b in bounds)
                right = max(b[2] for b in bounds)
                top = max(b[3] for b in bounds)
                bx0, by0, bx1, by1 = bbox_to_mercator(bbox)
                assert left <= bx0 + 1e-6
                assert bottom <= by0 + 1e-6
                assert right >= bx1 - 1e-6
                assert top >= by1 - 1e-6

    def test_expand_gives_superset(self):
        """Growing the box never drops tiles."""
        for bbox in SAMPLE_BOXES:
            base = set(compute_tiles(bbox, 10))
            for margin in (0.0, 0.001, 0.05, 0.5):
                grown = set(compute_tiles(bbox.expanded(margin), 10))
                assert base <= grown

    def test_min_x_on_tile_edge_includes_both_sides(self):
        """A west edge exactly on a tile border pulls in both neighbours once."""
        bbox = BoundingBox(min_x=0.0, min_y=10.0, max_x=20.0, max_y=20.0)
        tiles = compute_tiles(bbox, 1)
        assert tiles == [TileCoordinate(1, 0, 0), TileCoordinate(1, 1, 0)]

    def test_max_x_on_tile_edge_includes_both_sides(self):
        """An east edge exactly on a tile border pulls in both neighbours once."""
        bbox = BoundingBox(min_x=-20.0, min_y=10.0, max_x=0.0, max_y=20.0)
        tiles = compute_tiles(bbox, 1)
        assert tiles == [TileCoordinate(1, 0, 0), TileCoordinate(1, 1, 0)]

    def test_web_mercator_box_matches_geographic(self):
        """Same region in EPSG:3857 gives the same tiles."""
        geo_box = SAMPLE_BOXES[0]
        x0, y0 = lnglat_to_mercator(geo_box.min_x, geo_box.min_y)
        x1, y1 = lnglat_to_mercator(geo_box.max_x, geo_box.max_y)
        merc_box = BoundingBox(min_x=x0, min_y=y0, max_x=x1, max_y=y1, crs='EPSG:3857')
        assert compute_tiles(merc_box, 9) == compute_tiles(geo_box, 9)

    def test_polar_latitudes_are_clamped(self):
        """Latitudes beyond the Mercator limit map to the edge row."""
        bbox = BoundingBox(min_x=-10.0, min_y=80.0, max_x=10.0, max_y=89.9)
        coverage = compute_coverage(bbox, 2)
        assert coverage.y_min == 0
        assert coverage.x_min == 1
        assert coverage.x_max == 2


class TestComputeTilesErrors:
    """Tests for rejected requests."""

    def test_antimeridian_crossing(self):
        """A box wrapping past 180 degrees is rejected."""
        bbox = BoundingBox(min_x=170.0, min_y=0.0, max_x=190.0, max_y=10.0)
        with pytest.raises(UnsupportedRegionError):
            compute_tiles(bbox, 5)

    def test_unsupported_crs(self):
        """Only EPSG:4326 and EPSG:3857 are accepted."""
        bbox = BoundingBox(min_x=500000, min_y=5000000, max_x=510000, max_y=5010000, crs='EPSG:32633')
        with pytest.raises(UnsupportedRegionError):
            compute_tiles(bbox, 5)

    @pytest.mark.parametrize('zoom', [-1, 16, 2.5, True, '3'])
    def test_invalid_zoom(self, zoom):
        with pytest.raises(InvalidZoomError):
            compute_tiles(SAMPLE_BOXES[0], zoom)

    def test_max_zoom_is_configurable(self):
        with pytest.raises(InvalidZoomError):
            compute_tiles(SAMPLE_BOXES[0], 12, max_zoom=10)

    def test_too_many_tiles(self):
        """Tile count guard fires before enumeration."""
        with pytest.raises(TooManyTilesError) as exc_info:
            compute_tiles(SAMPLE_BOXES[0], 9, max_tiles=10)
        assert exc_info.value.tile_count == 20
        assert exc_info.value.max_tiles == 10

    def test_tile_count_at_limit_is_allowed(self):
        assert len(compute_tiles(SAMPLE_BOXES[0], 9, max_tiles=20)) == 20


class TestNormalizeBbox:
    """Tests for normalize_bbox function."""

    def test_box_inside_world_is_unchanged(self):
        assert normalize_bbox(SAMPLE_BOXES[0]) is SAMPLE_BOXES[0]

    def test_box_past_180_is_wrapped(self):
        bbox = BoundingBox(min_x=185.0, min_y=10.0, max_x=186.0, max_y=11.0)
        wrapped = normalize_bbox(bbox)
        assert wrapped.as_tuple() == (-175.0, 10.0, -174.0, 11.0)
        assert wrapped.crs == bbox.crs
        assert compute_tiles(bbox, 5) == compute_tiles(wrapped, 5) == [TileCoordinate(5, 0, 15)]

    def test_mercator_box_past_world_edge_is_wrapped(self):
        bbox = BoundingBox(
            min_x=-WORLD_HALF_SIZE_M - 2000.0,
            min_y=0.0,
            max_x=-WORLD_HALF_SIZE_M - 1000.0,
            max_y=1000.0,
            crs='EPSG:3857',
        )
        wrapped = normalize_bbox(bbox)
        assert wrapped.min_x == pytest.approx(WORLD_HALF_SIZE_M - 2000.0)
        assert wrapped.max_x == pytest.approx(WORLD_HALF_SIZE_M - 1000.0)

    def test_antimeridian_crossing_rejected(self):
        bbox = BoundingBox(min_x=170.0, min_y=0.0, max_x=190.0, max_y=10.0)
        with pytest.raises(UnsupportedRegionError, match='anti-meridian'):
            normalize_bbox(bbox)

    def test_unsupported_crs_rejected(self):
        bbox = BoundingBox(min_x=500000, min_y=5000000, max_x=510000, max_y=5010000, crs='EPSG:32633')
        with pytest.raises(UnsupportedRegionError):
            normalize_bbox(bbox)
