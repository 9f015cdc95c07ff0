from __future__ import annotations

import pytest

from geo.aoi import BBox
from geo.projection import pixels_to_unit, project_point, unproject_xy
from geo.tiles import MAX_TILE_ZOOM, is_valid_tile, tile_unit_bounds


def test_bbox_wrapped_splits_at_antimeridian():
    parts = BBox(min_lon=170.0, min_lat=-10.0, max_lon=-170.0, max_lat=10.0).wrapped()
    assert parts == [
        BBox(min_lon=170.0, min_lat=-10.0, max_lon=180.0, max_lat=10.0),
        BBox(min_lon=-180.0, min_lat=-10.0, max_lon=-170.0, max_lat=10.0),
    ]


def test_bbox_wrapped_normalizes_and_clamps():
    assert BBox(min_lon=190.0, min_lat=0.0, max_lon=200.0, max_lat=10.0).wrapped() == [
        BBox(min_lon=-170.0, min_lat=0.0, max_lon=-160.0, max_lat=10.0)
    ]
    assert BBox(min_lon=0.0, min_lat=-100.0, max_lon=10.0, max_lat=100.0).wrapped() == [
        BBox(min_lon=0.0, min_lat=-90.0, max_lon=10.0, max_lat=90.0)
    ]
    # East edge exactly on 180 stays 180 rather than wrapping to -180.
    assert BBox(min_lon=0.0, min_lat=0.0, max_lon=180.0, max_lat=1.0).wrapped() == [
        BBox(min_lon=0.0, min_lat=0.0, max_lon=180.0, max_lat=1.0)
    ]
    assert BBox(min_lon=-300.0, min_lat=-5.0, max_lon=100.0, max_lat=5.0).wrapped() == [
        BBox(min_lon=-180.0, min_lat=-5.0, max_lon=180.0, max_lat=5.0)
    ]


def test_bbox_west_edge_on_antimeridian_keeps_its_side():
    assert BBox(min_lon=180.0, min_lat=-10.0, max_lon=180.0, max_lat=10.0).wrapped() == [
        BBox(min_lon=180.0, min_lat=-10.0, max_lon=180.0, max_lat=10.0)
    ]
    assert BBox(min_lon=180.0, min_lat=-10.0, max_lon=-170.0, max_lat=10.0).wrapped() == [
        BBox(min_lon=180.0, min_lat=-10.0, max_lon=180.0, max_lat=10.0),
        BBox(min_lon=-180.0, min_lat=-10.0, max_lon=-170.0, max_lat=10.0),
    ]
    assert not BBox(min_lon=180.0, min_lat=-10.0, max_lon=180.0, max_lat=10.0).contains(0.0, 0.0)


def test_bbox_from_list_and_contains():
    b = BBox.from_list([170, -10, -170, 10])
    assert b.contains(179.0, 0.0)
    assert b.contains(-175.0, 5.0)
    assert not b.contains(0.0, 0.0)
    with pytest.raises(ValueError):
        BBox.from_list([1, 2, 3])


def test_projection_maps_world_edges_to_unit_square():
    assert project_point(-180.0, 0.0) == pytest.approx((0.0, 0.5), abs=1e-9)
    assert project_point(180.0, 0.0) == pytest.approx((1.0, 0.5), abs=1e-9)
    x, y = project_point(0.0, 89.9)
    assert x == pytest.approx(0.5)
    assert y == pytest.approx(0.0, abs=1e-6)
    _x, y_south = project_point(0.0, -90.0)
    assert y_south == pytest.approx(1.0, abs=1e-6)


def test_unproject_inverts_projection():
    x, y = project_point(14.4378, 50.0755)
    lons, lats = unproject_xy([x], [y])
    assert float(lons[0]) == pytest.approx(14.4378, abs=1e-9)
    assert float(lats[0]) == pytest.approx(50.0755, abs=1e-7)


def test_pixels_to_unit_halves_per_zoom():
    assert pixels_to_unit(512, extent=512, zoom=0) == 1.0
    assert pixels_to_unit(75, extent=512, zoom=1) == pytest.approx(75 / 1024)


def test_tile_helpers():
    assert is_valid_tile(12, 2212, 1387)
    assert not is_valid_tile(2, 4, 0)
    assert is_valid_tile(MAX_TILE_ZOOM, 0, 0)
    assert not is_valid_tile(MAX_TILE_ZOOM + 1, 0, 0)
    assert not is_valid_tile(100_000, 0, 0)
    min_x, min_y, max_x, max_y = tile_unit_bounds(1, 1, 0)
    assert (min_x, min_y, max_x, max_y) == (0.5, 0.0, 1.0, 0.5)
    padded = tile_unit_bounds(1, 1, 0, pad=0.5)
    assert padded == (0.25, -0.25, 1.25, 0.75)
