import numpy as np
import pytest

from idwheat.projection import web_mercator
from idwheat.triangulate import mesh_area, polygon_is_simple, signed_area, triangulate


def test_rectangle_gives_two_triangles_covering_area():
    rect = np.array([[0.0, 0.0], [4.0, 0.0], [4.0, 2.0], [0.0, 2.0]])
    tris = triangulate(rect)
    assert tris.shape == (2, 3)
    assert mesh_area(rect, tris) == pytest.approx(8.0)
    # the two triangles share exactly one edge (the diagonal), so no overlap
    edges = [frozenset(e) for t in tris for e in ((t[0], t[1]), (t[1], t[2]), (t[2], t[0]))]
    shared = {e for e in edges if edges.count(e) > 1}
    assert len(shared) == 1


def test_clockwise_rectangle_also_two_triangles():
    rect = np.array([[0.0, 0.0], [0.0, 2.0], [4.0, 2.0], [4.0, 0.0]])
    tris = triangulate(rect)
    assert tris.shape == (2, 3)
    assert mesh_area(rect, tris) == pytest.approx(8.0)
    for t in tris:
        assert signed_area(rect[t]) > 0


def test_concave_polygon_area_preserved():
    # L shape, area 3
    poly = [(0, 0), (2, 0), (2, 1), (1, 1), (1, 2), (0, 2)]
    tris = triangulate(poly)
    assert len(tris) == len(poly) - 2
    assert mesh_area(poly, tris) == pytest.approx(3.0)


def test_closing_vertex_tolerated():
    square = [(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)]
    tris = triangulate(square)
    assert tris.shape == (2, 3)
    assert tris.max() <= 3


def test_collinear_vertices_dropped():
    # square with extra points along the bottom edge
    poly = [(0, 0), (0.5, 0), (1, 0), (1, 1), (0, 1)]
    tris = triangulate(poly)
    assert mesh_area(poly, tris) == pytest.approx(1.0)
    assert len(tris) >= 2


def test_fully_collinear_ring_gives_no_triangles():
    tris = triangulate([(0, 0), (1, 1), (2, 2), (3, 3)])
    assert tris.shape == (0, 3)


def test_too_few_vertices():
    assert triangulate([(0, 0), (1, 0)]).shape == (0, 3)
    assert triangulate([]).shape == (0, 3)


def test_self_intersecting_ring_best_effort():
    bowtie = [(0, 0), (2, 2), (2, 0), (0, 2)]
    assert not polygon_is_simple(bowtie)
    tris = triangulate(bowtie)
    # does not hang or raise; every triangle indexes the input
    assert tris.ndim == 2 and tris.shape[1] == 3
    assert tris.size == 0 or tris.max() < 4


def test_polygon_is_simple():
    assert polygon_is_simple([(0, 0), (1, 0), (1, 1), (0, 1)])
    assert not polygon_is_simple([(0, 0), (1, 0)])


def test_signed_area_orientation():
    assert signed_area([(0, 0), (1, 0), (1, 1), (0, 1)]) == pytest.approx(1.0)
    assert signed_area([(0, 0), (0, 1), (1, 1), (1, 0)]) == pytest.approx(-1.0)


@pytest.mark.parametrize('dtype', [np.float64, np.float32])
def test_building_sized_mercator_square(dtype):
    # ~11 m on a side in Midtown Manhattan; cross products are ~1e-13
    lon = np.array([-73.9855, -73.9854, -73.9854, -73.9855])
    lat = np.array([40.758, 40.758, 40.7581, 40.7581])
    xs, ys = web_mercator(lon, lat)
    square = np.column_stack([xs, ys]).astype(dtype)
    tris = triangulate(square)
    assert tris.shape == (2, 3)
    # convex quad: any diagonal split covers the same area
    expected = mesh_area(square, [[0, 1, 2], [0, 2, 3]])
    assert expected > 0.0
    assert mesh_area(square, tris) == pytest.approx(expected, rel=1e-9)


def test_tiny_ring_with_collinear_vertex():
    ring = np.array([[0.0, 0.0], [1e-7, 0.0], [2e-7, 0.0], [2e-7, 1e-7], [0.0, 1e-7]]) + 0.3
    tris = triangulate(ring)
    assert len(tris) >= 2
    assert mesh_area(ring, tris) == pytest.approx(2e-14, rel=1e-6)
