"""
Exact nearest-neighbour index tests, run against every SpatialIndex implementation.
"""

import numpy as np
import pytest

from codevec.core.errors import DimensionMismatchError, EmptyIndexError
from codevec.vector.faiss_index import FaissSpatialIndex
from codevec.vector.index import ExactScanSpatialIndex, ISpatialIndex, KDTreeSpatialIndex
from codevec.vector.types import VectorPoint

INDEX_CLASSES = [KDTreeSpatialIndex, ExactScanSpatialIndex, FaissSpatialIndex]


@pytest.fixture(params=INDEX_CLASSES, ids=lambda cls: cls.__name__)
def index_class(request):
    return request.param


@pytest.fixture
def toy_points():
    """Three points in 3-D with known distances from the origin: 1, 4, 9 (squared)."""
    return [
        VectorPoint.create([2.0, 0.0, 0.0], "far"),
        VectorPoint.create([0.0, 1.0, 0.0], "near"),
        VectorPoint.create([0.0, 0.0, 3.0], "farthest"),
    ]


def test_index_implements_interface(index_class, toy_points):
    index = index_class.build(toy_points)

    assert isinstance(index, ISpatialIndex)
    assert len(index) == 3
    assert index.dimension == 3


def test_nearest_returns_minimum_distance_point(index_class, toy_points):
    index = index_class.build(toy_points)
    query = VectorPoint.create([0.0, 0.0, 0.0], "origin")

    assert index.nearest(query).source_text == "near"


def test_k_nearest_ascending_order(index_class, toy_points):
    index = index_class.build(toy_points)
    query = VectorPoint.create([0.0, 0.0, 0.0], "origin")

    result = index.k_nearest(query, 2)

    assert [point.source_text for point in result] == ["near", "far"]


def test_query_reports_squared_distances(index_class, toy_points):
    index = index_class.build(toy_points)
    query = VectorPoint.create([0.0, 0.0, 0.0], "origin")

    neighbors = index.query(query, 3)

    assert [n.source_text for n in neighbors] == ["near", "far", "farthest"]
    assert [n.distance for n in neighbors] == pytest.approx([1.0, 4.0, 9.0])
    assert [n.position for n in neighbors] == [1, 0, 2]


def test_k_larger_than_index_is_clamped(index_class, toy_points):
    index = index_class.build(toy_points)
    query = VectorPoint.create([1.0, 1.0, 1.0], "q")

    assert len(index.k_nearest(query, 10)) == 3


def test_k_zero_returns_empty(index_class, toy_points):
    index = index_class.build(toy_points)
    query = VectorPoint.create([1.0, 1.0, 1.0], "q")

    assert index.k_nearest(query, 0) == []


def test_negative_k_rejected(index_class, toy_points):
    index = index_class.build(toy_points)
    query = VectorPoint.create([1.0, 1.0, 1.0], "q")

    with pytest.raises(ValueError):
        index.k_nearest(query, -1)


def test_empty_index(index_class):
    index = index_class.build([])
    query = VectorPoint.create([1.0, 0.0], "q")

    assert len(index) == 0
    assert index.k_nearest(query, 3) == []
    with pytest.raises(EmptyIndexError):
        index.nearest(query)


def test_ties_broken_by_build_position(index_class):
    points = [
        VectorPoint.create([1.0, 0.0], "first"),
        VectorPoint.create([-1.0, 0.0], "second"),
        VectorPoint.create([0.0, 1.0], "third"),
        VectorPoint.create([5.0, 5.0], "outlier"),
    ]
    index = index_class.build(points)
    query = VectorPoint.create([0.0, 0.0], "origin")

    first = [p.source_text for p in index.k_nearest(query, 3)]
    second = [p.source_text for p in index.k_nearest(query, 3)]

    assert first == ["first", "second", "third"]
    assert first == second


def unit_axis_points(count, dimension=4):
    points = []
    for i in range(count):
        coordinates = [0.0] * dimension
        coordinates[i % dimension] = 1.0
        points.append(VectorPoint.create(coordinates, f"p{i}"))
    return points


@pytest.mark.parametrize("k", [1, 3, 7])
def test_ties_at_k_boundary_take_earliest_positions(index_class, k):
    index = index_class.build(unit_axis_points(100))
    query = VectorPoint.create([0.0, 0.0, 0.0, 0.0], "origin")

    neighbors = index.query(query, k)

    assert [n.source_text for n in neighbors] == [f"p{i}" for i in range(k)]
    assert [n.distance for n in neighbors] == pytest.approx([1.0] * k)


def test_nearest_agrees_with_first_of_k_nearest(index_class):
    index = index_class.build(unit_axis_points(100))
    query = VectorPoint.create([0.0, 0.0, 0.0, 0.0], "origin")

    assert index.nearest(query).source_text == "p0"
    assert index.k_nearest(query, 5)[0].source_text == "p0"


def test_boundary_ties_do_not_displace_closer_points(index_class):
    points = [VectorPoint.create([3.0, 0.0], "far")] + [
        VectorPoint.create([0.0, 1.0], f"tied{i}") for i in range(6)
    ] + [VectorPoint.create([0.5, 0.0], "closest")]
    index = index_class.build(points)
    query = VectorPoint.create([0.0, 0.0], "origin")

    assert [p.source_text for p in index.k_nearest(query, 3)] == ["closest", "tied0", "tied1"]


def test_mixed_dimensions_rejected(index_class):
    points = [
        VectorPoint.create([1.0, 0.0], "two"),
        VectorPoint.create([1.0, 0.0, 0.0], "three"),
    ]

    with pytest.raises(DimensionMismatchError):
        index_class.build(points)


def test_query_dimension_must_match(index_class, toy_points):
    index = index_class.build(toy_points)

    with pytest.raises(DimensionMismatchError):
        index.nearest(VectorPoint.create([1.0, 0.0], "short"))


def test_implementations_agree_on_random_points():
    rng = np.random.default_rng(7)
    points = [VectorPoint.create(rng.normal(size=16), f"p{i}") for i in range(200)]
    query = VectorPoint.create(rng.normal(size=16), "query")

    kdtree = [p.source_text for p in KDTreeSpatialIndex.build(points).k_nearest(query, 10)]
    scan = [p.source_text for p in ExactScanSpatialIndex.build(points).k_nearest(query, 10)]
    faiss_nearest = FaissSpatialIndex.build(points).nearest(query).source_text

    assert kdtree == scan
    assert faiss_nearest == scan[0]


def test_vector_point_create_checks_dimension():
    with pytest.raises(DimensionMismatchError):
        VectorPoint.create([1.0, 2.0], "text", dimension=3)

    point = VectorPoint.create([1, 2, 3], "text", dimension=3)
    assert point.dimension == 3
    assert point.coordinates.dtype == np.float32


def test_vector_point_rejects_empty_and_non_finite():
    with pytest.raises(ValueError):
        VectorPoint.create([], "empty")
    with pytest.raises(ValueError):
        VectorPoint.create([1.0, float("nan")], "nan")
