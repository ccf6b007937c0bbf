"""
Exact nearest-neighbour indexes over a fixed set of VectorPoints.
Built per query from the current stored vectors and discarded afterwards.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

import numpy as np
from sklearn.neighbors import KDTree

from codevec.core.errors import DimensionMismatchError, EmptyIndexError

from .types import Neighbor, VectorPoint

# Relative slack when collecting points tied at the k-th distance
TIE_TOLERANCE = 1e-6


class ISpatialIndex(ABC):
    """Abstract interface for exact nearest-neighbour search by Euclidean distance.

    Results are ordered by ascending squared distance; equal distances are
    ordered by the position of the point in the build sequence.
    """

    def __init__(self, points: Sequence[VectorPoint]):
        self.points: List[VectorPoint] = list(points)
        self.dimension = self.points[0].dimension if self.points else None

        for point in self.points:
            if point.dimension != self.dimension:
                raise DimensionMismatchError(expected=self.dimension, actual=point.dimension)

        if self.points:
            self._matrix = np.vstack([point.coordinates for point in self.points])
        else:
            self._matrix = np.empty((0, 0), dtype=np.float32)

    @classmethod
    def build(cls, points: Sequence[VectorPoint]) -> "ISpatialIndex":
        """Build an index over ``points``."""
        return cls(points)

    def __len__(self) -> int:
        return len(self.points)

    def nearest(self, query: VectorPoint) -> VectorPoint:
        """Return the single point closest to ``query``."""
        if not self.points:
            raise EmptyIndexError()
        return self.query(query, 1)[0].point

    def k_nearest(self, query: VectorPoint, k: int) -> List[VectorPoint]:
        """Return up to ``k`` points in ascending distance order."""
        return [neighbor.point for neighbor in self.query(query, k)]

    def query(self, query: VectorPoint, k: int) -> List[Neighbor]:
        """Return up to ``k`` neighbours with their squared distances."""
        if k < 0:
            raise ValueError("k must be >= 0")

        k = min(k, len(self.points))
        if k == 0:
            return []

        if query.dimension != self.dimension:
            raise DimensionMismatchError(expected=self.dimension, actual=query.dimension)

        distances, positions = self._search(query.coordinates, k)
        if k < len(self.points):
            # Points tied with the k-th distance may have been left out of the first k
            distances, positions = self._within(query.coordinates, float(np.max(distances)))

        # Stable tie-break on build position
        order = np.lexsort((positions, distances))[:k]
        return [
            Neighbor(
                point=self.points[int(positions[i])],
                distance=float(distances[i]),
                position=int(positions[i]),
            )
            for i in order
        ]

    @abstractmethod
    def _search(self, coordinates: np.ndarray, k: int):
        """Return (squared distances, positions) of the k closest points, 0 < k <= len(self)."""
        pass

    @abstractmethod
    def _within(self, coordinates: np.ndarray, radius: float):
        """Return (squared distances, positions) of every point whose squared distance is at most ``radius``.

        Implementations may return extra points just beyond ``radius``.
        """
        pass


class KDTreeSpatialIndex(ISpatialIndex):
    """k-d tree backed index (scikit-learn)."""

    def __init__(self, points: Sequence[VectorPoint], leaf_size: int = 40):
        super().__init__(points)
        self.leaf_size = leaf_size
        self.tree = None
        if self.points:
            self.tree = KDTree(self._matrix.astype(np.float64), leaf_size=leaf_size)

    def _search(self, coordinates: np.ndarray, k: int):
        distances, positions = self.tree.query(
            coordinates.astype(np.float64).reshape(1, -1),
            k=k,
            return_distance=True,
            sort_results=True,
        )
        return distances[0] ** 2, positions[0]

    def _within(self, coordinates: np.ndarray, radius: float):
        # query_radius works in plain (not squared) distance
        positions, distances = self.tree.query_radius(
            coordinates.astype(np.float64).reshape(1, -1),
            r=np.sqrt(radius) * (1 + TIE_TOLERANCE) + 1e-12,
            return_distance=True,
        )
        return distances[0] ** 2, positions[0]


class ExactScanSpatialIndex(ISpatialIndex):
    """Brute-force index: computes every distance with numpy."""

    def _distances(self, coordinates: np.ndarray) -> np.ndarray:
        deltas = self._matrix.astype(np.float64) - coordinates.astype(np.float64)
        return np.einsum("ij,ij->i", deltas, deltas)

    def _search(self, coordinates: np.ndarray, k: int):
        distances = self._distances(coordinates)
        positions = np.lexsort((np.arange(len(distances)), distances))[:k]
        return distances[positions], positions

    def _within(self, coordinates: np.ndarray, radius: float):
        distances = self._distances(coordinates)
        positions = np.flatnonzero(distances <= radius * (1 + TIE_TOLERANCE))
        return distances[positions], positions
