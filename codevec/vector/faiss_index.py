"""
FAISS-backed exact nearest-neighbour index.
"""

from typing import Sequence

import faiss
import numpy as np

from .index import TIE_TOLERANCE, ISpatialIndex
from .types import VectorPoint


class FaissSpatialIndex(ISpatialIndex):
    """FAISS IndexFlatL2 implementation of ISpatialIndex.

    IndexFlatL2 compares the query with every stored vector, so results are
    exact; it reports squared L2 distances directly.
    """

    def __init__(self, points: Sequence[VectorPoint]):
        super().__init__(points)
        self.index = None
        if self.points:
            self.index = faiss.IndexFlatL2(self.dimension)
            self.index.add(np.ascontiguousarray(self._matrix, dtype=np.float32))

    def _search(self, coordinates: np.ndarray, k: int):
        query_array = np.ascontiguousarray(coordinates, dtype=np.float32).reshape(1, -1)
        distances, positions = self.index.search(query_array, k)
        return distances[0].astype(np.float64), positions[0]

    def _within(self, coordinates: np.ndarray, radius: float):
        query_array = np.ascontiguousarray(coordinates, dtype=np.float32).reshape(1, -1)
        # range_search keeps strictly smaller distances, so pad the float32 radius
        lims, distances, positions = self.index.range_search(query_array, radius * (1 + TIE_TOLERANCE) + 1e-12)
        return distances[lims[0]:lims[1]].astype(np.float64), positions[lims[0]:lims[1]]
