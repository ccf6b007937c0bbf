"""
Vector data types shared by the embedding engine, block store and spatial index.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

import numpy as np

from codevec.core.errors import DimensionMismatchError


@dataclass(eq=False)
class VectorPoint:
    """A fixed-dimension embedding paired with the text it was derived from."""

    coordinates: np.ndarray
    """1-D float32 array of length D"""

    source_text: str
    """The code text the coordinates were computed from"""

    def __post_init__(self):
        coordinates = np.asarray(self.coordinates, dtype=np.float32)
        if coordinates.ndim != 1 or coordinates.size == 0:
            raise ValueError("Vector coordinates must be a non-empty 1-D sequence")
        if not np.all(np.isfinite(coordinates)):
            raise ValueError("Vector coordinates must be finite")
        self.coordinates = coordinates

    @classmethod
    def create(
        cls,
        coordinates: Union[Sequence[float], np.ndarray],
        source_text: str,
        dimension: Optional[int] = None,
    ) -> "VectorPoint":
        """Build a point, rejecting coordinates whose length is not ``dimension``."""
        coordinates = np.asarray(coordinates, dtype=np.float32)
        if dimension is not None and (coordinates.ndim != 1 or coordinates.shape[0] != dimension):
            raise DimensionMismatchError(expected=dimension, actual=coordinates.size)
        return cls(coordinates=coordinates, source_text=source_text)

    @property
    def dimension(self) -> int:
        return int(self.coordinates.shape[0])

    def to_list(self) -> list:
        return [float(value) for value in self.coordinates]

    def __eq__(self, other):
        if not isinstance(other, VectorPoint):
            return NotImplemented
        return (
            self.source_text == other.source_text
            and np.array_equal(self.coordinates, other.coordinates)
        )

    def __repr__(self):
        preview = self.source_text[:30] + "..." if len(self.source_text) > 30 else self.source_text
        return f"VectorPoint(dimension={self.dimension}, source_text={preview!r})"


@dataclass(frozen=True)
class Neighbor:
    """A point returned by a nearest-neighbour query."""

    point: VectorPoint
    """The matched point"""

    distance: float
    """Squared Euclidean distance to the query"""

    position: int = field(default=0)
    """Position of the point in the sequence the index was built from"""

    @property
    def source_text(self) -> str:
        return self.point.source_text
