"""Control network model."""

from typing import List, Iterator, Tuple
import numpy as np
from pydantic import BaseModel, Field

from .entities import ControlPoint


class ControlNetwork(BaseModel):
    """Ordered collection of control points and their measures."""

    name: str = Field(default="Control network")
    points: List[ControlPoint] = Field(default_factory=list)

    def size(self) -> int:
        """Number of control points."""
        return len(self.points)

    def num_measures(self) -> int:
        """Total number of pixel measures over all points."""
        return sum(len(point.measures) for point in self.points)

    def add_point(self, point: ControlPoint) -> None:
        self.points.append(point)

    def iter_measures(self) -> Iterator[Tuple[int, int, int, np.ndarray]]:
        """Yield (point index, measure index, camera index, pixel) in network order."""
        for i, point in enumerate(self.points):
            for m, measure in enumerate(point.measures):
                yield i, m, measure.image_id, measure.to_numpy()
