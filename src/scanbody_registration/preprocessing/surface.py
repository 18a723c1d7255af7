"""
Surface Buffers

Wraps the mesh buffers handed over by the viewer: a flat stride-3 point
buffer and an optional flat stride-3 triangle index buffer. Registration
only consults the points; triangles are validated and carried along for the
caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

import numpy as np

from ..utils.coordinate_transform import LocalCoordinateTransform
from ..utils.geometry import as_point_array, bounding_box
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = setup_logger(__name__)


@dataclass(frozen=True, eq=False)
class SurfaceMesh:
    """Read-only point cloud (N x 3) with optional triangles (M x 3 indices)."""

    points: "NDArray[np.float64]"
    triangles: Optional["NDArray[np.int64]"] = None

    @classmethod
    def from_buffers(cls, points: "ArrayLike", triangles: Optional["ArrayLike"] = None) -> "SurfaceMesh":
        """
        Build from flat (or already reshaped) buffers.

        Raises:
            ValueError: If a buffer length is not a multiple of 3 or a
                triangle references a missing point
        """
        pts = as_point_array(points)
        pts = pts.copy()
        pts.setflags(write=False)

        tris = None
        if triangles is not None:
            tris = np.asarray(triangles, dtype=np.int64)
            if tris.ndim == 1:
                if tris.size % 3 != 0:
                    raise ValueError(f"Flat triangle buffer length {tris.size} is not a multiple of 3")
                tris = tris.reshape(-1, 3)
            elif tris.ndim != 2 or tris.shape[1] != 3:
                raise ValueError(f"Expected flat stride-3 buffer or Mx3 triangles, got shape {tris.shape}")
            if tris.size and (tris.min() < 0 or tris.max() >= len(pts)):
                raise ValueError(
                    f"Triangle indices out of range [0, {len(pts)}): min={tris.min()}, max={tris.max()}"
                )
            tris = tris.copy()
            tris.setflags(write=False)

        return cls(points=pts, triangles=tris)

    @property
    def n_points(self) -> int:
        return len(self.points)

    @property
    def n_triangles(self) -> int:
        return 0 if self.triangles is None else len(self.triangles)

    def bounds(self):
        return bounding_box(self.points)

    def centered(self) -> tuple["SurfaceMesh", LocalCoordinateTransform]:
        """
        Copy of the mesh moved so its bounding-box center is the origin.

        Returns:
            (centered mesh, transform to move results back to the original frame)
        """
        transform = LocalCoordinateTransform.from_bounds_center(self.points)
        logger.debug("Centering mesh with %s", transform)
        return SurfaceMesh.from_buffers(transform.to_local(self.points), self.triangles), transform
