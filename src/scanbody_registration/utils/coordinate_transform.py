"""
Local Coordinate Transformation for Scan Meshes.

Registration works in the scan's local frame: the mesh is shifted so that its
bounding-box center is the origin. Landmarks picked on the shifted mesh are
already in that frame; placements computed there can be moved back to the
scanner frame with ``to_global``.

    local = scanner - offset
    scanner = local + offset
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from .geometry import as_point_array, bounding_box_center

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True)
class LocalCoordinateTransform:
    """Translation-only transform between the scanner frame and the local frame.

    Attributes:
        offset_x: X offset subtracted from scanner coordinates
        offset_y: Y offset subtracted from scanner coordinates
        offset_z: Z offset subtracted from scanner coordinates
        origin_method: How the offset was derived ('bounds_center', 'centroid', 'identity')

    Example:
        >>> pts = np.array([[10.0, 0.0, 4.0], [20.0, 6.0, 8.0]])
        >>> transform = LocalCoordinateTransform.from_bounds_center(pts)
        >>> transform.to_local(pts)   # -> [[-5, -3, -2], [5, 3, 2]]
    """

    offset_x: float
    offset_y: float
    offset_z: float
    origin_method: str = field(default="unknown", compare=False)

    @classmethod
    def from_bounds_center(cls, points: "ArrayLike") -> "LocalCoordinateTransform":
        """Create transform that moves the bounding-box center to the origin.

        Raises:
            DegenerateGeometryError: If the point set is empty
        """
        center = bounding_box_center(as_point_array(points))
        return cls(
            offset_x=float(center[0]),
            offset_y=float(center[1]),
            offset_z=float(center[2]),
            origin_method="bounds_center",
        )

    @classmethod
    def from_centroid(cls, points: "ArrayLike") -> "LocalCoordinateTransform":
        """Create transform that moves the point centroid to the origin.

        Raises:
            ValueError: If the point set is empty
        """
        pts = as_point_array(points)
        if pts.size == 0:
            raise ValueError("Cannot compute centroid from empty point cloud")
        c = pts.mean(axis=0)
        return cls(
            offset_x=float(c[0]),
            offset_y=float(c[1]),
            offset_z=float(c[2]),
            origin_method="centroid",
        )

    @classmethod
    def identity(cls) -> "LocalCoordinateTransform":
        """Create an identity transform (no offset)."""
        return cls(offset_x=0.0, offset_y=0.0, offset_z=0.0, origin_method="identity")

    @property
    def offset(self) -> "NDArray[np.float64]":
        return np.array([self.offset_x, self.offset_y, self.offset_z])

    def to_local(self, points: "ArrayLike") -> "NDArray[np.float64]":
        """Transform scanner coordinates to local (points - offset)."""
        pts = as_point_array(points)
        if pts.size == 0:
            return pts.copy()
        return pts - self.offset

    def to_global(self, points: "ArrayLike") -> "NDArray[np.float64]":
        """Transform local coordinates back to the scanner frame (points + offset)."""
        pts = as_point_array(points)
        if pts.size == 0:
            return pts.copy()
        return pts + self.offset

    def to_dict(self) -> dict:
        return {
            "offset_x": self.offset_x,
            "offset_y": self.offset_y,
            "offset_z": self.offset_z,
            "origin_method": self.origin_method,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LocalCoordinateTransform":
        """Deserialize from dictionary (``offset_z`` and ``origin_method`` optional)."""
        return cls(
            offset_x=float(data["offset_x"]),
            offset_y=float(data["offset_y"]),
            offset_z=float(data.get("offset_z", 0.0)),
            origin_method=data.get("origin_method", "unknown"),
        )

    def __str__(self) -> str:
        return (
            f"LocalTransform(offset=[{self.offset_x:.3f}, {self.offset_y:.3f}, {self.offset_z:.3f}], "
            f"method={self.origin_method})"
        )
