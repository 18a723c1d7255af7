"""
Basic Placement

Places the template on the scan's local summit near a scanbody, without patch
matching. Less precise than the advanced path but robust on sparse or noisy
scans: it succeeds whenever a scan point lies within the largest search
radius (XY) of the scanbody centroid.

Steps:
- highest scan point within progressively larger XY radii around the centroid
- refine by averaging the points within 1 mm of that candidate
- estimate the surface normal there
- lift the template origin by half the template height along the normal
- rms: planar deviation of the scan points within 5 mm of the placed point
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..detection.scanbody_detector import Scanbody
from ..errors import InsufficientSurfaceDataError
from ..utils.geometry import as_point_array, bounding_box, estimate_normal, normalize, points_within
from ..utils.logging import setup_logger
from .transform_solver import RigidPlacement, rotation_from_normals

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray
    from ..utils.config import AppConfig

logger = setup_logger(__name__)


def template_half_height(template_points: "ArrayLike") -> float:
    """Half of the template's extent along Z."""
    mins, maxs = bounding_box(as_point_array(template_points))
    return float(maxs[2] - mins[2]) / 2.0


@dataclass
class BasicPlacement:
    search_radii: Tuple[float, ...] = (1.0, 2.0, 3.0, 4.0)
    refine_radius: float = 1.0
    normal_radius: float = 2.5
    rms_radius: float = 5.0
    template_up: Sequence[float] = field(default=(0.0, 0.0, 1.0))

    def __post_init__(self):
        up = np.asarray(self.template_up, dtype=float)
        if up.shape != (3,) or np.linalg.norm(up) < 1e-12:
            raise ValueError(f"template_up must be a non-zero 3D vector, got {self.template_up}")
        # rotation_from_normals compares unit vectors
        self.template_up = tuple(float(v) for v in normalize(up))

    @classmethod
    def from_config(cls, cfg: "AppConfig") -> "BasicPlacement":
        b = cfg.basic
        return cls(
            search_radii=tuple(b.search_radii),
            refine_radius=b.refine_radius,
            normal_radius=b.normal_radius,
            rms_radius=b.rms_radius,
            template_up=tuple(b.template_up),
        )

    def find_summit(self, scan_points: "NDArray[np.float64]", center: "NDArray[np.float64]") -> "NDArray[np.float64]":
        """
        Highest scan point within the smallest XY radius that contains any point.

        Raises:
            InsufficientSurfaceDataError: If no point lies within the largest radius
        """
        d_xy = np.hypot(scan_points[:, 0] - center[0], scan_points[:, 1] - center[1])
        for radius in self.search_radii:
            mask = d_xy <= radius
            if np.any(mask):
                candidates = scan_points[mask]
                return candidates[int(np.argmax(candidates[:, 2]))]
        raise InsufficientSurfaceDataError(
            f"No scan point within {max(self.search_radii):.1f} mm (XY) of "
            f"[{center[0]:.2f}, {center[1]:.2f}, {center[2]:.2f}]"
        )

    def place(self, scan_points: "ArrayLike", scanbody: Scanbody, half_height: float) -> RigidPlacement:
        """
        Compute a placement for one scanbody.

        Args:
            scan_points: Scan cloud (flat or N x 3)
            scanbody: Detected scanbody
            half_height: Template offset along the surface normal (mm)

        Returns:
            RigidPlacement with ``correspondence_count`` 1

        Raises:
            InsufficientSurfaceDataError: If the scan is empty around the scanbody
        """
        pts = as_point_array(scan_points)
        if len(pts) == 0:
            raise InsufficientSurfaceDataError("Scan point cloud is empty")

        summit = self.find_summit(pts, scanbody.centroid)
        # The summit itself is always within the refine radius
        refined = pts[points_within(pts, summit, self.refine_radius)].mean(axis=0)

        normal = estimate_normal(pts[points_within(pts, refined, self.normal_radius)])
        translation = refined + half_height * normal
        rotation = rotation_from_normals(normal, self.template_up)

        # Never empty: the summit lies within refine_radius of the refined point
        nearby = pts[points_within(pts, refined, max(self.rms_radius, self.refine_radius))]
        deviation = (nearby - refined) @ normal
        rms = float(np.sqrt(np.mean(deviation ** 2)))

        logger.debug(
            "Basic placement for %s: summit z=%.3f, refined=[%.3f, %.3f, %.3f], %d points for rms.",
            scanbody, summit[2], *refined, len(nearby),
        )
        return RigidPlacement(
            translation=translation,
            rotation=rotation,
            rms=rms,
            correspondence_count=1,
        )
