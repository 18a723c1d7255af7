"""
Surface Patch Extraction

Culls a point cloud to local neighborhoods ("patches") summarized by their
centroid, normal and point count.

Two modes:
- landmark-centered (scan side): one patch per scanbody landmark, taken from
  the scan region around the scanbody
- sampled (template side): seven fixed locations derived from the template's
  bounding box. The box axes stand in for the template's surface topology;
  this is a heuristic, not surface-aware sampling, and coverage is not
  guaranteed to be even.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, TYPE_CHECKING

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..detection.scanbody_detector import Scanbody
from ..errors import InsufficientPatchDataError, InsufficientSurfaceDataError
from ..utils.geometry import (
    as_point_array,
    bounding_box,
    centroid,
    estimate_normal,
    points_within,
)
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray
    from ..utils.config import AppConfig

logger = setup_logger(__name__)


@dataclass(eq=False)
class Patch:
    """A local surface neighborhood. ``points`` keeps the cloud's input order."""

    source_id: str
    points: "NDArray[np.float64]"
    centroid: "NDArray[np.float64]"
    normal: "NDArray[np.float64]"

    @property
    def point_count(self) -> int:
        return len(self.points)

    def distances_to_centroid(self) -> "NDArray[np.float64]":
        return np.linalg.norm(self.points - self.centroid, axis=1)

    def __repr__(self) -> str:
        c = self.centroid
        return (
            f"Patch({self.source_id!r}, n={self.point_count}, "
            f"centroid=[{c[0]:.3f}, {c[1]:.3f}, {c[2]:.3f}])"
        )


def build_patch(points: "ArrayLike", source_id: str, min_points: int) -> Patch:
    """
    Summarize a neighborhood into a Patch.

    Args:
        points: Neighborhood points (N x 3)
        source_id: Identifier of what the patch was taken around
        min_points: The neighborhood must hold strictly more points than this

    Raises:
        InsufficientPatchDataError: If the neighborhood is too small
    """
    pts = as_point_array(points)
    if len(pts) <= min_points:
        raise InsufficientPatchDataError(
            f"Patch '{source_id}' has {len(pts)} points; more than {min_points} required"
        )
    return Patch(
        source_id=source_id,
        points=pts,
        centroid=centroid(pts),
        normal=estimate_normal(pts),
    )


def _radius_neighborhoods(
    points: "NDArray[np.float64]",
    centers: "NDArray[np.float64]",
    radius: float,
) -> List["NDArray[np.intp]"]:
    """Indices (ascending) of the points within ``radius`` of each center."""
    if len(points) == 0:
        return [np.empty(0, dtype=np.intp) for _ in range(len(centers))]
    nbrs = NearestNeighbors(algorithm="kd_tree").fit(points)
    indices = nbrs.radius_neighbors(centers, radius=radius, return_distance=False)
    return [np.sort(idx) for idx in indices]


@dataclass
class PatchExtractor:
    scan_patch_radius: float = 2.5
    template_patch_radius: float = 1.5
    min_scan_patch_points: int = 10
    min_template_patch_points: int = 15
    region_radius_factor: float = 1.5
    min_region_radius: float = 10.0
    min_region_points: int = 50
    template_height_fraction: float = 0.2
    template_lateral_fraction: float = 0.3

    @classmethod
    def from_config(cls, cfg: "AppConfig") -> "PatchExtractor":
        return cls(**cfg.extraction.model_dump())

    # ------------------------ Scan side ------------------------
    def search_radius(self, scanbody: Scanbody) -> float:
        """Region radius around a scanbody: 1.5x its spread, never below 10 mm."""
        return max(self.region_radius_factor * scanbody.max_pairwise_distance, self.min_region_radius)

    def extract_region(self, scan_points: "ArrayLike", scanbody: Scanbody) -> "NDArray[np.float64]":
        """
        Cull the scan to the points around a scanbody.

        Keeps patch extraction local to the scanbody so unrelated surface
        regions are never pulled in.

        Raises:
            InsufficientSurfaceDataError: If fewer than ``min_region_points`` survive
        """
        pts = as_point_array(scan_points)
        radius = self.search_radius(scanbody)
        region = pts[points_within(pts, scanbody.centroid, radius)]

        logger.debug(
            "Region for %s: %d of %d scan points within %.2f mm.",
            scanbody, len(region), len(pts), radius,
        )
        if len(region) < self.min_region_points:
            raise InsufficientSurfaceDataError(
                f"Only {len(region)} scan points within {radius:.2f} mm of {scanbody}; "
                f"at least {self.min_region_points} required"
            )
        return region

    def extract_landmark_patches(self, points: "ArrayLike", scanbody: Scanbody) -> List[Patch]:
        """One patch per landmark of the scanbody; undersized neighborhoods are skipped."""
        pts = as_point_array(points)
        centers = scanbody.positions
        neighborhoods = _radius_neighborhoods(pts, centers, self.scan_patch_radius)

        patches = []
        for landmark, idx in zip(scanbody.landmarks, neighborhoods):
            try:
                patches.append(build_patch(pts[idx], landmark.id, self.min_scan_patch_points))
            except InsufficientPatchDataError as e:
                logger.debug("Skipping scan patch: %s", e)
        logger.debug("Extracted %d/%d scan patches for %s.", len(patches), len(centers), scanbody)
        return patches

    # ------------------------ Template side ------------------------
    def template_sample_locations(self, template_points: "ArrayLike") -> "NDArray[np.float64]":
        """
        Seven sample locations from the template bounding box.

        Order: center, +/- height fraction along Z (up), +/- lateral fraction
        of the X extent along X, +/- lateral fraction of the Y extent along Y.
        """
        mins, maxs = bounding_box(as_point_array(template_points))
        center = (mins + maxs) / 2.0
        size = maxs - mins

        dz = self.template_height_fraction * size[2]
        dx = self.template_lateral_fraction * size[0]
        dy = self.template_lateral_fraction * size[1]
        offsets = np.array([
            [0.0, 0.0, 0.0],
            [0.0, 0.0, dz],
            [0.0, 0.0, -dz],
            [dx, 0.0, 0.0],
            [-dx, 0.0, 0.0],
            [0.0, dy, 0.0],
            [0.0, -dy, 0.0],
        ])
        return center + offsets

    def extract_template_patches(self, template_points: "ArrayLike") -> List[Patch]:
        """Patches around the fixed template sample locations; sparse ones are dropped."""
        pts = as_point_array(template_points)
        locations = self.template_sample_locations(pts)
        neighborhoods = _radius_neighborhoods(pts, locations, self.template_patch_radius)

        patches = []
        for n, idx in enumerate(neighborhoods):
            try:
                patches.append(build_patch(pts[idx], f"template_{n}", self.min_template_patch_points))
            except InsufficientPatchDataError as e:
                logger.debug("Skipping template patch: %s", e)

        logger.info(
            "Extracted %d/%d template patches (radius %.2f mm).",
            len(patches), len(locations), self.template_patch_radius,
        )
        return patches

