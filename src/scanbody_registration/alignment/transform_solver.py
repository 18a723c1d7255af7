"""
Rigid Transform Solver

Derives a template placement from weighted patch correspondences:

1. translation: weighted scan-patch centroid minus weighted template-patch centroid
2. rotation: Euler angles from the difference of the averaged patch normals
3. rms: weighted residual between scan centroids and translated template centroids

The rotation step is a first-order heuristic (atan2 of the normal
difference), not the exact rotation between two vectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, TYPE_CHECKING

import numpy as np

from ..errors import InsufficientCorrespondencesError
from ..utils.geometry import as_point_array, normalize
from ..utils.logging import setup_logger
from .patch_matching import Correspondence

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = setup_logger(__name__)


def euler_xyz_to_matrix(angles_deg: "ArrayLike") -> "NDArray[np.float64]":
    """Rotation matrix for X, then Y, then Z rotations about the fixed axes (degrees)."""
    rx, ry, rz = np.deg2rad(np.asarray(angles_deg, dtype=float))
    Rx = np.array([[1.0, 0.0, 0.0], [0.0, np.cos(rx), -np.sin(rx)], [0.0, np.sin(rx), np.cos(rx)]])
    Ry = np.array([[np.cos(ry), 0.0, np.sin(ry)], [0.0, 1.0, 0.0], [-np.sin(ry), 0.0, np.cos(ry)]])
    Rz = np.array([[np.cos(rz), -np.sin(rz), 0.0], [np.sin(rz), np.cos(rz), 0.0], [0.0, 0.0, 1.0]])
    return Rz @ Ry @ Rx


@dataclass(eq=False)
class RigidPlacement:
    """Where to put a copy of the template.

    Attributes:
        translation: Template origin position in the scan frame (mm)
        rotation: Euler angles in degrees, applied X, then Y, then Z
        rms: Fit residual (mm), >= 0
        correspondence_count: Number of correspondences behind the placement
    """

    translation: "NDArray[np.float64]"
    rotation: "NDArray[np.float64]"
    rms: float
    correspondence_count: int

    def rotation_matrix(self) -> "NDArray[np.float64]":
        return euler_xyz_to_matrix(self.rotation)

    def to_matrix(self) -> "NDArray[np.float64]":
        """4x4 transform: rotate about the template origin, then translate."""
        T = np.eye(4)
        T[:3, :3] = self.rotation_matrix()
        T[:3, 3] = self.translation
        return T

    def apply(self, template_points: "ArrayLike") -> "NDArray[np.float64]":
        """Return a placed copy of the (origin-centered) template points."""
        pts = as_point_array(template_points)
        if pts.size == 0:
            return pts.copy()
        return pts @ self.rotation_matrix().T + self.translation

    def to_dict(self) -> dict:
        return {
            "translation": [float(v) for v in self.translation],
            "rotation": [float(v) for v in self.rotation],
            "rms": float(self.rms),
            "correspondence_count": int(self.correspondence_count),
        }


def rotation_from_normals(target_normal: "ArrayLike", reference_normal: "ArrayLike") -> "NDArray[np.float64]":
    """
    Approximate Euler angles (degrees, X/Y/Z) turning ``reference_normal`` towards ``target_normal``.

    APPROXIMATION: angles are atan2 terms of the component-wise normal
    difference, not an axis-angle solution. Identical normals give zero
    rotation.
    """
    delta = np.asarray(target_normal, dtype=float) - np.asarray(reference_normal, dtype=float)
    dx, dy, dz = delta
    pitch = np.arctan2(dy, dz)
    roll = -np.arctan2(dx, dz)
    yaw = np.arctan2(dy, dx)
    return np.rad2deg(np.array([pitch, roll, yaw]))


def _weighted_mean(values: "NDArray[np.float64]", weights: "NDArray[np.float64]") -> "NDArray[np.float64]":
    return (values * weights[:, None]).sum(axis=0) / weights.sum()


def solve(correspondences: Sequence[Correspondence]) -> RigidPlacement:
    """
    Estimate the rigid placement of the template from patch correspondences.

    Args:
        correspondences: Scan/template patch pairs; unscored pairs weigh 1.0

    Returns:
        RigidPlacement with rotation in degrees

    Raises:
        InsufficientCorrespondencesError: If no correspondence is given
    """
    if len(correspondences) == 0:
        raise InsufficientCorrespondencesError("Transform solve requires at least one correspondence")

    weights = np.array([c.weight for c in correspondences], dtype=float)
    if weights.sum() <= 0:
        logger.warning("All correspondence weights are zero; using equal weights.")
        weights = np.ones_like(weights)

    target_centroids = np.array([c.target_patch.centroid for c in correspondences])
    template_centroids = np.array([c.template_patch.centroid for c in correspondences])

    translation = _weighted_mean(target_centroids, weights) - _weighted_mean(template_centroids, weights)

    target_normal = normalize(_weighted_mean(np.array([c.target_patch.normal for c in correspondences]), weights))
    template_normal = normalize(_weighted_mean(np.array([c.template_patch.normal for c in correspondences]), weights))
    rotation = rotation_from_normals(target_normal, template_normal)

    residuals = target_centroids - (template_centroids + translation)
    sq = np.einsum("ij,ij->i", residuals, residuals)
    rms = float(np.sqrt((weights * sq).sum() / weights.sum()))

    logger.debug(
        "Solved placement from %d correspondences: t=[%.3f, %.3f, %.3f], r=[%.2f, %.2f, %.2f] deg, rms=%.4f.",
        len(correspondences), *translation, *rotation, rms,
    )
    return RigidPlacement(
        translation=translation,
        rotation=rotation,
        rms=rms,
        correspondence_count=len(correspondences),
    )
