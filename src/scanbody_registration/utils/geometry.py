"""
Geometry Primitives

Distance, centroid and normal estimation shared by detection, extraction,
matching and solving. Points are float64 numpy arrays: a single point has
shape (3,), a cloud has shape (N, 3).
"""

from __future__ import annotations

from typing import Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..errors import DegenerateGeometryError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

UP_AXIS = np.array([0.0, 0.0, 1.0])

# Cross products shorter than this come from (nearly) collinear triples
DEGENERATE_CROSS_LENGTH = 1e-3


def as_point_array(buffer: "ArrayLike") -> "NDArray[np.float64]":
    """
    Convert a flat stride-3 buffer or an (N, 3) array into an (N, 3) float64 array.

    Args:
        buffer: Flat sequence [x0, y0, z0, x1, ...] or array of shape (N, 3)

    Returns:
        (N, 3) array. The input is never modified.

    Raises:
        ValueError: If the buffer cannot be interpreted as 3D points
    """
    arr = np.asarray(buffer, dtype=np.float64)
    if arr.ndim == 1:
        if arr.size % 3 != 0:
            raise ValueError(f"Flat point buffer length {arr.size} is not a multiple of 3")
        return arr.reshape(-1, 3)
    if arr.ndim == 2 and arr.shape[1] == 3:
        return arr
    raise ValueError(f"Expected flat stride-3 buffer or Nx3 array, got shape {arr.shape}")


def distance(a: "ArrayLike", b: "ArrayLike") -> float:
    """Euclidean distance between two points."""
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))


def pairwise_distances(points: "ArrayLike") -> "NDArray[np.float64]":
    """Dense (N, N) matrix of Euclidean distances."""
    pts = np.asarray(points, dtype=float)
    diff = pts[:, None, :] - pts[None, :, :]
    return np.sqrt(np.einsum("ijk,ijk->ij", diff, diff))


def centroid(points: "ArrayLike") -> "NDArray[np.float64]":
    """
    Arithmetic mean of a point set.

    Raises:
        DegenerateGeometryError: If the point set is empty
    """
    pts = np.asarray(points, dtype=float)
    if pts.size == 0:
        raise DegenerateGeometryError("Cannot compute centroid of an empty point set")
    return pts.reshape(-1, 3).mean(axis=0)


def estimate_normal(points: "ArrayLike") -> "NDArray[np.float64]":
    """
    Estimate a surface normal from consecutive point triples.

    For every triple (p[i], p[i+1], p[i+2]) the cross product of
    (p[i+1] - p[i]) and (p[i+2] - p[i]) is taken; triples with a cross
    product shorter than 1e-3 are skipped and the remaining unit normals are
    averaged. The result is flipped to face +Z, as scan surfaces are assumed
    to face up.

    NOTE: this is a biased, order-dependent estimator adequate for roughly
    planar patches only. It is not a least-squares (PCA) plane fit.

    Returns:
        Unit normal, or (0, 0, 1) when fewer than 3 points exist or every
        triple is degenerate.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(pts) < 3:
        return UP_AXIS.copy()

    v1 = pts[1:-1] - pts[:-2]
    v2 = pts[2:] - pts[:-2]
    cross = np.cross(v1, v2)
    lengths = np.linalg.norm(cross, axis=1)
    usable = lengths >= DEGENERATE_CROSS_LENGTH
    if not np.any(usable):
        return UP_AXIS.copy()

    summed = (cross[usable] / lengths[usable, None]).sum(axis=0)
    norm = np.linalg.norm(summed)
    if norm < 1e-12:
        # Unit normals cancelled out
        return UP_AXIS.copy()

    normal = summed / norm
    if normal[2] < 0:
        normal = -normal
    return normal


def normalize(vector: "ArrayLike", fallback: "ArrayLike" = UP_AXIS) -> "NDArray[np.float64]":
    """Unit vector in the direction of ``vector``; ``fallback`` for zero length."""
    v = np.asarray(vector, dtype=float)
    norm = np.linalg.norm(v)
    if norm < 1e-12:
        return np.asarray(fallback, dtype=float).copy()
    return v / norm


def bounding_box(points: "ArrayLike") -> Tuple["NDArray[np.float64]", "NDArray[np.float64]"]:
    """
    Axis-aligned bounds of a cloud.

    Raises:
        DegenerateGeometryError: If the point set is empty
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(pts) == 0:
        raise DegenerateGeometryError("Cannot compute bounds of an empty point set")
    return pts.min(axis=0), pts.max(axis=0)


def bounding_box_center(points: "ArrayLike") -> "NDArray[np.float64]":
    mins, maxs = bounding_box(points)
    return (mins + maxs) / 2.0


def points_within(points: "NDArray[np.float64]", center: Sequence[float], radius: float) -> "NDArray[np.bool_]":
    """Boolean mask of points whose 3D distance to ``center`` is <= ``radius``."""
    diff = points - np.asarray(center, dtype=float)
    return np.einsum("ij,ij->i", diff, diff) <= radius * radius
