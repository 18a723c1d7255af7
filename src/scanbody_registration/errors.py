"""
Registration error taxonomy.

Batch-level preconditions (no landmarks, no scanbody) are raised to the caller.
Per-scanbody failures are raised inside the pipeline and recorded on the
registration report under their ``FailureKind`` so a batch never aborts on a
single scanbody.
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "FailureKind",
    "RegistrationError",
    "InsufficientLandmarksError",
    "NoValidScanbodyError",
    "InsufficientSurfaceDataError",
    "InsufficientPatchDataError",
    "MatchingFailedError",
    "DegenerateGeometryError",
    "InsufficientCorrespondencesError",
]


class FailureKind(str, Enum):
    INSUFFICIENT_LANDMARKS = "insufficient_landmarks"
    NO_VALID_SCANBODY = "no_valid_scanbody"
    INSUFFICIENT_SURFACE_DATA = "insufficient_surface_data"
    INSUFFICIENT_PATCH_DATA = "insufficient_patch_data"
    MATCHING_FAILED = "matching_failed"
    DEGENERATE_GEOMETRY = "degenerate_geometry"


class RegistrationError(Exception):
    """Base class for all registration failures."""

    kind: FailureKind = FailureKind.DEGENERATE_GEOMETRY


class InsufficientLandmarksError(RegistrationError):
    """Fewer than three landmarks were supplied."""

    kind = FailureKind.INSUFFICIENT_LANDMARKS


class NoValidScanbodyError(RegistrationError):
    """Detection found no qualifying landmark triple."""

    kind = FailureKind.NO_VALID_SCANBODY


class InsufficientSurfaceDataError(RegistrationError):
    """Too few scan points around a scanbody."""

    kind = FailureKind.INSUFFICIENT_SURFACE_DATA


class InsufficientPatchDataError(RegistrationError):
    """A neighborhood is too small to yield meaningful patch statistics."""

    kind = FailureKind.INSUFFICIENT_PATCH_DATA


class MatchingFailedError(RegistrationError):
    """Fewer patch correspondences than required were found."""

    kind = FailureKind.MATCHING_FAILED


class DegenerateGeometryError(RegistrationError):
    """Geometry computation on an empty or degenerate point set."""

    kind = FailureKind.DEGENERATE_GEOMETRY


class InsufficientCorrespondencesError(DegenerateGeometryError, ValueError):
    """The transform solver was called without any correspondence."""
