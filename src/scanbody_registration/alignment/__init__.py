"""
Spatial Alignment Module

Matches scan patches to template patches and solves the rigid placement of
the template, with a highest-point placement as the cheaper alternative.
"""

from .patch_matching import (
    Correspondence,
    MatchResult,
    MatchWeights,
    PatchMatcher,
    calculate_surface_match_score,
)
from .transform_solver import RigidPlacement, rotation_from_normals, solve
from .basic_placement import BasicPlacement, template_half_height

__all__ = [
    "Correspondence",
    "MatchResult",
    "MatchWeights",
    "PatchMatcher",
    "calculate_surface_match_score",
    "RigidPlacement",
    "rotation_from_normals",
    "solve",
    "BasicPlacement",
    "template_half_height",
]
