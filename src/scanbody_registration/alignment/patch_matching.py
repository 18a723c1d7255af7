"""
Patch Matching

Scores every (scan patch, template patch) pair on geometric similarity and
keeps the best template patch for each scan patch:

    score = 0.4 * normal_similarity
          + 0.2 * density_ratio
          + 0.25 * curvature_similarity
          + 0.15 * compactness_similarity

Matching is greedy per scan patch, not a global assignment: two scan patches
may map to the same template patch. Whether that reflects duplicated
attachment geometry or should be prevented is still an open product question.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TYPE_CHECKING

import numpy as np

from ..extraction.patch_extractor import Patch
from ..utils.logging import setup_logger

if TYPE_CHECKING:
    from ..utils.config import AppConfig

logger = setup_logger(__name__)

CURVATURE_EPSILON = 0.001


@dataclass(eq=False)
class Correspondence:
    """A scan patch matched to a template patch. ``match_score`` None means unscored."""

    target_patch: Patch
    template_patch: Patch
    match_score: Optional[float] = None

    def __post_init__(self):
        if self.match_score is not None and not 0.0 <= self.match_score <= 1.0:
            raise ValueError(f"match_score must lie in [0, 1], got {self.match_score}")

    @property
    def weight(self) -> float:
        return 1.0 if self.match_score is None else float(self.match_score)


@dataclass
class MatchResult:
    success: bool
    correspondences: List[Correspondence] = field(default_factory=list)
    avg_quality: float = 0.0


@dataclass(frozen=True)
class MatchWeights:
    normal: float = 0.4
    density: float = 0.2
    curvature: float = 0.25
    compactness: float = 0.15


def curvature_proxy(patch: Patch) -> float:
    """Mean over max distance to the centroid; 0 for a degenerate patch."""
    d = patch.distances_to_centroid()
    if d.size == 0:
        return 0.0
    d_max = float(d.max())
    if d_max <= 0:
        return 0.0
    return float(d.mean()) / d_max


def compactness(patch: Patch) -> float:
    """1 / (1 + variance of the distances to the centroid)."""
    d = patch.distances_to_centroid()
    if d.size == 0:
        return 1.0
    return 1.0 / (1.0 + float(np.var(d)))


def _ratio(a: float, b: float) -> float:
    hi = max(a, b)
    if hi <= 0:
        return 1.0
    return min(a, b) / hi


def calculate_surface_match_score(
    target: Patch,
    template: Patch,
    weights: MatchWeights = MatchWeights(),
) -> float:
    """
    Geometric similarity of two patches, clamped to [0, 1].

    The normal term uses the absolute dot product, so opposite-facing
    normals count as aligned.
    """
    normal_similarity = abs(float(np.dot(target.normal, template.normal)))
    density_ratio = _ratio(target.point_count, template.point_count)

    curv_a = curvature_proxy(target)
    curv_b = curvature_proxy(template)
    curvature_similarity = 1.0 - abs(curv_a - curv_b) / (max(abs(curv_a), abs(curv_b)) + CURVATURE_EPSILON)

    compactness_similarity = _ratio(compactness(target), compactness(template))

    score = (
        weights.normal * normal_similarity
        + weights.density * density_ratio
        + weights.curvature * curvature_similarity
        + weights.compactness * compactness_similarity
    )
    return float(min(max(score, 0.0), 1.0))


@dataclass
class PatchMatcher:
    score_threshold: float = 0.3
    min_correspondences: int = 2
    weights: MatchWeights = field(default_factory=MatchWeights)

    @classmethod
    def from_config(cls, cfg: "AppConfig") -> "PatchMatcher":
        return cls(
            score_threshold=cfg.matching.score_threshold,
            min_correspondences=cfg.matching.min_correspondences,
            weights=MatchWeights(**cfg.matching.weights.model_dump()),
        )

    def match(self, target_patches: Sequence[Patch], template_patches: Sequence[Patch]) -> MatchResult:
        """
        Pair each scan patch with its best-scoring template patch.

        Args:
            target_patches: Patches extracted from the scan
            template_patches: Patches sampled from the template

        Returns:
            MatchResult; ``success`` requires at least ``min_correspondences`` matches
        """
        correspondences: List[Correspondence] = []

        if not template_patches:
            logger.warning("No template patches to match against.")

        for target in target_patches:
            best: Optional[Patch] = None
            best_score = -1.0
            for template in template_patches:
                score = calculate_surface_match_score(target, template, self.weights)
                # Strict comparison keeps the first template patch on ties
                if score > best_score:
                    best, best_score = template, score

            if best is not None and best_score > self.score_threshold:
                correspondences.append(Correspondence(target, best, best_score))
                logger.debug("Matched %r -> %r (score %.3f).", target, best, best_score)
            else:
                logger.debug(
                    "No template match above %.2f for %r (best %.3f).",
                    self.score_threshold, target, max(best_score, 0.0),
                )

        avg_quality = float(np.mean([c.match_score for c in correspondences])) if correspondences else 0.0
        success = len(correspondences) >= self.min_correspondences
        logger.debug(
            "Patch matching: %d/%d correspondences, avg quality %.3f, success=%s.",
            len(correspondences), len(target_patches), avg_quality, success,
        )
        return MatchResult(success=success, correspondences=correspondences, avg_quality=avg_quality)
