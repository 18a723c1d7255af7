"""
Tests for patch similarity scoring and greedy patch matching.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

# Ensure src is importable
sys.path.append(str(Path(__file__).parent.parent / "src"))

from scanbody_registration.alignment.patch_matching import (
    PatchMatcher,
    calculate_surface_match_score,
    compactness,
    curvature_proxy,
)
from scanbody_registration.extraction.patch_extractor import Patch, build_patch


def _disc(radius: float, spacing: float, center=(0.0, 0.0, 0.0), source_id: str = "p") -> Patch:
    ticks = np.arange(-radius, radius + 1e-9, spacing)
    xx, yy = np.meshgrid(ticks, ticks)
    pts = np.column_stack([xx.ravel(), yy.ravel(), np.zeros(xx.size)])
    pts = pts[np.linalg.norm(pts, axis=1) <= radius] + np.asarray(center)
    return build_patch(pts, source_id, min_points=0)


def _with_normal(patch: Patch, normal) -> Patch:
    return Patch(patch.source_id, patch.points, patch.centroid, np.asarray(normal, dtype=float))


class TestDescriptors:
    def test_curvature_proxy_of_degenerate_patch(self):
        """Coincident points give zero curvature and full compactness."""
        pts = np.zeros((20, 3))
        patch = Patch("p", pts, np.zeros(3), np.array([0.0, 0.0, 1.0]))
        assert curvature_proxy(patch) == 0.0
        assert compactness(patch) == 1.0

    def test_curvature_proxy_range(self):
        """Curvature proxy of a uniform disc."""
        patch = _disc(2.5, 0.25)
        c = curvature_proxy(patch)
        assert 0.0 < c <= 1.0
        # Uniform disc: mean/max radius tends to 2/3
        assert c == pytest.approx(2.0 / 3.0, abs=0.05)

    def test_compactness_decreases_with_spread(self):
        """Wider patches are less compact."""
        assert compactness(_disc(1.0, 0.1)) > compactness(_disc(4.0, 0.1))


class TestScore:
    def test_identical_patches_score_one(self):
        """A patch matches itself perfectly."""
        patch = _disc(2.0, 0.25)
        assert calculate_surface_match_score(patch, patch) == pytest.approx(1.0)

    def test_orthogonal_normals_lose_normal_term(self):
        """Orthogonal normals drop the 0.4 normal term."""
        patch = _disc(2.0, 0.25)
        tilted = _with_normal(patch, [1.0, 0.0, 0.0])
        assert calculate_surface_match_score(patch, tilted) == pytest.approx(0.6)

    def test_opposite_normals_count_as_aligned(self):
        """Normal similarity ignores orientation."""
        patch = _disc(2.0, 0.25)
        flipped = _with_normal(patch, [0.0, 0.0, -1.0])
        assert calculate_surface_match_score(patch, flipped) == pytest.approx(1.0)

    def test_density_ratio_term(self):
        """Point count ratio drives the density term."""
        dense = _disc(2.0, 0.1)
        sparse = _disc(2.0, 0.2)
        score = calculate_surface_match_score(dense, sparse)
        ratio = sparse.point_count / dense.point_count
        # Same shape, so only the density term falls short of its weight
        assert score == pytest.approx(0.4 + 0.2 * ratio + 0.25 + 0.15, abs=0.02)

    def test_score_is_symmetric(self):
        """Score does not depend on argument order."""
        a = _disc(2.5, 0.25)
        b = _with_normal(_disc(1.5, 0.2), [0.6, 0.0, 0.8])
        assert calculate_surface_match_score(a, b) == pytest.approx(calculate_surface_match_score(b, a))

    def test_score_bounds_on_random_patches(self):
        """Scores stay within [0, 1]."""
        rng = np.random.default_rng(5)
        patches = []
        for i in range(20):
            n = int(rng.integers(11, 200))
            pts = rng.normal(size=(n, 3)) * rng.uniform(0.1, 3.0, size=3)
            patches.append(build_patch(pts, f"r{i}", min_points=10))
        for a in patches:
            for b in patches:
                s = calculate_surface_match_score(a, b)
                assert 0.0 <= s <= 1.0


class TestMatcher:
    def test_matches_each_target_to_best_template(self):
        """Each scan patch picks the best template patch."""
        target_a = _disc(2.5, 0.25, center=(0, 0, 0), source_id="a")
        target_b = _disc(2.5, 0.25, center=(3, 0, 0), source_id="b")
        good = _disc(2.5, 0.25, center=(10, 0, 0), source_id="good")
        poor = _with_normal(_disc(0.8, 0.25, center=(20, 0, 0), source_id="poor"), [1.0, 0.0, 0.0])

        result = PatchMatcher().match([target_a, target_b], [poor, good])

        assert result.success
        assert len(result.correspondences) == 2
        assert all(c.template_patch is good for c in result.correspondences)
        assert result.avg_quality == pytest.approx(1.0)
        assert all(0.3 < c.match_score <= 1.0 for c in result.correspondences)

    def test_single_correspondence_is_not_success(self):
        """Two correspondences are needed by default."""
        target = _disc(2.5, 0.25, source_id="a")
        result = PatchMatcher().match([target], [target])
        assert len(result.correspondences) == 1
        assert not result.success

    def test_threshold_rejects_weak_matches(self):
        """Scores at or below the threshold are discarded."""
        target = _disc(2.0, 0.25, source_id="a")
        template = _with_normal(_disc(2.0, 0.25, source_id="t"), [1.0, 0.0, 0.0])
        result = PatchMatcher(score_threshold=0.7).match([target, target], [template])

        assert result.correspondences == []
        assert result.avg_quality == 0.0
        assert not result.success

    def test_ties_keep_first_template(self):
        """Equal scores keep the earlier template patch."""
        target = _disc(2.0, 0.25, source_id="a")
        first = _disc(2.0, 0.25, center=(5, 0, 0), source_id="first")
        second = Patch("second", first.points, first.centroid, first.normal)
        result = PatchMatcher().match([target], [first, second])
        assert result.correspondences[0].template_patch is first

    def test_no_template_patches(self):
        """Nothing to match against means no success."""
        result = PatchMatcher().match([_disc(2.0, 0.25)], [])
        assert not result.success
        assert result.correspondences == []

    def test_min_correspondences_is_configurable(self):
        """A single correspondence succeeds when allowed."""
        target = _disc(2.5, 0.25, source_id="a")
        assert PatchMatcher(min_correspondences=1).match([target], [target]).success
