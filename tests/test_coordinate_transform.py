"""
Unit tests for LocalCoordinateTransform utility.

These tests verify:
- Transform creation from different origin methods
- Round-trip coordinate preservation (to_local -> to_global)
- Serialization/deserialization
"""

from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from scanbody_registration.errors import DegenerateGeometryError
from scanbody_registration.utils.coordinate_transform import LocalCoordinateTransform


class TestLocalCoordinateTransformCreation:
    """Tests for transform creation methods."""

    def test_from_bounds_center(self):
        """Offset is the midpoint of the bounding box, not the centroid."""
        points = np.array([
            [10.0, 0.0, 4.0],
            [20.0, 6.0, 8.0],
            [11.0, 1.0, 5.0],
        ])

        transform = LocalCoordinateTransform.from_bounds_center(points)

        assert transform.offset_x == pytest.approx(15.0)
        assert transform.offset_y == pytest.approx(3.0)
        assert transform.offset_z == pytest.approx(6.0)
        assert transform.origin_method == "bounds_center"

    def test_from_bounds_center_flat_buffer(self):
        """Flat stride-3 buffers are accepted."""
        transform = LocalCoordinateTransform.from_bounds_center([0.0, 0.0, 0.0, 2.0, 4.0, 6.0])
        assert np.allclose(transform.offset, [1.0, 2.0, 3.0])

    def test_from_bounds_center_empty(self):
        """Empty clouds have no bounds to center on."""
        with pytest.raises(DegenerateGeometryError):
            LocalCoordinateTransform.from_bounds_center(np.empty((0, 3)))

    def test_from_centroid(self):
        """Test transform creation from point cloud centroid."""
        points = np.array([
            [0.0, 0.0, 100.0],
            [200.0, 200.0, 150.0],
            [100.0, 100.0, 125.0],
        ])

        transform = LocalCoordinateTransform.from_centroid(points)

        assert transform.offset_x == pytest.approx(100.0)
        assert transform.offset_y == pytest.approx(100.0)
        assert transform.offset_z == pytest.approx(125.0)
        assert transform.origin_method == "centroid"

    def test_from_centroid_empty(self):
        """Empty clouds have no centroid."""
        with pytest.raises(ValueError):
            LocalCoordinateTransform.from_centroid(np.empty((0, 3)))

    def test_identity(self):
        """Identity transform leaves points unchanged."""
        transform = LocalCoordinateTransform.identity()
        pts = np.array([[1.0, 2.0, 3.0]])
        assert np.array_equal(transform.to_local(pts), pts)
        assert transform.origin_method == "identity"


class TestLocalCoordinateTransformRoundTrip:
    """Tests for coordinate transformation accuracy."""

    def test_round_trip_preserves_points(self):
        """to_local followed by to_global restores the input."""
        rng = np.random.default_rng(0)
        points = rng.uniform(-50.0, 50.0, size=(100, 3)) + np.array([120.0, -35.0, 18.0])
        transform = LocalCoordinateTransform.from_bounds_center(points)

        local = transform.to_local(points)
        restored = transform.to_global(local)

        assert np.allclose(restored, points, atol=1e-9)

    def test_local_bounds_are_centered(self):
        """Local bounds are symmetric about the origin."""
        points = np.array([[10.0, -4.0, 1.0], [30.0, 8.0, 9.0], [12.0, 0.0, 3.0]])
        local = LocalCoordinateTransform.from_bounds_center(points).to_local(points)
        assert np.allclose(local.min(axis=0), -local.max(axis=0))

    def test_input_not_modified(self):
        """Transforms return new arrays."""
        points = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        snapshot = points.copy()
        LocalCoordinateTransform.from_centroid(points).to_local(points)
        assert np.array_equal(points, snapshot)

    def test_empty_input(self):
        """Empty input stays empty with shape (0, 3)."""
        transform = LocalCoordinateTransform(1.0, 2.0, 3.0)
        assert transform.to_local(np.empty((0, 3))).shape == (0, 3)
        assert transform.to_global(np.empty((0, 3))).shape == (0, 3)


class TestLocalCoordinateTransformSerialization:
    """Tests for to_dict/from_dict."""

    def test_round_trip_dict(self):
        """to_dict/from_dict round-trip keeps offsets and method."""
        transform = LocalCoordinateTransform(1.5, -2.5, 3.0, origin_method="bounds_center")
        restored = LocalCoordinateTransform.from_dict(transform.to_dict())

        assert restored == transform
        assert restored.origin_method == "bounds_center"

    def test_from_dict_defaults(self):
        """offset_z and origin_method are optional when deserializing."""
        transform = LocalCoordinateTransform.from_dict({"offset_x": 1, "offset_y": 2})
        assert transform.offset_z == 0.0
        assert transform.origin_method == "unknown"

    def test_str(self):
        """String form shows the offsets and the origin method."""
        text = str(LocalCoordinateTransform(1.0, 2.0, 3.0, origin_method="centroid"))
        assert "1.000" in text and "centroid" in text
