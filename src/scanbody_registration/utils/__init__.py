"""
Utility Functions Module

Common utilities used across the scanbody registration project.
- Logging setup
- Configuration loading
- Geometry primitives (distance, centroid, normal estimation)
- Local coordinate transformation
"""

from .logging import setup_logger, configure_logging
from .config import AppConfig, load_config
from .geometry import (
    as_point_array,
    distance,
    centroid,
    estimate_normal,
    bounding_box,
    bounding_box_center,
)
from .coordinate_transform import LocalCoordinateTransform

__all__ = [
    "setup_logger",
    "configure_logging",
    "AppConfig",
    "load_config",
    "as_point_array",
    "distance",
    "centroid",
    "estimate_normal",
    "bounding_box",
    "bounding_box_center",
    "LocalCoordinateTransform",
]
