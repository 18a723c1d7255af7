"""
Scanbody Detection Module

Groups landmarks into disjoint three-landmark scanbodies.
"""

from .scanbody_detector import (
    Landmark,
    Scanbody,
    ScanbodyDetector,
    is_valid_scanbody,
    landmarks_from_dicts,
    GROUPING_STRATEGIES,
)

__all__ = [
    "Landmark",
    "Scanbody",
    "ScanbodyDetector",
    "is_valid_scanbody",
    "landmarks_from_dicts",
    "GROUPING_STRATEGIES",
]
