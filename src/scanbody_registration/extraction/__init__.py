"""
Surface Patch Extraction Module
"""

from .patch_extractor import Patch, PatchExtractor, build_patch

__all__ = [
    "Patch",
    "PatchExtractor",
    "build_patch",
]
