"""
Input Preparation Module

Wraps the viewer's flat mesh buffers for registration.
"""

from .surface import SurfaceMesh

__all__ = [
    "SurfaceMesh",
]
