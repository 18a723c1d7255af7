"""
Scanbody Registration Package

Places a scanbody CAD template onto an intraoral scan at every scanbody the
clinician marked with three landmarks. The package groups landmarks into
scanbodies, extracts local surface patches on scan and template, matches
them by geometric similarity and solves the rigid placement with an RMS
residual. A cheaper highest-point placement is available for sparse scans.
Rendering, mesh I/O and the UI are left to the caller.
"""

__version__ = "0.1.0"

from .errors import *
from .preprocessing import *
from .detection import *
from .extraction import *
from .alignment import *
from .pipeline import *
from .utils import *

__all__ = [
    "errors",
    "preprocessing",
    "detection",
    "extraction",
    "alignment",
    "pipeline",
    "utils",
]
