"""
Registration Pipeline Module
"""

from .registration import (
    ScanbodyRegistration,
    RegistrationReport,
    ScanbodyResult,
)
from .parallel import ScanbodyParallelExecutor

__all__ = [
    "ScanbodyRegistration",
    "RegistrationReport",
    "ScanbodyResult",
    "ScanbodyParallelExecutor",
]
