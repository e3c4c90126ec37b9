"""
Core infrastructure for PyEffects.

This module provides shared abstractions and utilities used by the
domain-specific submodules (model, marginal).

Key components:
    protocols: FittedModelLike, Backend protocols
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    capabilities: Model capability strings
    validation: Input validators
    compute: Timing
"""

from pyeffects.core.protocols import FittedModelLike, Backend
from pyeffects.core.result import Result
from pyeffects.core.exceptions import (
    PyEffectsError,
    ValidationError,
    DimensionError,
    InvalidTermError,
    EmptyLevelSetError,
    UnsupportedModelError,
    NumericalError,
    NotPositiveDefiniteError,
)

__all__ = [
    # Protocols
    "FittedModelLike",
    "Backend",
    # Result
    "Result",
    # Exceptions
    "PyEffectsError",
    "ValidationError",
    "DimensionError",
    "InvalidTermError",
    "EmptyLevelSetError",
    "UnsupportedModelError",
    "NumericalError",
    "NotPositiveDefiniteError",
]
