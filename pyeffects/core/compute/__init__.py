"""
Shared compute infrastructure for PyEffects.

IMPORTANT: This is NOT where domain-specific backends live. Those go in
{domain}/backends/. This module contains shared NUMERIC infrastructure.

Submodules:
    timing: Execution timing utilities
"""

from pyeffects.core.compute.timing import Timer

__all__ = [
    "Timer",
]
