"""Backends for marginal predictions."""

from pyeffects.marginal.backends.analytic import CPUAnalyticBackend
from pyeffects.marginal.backends.simulation import CPUSimulationBackend

__all__ = [
    "CPUAnalyticBackend",
    "CPUSimulationBackend",
]
