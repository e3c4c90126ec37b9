"""
PyEffects: marginal effects and adjusted predictions for regression models.

Computes population-level or group-conditioned predictions with
confidence, prediction and simulation intervals for linear, generalized,
mixed and zero-inflated regression models.

Submodules:
    model: Fitted model descriptions (families, links, random effects)
    marginal: Prediction grid and the prediction engine
"""

__version__ = "0.1.0"

from pyeffects import model
from pyeffects import marginal
from pyeffects.model import GroupingFactor, fitted_model
from pyeffects.marginal import (
    new_data,
    predict_effects,
    predict_marginal,
    predict_means,
)

__all__ = [
    "__version__",
    "model",
    "marginal",
    "fitted_model",
    "GroupingFactor",
    "predict_marginal",
    "predict_means",
    "predict_effects",
    "new_data",
]
