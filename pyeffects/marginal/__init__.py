"""
PyEffects marginal predictions.

Predicted values of a fitted (generalized, mixed, zero-inflated)
regression model over a grid of focal terms, with confidence,
prediction or simulation intervals.

Usage:
    from pyeffects.marginal import predict_marginal, new_data

    result = predict_marginal(model, "batch")
    result = predict_marginal(model, ["x", "group [A,B]"], type="random")
    result = predict_marginal(model, "x", type="zi_random", seed=1)

    grid = new_data(model, "batch")
"""

from pyeffects.marginal._common import PredictionType, Typical
from pyeffects.marginal.design import PredictionDesign
from pyeffects.marginal.solution import PredictionSolution
from pyeffects.marginal.solvers import (
    new_data,
    predict_effects,
    predict_marginal,
    predict_means,
)

__all__ = [
    "predict_marginal",
    "predict_means",
    "predict_effects",
    "new_data",
    "PredictionDesign",
    "PredictionSolution",
    "PredictionType",
    "Typical",
]
