"""
Solver dispatch for marginal predictions.

Public API:
    predict_marginal() — predictions with non-focal factors at their reference level
    predict_means()    — non-focal factors averaged over their levels
    predict_effects()  — non-focal factors weighted by observed proportions
    new_data()         — the prediction grid as a data frame
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from pyeffects.marginal._common import PredictionType, Typical
from pyeffects.marginal._defaults import DEFAULT_CI_LEVEL, DEFAULT_N_SIM
from pyeffects.marginal._grid import build_grid
from pyeffects.marginal._terms import parse_terms
from pyeffects.marginal.backends.analytic import CPUAnalyticBackend
from pyeffects.marginal.backends.simulation import CPUSimulationBackend
from pyeffects.marginal.design import PredictionDesign
from pyeffects.marginal.solution import PredictionSolution
from pyeffects.model.fitted import FittedModel


def predict_marginal(
    model: FittedModel,
    terms: str | Sequence[str],
    type: str = 'fixed',
    condition: Mapping[str, Any] | None = None,
    *,
    ci_level: float = DEFAULT_CI_LEVEL,
    n_sim: int = DEFAULT_N_SIM,
    seed: int | None = None,
) -> PredictionSolution:
    """
    Marginal predictions for one to three focal terms.

    Builds the Cartesian grid of the focal terms' values, holds every
    other covariate at a typical value (numeric at its mean, categorical
    at its reference level) unless condition pins it, and predicts each
    row with an interval whose meaning depends on type:

        fixed          population level, confidence interval from the
                       fixed-effect covariance
        random         same point estimates, prediction interval that
                       adds the mean random-effect variance
        zero_inflated  E[y] = μ(1 - π), interval from simulated
                       parameter draws
        zi_random      as zero_inflated, draws also carry random-effect
                       variance
        sim            mean and quantiles of simulated responses

    Random-effect grouping factors stay out of the grid unless requested
    as a focal term or pinned by condition; rows of a requested group
    then include that group's conditional modes and, except for 'sim',
    report the point estimate only.

    Args:
        model: Fitted model built with fitted_model().
        terms: Term string or list of term strings, e.g. "batch",
            ["temp [10,20,30]", "batch"], "group [sample=5]".
        type: Prediction type (see above).
        condition: Variable → value for non-focal variables.
        ci_level: Interval level. Default 0.95.
        n_sim: Draws for the simulation-based types. Default 1000.
        seed: Seed for level sampling and simulation draws.

    Returns:
        PredictionSolution with predicted, std_error, conf_low,
        conf_high, to_frame() and summary().

    Raises:
        InvalidTermError: If a term is malformed or names an unknown
            variable.
        UnsupportedModelError: If the model lacks a capability the type
            needs.
        EmptyLevelSetError: If filtering or sampling leaves no values.
        ValidationError: On invalid options or condition values.

    Examples:
        >>> from pyeffects import fitted_model, predict_marginal
        >>> model = fitted_model(data, ['batch', 'temp'], beta, V,
        ...                      family='beta', categorical=['batch'])
        >>> result = predict_marginal(model, "batch")
        >>> print(result.summary())
        >>> result.to_frame()
    """
    return _predict(
        model, terms, type, condition,
        ci_level=ci_level, n_sim=n_sim, seed=seed, typical=Typical.REFERENCE,
    )


def predict_means(
    model: FittedModel,
    terms: str | Sequence[str],
    type: str = 'fixed',
    condition: Mapping[str, Any] | None = None,
    *,
    ci_level: float = DEFAULT_CI_LEVEL,
    n_sim: int = DEFAULT_N_SIM,
    seed: int | None = None,
) -> PredictionSolution:
    """
    Estimated marginal means.

    As predict_marginal(), but non-focal categorical covariates are
    averaged with equal weight over their levels on the link scale.
    """
    return _predict(
        model, terms, type, condition,
        ci_level=ci_level, n_sim=n_sim, seed=seed, typical=Typical.AVERAGE,
    )


def predict_effects(
    model: FittedModel,
    terms: str | Sequence[str],
    type: str = 'fixed',
    condition: Mapping[str, Any] | None = None,
    *,
    ci_level: float = DEFAULT_CI_LEVEL,
    n_sim: int = DEFAULT_N_SIM,
    seed: int | None = None,
) -> PredictionSolution:
    """
    Marginal effects with proportional weighting.

    As predict_marginal(), but non-focal categorical covariates enter
    with their observed level proportions as weights.
    """
    return _predict(
        model, terms, type, condition,
        ci_level=ci_level, n_sim=n_sim, seed=seed, typical=Typical.PROPORTIONAL,
    )


def new_data(
    model: FittedModel,
    terms: str | Sequence[str],
    condition: Mapping[str, Any] | None = None,
    *,
    seed: int | None = None,
) -> pd.DataFrame:
    """
    The prediction grid as a data frame.

    Holds every variable the model needs (focal values, conditioned
    values, typical values) plus requested or pinned grouping factors,
    so model.predict(new_data(model, terms)) reproduces the point
    predictions of predict_marginal(model, terms).

    Args:
        model: Fitted model.
        terms: Term string or list of term strings.
        condition: Variable → value for non-focal variables.
        seed: Seed for level sampling.

    Returns:
        pandas DataFrame with one row per grid row; focal columns first.
    """
    specs = parse_terms(terms)
    grid, _ = build_grid(model, specs, condition, np.random.default_rng(seed))
    ordered = list(grid.focal) + [c for c in grid.columns if c not in grid.focal]
    return pd.DataFrame({name: grid.columns[name] for name in ordered})


def _predict(
    model: FittedModel,
    terms: str | Sequence[str],
    type: str,
    condition: Mapping[str, Any] | None,
    *,
    ci_level: float,
    n_sim: int,
    seed: int | None,
    typical: Typical,
) -> PredictionSolution:
    # === Construct Design ===
    # This is the boundary: validate here, trust everywhere else
    design = PredictionDesign.for_prediction(
        model, terms, type, condition,
        ci_level=ci_level, n_sim=n_sim, seed=seed, typical=typical,
    )

    # === Select Backend and Solve ===
    backend = _get_backend(design.prediction_type)
    result = backend.solve(design)

    return PredictionSolution(_result=result, _design=design)


def _get_backend(prediction_type: PredictionType):
    """Closed-form intervals for fixed/random, simulation for the rest."""
    if prediction_type.is_simulated:
        return CPUSimulationBackend()
    return CPUAnalyticBackend()
