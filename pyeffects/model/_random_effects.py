"""
Random-effect design rows, conditional offsets and variance summaries.

This module handles:
1. Building the per-row random effects design Z_k for one grouping
   factor (intercept column plus slope variables)
2. Adding the conditional modes (BLUPs) of a chosen level to a linear
   predictor
3. Reducing the random-effects structure to the single "mean random
   effect variance" used to widen intervals into prediction intervals

The variance summary follows Johnson (2014): for grouping factor k with
covariance Σ_k and observed random design Z_k (n × q_k), the mean
variance across observations is trace(Σ_k · Z_kᵀZ_k / n). For a random
intercept this is simply σ²_k.

References:
    Johnson, P. C. D. (2014). Extension of Nakagawa & Schielzeth's R²GLMM
    to random slopes models. Methods in Ecology and Evolution, 5(9),
    944-946.
"""

from __future__ import annotations

from typing import Mapping

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyeffects.model._common import GroupingFactor, RandomEffects
from pyeffects.model.frame import ModelFrame


def random_design(
    factor: GroupingFactor,
    rows: Mapping[str, ArrayLike],
    n_rows: int,
) -> NDArray:
    """Random effects design rows for one grouping factor.

    Args:
        factor: The grouping factor.
        rows: Column values; must contain every slope variable.
        n_rows: Number of rows.

    Returns:
        Z_k (n_rows, q): a column of ones for '1', the slope values otherwise.
    """
    Z = np.empty((n_rows, factor.n_terms), dtype=np.float64)
    for j, term in enumerate(factor.terms):
        if term == '1':
            Z[:, j] = 1.0
        else:
            Z[:, j] = np.broadcast_to(
                np.asarray(rows[term], dtype=np.float64), (n_rows,)
            )
    return Z


def conditional_offset(
    factor: GroupingFactor,
    rows: Mapping[str, ArrayLike],
    levels: NDArray,
) -> NDArray:
    """Link-scale contribution z_row · b_level of the rows' own levels.

    Args:
        factor: The grouping factor.
        rows: Column values (slope variables).
        levels: Level of `factor` for every row (n_rows,).

    Returns:
        Offset (n_rows,).
    """
    n_rows = len(levels)
    Z = random_design(factor, rows, n_rows)
    idx = np.array([factor.level_index(lvl) for lvl in levels], dtype=np.intp)
    return np.sum(Z * factor.modes[idx], axis=1)


def factor_variance(factor: GroupingFactor, frame: ModelFrame) -> float:
    """Mean variance contributed by one grouping factor, trace(Σ · ZᵀZ / n)."""
    Z = random_design(factor, frame.observed(), frame.n_obs)
    M = Z.T @ Z / frame.n_obs
    return float(max(np.trace(factor.covariance @ M), 0.0))


def mean_random_variance(
    random: RandomEffects | None,
    frame: ModelFrame,
) -> float:
    """Mean random-effect variance, averaged across grouping factors.

    Pure function of the random-effects structure and the observed
    data; 0.0 when the model has no random effects.
    """
    variances = per_factor_variance(random, frame)
    if not variances:
        return 0.0
    return float(np.mean(list(variances.values())))


def per_factor_variance(
    random: RandomEffects | None,
    frame: ModelFrame,
) -> dict[str, float]:
    """factor_variance() for every grouping factor, keyed by factor name."""
    if random is None:
        return {}
    return {f.name: factor_variance(f, frame) for f in random.factors}
