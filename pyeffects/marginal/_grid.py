"""
Prediction grid construction.

The grid is the Cartesian product of the focal terms' value sets,
crossed with any conditioned values. Every other variable a model
component needs is held at a typical value: numeric covariates at their
mean, categorical covariates at their reference level (or averaged over
their levels for estimated-marginal-means style predictions).

Random-effect grouping factors are special: unless requested as focal
terms or pinned by a condition they stay out of the grid entirely and
predictions are population-level. Focal or pinned grouping factors are
recorded per row so the engine can add that level's conditional modes.
"""

from __future__ import annotations

import itertools
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import numpy as np
from numpy.typing import NDArray

from pyeffects.core.exceptions import (
    EmptyLevelSetError,
    InvalidTermError,
    ValidationError,
)
from pyeffects.marginal._common import Typical
from pyeffects.marginal._defaults import DEFAULT_GRID_POINTS
from pyeffects.marginal._terms import NUMERIC_SELECTORS, TermSpec
from pyeffects.model._common import Variable, VariableKind, level_key
from pyeffects.model.fitted import FittedModel


@dataclass(frozen=True)
class PredictionGrid:
    """Rows to predict.

    Attributes:
        focal: Focal variable names, in request order.
        columns: Value per row for every variable the model components
            read (fixed, zero-inflation and random slope variables),
            plus focal and pinned grouping factors.
        pinned: Grouping factor → level per row, for factors that are
            focal or conditioned.
        weights: Non-focal categorical variable → per-level weights,
            when averaging instead of fixing at the reference level.
        n_rows: Number of rows.
    """
    focal: tuple[str, ...]
    columns: dict[str, NDArray]
    pinned: dict[str, NDArray]
    weights: dict[str, NDArray]
    n_rows: int

    def focal_columns(self) -> dict[str, NDArray]:
        return {name: self.columns[name] for name in self.focal}

    @property
    def has_pinned(self) -> bool:
        return bool(self.pinned)


# =====================================================================
# Typical values, keyed by variable kind
# =====================================================================

def _typical_numeric(variable: Variable) -> float:
    return float(np.mean(variable.values))


def _typical_categorical(variable: Variable) -> Any:
    return variable.levels[0]


_TYPICAL_VALUE: dict[VariableKind, Callable[[Variable], Any]] = {
    VariableKind.NUMERIC: _typical_numeric,
    VariableKind.CATEGORICAL: _typical_categorical,
}


def typical_value(variable: Variable) -> Any:
    """Population-representative value of a non-focal variable."""
    return _TYPICAL_VALUE[variable.kind](variable)


def _level_weights(variable: Variable, typical: Typical) -> NDArray | None:
    if variable.kind is not VariableKind.CATEGORICAL or typical is Typical.REFERENCE:
        return None
    if typical is Typical.AVERAGE:
        return np.full(variable.n_levels, 1.0 / variable.n_levels)
    return variable.level_proportions()


# =====================================================================
# Focal value sets
# =====================================================================

def _numeric_values(
    spec: TermSpec, variable: Variable, rng: np.random.Generator
) -> NDArray:
    x = variable.values
    lo, hi = float(np.min(x)), float(np.max(x))
    selector = spec.selector

    if selector == 'default':
        if lo == hi:
            return np.array([lo])
        return np.linspace(lo, hi, DEFAULT_GRID_POINTS)
    if selector == 'values':
        try:
            return np.array([float(v) for v in spec.values])
        except ValueError:
            raise InvalidTermError(
                f"'{spec.name}' is numeric but term {spec.raw!r} lists "
                f"non-numeric values",
                term=spec.raw,
            ) from None
    if selector == 'all':
        return np.unique(x)
    if selector == 'sample':
        return np.sort(_sample(spec, np.unique(x), rng))
    if selector == 'n':
        if spec.size < 1:
            raise EmptyLevelSetError(
                f"Term {spec.raw!r} asks for {spec.size} values", term=spec.raw
            )
        if lo == hi:
            return np.array([lo])
        return np.linspace(lo, hi, spec.size)
    if selector == 'range':
        start, stop = (int(v) for v in spec.values)
        values = np.arange(start, stop + 1, dtype=np.float64)
        if values.size == 0:
            raise EmptyLevelSetError(
                f"Range in term {spec.raw!r} is empty", term=spec.raw
            )
        return values
    if selector == 'minmax':
        return np.unique([lo, hi])
    if selector == 'meansd':
        m, s = float(np.mean(x)), float(np.std(x, ddof=1)) if x.size > 1 else 0.0
        return np.unique([m - s, m, m + s])
    if selector == 'quart':
        return np.unique(np.quantile(x, [0.0, 0.25, 0.5, 0.75, 1.0]))
    if selector == 'quart2':
        return np.unique(np.quantile(x, [0.25, 0.5, 0.75]))
    raise InvalidTermError(f"Unknown selector in term {spec.raw!r}", term=spec.raw)


def _categorical_values(
    spec: TermSpec,
    variable: Variable,
    rng: np.random.Generator,
    emitted: list[str],
) -> list[Any]:
    levels = list(variable.levels)
    selector = spec.selector

    if selector in ('default', 'all'):
        return levels
    if selector == 'values':
        by_key = {level_key(lvl): lvl for lvl in levels}
        kept = [by_key[tok] for tok in spec.values if tok in by_key]
        dropped = [tok for tok in spec.values if tok not in by_key]
        if dropped:
            msg = f"'{spec.name}': ignoring unknown levels {dropped}"
            warnings.warn(msg, UserWarning, stacklevel=7)
            emitted.append(msg)
        if not kept:
            raise EmptyLevelSetError(
                f"Level filter {spec.raw!r} matches none of the levels "
                f"{list(by_key)}",
                term=spec.raw,
            )
        return kept
    if selector == 'sample':
        chosen = _sample(spec, np.arange(len(levels)), rng)
        return [levels[i] for i in np.sort(chosen)]
    if selector in NUMERIC_SELECTORS:
        raise InvalidTermError(
            f"Selector in term {spec.raw!r} needs a numeric variable; "
            f"'{spec.name}' is categorical",
            term=spec.raw,
        )
    raise InvalidTermError(f"Unknown selector in term {spec.raw!r}", term=spec.raw)


def _sample(spec: TermSpec, pool: NDArray, rng: np.random.Generator) -> NDArray:
    """Draw min(n, len(pool)) elements of pool without replacement."""
    if spec.size < 1:
        raise EmptyLevelSetError(
            f"Term {spec.raw!r} samples {spec.size} levels", term=spec.raw
        )
    size = min(spec.size, len(pool))
    return rng.choice(pool, size=size, replace=False)


def focal_values(
    spec: TermSpec,
    variable: Variable,
    rng: np.random.Generator,
    emitted: list[str],
) -> list[Any]:
    """Representative value set of one focal term.

    Non-fatal messages (dropped unknown levels) are appended to emitted.
    """
    if variable.kind is VariableKind.NUMERIC:
        return _numeric_values(spec, variable, rng).tolist()
    return _categorical_values(spec, variable, rng, emitted)


# =====================================================================
# Grid
# =====================================================================

def required_variables(model: FittedModel) -> tuple[str, ...]:
    """Variables the model components read when predicting."""
    names: dict[str, None] = {}
    for name in model.fixed.terms.variables:
        names[name] = None
    if model.zero_inflation is not None:
        for name in model.zero_inflation.terms.variables:
            names[name] = None
    if model.random is not None:
        for factor in model.random.factors:
            for name in factor.slope_variables:
                names[name] = None
    return tuple(names)


def build_grid(
    model: FittedModel,
    specs: tuple[TermSpec, ...],
    condition: Mapping[str, Any] | None,
    rng: np.random.Generator,
    typical: Typical = Typical.REFERENCE,
) -> tuple[PredictionGrid, tuple[str, ...]]:
    """Build the prediction grid.

    Args:
        model: The fitted model.
        specs: Parsed focal terms.
        condition: Variable → fixed value for non-focal variables.
        rng: Random source for level sampling.
        typical: How non-focal categorical covariates are held.

    Returns:
        (grid, warnings) where warnings are the non-fatal messages
        emitted while building.

    Raises:
        InvalidTermError: Unknown focal or condition variable, or a
            selector that does not fit the variable.
        EmptyLevelSetError: A term selects no values.
        ValidationError: A condition value is not a valid level.
    """
    frame = model.frame
    grouping = set(model.grouping_factors)
    emitted: list[str] = []

    predictors = required_variables(model) + model.grouping_factors
    value_sets = []
    for spec in specs:
        if spec.name not in predictors:
            reason = "is not used by" if spec.name in frame else "is not a variable of"
            raise InvalidTermError(
                f"'{spec.name}' {reason} the model. "
                f"Available: {list(predictors)}",
                term=spec.name,
                available=predictors,
            )
        variable = frame[spec.name]
        value_sets.append(focal_values(spec, variable, rng, emitted))

    focal = tuple(spec.name for spec in specs)
    conditioned: dict[str, Any] = {}
    for name, value in (condition or {}).items():
        variable = frame[name]
        if name in focal:
            msg = f"Condition on focal term '{name}' is ignored"
            warnings.warn(msg, UserWarning, stacklevel=5)
            emitted.append(msg)
            continue
        if variable.kind is VariableKind.NUMERIC:
            try:
                conditioned[name] = float(value)
            except (TypeError, ValueError):
                raise ValidationError(
                    f"condition['{name}']: numeric variable, got {value!r}"
                ) from None
        else:
            conditioned[name] = variable.levels[variable.level_index(value)]

    rows = list(itertools.product(*value_sets))
    n_rows = len(rows)
    columns: dict[str, NDArray] = {}
    for j, name in enumerate(focal):
        columns[name] = _column(frame[name], [row[j] for row in rows])

    weights: dict[str, NDArray] = {}
    for name in required_variables(model):
        if name in columns:
            continue
        variable = frame[name]
        if name in conditioned:
            columns[name] = _column(variable, [conditioned[name]] * n_rows)
            continue
        level_weights = _level_weights(variable, typical)
        if level_weights is not None:
            weights[name] = level_weights
        columns[name] = _column(variable, [typical_value(variable)] * n_rows)

    pinned: dict[str, NDArray] = {}
    for name in model.grouping_factors:
        if name in focal:
            pinned[name] = columns[name]
        elif name in conditioned:
            columns[name] = _column(frame[name], [conditioned[name]] * n_rows)
            pinned[name] = columns[name]

    for name, value in conditioned.items():
        if name not in columns and name not in grouping:
            columns[name] = _column(frame[name], [value] * n_rows)

    grid = PredictionGrid(
        focal=focal, columns=columns, pinned=pinned, weights=weights, n_rows=n_rows,
    )
    return grid, tuple(emitted)


def _column(variable: Variable, values: list[Any]) -> NDArray:
    if variable.kind is VariableKind.NUMERIC:
        return np.asarray(values, dtype=np.float64)
    column = np.empty(len(values), dtype=object)
    column[:] = values
    return column
