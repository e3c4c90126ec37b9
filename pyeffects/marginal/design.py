"""
Design class for marginal predictions.

PredictionDesign encapsulates everything a backend needs: the model,
the realised prediction grid, the prediction type and the interval
options. Immutable, validated at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pyeffects.core.capabilities import (
    CAPABILITY_RANDOM_EFFECTS,
    CAPABILITY_RESIDUAL_DF,
    CAPABILITY_SIMULATE,
    CAPABILITY_ZERO_INFLATION,
)
from pyeffects.core.exceptions import UnsupportedModelError, ValidationError
from pyeffects.core.protocols import FittedModelLike
from pyeffects.core.validation import check_probability
from pyeffects.marginal._common import PredictionType, Typical
from pyeffects.marginal._defaults import DEFAULT_CI_LEVEL, DEFAULT_N_SIM
from pyeffects.marginal._grid import PredictionGrid, build_grid
from pyeffects.marginal._terms import TermSpec, parse_terms
from pyeffects.model._random_effects import conditional_offset, mean_random_variance
from pyeffects.model.fitted import FittedModel


# Capabilities each prediction type needs from the model
_REQUIRED_CAPABILITIES: dict[PredictionType, tuple[str, ...]] = {
    PredictionType.FIXED: (),
    PredictionType.RANDOM: (CAPABILITY_RANDOM_EFFECTS,),
    PredictionType.ZERO_INFLATED: (CAPABILITY_ZERO_INFLATION,),
    PredictionType.ZI_RANDOM: (CAPABILITY_ZERO_INFLATION, CAPABILITY_RANDOM_EFFECTS),
    PredictionType.SIM: (CAPABILITY_SIMULATE,),
}

_INTERVAL_KIND: dict[PredictionType, str] = {
    PredictionType.FIXED: 'confidence',
    PredictionType.RANDOM: 'prediction',
    PredictionType.ZERO_INFLATED: 'confidence',
    PredictionType.ZI_RANDOM: 'prediction',
    PredictionType.SIM: 'simulation',
}


def check_capabilities(model: FittedModelLike, prediction_type: PredictionType) -> None:
    """Raise UnsupportedModelError if the model lacks what the type needs."""
    missing = tuple(
        cap for cap in _REQUIRED_CAPABILITIES[prediction_type]
        if not model.supports(cap)
    )
    if missing:
        raise UnsupportedModelError(
            f"type='{prediction_type.value}' needs model capabilities "
            f"{list(missing)}",
            prediction_type=prediction_type.value,
            missing=missing,
        )


@dataclass(frozen=True)
class PredictionDesign:
    """
    Frozen design for one marginal prediction call.

    Attributes:
        model: The fitted model (read only).
        specs: Parsed focal terms.
        grid: Realised prediction grid.
        prediction_type: Which prediction path to take.
        ci_level: Interval level in (0, 1).
        n_sim: Draws for the simulation paths.
        seed: Seed the random source was created from.
        typical: How non-focal categorical covariates are held.
        re_variance: Mean random-effect variance (0.0 without random effects).
        rng: The call's single random source; level sampling has already
            consumed from it, the simulation backend continues with it.
        build_warnings: Non-fatal messages emitted while building the grid.
    """
    model: FittedModel
    specs: tuple[TermSpec, ...]
    grid: PredictionGrid
    prediction_type: PredictionType
    ci_level: float
    n_sim: int
    seed: int | None
    typical: Typical
    re_variance: float
    rng: np.random.Generator
    build_warnings: tuple[str, ...] = ()

    @classmethod
    def for_prediction(
        cls,
        model: FittedModel,
        terms: str | Sequence[str],
        type: str | PredictionType = 'fixed',
        condition: Mapping[str, Any] | None = None,
        *,
        ci_level: float = DEFAULT_CI_LEVEL,
        n_sim: int = DEFAULT_N_SIM,
        seed: int | None = None,
        typical: str | Typical = Typical.REFERENCE,
    ) -> PredictionDesign:
        """
        Create a prediction design with validation.

        Args:
            model: Fitted model built with fitted_model().
            terms: One term string or up to three of them.
            type: 'fixed', 'random', 'zero_inflated', 'zi_random' or 'sim'.
            condition: Variable → value for non-focal variables.
            ci_level: Interval level.
            n_sim: Number of draws for simulation-based types. Must be >= 2.
            seed: Seed for level sampling and draws.
            typical: 'reference', 'average' or 'proportional'.

        Returns:
            Validated PredictionDesign.

        Raises:
            ValidationError: On invalid options.
            UnsupportedModelError: If the model cannot serve the type.
            InvalidTermError: On unknown or malformed terms.
            EmptyLevelSetError: If a term selects no values.
        """
        if not isinstance(model, FittedModel):
            raise ValidationError(
                f"model must be a FittedModel (see fitted_model()), "
                f"got {_type_name(model)}"
            )
        prediction_type = PredictionType.parse(type)
        check_probability(ci_level, 'ci_level')
        if isinstance(n_sim, bool) or not isinstance(n_sim, (int, np.integer)) or n_sim < 2:
            raise ValidationError(f"n_sim must be an integer >= 2, got {n_sim!r}")
        try:
            typical = Typical(typical)
        except ValueError:
            valid = ', '.join(t.value for t in Typical)
            raise ValidationError(
                f"typical must be one of {valid}, got {typical!r}"
            ) from None
        if condition is not None and not isinstance(condition, Mapping):
            raise ValidationError(
                f"condition must be a mapping, got {_type_name(condition)}"
            )

        check_capabilities(model, prediction_type)
        specs = parse_terms(terms)

        rng = np.random.default_rng(seed)
        grid, build_warnings = build_grid(model, specs, condition, rng, typical)

        re_variance = 0.0
        if prediction_type in (PredictionType.RANDOM, PredictionType.ZI_RANDOM):
            re_variance = mean_random_variance(model.random, model.frame)

        return cls(
            model=model,
            specs=specs,
            grid=grid,
            prediction_type=prediction_type,
            ci_level=float(ci_level),
            n_sim=int(n_sim),
            seed=seed,
            typical=typical,
            re_variance=re_variance,
            rng=rng,
            build_warnings=build_warnings,
        )

    # --- Derived quantities ---

    @property
    def terms(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.specs)

    @property
    def n_rows(self) -> int:
        return self.grid.n_rows

    @property
    def interval(self) -> str:
        return _INTERVAL_KIND[self.prediction_type]

    @property
    def per_level(self) -> bool:
        """True when rows condition on specific random-effect groups."""
        return self.grid.has_pinned

    def fixed_matrix(self) -> NDArray:
        """Conditional-model design matrix of the grid (n_rows, p)."""
        return self.model.fixed.terms.build_matrix(
            self.model.frame, self.grid.columns, self.n_rows, self.grid.weights,
        )

    def zi_matrix(self) -> NDArray:
        """Zero-inflation design matrix of the grid (n_rows, p_zi)."""
        zi = self.model.zero_inflation
        if zi is None:
            raise ValidationError("model has no zero-inflation component")
        return zi.terms.build_matrix(
            self.model.frame, self.grid.columns, self.n_rows, self.grid.weights,
        )

    def conditional_offset(self) -> NDArray:
        """Summed BLUP contribution of every pinned grouping factor (n_rows,)."""
        offset = np.zeros(self.n_rows)
        for name, levels in self.grid.pinned.items():
            factor = self.model.random[name]
            offset = offset + conditional_offset(factor, self.grid.columns, levels)
        return offset

    def critical_value(self) -> float:
        """Two-sided quantile for ci_level: Student t with residual df, else normal."""
        p = 1.0 - (1.0 - self.ci_level) / 2.0
        if self.model.supports(CAPABILITY_RESIDUAL_DF):
            return float(stats.t.ppf(p, self.model.df_residual))
        return float(stats.norm.ppf(p))

    def quantile_levels(self) -> tuple[float, float]:
        alpha = 1.0 - self.ci_level
        return alpha / 2.0, 1.0 - alpha / 2.0


def _type_name(obj: object) -> str:
    return type(obj).__name__
