"""
Common data structures for marginal predictions.

PredictionParams is the parameter payload wrapped by Result[P] and
exposed through PredictionSolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyeffects.core.exceptions import ValidationError


class PredictionType(str, Enum):
    """Which variance sources and computation path a prediction uses.

    fixed:          population level, fixed-effect uncertainty only
    random:         population level, plus mean random-effect variance
    zero_inflated:  E[y] = μ(1 - π), simulated parameter uncertainty
    zi_random:      as zero_inflated, plus random-effect variance
    sim:            simulated responses from the full model
    """
    FIXED = 'fixed'
    RANDOM = 'random'
    ZERO_INFLATED = 'zero_inflated'
    ZI_RANDOM = 'zi_random'
    SIM = 'sim'

    @classmethod
    def parse(cls, value: 'str | PredictionType') -> 'PredictionType':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ', '.join(t.value for t in cls)
            raise ValidationError(
                f"type must be one of {valid}, got {value!r}"
            ) from None

    @property
    def is_simulated(self) -> bool:
        return self in (
            PredictionType.ZERO_INFLATED,
            PredictionType.ZI_RANDOM,
            PredictionType.SIM,
        )


class Typical(str, Enum):
    """How non-focal categorical covariates are held.

    reference:     at their reference (first) level
    average:       averaged with equal weight over levels (estimated
                   marginal means)
    proportional:  averaged with observed level proportions as weights
    """
    REFERENCE = 'reference'
    AVERAGE = 'average'
    PROPORTIONAL = 'proportional'


@dataclass(frozen=True)
class PredictionParams:
    """
    Parameter payload for marginal predictions.

    One entry per prediction grid row:
    - predicted: response-scale prediction
    - std_error: link-scale standard error, NaN when not computable
      (simulation-based intervals, per-level rows)
    - conf_low / conf_high: interval bounds on the response scale,
      NaN for per-level rows without an interval
    - grid: realised value of each focal term
    """
    predicted: NDArray[np.floating[Any]]       # shape (n_rows,)
    std_error: NDArray[np.floating[Any]]       # shape (n_rows,)
    conf_low: NDArray[np.floating[Any]]        # shape (n_rows,)
    conf_high: NDArray[np.floating[Any]]       # shape (n_rows,)
    grid: dict[str, NDArray]                   # focal term → (n_rows,)
    terms: tuple[str, ...]
    prediction_type: PredictionType
    interval: str                              # "confidence" | "prediction" | "simulation"
    ci_level: float
