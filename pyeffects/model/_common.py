"""
Common data types for fitted-model descriptions.

Contains the frozen containers the prediction engine reads: model
variables (tagged Numeric / Categorical), random-effect grouping
factors with their conditional modes, and linear model components.
Each type is a pure data container; construction-time checks live in
pyeffects.model.fitted.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), 1-48.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from pyeffects.core.exceptions import ValidationError

if TYPE_CHECKING:
    from pyeffects.model.frame import ModelTerms


class VariableKind(str, Enum):
    """Kind of a model variable; decides how it is encoded and held fixed."""
    NUMERIC = 'numeric'
    CATEGORICAL = 'categorical'


def level_key(level: Any) -> str:
    """Canonical string form of a factor level.

    Term strings carry levels as text (``"group [A,B]"``, ``"batch [2]"``),
    so levels are matched on their string representation.
    """
    if isinstance(level, (float, np.floating)):
        value = float(level)
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(level)


@dataclass(frozen=True)
class Variable:
    """One observed model variable.

    Attributes:
        name: Column name.
        kind: NUMERIC or CATEGORICAL.
        values: Observed values (n,). float64 for numeric variables,
            object for categorical ones.
        levels: Ordered factor levels (categorical only). The first
            level is the reference level.
    """
    name: str
    kind: VariableKind
    values: NDArray
    levels: tuple[Any, ...] = ()

    @property
    def n_levels(self) -> int:
        return len(self.levels)

    def level_index(self, level: Any) -> int:
        """Position of a level in self.levels, matched by level_key()."""
        key = level_key(level)
        for i, lvl in enumerate(self.levels):
            if level_key(lvl) == key:
                return i
        raise ValidationError(
            f"'{self.name}': unknown level {level!r}. "
            f"Levels: {[level_key(lvl) for lvl in self.levels]}"
        )

    def level_proportions(self) -> NDArray:
        """Observed share of each level, aligned with self.levels."""
        keys = np.array([level_key(v) for v in self.values], dtype=object)
        counts = np.array(
            [np.sum(keys == level_key(lvl)) for lvl in self.levels],
            dtype=np.float64,
        )
        return counts / counts.sum()


@dataclass(frozen=True)
class GroupingFactor:
    """Random effects of one grouping factor.

    Attributes:
        name: Grouping variable name (e.g. 'subject').
        terms: Random effect terms; '1' is the intercept, any other
            entry names a numeric slope variable (e.g. ('1', 'days')).
        covariance: Random effects covariance matrix Σ (q, q).
        levels: Group levels, aligned with the rows of modes.
        modes: Conditional modes / BLUPs (n_levels, q).
    """
    name: str
    terms: tuple[str, ...]
    covariance: NDArray
    levels: tuple[Any, ...]
    modes: NDArray

    @property
    def n_terms(self) -> int:
        return len(self.terms)

    @property
    def slope_variables(self) -> tuple[str, ...]:
        return tuple(t for t in self.terms if t != '1')

    def level_index(self, level: Any) -> int:
        """Row of self.modes holding the BLUPs of a level."""
        key = level_key(level)
        for i, lvl in enumerate(self.levels):
            if level_key(lvl) == key:
                return i
        raise ValidationError(
            f"Grouping factor '{self.name}' has no conditional modes for "
            f"level {level!r}"
        )

    @classmethod
    def from_blups(
        cls,
        name: str,
        covariance: float | NDArray,
        blups: dict[Any, float | NDArray],
        terms: tuple[str, ...] = ('1',),
    ) -> 'GroupingFactor':
        """Build a factor from a level → BLUP mapping.

        Args:
            name: Grouping variable name.
            covariance: Scalar variance (random intercept only) or the
                full (q, q) covariance matrix.
            blups: Mapping of level to its conditional mode(s).
            terms: Random effect terms, intercept first by convention.

        Returns:
            GroupingFactor with levels in the mapping's order.
        """
        q = len(terms)
        cov = np.atleast_2d(np.asarray(covariance, dtype=np.float64))
        levels = tuple(blups.keys())
        modes = np.array(
            [np.atleast_1d(np.asarray(blups[lvl], dtype=np.float64)) for lvl in levels],
            dtype=np.float64,
        ).reshape(len(levels), q)
        return cls(
            name=name, terms=tuple(terms), covariance=cov,
            levels=levels, modes=modes,
        )


@dataclass(frozen=True)
class RandomEffects:
    """All grouping factors of a mixed model."""
    factors: tuple[GroupingFactor, ...]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.factors)

    def __getitem__(self, name: str) -> GroupingFactor:
        for factor in self.factors:
            if factor.name == name:
                return factor
        raise KeyError(f"No grouping factor '{name}'. Available: {list(self.names)}")

    def __contains__(self, name: object) -> bool:
        return name in self.names


@dataclass(frozen=True)
class LinearComponent:
    """A fitted linear predictor: term list, estimates and their covariance.

    Used for the conditional (count / mean) model and for the
    zero-inflation model.

    Attributes:
        terms: ModelTerms describing the design matrix.
        coefficients: Estimates (p,).
        vcov: Covariance matrix of the estimates (p, p).
        coefficient_names: Design column names (p,).
    """
    terms: 'ModelTerms'
    coefficients: NDArray
    vcov: NDArray
    coefficient_names: tuple[str, ...]
