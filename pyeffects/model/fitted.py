"""
Fitted model container.

FittedModel is the read-only description of an already-fitted
regression model that the prediction engine consumes: the observed
variables, the conditional linear predictor with its covariance, the
response family, and optionally random effects and a zero-inflation
component. Fitting itself happens elsewhere; fitted_model() validates
the pieces and assembles them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyeffects.core.capabilities import (
    CAPABILITY_RANDOM_EFFECTS,
    CAPABILITY_RESIDUAL_DF,
    CAPABILITY_SIMULATE,
    CAPABILITY_ZERO_INFLATION,
)
from pyeffects.core.exceptions import ValidationError
from pyeffects.core.validation import (
    check_array,
    check_covariance,
    check_finite,
    check_ndim,
    check_square,
)
from pyeffects.model._common import (
    GroupingFactor,
    LinearComponent,
    RandomEffects,
    VariableKind,
)
from pyeffects.model._random_effects import conditional_offset
from pyeffects.model.families import Family, Link, LogitLink, resolve_family, resolve_link
from pyeffects.model.frame import ModelFrame, ModelTerms


@dataclass(frozen=True)
class FittedModel:
    """A fitted (generalized, mixed, zero-inflated) regression model.

    Construct with fitted_model().

    Attributes:
        response: Response variable name.
        frame: Observed variables the model was fitted on.
        family: Response family; its link maps the conditional mean.
        fixed: Conditional-model fixed effects.
        random: Random effects, or None.
        zero_inflation: Zero-inflation fixed effects, or None.
        zi_link: Link of the zero-inflation probability.
        dispersion: σ² (gaussian), φ (beta) or θ (negative binomial).
        df_residual: Residual degrees of freedom for t-based intervals.
    """
    response: str
    frame: ModelFrame
    family: Family
    fixed: LinearComponent
    random: RandomEffects | None = None
    zero_inflation: LinearComponent | None = None
    zi_link: Link = LogitLink()
    dispersion: float | None = None
    df_residual: int | None = None

    @property
    def variable_names(self) -> tuple[str, ...]:
        return self.frame.names

    @property
    def link(self) -> Link:
        return self.family.link

    @property
    def coefficients(self) -> NDArray:
        return self.fixed.coefficients

    @property
    def vcov(self) -> NDArray:
        return self.fixed.vcov

    @property
    def fixef(self) -> dict[str, float]:
        """Fixed effects as name → value dict."""
        return dict(zip(self.fixed.coefficient_names, self.fixed.coefficients))

    @property
    def grouping_factors(self) -> tuple[str, ...]:
        return self.random.names if self.random is not None else ()

    def supports(self, capability: str) -> bool:
        if capability == CAPABILITY_RANDOM_EFFECTS:
            return self.random is not None and len(self.random.factors) > 0
        if capability == CAPABILITY_ZERO_INFLATION:
            return self.zero_inflation is not None
        if capability == CAPABILITY_SIMULATE:
            return not self.family.needs_dispersion or self.dispersion is not None
        if capability == CAPABILITY_RESIDUAL_DF:
            return self.df_residual is not None
        return False

    def predict(
        self,
        newdata: Mapping[str, ArrayLike],
        *,
        component: Literal['response', 'link', 'zero_prob'] = 'response',
        include_random: bool = False,
    ) -> NDArray:
        """Predictions for the rows of newdata.

        Args:
            newdata: Column values for every variable the model uses
                (dict of arrays or pandas DataFrame).
            component: 'response' for E[y] (including zero-inflation),
                'link' for the conditional linear predictor, 'zero_prob'
                for the zero-inflation probability.
            include_random: If True, add the conditional modes of every
                grouping factor present as a column in newdata.

        Returns:
            Predictions (n_rows,).
        """
        n_rows = _n_rows(newdata)
        if component == 'zero_prob':
            return self._zero_prob(newdata, n_rows)

        X = self.fixed.terms.build_matrix(self.frame, newdata, n_rows)
        eta = X @ self.fixed.coefficients
        if include_random and self.random is not None:
            for factor in self.random.factors:
                if factor.name in newdata:
                    levels = np.asarray(newdata[factor.name], dtype=object)
                    eta = eta + conditional_offset(factor, newdata, levels)

        if component == 'link':
            return eta
        if component != 'response':
            raise ValidationError(
                f"component must be 'response', 'link' or 'zero_prob', "
                f"got {component!r}"
            )
        mu = self.family.link.linkinv(eta)
        if self.zero_inflation is not None:
            mu = mu * (1.0 - self._zero_prob(newdata, n_rows))
        return mu

    def _zero_prob(self, newdata: Mapping[str, ArrayLike], n_rows: int) -> NDArray:
        if self.zero_inflation is None:
            return np.zeros(n_rows)
        Xz = self.zero_inflation.terms.build_matrix(self.frame, newdata, n_rows)
        return self.zi_link.linkinv(Xz @ self.zero_inflation.coefficients)

    def __repr__(self) -> str:
        parts = [f"{self.family.name}({self.family.link.name})"]
        parts.append(f"n={self.frame.n_obs}")
        parts.append(f"fixed={len(self.fixed.coefficients)}")
        if self.random is not None:
            parts.append(f"groups={list(self.random.names)}")
        if self.zero_inflation is not None:
            parts.append(f"zi={len(self.zero_inflation.coefficients)}")
        return f"FittedModel({', '.join(parts)})"


def _n_rows(newdata: Mapping[str, ArrayLike]) -> int:
    lengths = {np.atleast_1d(np.asarray(newdata[k])).shape[0] for k in newdata}
    if len(lengths) != 1:
        raise ValidationError(
            f"newdata: columns have inconsistent lengths {sorted(lengths)}"
        )
    return lengths.pop()


def fitted_model(
    data: Mapping[str, ArrayLike],
    terms: Sequence[str],
    coefficients: ArrayLike,
    vcov: ArrayLike,
    *,
    response: str = 'y',
    family: str | Family = 'gaussian',
    link: str | Link | None = None,
    intercept: bool = True,
    categorical: Iterable[str] = (),
    levels: Mapping[str, Sequence[Any]] | None = None,
    random: Sequence[GroupingFactor] | None = None,
    zi_terms: Sequence[str] | None = None,
    zi_coefficients: ArrayLike | None = None,
    zi_vcov: ArrayLike | None = None,
    zi_link: str | Link = 'logit',
    zi_intercept: bool = True,
    dispersion: float | None = None,
    df_residual: int | None = None,
) -> FittedModel:
    """Describe a fitted model for the prediction engine.

    Args:
        data: Observed predictor columns the model was fitted on,
            including grouping variables.
        terms: Conditional-model terms, e.g. ['batch', 'temp'] or
            ['x', 'group', 'x:group'].
        coefficients: Fixed effect estimates, ordered like the design
            columns ('(Intercept)' first when intercept=True).
        vcov: Covariance matrix of the fixed effect estimates.
        response: Response name (labels only).
        family: Response family name or instance.
        link: Optional link override for a family name.
        intercept: Whether the conditional design has an intercept.
        categorical: Numeric-coded columns to treat as factors.
        levels: Explicit level order (first = reference) per factor.
        random: Grouping factors with covariance and conditional modes.
        zi_terms: Zero-inflation terms (enables the zero-inflation
            component together with zi_coefficients and zi_vcov).
        zi_coefficients: Zero-inflation estimates.
        zi_vcov: Covariance matrix of the zero-inflation estimates.
        zi_link: Zero-inflation link (default logit).
        zi_intercept: Whether the zero-inflation design has an intercept.
        dispersion: Dispersion needed to simulate responses.
        df_residual: Residual degrees of freedom (linear models).

    Returns:
        Validated FittedModel.

    Raises:
        ValidationError: On inconsistent inputs.
        InvalidTermError: If a term names a variable absent from data.
        NotPositiveDefiniteError: If a covariance matrix is not PSD.

    Examples:
        >>> model = fitted_model(
        ...     {'batch': batch, 'temp': temp}, ['batch', 'temp'],
        ...     beta, V, family='beta', categorical=['batch'],
        ...     dispersion=phi,
        ... )
    """
    random = tuple(random) if random else ()
    grouping = [f.name for f in random]
    frame = ModelFrame.from_data(
        data,
        categorical=set(categorical) | set(grouping),
        levels=levels,
    )
    family_obj = resolve_family(family, link)

    fixed = _linear_component(
        frame, terms, intercept, coefficients, vcov, 'coefficients', 'vcov'
    )

    zero_inflation = None
    zi_parts = (zi_terms, zi_coefficients, zi_vcov)
    if any(part is not None for part in zi_parts):
        if any(part is None for part in zi_parts):
            raise ValidationError(
                "zero-inflation needs zi_terms, zi_coefficients and zi_vcov together"
            )
        zero_inflation = _linear_component(
            frame, zi_terms, zi_intercept, zi_coefficients, zi_vcov,
            'zi_coefficients', 'zi_vcov',
        )

    random_effects = None
    if random:
        if len(set(grouping)) != len(grouping):
            raise ValidationError(f"random: duplicate grouping factors {grouping}")
        for factor in random:
            _check_factor(factor, frame)
        random_effects = RandomEffects(factors=random)

    if dispersion is not None:
        dispersion = float(dispersion)
        if not np.isfinite(dispersion) or dispersion <= 0:
            raise ValidationError(f"dispersion: must be positive, got {dispersion}")
    if df_residual is not None and df_residual < 1:
        raise ValidationError(f"df_residual: must be >= 1, got {df_residual}")

    return FittedModel(
        response=response,
        frame=frame,
        family=family_obj,
        fixed=fixed,
        random=random_effects,
        zero_inflation=zero_inflation,
        zi_link=resolve_link(zi_link, LogitLink()),
        dispersion=dispersion,
        df_residual=df_residual,
    )


def _linear_component(
    frame: ModelFrame,
    terms: Sequence[str],
    intercept: bool,
    coefficients: ArrayLike,
    vcov: ArrayLike,
    coef_name: str,
    vcov_name: str,
) -> LinearComponent:
    if isinstance(terms, str):
        terms = [terms]
    model_terms = ModelTerms(terms=tuple(terms), intercept=intercept)
    for name in model_terms.variables:
        frame[name]  # raises InvalidTermError for unknown variables
    names = model_terms.column_names(frame)

    coef = check_array(coefficients, coef_name)
    check_ndim(coef, 1, coef_name)
    check_finite(coef, coef_name)
    if coef.shape[0] != len(names):
        raise ValidationError(
            f"{coef_name}: {coef.shape[0]} values for {len(names)} design "
            f"columns {list(names)}"
        )

    V = check_array(vcov, vcov_name)
    check_square(V, len(names), vcov_name)
    check_finite(V, vcov_name)
    check_covariance(V, vcov_name)

    return LinearComponent(
        terms=model_terms, coefficients=coef, vcov=V, coefficient_names=names,
    )


def _check_factor(factor: GroupingFactor, frame: ModelFrame) -> None:
    name = factor.name
    q = factor.n_terms
    check_square(factor.covariance, q, f"random['{name}'].covariance")
    check_finite(factor.covariance, f"random['{name}'].covariance")
    check_covariance(factor.covariance, f"random['{name}'].covariance")
    if factor.modes.shape != (len(factor.levels), q):
        raise ValidationError(
            f"random['{name}'].modes: expected shape ({len(factor.levels)}, {q}), "
            f"got {factor.modes.shape}"
        )
    for slope in factor.slope_variables:
        if frame[slope].kind is not VariableKind.NUMERIC:
            raise ValidationError(
                f"random['{name}']: slope variable '{slope}' must be numeric"
            )
    observed = frame[name]
    for level in factor.levels:
        observed.level_index(level)
