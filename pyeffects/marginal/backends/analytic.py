"""
CPU backend for closed-form marginal predictions.

CPUAnalyticBackend serves the 'fixed' and 'random' types:

    η   = Xβ̂                       (link scale)
    Var = diag(X V Xᵀ)              ('fixed': confidence interval)
    Var = diag(X V Xᵀ) + σ²_RE      ('random': prediction interval)
    bounds = g⁻¹(η ± q·√Var)

Bounds are back-transformed through the inverse link rather than built
from a response-scale standard error, so intervals stay asymmetric on
bounded or skewed response scales. Rows pinned to a random-effect group
add that group's conditional modes to η and report the point estimate
only.
"""

from __future__ import annotations

import numpy as np

from pyeffects.core.compute.timing import Timer
from pyeffects.core.result import Result
from pyeffects.marginal._common import PredictionParams, PredictionType
from pyeffects.marginal.design import PredictionDesign


class CPUAnalyticBackend:
    """Closed-form link-scale intervals for fixed and random predictions."""

    @property
    def name(self) -> str:
        return 'cpu_analytic'

    def solve(self, design: PredictionDesign) -> Result[PredictionParams]:
        timer = Timer()
        timer.start()

        model = design.model
        link = model.link
        n = design.n_rows

        with timer.section('design_matrix'):
            X = design.fixed_matrix()

        with timer.section('linear_predictor'):
            eta = X @ model.coefficients
            if design.per_level:
                eta = eta + design.conditional_offset()

        if design.per_level:
            predicted = link.linkinv(eta)
            std_error = np.full(n, np.nan)
            conf_low = np.full(n, np.nan)
            conf_high = np.full(n, np.nan)
        else:
            with timer.section('variance'):
                # diag(X V Xᵀ) without forming the n × n matrix
                var = np.einsum('ij,jk,ik->i', X, model.vcov, X)
                if design.prediction_type is PredictionType.RANDOM:
                    var = var + design.re_variance
                std_error = np.sqrt(np.maximum(var, 0.0))

            with timer.section('back_transform'):
                q = design.critical_value()
                predicted = link.linkinv(eta)
                lower = link.linkinv(eta - q * std_error)
                upper = link.linkinv(eta + q * std_error)
                if link.increasing:
                    conf_low, conf_high = lower, upper
                else:
                    conf_low, conf_high = upper, lower

        timer.stop()

        params = PredictionParams(
            predicted=predicted,
            std_error=std_error,
            conf_low=conf_low,
            conf_high=conf_high,
            grid=design.grid.focal_columns(),
            terms=design.terms,
            prediction_type=design.prediction_type,
            interval=design.interval,
            ci_level=design.ci_level,
        )

        return Result(
            params=params,
            info={
                'type': design.prediction_type.value,
                'interval': design.interval,
                'ci_level': design.ci_level,
                'n_sim': None,
                'seed': design.seed,
                'typical': design.typical.value,
                'n_rows': n,
                're_variance': design.re_variance,
                'per_level': design.per_level,
                'family': model.family.name,
                'link': link.name,
            },
            timing=timer.result(),
            backend_name=self.name,
            warnings=design.build_warnings,
        )
