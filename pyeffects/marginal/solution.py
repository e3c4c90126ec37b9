"""
Solution wrapper for marginal predictions.

PredictionSolution wraps Result[PredictionParams] and provides
convenient accessors, a tidy pandas table and ggeffects-style summary
output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from pyeffects.core.result import Result
from pyeffects.marginal._common import PredictionParams
from pyeffects.model._common import level_key

if TYPE_CHECKING:
    from pyeffects.marginal.design import PredictionDesign

RESULT_COLUMNS = ('predicted', 'std_error', 'conf_low', 'conf_high')

_INTERVAL_LABEL = {
    'confidence': 'CI',
    'prediction': 'PI',
    'simulation': 'SI',
}


@dataclass
class PredictionSolution:
    """
    User-facing marginal prediction results.

    One row per prediction grid row: the focal values, the predicted
    response, the link-scale standard error (NaN where not computed) and
    the interval bounds.
    """
    _result: Result[PredictionParams]
    _design: 'PredictionDesign'

    # --- Predictions ---

    @property
    def predicted(self) -> NDArray[np.floating[Any]]:
        """Response-scale predictions (n_rows,)."""
        return self._result.params.predicted

    @property
    def std_error(self) -> NDArray[np.floating[Any]]:
        """Link-scale standard errors (n_rows,); NaN for simulation paths and per-level rows."""
        return self._result.params.std_error

    @property
    def conf_low(self) -> NDArray[np.floating[Any]]:
        return self._result.params.conf_low

    @property
    def conf_high(self) -> NDArray[np.floating[Any]]:
        return self._result.params.conf_high

    @property
    def grid(self) -> dict[str, NDArray]:
        """Realised focal values per row, keyed by term name."""
        return self._result.params.grid

    @property
    def terms(self) -> tuple[str, ...]:
        return self._result.params.terms

    @property
    def prediction_type(self) -> str:
        return self._result.params.prediction_type.value

    @property
    def interval(self) -> str:
        """'confidence', 'prediction' or 'simulation'."""
        return self._result.params.interval

    @property
    def ci_level(self) -> float:
        return self._result.params.ci_level

    # --- Metadata ---

    @property
    def seed(self) -> int | None:
        return self._design.seed

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def __len__(self) -> int:
        return len(self.predicted)

    # --- Output ---

    def to_frame(self) -> pd.DataFrame:
        """Tidy table: focal columns, then predicted, std_error, conf_low, conf_high."""
        data: dict[str, Any] = {name: self.grid[name] for name in self.terms}
        for column in RESULT_COLUMNS:
            data[column] = getattr(self, column)
        return pd.DataFrame(data)

    def summary(self) -> str:
        """
        ggeffects-style print output.

        Produces:
            # Predicted values of yield
            # x = batch

            batch | Predicted |          95% CI
            -----------------------------------
            1     |     41.20 | [40.13, 42.27]
            2     |     38.95 | [37.88, 40.02]

        The interval column reads CI, PI or SI for confidence, prediction
        and simulation intervals.
        """
        model = self._design.model
        lines = [f"# Predicted values of {model.response}"]
        for role, name in zip(('x', 'group', 'facet'), self.terms):
            lines.append(f"# {role} = {name}")
        lines.append("")

        focal = [
            [_format_value(v) for v in self.grid[name]] for name in self.terms
        ]
        widths = [
            max(len(name), *(len(v) for v in values))
            for name, values in zip(self.terms, focal)
        ]
        ci_label = f"{int(round(self.ci_level * 100))}% {_INTERVAL_LABEL[self.interval]}"
        bounds = [
            "" if np.isnan(lo) else f"[{lo:.2f}, {hi:.2f}]"
            for lo, hi in zip(self.conf_low, self.conf_high)
        ]
        ci_width = max(len(ci_label), *(len(b) for b in bounds))

        header = " | ".join(
            [f"{name:<{w}s}" for name, w in zip(self.terms, widths)]
            + [f"{'Predicted':>9s}", f"{ci_label:>{ci_width}s}"]
        )
        lines.append(header)
        lines.append("-" * len(header))
        for i in range(len(self)):
            cells = [f"{values[i]:<{w}s}" for values, w in zip(focal, widths)]
            cells.append(f"{self.predicted[i]:9.2f}")
            cells.append(f"{bounds[i]:>{ci_width}s}")
            lines.append(" | ".join(cells))

        if self._design.per_level:
            lines.append("")
            lines.append(
                "Predictions are conditioned on random-effect levels; "
                "intervals are only reported for type='sim'."
            )
        for message in self.warnings:
            lines.append(f"Warning: {message}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"PredictionSolution(type={self.prediction_type!r}, "
            f"terms={list(self.terms)}, n_rows={len(self)}, "
            f"backend={self.backend_name!r})"
        )


def _format_value(value: Any) -> str:
    if isinstance(value, (float, np.floating)):
        if float(value).is_integer():
            return level_key(value)
        return f"{float(value):.2f}"
    return level_key(value)
