"""
Model frame and fixed-effect design matrices.

ModelFrame holds the observed variables a model was fitted on and tags
each one as numeric or categorical. ModelTerms turns an ordered list of
main effects and interactions into a treatment-coded design matrix for
arbitrary rows (observed data or a prediction grid), using R's column
naming: '(Intercept)', 'temp', 'batch2', 'x:batch2'.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyeffects.core.exceptions import InvalidTermError, ValidationError
from pyeffects.core.validation import check_array, check_finite
from pyeffects.model._common import Variable, VariableKind, level_key


@dataclass(frozen=True)
class ModelFrame:
    """Observed model variables.

    Construct with ModelFrame.from_data().

    Attributes:
        variables: Variable per column name, in input order.
        n_obs: Number of observations.
    """
    variables: dict[str, Variable]
    n_obs: int

    @classmethod
    def from_data(
        cls,
        data: Mapping[str, ArrayLike],
        *,
        categorical: Iterable[str] = (),
        levels: Mapping[str, Sequence[Any]] | None = None,
    ) -> 'ModelFrame':
        """Tag and validate observed columns.

        A column is categorical when it is listed in `categorical`, has
        explicit `levels`, carries a pandas categorical dtype, or is not
        numeric. Categorical levels default to the sorted unique values
        (pandas categories keep their own order); the first level is the
        reference level.

        Args:
            data: Mapping of column name to values (dict of arrays or a
                pandas DataFrame).
            categorical: Names to treat as categorical even if numeric.
            levels: Explicit level order per categorical column.

        Returns:
            Validated ModelFrame.

        Raises:
            ValidationError: On empty data, inconsistent lengths, non-finite
                numeric values or observed values outside given levels.
        """
        categorical = set(categorical)
        levels = dict(levels or {})
        names = list(data.keys())
        if not names:
            raise ValidationError("data: no columns given")

        variables: dict[str, Variable] = {}
        n_obs: int | None = None
        for name in names:
            column = data[name]
            cat_levels = levels.get(name)
            if cat_levels is None and hasattr(column, 'cat'):
                cat_levels = list(column.cat.categories)
            raw = np.asarray(column)
            if raw.ndim != 1:
                raise ValidationError(
                    f"data['{name}']: expected 1D column, got shape {raw.shape}"
                )
            if n_obs is None:
                n_obs = raw.shape[0]
            elif raw.shape[0] != n_obs:
                raise ValidationError(
                    f"data['{name}'] has {raw.shape[0]} rows, expected {n_obs}"
                )

            is_categorical = (
                name in categorical
                or cat_levels is not None
                or not np.issubdtype(raw.dtype, np.number)
            )
            if is_categorical:
                variables[name] = _categorical_variable(name, raw, cat_levels)
            else:
                values = check_array(raw, f"data['{name}']")
                check_finite(values, f"data['{name}']")
                variables[name] = Variable(
                    name=name, kind=VariableKind.NUMERIC, values=values,
                )

        if n_obs == 0:
            raise ValidationError("data: no observations")

        unknown = (categorical | set(levels)) - set(names)
        if unknown:
            raise ValidationError(
                f"categorical/levels name columns not in data: {sorted(unknown)}"
            )

        return cls(variables=variables, n_obs=int(n_obs))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.variables.keys())

    def __getitem__(self, name: str) -> Variable:
        try:
            return self.variables[name]
        except KeyError:
            raise InvalidTermError(
                f"'{name}' is not a model variable. "
                f"Available: {list(self.names)}",
                term=name,
                available=self.names,
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self.variables

    def observed(self) -> dict[str, NDArray]:
        """Observed values of every variable, keyed by name."""
        return {name: var.values for name, var in self.variables.items()}


def _categorical_variable(
    name: str, raw: NDArray, cat_levels: Sequence[Any] | None
) -> Variable:
    values = raw.astype(object)
    if cat_levels is None:
        observed = list(dict.fromkeys(values.tolist()))
        try:
            cat_levels = sorted(observed)
        except TypeError:
            cat_levels = sorted(observed, key=level_key)
    cat_levels = tuple(cat_levels)
    if len(cat_levels) == 0:
        raise ValidationError(f"data['{name}']: categorical column has no levels")

    known = {level_key(lvl) for lvl in cat_levels}
    stray = sorted({level_key(v) for v in values} - known)
    if stray:
        raise ValidationError(
            f"data['{name}']: values {stray} are not among the levels "
            f"{[level_key(lvl) for lvl in cat_levels]}"
        )
    return Variable(
        name=name, kind=VariableKind.CATEGORICAL, values=values, levels=cat_levels,
    )


@dataclass(frozen=True)
class ModelTerms:
    """Ordered fixed-effect terms of a linear predictor.

    Attributes:
        terms: Main effects ('x') and interactions ('x:batch').
        intercept: Whether the design has an intercept column.
    """
    terms: tuple[str, ...]
    intercept: bool = True

    @property
    def variables(self) -> tuple[str, ...]:
        """Distinct variables referenced by the terms, in order of appearance."""
        seen: dict[str, None] = {}
        for term in self.terms:
            for part in term.split(':'):
                seen[part] = None
        return tuple(seen)

    def column_names(self, frame: ModelFrame) -> tuple[str, ...]:
        names = ['(Intercept)'] if self.intercept else []
        for term in self.terms:
            block = [()]
            for part in term.split(':'):
                block = [
                    prev + (col,) for prev in block
                    for col in _encoded_names(frame[part])
                ]
            names.extend(':'.join(cols) for cols in block)
        return tuple(names)

    def build_matrix(
        self,
        frame: ModelFrame,
        rows: Mapping[str, ArrayLike],
        n_rows: int,
        weights: Mapping[str, NDArray] | None = None,
    ) -> NDArray:
        """Design matrix for the given rows.

        Args:
            frame: ModelFrame providing variable kinds and levels.
            rows: Column values per variable. Numeric columns must be
                numeric; categorical columns hold levels.
            n_rows: Number of rows to build.
            weights: Optional per-level weights for categorical variables
                that are averaged over instead of fixed at a level. Every
                row then carries the weights of the non-reference levels
                in the dummy columns; rows[name] is ignored.

        Returns:
            Design matrix (n_rows, p).
        """
        weights = weights or {}
        encoded: dict[str, NDArray] = {}
        for name in self.variables:
            variable = frame[name]
            if name in weights:
                w = np.asarray(weights[name], dtype=np.float64)
                encoded[name] = np.tile(w[1:], (n_rows, 1))
            else:
                if name not in rows:
                    raise ValidationError(
                        f"newdata: missing column '{name}' required by the model"
                    )
                encoded[name] = encode_column(variable, rows[name], n_rows)

        blocks = [np.ones((n_rows, 1))] if self.intercept else []
        for term in self.terms:
            block = np.ones((n_rows, 1))
            for part in term.split(':'):
                cols = encoded[part]
                block = (block[:, :, None] * cols[:, None, :]).reshape(n_rows, -1)
            blocks.append(block)
        if not blocks:
            return np.empty((n_rows, 0))
        return np.hstack(blocks)


def _encoded_names(variable: Variable) -> list[str]:
    if variable.kind is VariableKind.NUMERIC:
        return [variable.name]
    return [f"{variable.name}{level_key(lvl)}" for lvl in variable.levels[1:]]


def encode_column(variable: Variable, values: ArrayLike, n_rows: int) -> NDArray:
    """Encode one variable's values as design columns.

    Numeric variables give a single column; categorical variables give
    treatment-coded dummies for every non-reference level.
    """
    values = np.asarray(values)
    if values.ndim == 0:
        values = np.repeat(values, n_rows)
    if values.shape[0] != n_rows:
        raise ValidationError(
            f"'{variable.name}': {values.shape[0]} values, expected {n_rows}"
        )
    if variable.kind is VariableKind.NUMERIC:
        column = check_array(values, f"'{variable.name}'")
        return column.reshape(n_rows, 1)

    idx = np.array([variable.level_index(v) for v in values], dtype=np.intp)
    dummies = np.zeros((n_rows, variable.n_levels), dtype=np.float64)
    dummies[np.arange(n_rows), idx] = 1.0
    return dummies[:, 1:]
