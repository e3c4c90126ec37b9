"""
Input validation utilities for PyEffects.

These validators follow the "fail fast, fail loud" principle. They raise
immediately with clear error messages rather than silently correcting
or making assumptions about user intent.

Design principles:
    - No silent type coercion (except np.asarray on array-likes)
    - No default handling of edge cases
    - Clear, actionable error messages with actual values
    - Each function validates ONE thing
    - Parameter names included in all error messages
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray
from typing import Any

from pyeffects.core.exceptions import (
    ValidationError,
    DimensionError,
    NotPositiveDefiniteError,
)


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Validate and convert input to a floating point numpy array.

    Args:
        array: Input to validate
        name: Parameter name for error messages

    Returns:
        numpy.ndarray with floating dtype

    Raises:
        ValidationError: If input cannot be converted to numeric array
    """
    try:
        result = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e

    if result.dtype == object:
        raise ValidationError(
            f"{name}: converted to object dtype, indicating mixed types or non-numeric data"
        )

    if not np.issubdtype(result.dtype, np.number):
        raise ValidationError(
            f"{name}: non-numeric dtype {result.dtype}, expected numeric data"
        )

    if not np.issubdtype(result.dtype, np.floating):
        result = result.astype(np.float64)

    return result


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify array contains no NaN or Inf values.

    Raises:
        ValidationError: If array contains non-finite values
    """
    if not np.all(np.isfinite(array)):
        n_nan = int(np.sum(np.isnan(array)))
        n_inf = int(np.sum(np.isinf(array)))
        raise ValidationError(
            f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf)"
        )


def check_ndim(array: NDArray[np.floating[Any]], ndim: int, name: str) -> None:
    """
    Verify array has exactly the specified number of dimensions.

    Raises:
        DimensionError: If array has wrong number of dimensions
    """
    if array.ndim != ndim:
        raise DimensionError(
            f"{name}: expected {ndim}D array, got {array.ndim}D with shape {array.shape}"
        )


def check_square(array: NDArray[np.floating[Any]], size: int, name: str) -> None:
    """
    Verify array is a (size, size) matrix.

    Raises:
        DimensionError: If array is not square of the expected size
    """
    check_ndim(array, 2, name)
    if array.shape != (size, size):
        raise DimensionError(
            f"{name}: expected shape ({size}, {size}), got {array.shape}"
        )


def check_covariance(
    matrix: NDArray[np.floating[Any]],
    name: str,
    tol: float = 1e-8,
) -> None:
    """
    Verify a matrix is symmetric positive semi-definite.

    Zero eigenvalues are allowed (degenerate variance components are
    legitimate); eigenvalues below -tol * max(1, |largest|) are not.

    Raises:
        ValidationError: If the matrix is not symmetric
        NotPositiveDefiniteError: If the matrix has a negative eigenvalue
    """
    if not np.allclose(matrix, matrix.T, rtol=1e-8, atol=1e-10):
        raise ValidationError(f"{name}: matrix is not symmetric")

    if matrix.size == 0:
        return

    eigvals = np.linalg.eigvalsh(matrix)
    scale = max(1.0, float(np.max(np.abs(eigvals))))
    min_eig = float(eigvals[0])
    if min_eig < -tol * scale:
        raise NotPositiveDefiniteError(
            f"{name}: not positive semi-definite (min eigenvalue {min_eig:.3g})",
            matrix_name=name,
            min_eigenvalue=min_eig,
        )


def check_probability(value: float, name: str) -> None:
    """
    Verify a scalar lies strictly between 0 and 1.

    Raises:
        ValidationError: If value is outside (0, 1)
    """
    if not 0.0 < value < 1.0:
        raise ValidationError(f"{name}: must be in (0, 1), got {value}")
