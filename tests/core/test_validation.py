"""
Tests for input validation utilities.

Validates every function in core/validation.py:
    - check_array: conversion, dtype coercion, object rejection
    - check_finite: NaN/Inf detection
    - check_ndim / check_square: dimensionality checks
    - check_covariance: symmetry and positive semi-definiteness
    - check_probability: open unit interval
"""

import numpy as np
import pytest

from pyeffects.core.exceptions import (
    DimensionError,
    NotPositiveDefiniteError,
    ValidationError,
)
from pyeffects.core.validation import (
    check_array,
    check_covariance,
    check_finite,
    check_ndim,
    check_probability,
    check_square,
)


# ═══════════════════════════════════════════════════════════════════════
# check_array
# ═══════════════════════════════════════════════════════════════════════


class TestCheckArray:
    """check_array converts to ndarray and rejects non-numeric data."""

    def test_list_to_float_array(self):
        result = check_array([1, 2, 3], "X")
        assert np.issubdtype(result.dtype, np.floating)
        np.testing.assert_array_equal(result, [1.0, 2.0, 3.0])

    def test_object_array_rejected(self):
        with pytest.raises(ValidationError, match="object dtype"):
            check_array(np.array([1, 'a'], dtype=object), "X")

    def test_string_array_rejected(self):
        with pytest.raises(ValidationError, match="non-numeric"):
            check_array(np.array(['a', 'b']), "X")


# ═══════════════════════════════════════════════════════════════════════
# check_finite / check_ndim / check_square
# ═══════════════════════════════════════════════════════════════════════


class TestShapeAndFinite:

    def test_finite_passes(self):
        check_finite(np.array([1.0, 2.0]), "x")

    def test_nan_reported(self):
        with pytest.raises(ValidationError, match="1 NaN"):
            check_finite(np.array([1.0, np.nan]), "x")

    def test_ndim_mismatch(self):
        with pytest.raises(DimensionError):
            check_ndim(np.zeros((2, 2)), 1, "coef")

    def test_square_wrong_size(self):
        with pytest.raises(DimensionError, match=r"\(3, 3\)"):
            check_square(np.eye(2), 3, "vcov")

    def test_square_passes(self):
        check_square(np.eye(3), 3, "vcov")


# ═══════════════════════════════════════════════════════════════════════
# check_covariance
# ═══════════════════════════════════════════════════════════════════════


class TestCheckCovariance:

    def test_positive_definite_passes(self):
        check_covariance(np.array([[2.0, 0.5], [0.5, 1.0]]), "vcov")

    def test_zero_matrix_passes(self):
        """Degenerate variance components are legitimate."""
        check_covariance(np.zeros((2, 2)), "vcov")

    def test_asymmetric_rejected(self):
        with pytest.raises(ValidationError, match="not symmetric"):
            check_covariance(np.array([[1.0, 0.3], [0.0, 1.0]]), "vcov")

    def test_negative_eigenvalue(self):
        with pytest.raises(NotPositiveDefiniteError) as exc_info:
            check_covariance(np.array([[1.0, 2.0], [2.0, 1.0]]), "vcov")
        assert exc_info.value.matrix_name == "vcov"
        assert exc_info.value.min_eigenvalue == pytest.approx(-1.0)


# ═══════════════════════════════════════════════════════════════════════
# check_probability
# ═══════════════════════════════════════════════════════════════════════


class TestCheckProbability:

    @pytest.mark.parametrize("value", [0.5, 0.95, 1e-6])
    def test_inside(self, value):
        check_probability(value, "ci_level")

    @pytest.mark.parametrize("value", [0.0, 1.0, -0.1, 95])
    def test_outside(self, value):
        with pytest.raises(ValidationError, match="ci_level"):
            check_probability(value, "ci_level")
