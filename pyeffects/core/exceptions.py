"""
Exception hierarchy for PyEffects.

All exceptions inherit from PyEffectsError to allow catching any
library-specific error. Domain-specific exceptions should inherit from
the appropriate base class here.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class PyEffectsError(Exception):
    """Base exception for all PyEffects errors."""
    pass


class ValidationError(PyEffectsError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when multiple arrays have inconsistent shapes.
    """
    pass


class InvalidTermError(ValidationError):
    """
    A requested term is not usable with the model.

    Raised when a focal term or condition names a variable the model
    does not contain, or when a term string cannot be parsed.

    Attributes:
        term: The offending term string or variable name
        available: Variable names the model does provide
    """

    def __init__(
        self,
        message: str,
        term: str | None = None,
        available: tuple[str, ...] | None = None,
    ):
        super().__init__(message)
        self.term = term
        self.available = available


class EmptyLevelSetError(ValidationError):
    """
    Level filtering or sampling left no values for a term.

    Attributes:
        term: The term whose value set came out empty
    """

    def __init__(self, message: str, term: str | None = None):
        super().__init__(message)
        self.term = term


class UnsupportedModelError(PyEffectsError):
    """
    The model cannot serve the requested prediction type.

    Raised when a prediction type needs a model capability (random
    effects, zero-inflation, response simulation) the model lacks.

    Attributes:
        prediction_type: The requested prediction type
        missing: Capability strings the model does not support
    """

    def __init__(
        self,
        message: str,
        prediction_type: str | None = None,
        missing: tuple[str, ...] = (),
    ):
        super().__init__(message)
        self.prediction_type = prediction_type
        self.missing = missing


class NumericalError(PyEffectsError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class NotPositiveDefiniteError(NumericalError):
    """
    Matrix is not positive (semi-)definite.

    Raised when a covariance matrix handed to the library cannot be a
    covariance matrix because it has a negative eigenvalue.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        min_eigenvalue: Minimum eigenvalue, if computed
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        min_eigenvalue: float | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.min_eigenvalue = min_eigenvalue
