"""
Core protocols for PyEffects.

These define structural interfaces that implementations must satisfy.
We use Protocol (structural typing) rather than ABC (nominal typing) so
that any fitted-model container exposing the right attributes can be
handed to the prediction engine.

Design Principles:
    - Minimal contracts: prescribe only what the engine reads
    - Capability-driven: use supports() for optional model structure
    - Type-safe: use generics to preserve type information through pipelines
"""

from typing import Protocol, TypeVar, Mapping, runtime_checkable

from numpy.typing import ArrayLike, NDArray

# Type variables for generic payloads
P = TypeVar('P')  # Parameter payload type
D = TypeVar('D')  # Design type


@runtime_checkable
class FittedModelLike(Protocol):
    """
    Minimal protocol for a fitted regression model.

    The engine only reads a model: it never refits or mutates it. The
    concrete container shipped with the library is
    pyeffects.model.FittedModel; adapters for other fitting libraries
    only need to provide the same surface.
    """

    @property
    def response(self) -> str:
        """Name of the response variable."""
        ...

    @property
    def variable_names(self) -> tuple[str, ...]:
        """Every variable the model knows about, grouping factors included."""
        ...

    def supports(self, capability: str) -> bool:
        """
        Check if this model supports a given capability.

        Standard capability strings live in pyeffects.core.capabilities:
            'random_effects': grouping factors with variances and BLUPs
            'zero_inflation': separate zero-inflation component
            'simulate': responses can be drawn from the family
            'residual_df': residual df available for t intervals

        Note:
            Unknown capabilities MUST return False, never raise.
            This allows forward-compatible capability checking.
        """
        ...

    def predict(
        self,
        newdata: Mapping[str, ArrayLike],
        *,
        include_random: bool = False,
    ) -> NDArray:
        """Response-scale predictions for the rows of newdata."""
        ...


@runtime_checkable
class Backend(Protocol[D, P]):
    """
    Protocol for computational backends.

    Each backend knows how to take a validated design and produce a
    domain-specific parameter payload.

    Backends are stateless: all configuration is passed via the design
    or at construction time. This makes them easy to test and swap.

    Type Parameters:
        D: The design type this backend accepts
        P: The parameter payload type this backend produces
    """

    @property
    def name(self) -> str:
        """
        Backend identifier.

        Convention: '{device}_{algorithm}'
        Examples: 'cpu_analytic', 'cpu_simulation'
        """
        ...

    def solve(self, design: D) -> 'Result[P]':
        """
        Execute the computation.

        Args:
            design: Validated, immutable design

        Returns:
            Result envelope containing parameter payload and metadata

        Raises:
            NumericalError: If numerical issues prevent a solution
            ValidationError: If design is invalid for this backend
        """
        ...
