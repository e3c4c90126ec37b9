"""
Generic result container for all PyEffects computations.

The Result class provides a standardized envelope that all domain-specific
results use. This enables shared tooling for timing, diagnostics,
reproducibility and display while allowing domains to define their own
parameter structures.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (prediction type, seed, draws)
    - timing is optional (don't burden unit tests)
    - Immutable (frozen=True) for reproducibility
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for prediction computations.

    Type Parameters:
        P: The domain-specific parameter payload type

    Attributes:
        params: Domain-specific payload (predictions, intervals, grid)
        info: Structured metadata (type, interval kind, draws, seed)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the backend that produced this result
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> # Closed-form intervals
        >>> Result(
        ...     params=PredictionParams(...),
        ...     info={'type': 'fixed', 'interval': 'confidence'},
        ...     timing={'total_seconds': 0.01},
        ...     backend_name='cpu_analytic'
        ... )

        >>> # Simulation-based intervals
        >>> Result(
        ...     params=PredictionParams(...),
        ...     info={'type': 'sim', 'n_sim': 1000, 'seed': 42},
        ...     timing={'total_seconds': 0.5, 'draws': 0.4},
        ...     backend_name='cpu_simulation'
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
