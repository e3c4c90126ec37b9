"""
Capability string constants for PyEffects.

This module is the SINGLE SOURCE OF TRUTH for capability strings.
Import from here, never use raw strings.

Usage:
    from pyeffects.core.capabilities import (
        CAPABILITY_RANDOM_EFFECTS,
        CAPABILITY_ZERO_INFLATION,
    )

    if model.supports(CAPABILITY_RANDOM_EFFECTS):
        factors = model.random.factors
"""

# Model has random-effect grouping factors (variances and BLUPs)
CAPABILITY_RANDOM_EFFECTS = 'random_effects'

# Model has a zero-inflation component with its own coefficients
CAPABILITY_ZERO_INFLATION = 'zero_inflation'

# Model can draw new responses (family sampler plus any dispersion)
CAPABILITY_SIMULATE = 'simulate'

# Model carries residual degrees of freedom (t-based intervals)
CAPABILITY_RESIDUAL_DF = 'residual_df'

# All capabilities as a frozenset for validation
ALL_CAPABILITIES = frozenset({
    CAPABILITY_RANDOM_EFFECTS,
    CAPABILITY_ZERO_INFLATION,
    CAPABILITY_SIMULATE,
    CAPABILITY_RESIDUAL_DF,
})

__all__ = [
    'CAPABILITY_RANDOM_EFFECTS',
    'CAPABILITY_ZERO_INFLATION',
    'CAPABILITY_SIMULATE',
    'CAPABILITY_RESIDUAL_DF',
    'ALL_CAPABILITIES',
]
