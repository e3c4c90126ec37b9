"""
Default settings for marginal predictions.

Every public function takes these as keyword defaults; nothing reads
configuration files or environment variables.
"""

# Confidence / prediction interval level
DEFAULT_CI_LEVEL = 0.95

# Draws for the simulation-based prediction types
DEFAULT_N_SIM = 1000

# Evenly spaced values for a continuous focal term without a selector
DEFAULT_GRID_POINTS = 10

# Focal terms per call (x, group, facet)
MAX_FOCAL_TERMS = 3
