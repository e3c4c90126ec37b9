"""
Fitted model descriptions.

Public API:
    fitted_model()   — validate and assemble a FittedModel
    FittedModel      — read-only fitted model consumed by the engine
    GroupingFactor   — random effects of one grouping factor
    ModelFrame       — observed variables tagged numeric / categorical
    resolve_family() — family name → Family instance
"""

from pyeffects.model._common import (
    GroupingFactor,
    LinearComponent,
    RandomEffects,
    Variable,
    VariableKind,
)
from pyeffects.model.families import (
    Family,
    Link,
    Gaussian,
    Binomial,
    Poisson,
    NegativeBinomial,
    Beta,
    resolve_family,
    resolve_link,
)
from pyeffects.model.fitted import FittedModel, fitted_model
from pyeffects.model.frame import ModelFrame, ModelTerms

__all__ = [
    "fitted_model",
    "FittedModel",
    "GroupingFactor",
    "RandomEffects",
    "LinearComponent",
    "ModelFrame",
    "ModelTerms",
    "Variable",
    "VariableKind",
    "Family",
    "Link",
    "Gaussian",
    "Binomial",
    "Poisson",
    "NegativeBinomial",
    "Beta",
    "resolve_family",
    "resolve_link",
]
