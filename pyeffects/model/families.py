"""
Response family and link function specifications.

Each Link defines:
- g(μ) → η  (link)
- g⁻¹(η) → μ  (inverse link, used to back-transform predictions)
- whether g⁻¹ is increasing (interval bounds swap for decreasing links)

Each Family defines:
- A default link function
- Whether a dispersion parameter is needed to describe the response
- A sampler drawing responses given μ, used by simulation predictions

References:
    McCullagh, P., & Nelder, J. A. (1989). Generalized Linear Models (2nd ed.)
    Ferrari, S., & Cribari-Neto, F. (2004). Beta regression for modelling
    rates and proportions. Journal of Applied Statistics, 31(7), 799-815.
    R Core Team. stats::family, stats::make.link
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pyeffects.core.exceptions import ValidationError


# =====================================================================
# Link functions
# =====================================================================

class Link(ABC):
    """Link function g, used through its inverse g⁻¹(η) → μ."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def linkinv(self, eta: NDArray) -> NDArray:
        """g⁻¹(η) → μ."""
        ...

    @property
    def increasing(self) -> bool:
        """Whether g⁻¹ is monotone increasing in η."""
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class IdentityLink(Link):
    """Identity link: g(μ) = μ. Default for Gaussian family."""

    @property
    def name(self) -> str:
        return 'identity'

    def linkinv(self, eta: NDArray) -> NDArray:
        return np.array(eta, dtype=np.float64, copy=True)


class LogitLink(Link):
    """Logit link: g(μ) = log(μ/(1-μ)). Default for Binomial and Beta."""

    @property
    def name(self) -> str:
        return 'logit'

    def linkinv(self, eta: NDArray) -> NDArray:
        # Clip to prevent overflow in exp
        eta = np.clip(eta, -500, 500)
        return 1.0 / (1.0 + np.exp(-eta))


class LogLink(Link):
    """Log link: g(μ) = log(μ). Default for Poisson and negative binomial."""

    @property
    def name(self) -> str:
        return 'log'

    def linkinv(self, eta: NDArray) -> NDArray:
        eta = np.clip(eta, -500, 500)
        return np.exp(eta)


class InverseLink(Link):
    """Inverse link: g(μ) = 1/μ."""

    @property
    def name(self) -> str:
        return 'inverse'

    def linkinv(self, eta: NDArray) -> NDArray:
        return 1.0 / np.maximum(eta, 1e-10)

    @property
    def increasing(self) -> bool:
        return False


class ProbitLink(Link):
    """Probit link: g(μ) = Φ⁻¹(μ)."""

    @property
    def name(self) -> str:
        return 'probit'

    def linkinv(self, eta: NDArray) -> NDArray:
        return stats.norm.cdf(eta)


class CloglogLink(Link):
    """Complementary log-log link: g(μ) = log(-log(1-μ))."""

    @property
    def name(self) -> str:
        return 'cloglog'

    def linkinv(self, eta: NDArray) -> NDArray:
        eta = np.clip(eta, -500, 30)
        return -np.expm1(-np.exp(eta))


# =====================================================================
# Link name → class mapping
# =====================================================================

_LINK_CLASSES: dict[str, type[Link]] = {
    'identity': IdentityLink,
    'logit': LogitLink,
    'log': LogLink,
    'inverse': InverseLink,
    'probit': ProbitLink,
    'cloglog': CloglogLink,
}


def resolve_link(link: str | Link | None, default: Link) -> Link:
    """Resolve a link argument to a Link instance."""
    if link is None:
        return default
    if isinstance(link, Link):
        return link
    if isinstance(link, str):
        cls = _LINK_CLASSES.get(link.lower())
        if cls is None:
            valid = ', '.join(sorted(_LINK_CLASSES.keys()))
            raise ValidationError(f"Unknown link: {link!r}. Valid links: {valid}")
        return cls()
    raise TypeError(f"link must be str or Link, got {type(link).__name__}")


# =====================================================================
# Family base class
# =====================================================================

class Family(ABC):
    """
    Response family specification.

    Only what prediction needs: the link, and a way to draw responses
    around a mean for simulation-based intervals.
    """

    def __init__(self, link: str | Link | None = None):
        self._link = resolve_link(link, self._default_link())

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def _default_link(self) -> Link:
        ...

    @property
    def link(self) -> Link:
        return self._link

    @property
    def needs_dispersion(self) -> bool:
        """Whether sample() requires a dispersion parameter.

        False for Binomial and Poisson (φ = 1). True for Gaussian (σ²),
        Beta (precision φ) and negative binomial (θ).
        """
        return False

    @abstractmethod
    def sample(
        self,
        mu: NDArray,
        dispersion: float | None,
        rng: np.random.Generator,
    ) -> NDArray:
        """Draw one response per element of mu."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(link={self._link.name!r})"


# =====================================================================
# Concrete families
# =====================================================================

class Gaussian(Family):
    """Gaussian (Normal) family. Default link: identity.

    Dispersion is the residual variance σ².
    """

    @property
    def name(self) -> str:
        return 'gaussian'

    def _default_link(self) -> Link:
        return IdentityLink()

    @property
    def needs_dispersion(self) -> bool:
        return True

    def sample(self, mu, dispersion, rng):
        return rng.normal(mu, np.sqrt(dispersion))


class Binomial(Family):
    """Binomial (Bernoulli) family. Default link: logit."""

    @property
    def name(self) -> str:
        return 'binomial'

    def _default_link(self) -> Link:
        return LogitLink()

    def sample(self, mu, dispersion, rng):
        mu = np.clip(mu, 0.0, 1.0)
        return rng.binomial(1, mu).astype(np.float64)


class Poisson(Family):
    """Poisson family. Default link: log."""

    @property
    def name(self) -> str:
        return 'poisson'

    def _default_link(self) -> Link:
        return LogLink()

    def sample(self, mu, dispersion, rng):
        return rng.poisson(np.maximum(mu, 0.0)).astype(np.float64)


class NegativeBinomial(Family):
    """Negative binomial (NB2) family. Default link: log.

    Var(y) = μ + μ²/θ with dispersion θ; drawn as a Gamma-Poisson
    mixture.
    """

    @property
    def name(self) -> str:
        return 'negative_binomial'

    def _default_link(self) -> Link:
        return LogLink()

    @property
    def needs_dispersion(self) -> bool:
        return True

    def sample(self, mu, dispersion, rng):
        theta = dispersion
        lam = rng.gamma(shape=theta, scale=np.maximum(mu, 1e-10) / theta)
        return rng.poisson(lam).astype(np.float64)


class Beta(Family):
    """Beta family in the mean/precision parameterisation. Default link: logit.

    y ~ Beta(μφ, (1-μ)φ), so E[y] = μ and Var(y) = μ(1-μ)/(1+φ).
    Dispersion is the precision φ.
    """

    @property
    def name(self) -> str:
        return 'beta'

    def _default_link(self) -> Link:
        return LogitLink()

    @property
    def needs_dispersion(self) -> bool:
        return True

    def sample(self, mu, dispersion, rng):
        mu = np.clip(mu, 1e-10, 1 - 1e-10)
        return rng.beta(mu * dispersion, (1.0 - mu) * dispersion)


# =====================================================================
# Family name → class mapping + resolver
# =====================================================================

_FAMILY_CLASSES: dict[str, type[Family]] = {
    'gaussian': Gaussian,
    'normal': Gaussian,
    'binomial': Binomial,
    'poisson': Poisson,
    'negative_binomial': NegativeBinomial,
    'nbinom2': NegativeBinomial,
    'beta': Beta,
}


def resolve_family(family: str | Family, link: str | Link | None = None) -> Family:
    """Resolve a family argument to a Family instance.

    Args:
        family: Either a string name ('gaussian', 'binomial', 'poisson',
                'negative_binomial', 'beta') or a Family instance
                (passed through; link must then be None).
        link: Optional link override for string families.

    Returns:
        Family instance.

    Raises:
        ValidationError: If string name is not recognized.
        TypeError: If argument is neither string nor Family.
    """
    if isinstance(family, Family):
        if link is not None:
            raise ValidationError(
                "link cannot be given together with a Family instance"
            )
        return family
    if isinstance(family, str):
        cls = _FAMILY_CLASSES.get(family.lower())
        if cls is None:
            valid = ', '.join(
                sorted(k for k in _FAMILY_CLASSES.keys()
                       if k not in ('normal', 'nbinom2'))
            )
            raise ValidationError(
                f"Unknown family: {family!r}. Valid families: {valid}"
            )
        return cls(link)
    raise TypeError(f"family must be str or Family, got {type(family).__name__}")
