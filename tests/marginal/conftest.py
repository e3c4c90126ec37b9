"""
Shared fixtures for marginal prediction tests.

Linear and beta regression models are fitted here (numpy least squares,
scipy maximum likelihood); mixed and zero-inflated models are built from
known parameters.
"""

import numpy as np
import pytest
from scipy import optimize, special

from pyeffects.model import GroupingFactor, ModelFrame, ModelTerms, fitted_model


def _design(data, terms, categorical):
    frame = ModelFrame.from_data(data, categorical=categorical)
    model_terms = ModelTerms(terms=tuple(terms))
    return model_terms.build_matrix(frame, frame.observed(), frame.n_obs)


@pytest.fixture
def yield_model(batch_temp_data, rng):
    """Linear model yield ~ batch + temp fitted by least squares."""
    data = batch_temp_data
    batch_effect = np.linspace(0.0, -9.0, 10)[data['batch'] - 1]
    y = 20.0 + batch_effect + 0.05 * data['temp'] + rng.normal(0.0, 1.0, len(data['temp']))

    X = _design(data, ['batch', 'temp'], ['batch'])
    beta, *_ = np.linalg.lstsq(X, y, rcond=None)
    resid = y - X @ beta
    df = X.shape[0] - X.shape[1]
    sigma2 = float(resid @ resid / df)
    vcov = sigma2 * np.linalg.inv(X.T @ X)

    return fitted_model(
        data, ['batch', 'temp'], beta, (vcov + vcov.T) / 2.0,
        response='yield', family='gaussian', categorical=['batch'],
        dispersion=sigma2, df_residual=df,
    )


@pytest.fixture
def beta_yield_model(batch_temp_data, rng):
    """Beta regression yield ~ batch + temp fitted by maximum likelihood."""
    data = batch_temp_data
    X = _design(data, ['batch', 'temp'], ['batch'])
    p = X.shape[1]

    true_beta = np.concatenate([[-4.0], np.linspace(-0.2, -1.5, 9), [0.01]])
    mu = special.expit(X @ true_beta)
    phi_true = 200.0
    y = rng.beta(mu * phi_true, (1.0 - mu) * phi_true)

    def negloglik(theta):
        eta, log_phi = X @ theta[:p], theta[p]
        m = special.expit(eta)
        phi = np.exp(log_phi)
        a, b = m * phi, (1.0 - m) * phi
        ll = (special.gammaln(phi) - special.gammaln(a) - special.gammaln(b)
              + (a - 1.0) * np.log(y) + (b - 1.0) * np.log1p(-y))
        return -np.sum(ll)

    start = np.concatenate([np.zeros(p), [np.log(50.0)]])
    start[0] = special.logit(np.mean(y))
    res = optimize.minimize(negloglik, start, method='BFGS')
    vcov = np.asarray(res.hess_inv)[:p, :p]

    return fitted_model(
        data, ['batch', 'temp'], res.x[:p], (vcov + vcov.T) / 2.0,
        response='yield', family='beta', categorical=['batch'],
        dispersion=float(np.exp(res.x[p])),
    )


@pytest.fixture
def grouped_data(rng):
    """8 groups of 12 observations with one numeric covariate."""
    groups = np.array(list('ABCDEFGH'))
    return {
        'x': rng.uniform(0.0, 10.0, size=96),
        'group': np.repeat(groups, 12),
    }


@pytest.fixture
def group_blups(rng):
    return dict(zip('ABCDEFGH', rng.normal(0.0, 2.0, size=8)))


@pytest.fixture
def mixed_model(grouped_data, group_blups):
    """Gaussian y ~ x + (1 | group) with σ²_group = 4."""
    factor = GroupingFactor.from_blups('group', 4.0, group_blups)
    return fitted_model(
        grouped_data, ['x'], [2.0, 0.5], np.array([[0.04, -0.004], [-0.004, 0.001]]),
        family='gaussian', random=[factor], dispersion=1.0,
    )


@pytest.fixture
def zi_mixed_model(grouped_data, rng):
    """Zero-inflated Poisson count ~ x + (1 | group), zi ~ x."""
    blups = dict(zip('ABCDEFGH', rng.normal(0.0, 1.0, size=8)))
    factor = GroupingFactor.from_blups('group', 1.5, blups)
    return fitted_model(
        grouped_data, ['x'], [0.5, 0.1], np.array([[0.01, -0.001], [-0.001, 0.0004]]),
        response='count', family='poisson', random=[factor],
        zi_terms=['x'], zi_coefficients=[-1.0, 0.05],
        zi_vcov=np.array([[0.04, -0.002], [-0.002, 0.0005]]),
    )


@pytest.fixture
def poisson_model(grouped_data):
    """Plain Poisson GLM without random effects or zero inflation."""
    return fitted_model(
        grouped_data, ['x', 'group'], np.r_[0.2, 0.1, np.zeros(7)],
        np.eye(9) * 0.01, family='poisson',
    )


# Published betareg fit of yield ~ batch + temp on GasolineYield
# (Cribari-Neto & Zeileis 2010). betareg codes batch with level 10 as
# reference; the fixture re-expresses it with level 1 as reference.
GASOLINE_COEF = {
    '(Intercept)': (-6.1595710, 0.1823247),
    'batch1': (1.7277289, 0.1012294),
    'batch2': (1.3225969, 0.1179020),
    'batch3': (1.5723099, 0.1161045),
    'batch4': (1.0597141, 0.1023598),
    'batch5': (1.1337518, 0.1035232),
    'batch6': (1.0401618, 0.1060365),
    'batch7': (0.5436922, 0.1091275),
    'batch8': (0.4959007, 0.1089257),
    'batch9': (0.3857930, 0.1185933),
    'temp': (0.0109669, 0.0004126),
}
GASOLINE_PHI = 440.27839

GASOLINE_TEMP = [
    205, 275, 345, 407, 218, 273, 347, 212, 272, 340, 235, 300, 365, 410, 307, 367,
    395, 267, 360, 402, 235, 275, 358, 416, 285, 365, 444, 351, 424, 365, 379, 428,
]
GASOLINE_BATCH = np.repeat(np.arange(1, 11), [4, 3, 3, 4, 3, 3, 4, 3, 2, 3])


@pytest.fixture
def gasoline_model():
    """Beta regression yield ~ batch + temp at the published estimates."""
    published = np.array([est for est, _ in GASOLINE_COEF.values()])
    se = np.array([s for _, s in GASOLINE_COEF.values()])

    # (Intercept), batch1..batch9, temp  ->  (Intercept), batch2..batch10, temp
    A = np.zeros((11, 11))
    A[0, 0] = A[0, 1] = 1.0
    for k in range(1, 9):
        A[k, k + 1] = 1.0
        A[k, 1] = -1.0
    A[9, 1] = -1.0
    A[10, 10] = 1.0

    vcov = A @ np.diag(se ** 2) @ A.T
    return fitted_model(
        {'batch': GASOLINE_BATCH, 'temp': np.array(GASOLINE_TEMP, dtype=float)},
        ['batch', 'temp'], A @ published, (vcov + vcov.T) / 2.0,
        response='yield', family='beta', categorical=['batch'],
        dispersion=GASOLINE_PHI,
    )
