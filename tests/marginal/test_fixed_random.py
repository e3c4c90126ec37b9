"""
Tests for the closed-form prediction types 'fixed' and 'random'.

Validates:
    - identical point estimates for fixed and random
    - random intervals at least as wide as fixed intervals
    - link-scale intervals back-transformed through the inverse link
    - normal vs Student t quantiles
    - per-level rows (requested or pinned grouping factors)
"""

import numpy as np
import pytest
from scipy import stats

from pyeffects.marginal import predict_marginal
from pyeffects.model import GroupingFactor, fitted_model


def width(result):
    return result.conf_high - result.conf_low


# ═══════════════════════════════════════════════════════════════════════
# fixed vs random
# ═══════════════════════════════════════════════════════════════════════


class TestFixedVersusRandom:

    @pytest.mark.parametrize("model_name, terms", [
        ('mixed_model', "x"),
        ('mixed_model', "x [0,5,10]"),
        ('zi_mixed_model', "x"),
    ])
    def test_same_point_estimates(self, request, model_name, terms):
        model = request.getfixturevalue(model_name)
        fixed = predict_marginal(model, terms, type='fixed')
        random = predict_marginal(model, terms, type='random')
        np.testing.assert_array_equal(fixed.predicted, random.predicted)
        assert np.all(width(random) >= width(fixed))
        assert np.all(random.std_error > fixed.std_error)

    def test_random_widens_on_log_scale(self, zi_mixed_model):
        fixed = predict_marginal(zi_mixed_model, "x [5]", type='fixed')
        random = predict_marginal(zi_mixed_model, "x [5]", type='random')
        assert random.conf_low[0] < fixed.conf_low[0]
        assert random.conf_high[0] > fixed.conf_high[0]

    def test_interval_kind(self, mixed_model):
        assert predict_marginal(mixed_model, "x", type='fixed').interval == 'confidence'
        assert predict_marginal(mixed_model, "x", type='random').interval == 'prediction'

    def test_zero_random_variance_gives_equal_intervals(self, grouped_data):
        factor = GroupingFactor.from_blups('group', 0.0, {g: 0.0 for g in 'ABCDEFGH'})
        model = fitted_model(
            grouped_data, ['x'], [1.0, 0.2], np.eye(2) * 0.01, random=[factor],
        )
        fixed = predict_marginal(model, "x", type='fixed')
        random = predict_marginal(model, "x", type='random')
        np.testing.assert_allclose(random.conf_low, fixed.conf_low)
        np.testing.assert_allclose(random.conf_high, fixed.conf_high)


# ═══════════════════════════════════════════════════════════════════════
# Interval computation
# ═══════════════════════════════════════════════════════════════════════


class TestAnalyticIntervals:

    def test_fixed_values(self, mixed_model):
        result = predict_marginal(mixed_model, "x [1,4]", type='fixed')
        X = np.array([[1.0, 1.0], [1.0, 4.0]])
        V = mixed_model.vcov
        se = np.sqrt(np.einsum('ij,jk,ik->i', X, V, X))
        z = stats.norm.ppf(0.975)
        np.testing.assert_allclose(result.predicted, [2.5, 4.0])
        np.testing.assert_allclose(result.std_error, se)
        np.testing.assert_allclose(result.conf_low, [2.5, 4.0] - z * se)
        np.testing.assert_allclose(result.conf_high, [2.5, 4.0] + z * se)

    def test_random_adds_group_variance(self, mixed_model):
        result = predict_marginal(mixed_model, "x [1]", type='random')
        x = np.array([1.0, 1.0])
        se = np.sqrt(x @ mixed_model.vcov @ x + 4.0)
        np.testing.assert_allclose(result.std_error, [se])
        assert result.info['re_variance'] == pytest.approx(4.0)

    def test_student_t_with_residual_df(self, yield_model):
        result = predict_marginal(yield_model, "batch", type='fixed')
        q = stats.t.ppf(0.975, yield_model.df_residual)
        np.testing.assert_allclose(
            result.conf_high - result.predicted, q * result.std_error, rtol=1e-10,
        )

    def test_ci_level(self, mixed_model):
        wide = predict_marginal(mixed_model, "x", ci_level=0.95)
        narrow = predict_marginal(mixed_model, "x", ci_level=0.5)
        assert np.all(width(narrow) < width(wide))
        assert narrow.ci_level == 0.5

    def test_log_link_back_transform(self, poisson_model):
        result = predict_marginal(poisson_model, "x [2]", type='fixed')
        eta = 0.2 + 0.1 * 2
        x = np.r_[1.0, 2.0, np.zeros(7)]
        se = np.sqrt(x @ poisson_model.vcov @ x)
        z = stats.norm.ppf(0.975)
        np.testing.assert_allclose(result.predicted, [np.exp(eta)])
        np.testing.assert_allclose(result.conf_low, [np.exp(eta - z * se)])
        np.testing.assert_allclose(result.conf_high, [np.exp(eta + z * se)])
        # asymmetric on the response scale
        assert result.conf_high[0] - result.predicted[0] > result.predicted[0] - result.conf_low[0]

    def test_decreasing_link_bounds_ordered(self, grouped_data):
        model = fitted_model(
            grouped_data, ['x'], [1.0, 0.1], np.eye(2) * 0.001,
            family='gaussian', link='inverse',
        )
        result = predict_marginal(model, "x")
        assert np.all(result.conf_low <= result.predicted)
        assert np.all(result.predicted <= result.conf_high)

    @pytest.mark.parametrize("type_", ['fixed', 'random'])
    def test_bounds_bracket_prediction(self, mixed_model, type_):
        result = predict_marginal(mixed_model, "x", type=type_)
        assert np.all(result.conf_low <= result.predicted)
        assert np.all(result.predicted <= result.conf_high)

    def test_beta_regression_bounds_in_unit_interval(self, beta_yield_model):
        result = predict_marginal(beta_yield_model, ["temp", "batch [1,10]"])
        assert np.all(result.conf_low > 0.0)
        assert np.all(result.conf_high < 1.0)
        assert np.all(result.conf_low <= result.predicted)
        assert np.all(result.predicted <= result.conf_high)


# ═══════════════════════════════════════════════════════════════════════
# Per-level rows
# ═══════════════════════════════════════════════════════════════════════


class TestPerLevelRows:

    @pytest.mark.parametrize("type_", ['fixed', 'random'])
    def test_blups_added_without_intervals(self, mixed_model, group_blups, type_):
        result = predict_marginal(mixed_model, "group [A,B]", type=type_)
        x_bar = np.mean(mixed_model.frame['x'].values)
        expected = [2.0 + 0.5 * x_bar + group_blups[g] for g in 'AB']
        np.testing.assert_allclose(result.predicted, expected)
        assert np.all(np.isnan(result.std_error))
        assert np.all(np.isnan(result.conf_low))
        assert np.all(np.isnan(result.conf_high))
        assert result.info['per_level']

    def test_levels_differ(self, mixed_model, group_blups):
        result = predict_marginal(mixed_model, ["x [1]", "group [C,D]"])
        assert list(result.grid['group']) == ['C', 'D']
        diff = result.predicted[0] - result.predicted[1]
        assert diff == pytest.approx(group_blups['C'] - group_blups['D'])

    def test_condition_pins_level(self, mixed_model, group_blups):
        pinned = predict_marginal(mixed_model, "x [3]", condition={'group': 'E'})
        population = predict_marginal(mixed_model, "x [3]")
        assert pinned.predicted[0] == pytest.approx(
            population.predicted[0] + group_blups['E']
        )
        assert np.isnan(pinned.conf_low[0])

    def test_random_slopes(self, grouped_data):
        factor = GroupingFactor.from_blups(
            'group', np.array([[1.0, 0.1], [0.1, 0.2]]),
            {g: [0.5 * i, 0.1 * i] for i, g in enumerate('ABCDEFGH')},
            terms=('1', 'x'),
        )
        model = fitted_model(
            grouped_data, ['x'], [1.0, 1.0], np.eye(2) * 0.01, random=[factor],
        )
        result = predict_marginal(model, ["x [2]", "group [C]"])
        assert result.predicted[0] == pytest.approx(1.0 + 2.0 + 1.0 + 0.2 * 2.0)
