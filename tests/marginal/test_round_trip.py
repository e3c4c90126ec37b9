"""
Round-trip scenarios against the model's own predictions.

Validates:
    - a one-factor linear model reproduces its level predictions
    - yield ~ batch + temp: one row per batch at mean temperature, for a
      linear and a beta regression fit
    - model.predict(new_data(...)) reproduces predict_marginal()
    - predict_means / predict_effects / predict_marginal agreement
    - two-term grids
    - published GasolineYield beta regression: first batch at 0.3122091
"""

import numpy as np
import pytest

from pyeffects.marginal import (
    new_data,
    predict_effects,
    predict_marginal,
    predict_means,
)
from pyeffects.model import fitted_model


class TestOneFactorLinearModel:

    def test_reproduces_group_means(self, grouped_data, rng):
        group = grouped_data['group']
        level_means = dict(zip('ABCDEFGH', np.linspace(10.0, 24.0, 8)))
        y = np.array([level_means[g] for g in group]) + rng.normal(0.0, 2.0, len(group))

        X = np.column_stack(
            [np.ones(len(group))] + [(group == g).astype(float) for g in 'BCDEFGH']
        )
        beta, *_ = np.linalg.lstsq(X, y, rcond=None)
        sigma2 = np.sum((y - X @ beta) ** 2) / (len(y) - X.shape[1])
        model = fitted_model(
            {'group': group}, ['group'], beta, sigma2 * np.linalg.inv(X.T @ X),
            df_residual=len(y) - X.shape[1],
        )

        result = predict_marginal(model, "group", type='fixed')
        assert len(result) == 8
        observed = [np.mean(y[group == g]) for g in 'ABCDEFGH']
        np.testing.assert_allclose(result.predicted, observed, atol=1e-3)
        direct = model.predict({'group': np.array(list('ABCDEFGH'), dtype=object)})
        np.testing.assert_allclose(result.predicted, direct, atol=1e-3)


class TestYieldScenario:

    @pytest.mark.parametrize("model_name", ['yield_model', 'beta_yield_model'])
    def test_batch_at_mean_temperature(self, request, model_name):
        model = request.getfixturevalue(model_name)
        result = predict_marginal(model, "batch", type='fixed')
        assert len(result) == 10
        levels = np.arange(1, 11)
        mean_temp = np.mean(model.frame['temp'].values)
        direct = model.predict({'batch': levels.astype(object), 'temp': np.full(10, mean_temp)})
        np.testing.assert_allclose(result.predicted, direct, atol=1e-3)
        assert list(result.grid['batch']) == list(levels)

    def test_beta_predictions_are_proportions(self, beta_yield_model):
        result = predict_marginal(beta_yield_model, "batch")
        assert np.all((result.predicted > 0.0) & (result.predicted < 1.0))


class TestNewDataRoundTrip:

    @pytest.mark.parametrize("model_name, terms", [
        ('yield_model', "batch"),
        ('beta_yield_model', ["temp", "batch [2,5]"]),
        ('poisson_model', "x [n=5]"),
        ('mixed_model', "x"),
    ])
    def test_predict_on_new_data(self, request, model_name, terms):
        model = request.getfixturevalue(model_name)
        direct = model.predict(new_data(model, terms))
        result = predict_marginal(model, terms)
        np.testing.assert_allclose(direct, result.predicted, rtol=1e-12)

    def test_with_condition(self, yield_model):
        condition = {'temp': 320.0}
        direct = yield_model.predict(new_data(yield_model, "batch", condition))
        result = predict_marginal(yield_model, "batch", condition=condition)
        np.testing.assert_allclose(direct, result.predicted, rtol=1e-12)

    def test_requested_group_levels(self, mixed_model):
        direct = mixed_model.predict(
            new_data(mixed_model, "group [B,C]"), include_random=True,
        )
        result = predict_marginal(mixed_model, "group [B,C]")
        np.testing.assert_allclose(direct, result.predicted, rtol=1e-12)


class TestAveragingStrategies:

    def test_agree_without_non_focal_factors(self, beta_yield_model):
        marginal = predict_marginal(beta_yield_model, "batch")
        means = predict_means(beta_yield_model, "batch")
        effects = predict_effects(beta_yield_model, "batch")
        np.testing.assert_allclose(means.predicted, marginal.predicted, rtol=1e-12)
        np.testing.assert_allclose(effects.predicted, marginal.predicted, rtol=1e-12)
        assert means.predicted[0] == pytest.approx(marginal.predicted[0])

    def test_means_average_over_levels(self, yield_model):
        means = predict_means(yield_model, "temp [300]")
        by_batch = predict_marginal(yield_model, ["temp [300]", "batch"])
        assert means.predicted[0] == pytest.approx(np.mean(by_batch.predicted))
        assert means.info['typical'] == 'average'

    def test_balanced_data_effects_equal_means(self, yield_model):
        means = predict_means(yield_model, "temp [300,400]")
        effects = predict_effects(yield_model, "temp [300,400]")
        np.testing.assert_allclose(effects.predicted, means.predicted)
        assert effects.info['typical'] == 'proportional'

    def test_reference_differs_from_average(self, yield_model):
        marginal = predict_marginal(yield_model, "temp [300]")
        means = predict_means(yield_model, "temp [300]")
        assert marginal.info['typical'] == 'reference'
        assert marginal.predicted[0] != pytest.approx(means.predicted[0])


class TestTwoTerms:

    def test_row_count_and_columns(self, beta_yield_model):
        frame = predict_marginal(beta_yield_model, ["batch", "temp"]).to_frame()
        assert len(frame) == 10 * 10
        assert list(frame.columns) == [
            'batch', 'temp', 'predicted', 'std_error', 'conf_low', 'conf_high',
        ]

    def test_three_terms(self, grouped_data):
        data = {
            'x': grouped_data['x'],
            'z': np.tile([0.0, 1.0], 48),
            'site': np.tile(['u', 'v', 'w'], 32),
        }
        model = fitted_model(data, ['x', 'z', 'site'], np.zeros(5), np.eye(5) * 0.01)
        result = predict_marginal(model, ["x [1,2]", "z [0,1]", "site"])
        assert len(result) == 2 * 2 * 3


class TestGasolineYield:

    @pytest.mark.parametrize("predict", [predict_marginal, predict_means, predict_effects])
    def test_first_batch_at_mean_temperature(self, gasoline_model, predict):
        result = predict(gasoline_model, "batch")
        assert len(result) == 10
        assert result.predicted[0] == pytest.approx(0.3122091, abs=1e-3)

    def test_batch_ten_is_betareg_reference(self, gasoline_model):
        result = predict_marginal(gasoline_model, "batch [10]", condition={'temp': 300.0})
        expected = 1.0 / (1.0 + np.exp(-(-6.1595710 + 0.0109669 * 300.0)))
        assert result.predicted[0] == pytest.approx(expected, rel=1e-6)

    def test_new_data_round_trip(self, gasoline_model):
        grid = new_data(gasoline_model, "batch")
        np.testing.assert_allclose(
            gasoline_model.predict(grid), predict_marginal(gasoline_model, "batch").predicted,
            atol=1e-3,
        )

    def test_two_terms_frame(self, gasoline_model):
        frame = predict_effects(gasoline_model, ["batch", "temp"]).to_frame()
        assert len(frame) == 10 * 10
