"""
Tests for posterior predictive SPD checks
"""

import pytest
import numpy as np
import pandas as pd

from carbon_growth.calibration_cache import CalibrationCache
from carbon_growth.data import simulate_dates
from carbon_growth.predictive import (
    posterior_predictive_spd,
    envelope_test,
    SPDCheckResult,
)


A, B = 6500, 4500


class TestEnvelopeTest:
    """Test envelope and global p-value."""

    def test_typical_curve_not_significant(self, rng):
        simulated = rng.normal(1.0, 0.1, size=(200, 50))
        observed = np.ones(50)
        lower, upper, p_value = envelope_test(observed, simulated)
        assert np.all(lower < upper)
        assert p_value > 0.5

    def test_outlying_curve_significant(self, rng):
        simulated = rng.normal(1.0, 0.1, size=(200, 50))
        observed = np.full(50, 1.0)
        observed[10:20] = 2.0
        _, _, p_value = envelope_test(observed, simulated)
        assert p_value == pytest.approx(1 / 201)

    def test_constant_years_ignored(self):
        simulated = np.ones((20, 5))
        _, _, p_value = envelope_test(np.ones(5), simulated)
        assert p_value == 1.0


class TestSPDCheckResult:
    """Test deviation summaries."""

    @pytest.fixture
    def result(self):
        years = np.arange(110, 99, -1)
        observed = np.full(11, 1.0)
        observed[2:4] = 3.0     # 108-107 above
        observed[8] = -1.0      # 102 below
        return SPDCheckResult(years=years, observed=observed,
                              simulated=np.ones((10, 11)),
                              lower=np.zeros(11), upper=np.full(11, 2.0),
                              p_value=0.01, model='exponential')

    def test_deviation_masks(self, result):
        assert result.positive_deviation.sum() == 2
        assert result.negative_deviation.sum() == 1

    def test_deviation_periods(self, result):
        periods = result.deviation_periods()
        assert list(periods['type']) == ['positive', 'negative']
        assert periods.iloc[0][['start', 'end']].tolist() == [108, 107]
        assert periods.iloc[1][['start', 'end']].tolist() == [102, 102]

    def test_summary(self, result):
        summary = result.summary()
        assert summary['nsim'] == 10
        assert summary['positive_years'] == 2
        assert summary['negative_years'] == 1


class TestPosteriorPredictiveSPD:
    """Test the full simulation procedure."""

    @pytest.fixture(scope="class")
    def dates(self, curve):
        return simulate_dates(60, A, B, 'exponential', curve,
                              rng=np.random.default_rng(8), r=0.002)

    def test_shapes_and_normalisation(self, curve, dates, rng):
        draws = pd.DataFrame({'r': rng.normal(0.002, 0.0002, size=100)})
        result = posterior_predictive_spd(dates['cra'], dates['error'], curve, A, B,
                                          'exponential', draws, nsim=15, rng=rng,
                                          progressbar=False)
        assert result.years[0] == A and result.years[-1] == B
        assert result.simulated.shape == (15, A - B + 1)
        assert result.observed.sum() == pytest.approx(1.0)
        np.testing.assert_allclose(result.simulated.sum(axis=1), 1.0)
        assert 0 < result.p_value <= 1

    def test_nsim_larger_than_draws(self, curve, dates, rng):
        result = posterior_predictive_spd(dates['cra'], dates['error'], curve, A, B,
                                          'exponential', {'r': [0.002, 0.0021]},
                                          nsim=5, rng=rng, progressbar=False)
        assert result.nsim == 5

    def test_shared_cache_reused(self, curve, dates, rng):
        cache = CalibrationCache()
        posterior_predictive_spd(dates['cra'], dates['error'], curve, A, B,
                                 'exponential', {'r': [0.002]}, nsim=10, rng=rng,
                                 cache=cache, progressbar=False)
        assert cache.stats()['hits'] > 0

    def test_running_mean_unnormalised(self, curve, dates, rng):
        result = posterior_predictive_spd(dates['cra'], dates['error'], curve, A, B,
                                          'exponential', {'r': [0.002]}, nsim=3,
                                          spd_normalised=False, running_mean_window=50,
                                          rng=rng, progressbar=False)
        assert 0.6 * len(dates) < result.observed.sum() <= len(dates) + 1e-6

    def test_missing_parameters_rejected(self, curve, dates):
        with pytest.raises(ValueError, match="missing parameters"):
            posterior_predictive_spd(dates['cra'], dates['error'], curve, A, B,
                                     'logistic', {'r': [0.01]}, nsim=3, progressbar=False)

    def test_invalid_nsim_rejected(self, curve, dates):
        with pytest.raises(ValueError):
            posterior_predictive_spd(dates['cra'], dates['error'], curve, A, B,
                                     'exponential', {'r': [0.002]}, nsim=0, progressbar=False)
