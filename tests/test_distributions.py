"""
Unit tests for the PyMC growth distributions
"""

import pytest
import numpy as np

from carbon_growth.growth import (
    exponential_growth_logpmf,
    logistic_growth_logpmf,
    double_exponential_growth_logpmf,
)

try:
    import pymc as pm
    from carbon_growth.distributions import (
        ExponentialGrowth, LogisticGrowth, DoubleExponentialGrowth,
        exponential_growth_log_pmf_tensor,
    )
    PYMC_AVAILABLE = True
except ImportError:
    PYMC_AVAILABLE = False


@pytest.mark.skipif(not PYMC_AVAILABLE, reason="PyMC not installed")
class TestGrowthLogp:
    """PyTensor log-pmf must agree with the numpy implementation."""

    def test_exponential_logp_matches_numpy(self):
        values = np.array([6000, 5800, 5123, 5000])
        dist = ExponentialGrowth.dist(6000, 5000, r=0.002, size=len(values))
        logp = pm.logp(dist, values).eval()
        np.testing.assert_allclose(logp, exponential_growth_logpmf(values, 6000, 5000, 0.002))

    def test_logistic_logp_matches_numpy(self):
        values = np.array([6000, 5500, 5001])
        dist = LogisticGrowth.dist(6000, 5000, k=0.05, r=0.01, size=len(values))
        logp = pm.logp(dist, values).eval()
        np.testing.assert_allclose(logp, logistic_growth_logpmf(values, 6000, 5000, 0.05, 0.01))

    def test_double_exponential_logp_matches_numpy(self):
        values = np.array([5900, 5500, 5100])
        dist = DoubleExponentialGrowth.dist(6000, 5000, r1=0.002, r2=-0.001, mu=5400.0,
                                              size=len(values))
        logp = pm.logp(dist, values).eval()
        expected = double_exponential_growth_logpmf(values, 6000, 5000, 0.002, -0.001, 5400.0)
        np.testing.assert_allclose(logp, expected)

    def test_outside_window_is_minus_inf(self):
        dist = ExponentialGrowth.dist(6000, 5000, r=0.002, size=2)
        logp = pm.logp(dist, np.array([6001, 4999])).eval()
        assert np.all(np.isneginf(logp))

    def test_tensor_pmf_normalised(self):
        log_p = exponential_growth_log_pmf_tensor(6000, 5000, 0.004).eval()
        assert np.isclose(np.exp(log_p).sum(), 1.0)


@pytest.mark.skipif(not PYMC_AVAILABLE, reason="PyMC not installed")
class TestGrowthRandom:
    """Test forward sampling through PyMC."""

    def test_draws_within_window(self):
        dist = LogisticGrowth.dist(6000, 5000, k=0.1, r=0.02, size=200)
        draws = pm.draw(dist, random_seed=1)
        assert draws.shape == (200,)
        assert draws.min() >= 5000
        assert draws.max() <= 6000

    def test_prior_predictive_in_model(self):
        with pm.Model():
            r = pm.Exponential('r', lam=250)
            ExponentialGrowth('dates', 6000, 5000, r=r, size=50)
            prior = pm.sample_prior_predictive(draws=10, random_seed=2)
        dates = prior.prior['dates'].values
        assert dates.shape[-1] == 50
        assert dates.min() >= 5000 and dates.max() <= 6000


@pytest.mark.skipif(not PYMC_AVAILABLE, reason="PyMC not installed")
class TestCalendarDateFit:
    """Fit a growth rate to exactly known calendar dates (slow)."""

    def test_recovers_exponential_rate(self, rng):
        from carbon_growth.growth import sample_growth

        true_r = 0.003
        dates = sample_growth('exponential', 500, 6000, 5000, rng=rng, r=true_r)

        with pm.Model():
            r = pm.Normal('r', mu=0.0, sigma=0.01)
            ExponentialGrowth('dates', 6000, 5000, r=r, observed=dates)
            trace = pm.sample(draws=300, tune=300, chains=2, cores=1,
                              progressbar=False, random_seed=3)

        r_mean = float(trace.posterior['r'].mean())
        assert abs(r_mean - true_r) < 0.0015
