"""
Carbon Growth — PyMC Growth Distributions
==========================================
Exponential, logistic and double-exponential growth as categorical
distributions over integer calendar years, for use inside PyMC models.

Each distribution is a ``pm.CustomDist`` with a PyTensor log-pmf and a numpy
random generator. The same PyTensor log-pmf vectors are used by the
radiocarbon likelihood in ``bayesian.py``.

Usage:
    import pymc as pm
    from carbon_growth.distributions import ExponentialGrowth

    with pm.Model():
        r = pm.Exponential('r', lam=250)
        ExponentialGrowth('dates', a=6500, b=4500, r=r, observed=cal_dates)

Author: Carbon Growth contributors
License: MIT
"""

import numpy as np
from functools import partial
import warnings

try:
    import pymc as pm
    import pytensor.tensor as pt
    PYMC_AVAILABLE = True
except ImportError:
    PYMC_AVAILABLE = False
    pm = None
    pt = None
    warnings.warn("[WARNING] PyMC not installed. Install with: pip install pymc arviz")

from .growth import validate_window, window_years, growth_pmf


# ═══════════════════════════════════════════════════════════════
# PyTensor log-pmf vectors (ordered a .. b)
# ═══════════════════════════════════════════════════════════════

def _elapsed(a: int, b: int):
    return pt.arange(a - b + 1, dtype='float64')


def exponential_growth_log_pmf_tensor(a: int, b: int, r):
    """Symbolic log-pmf vector of exponential growth."""
    log_w = _elapsed(a, b) * pt.log1p(r)
    return log_w - pt.logsumexp(log_w)


def logistic_growth_log_pmf_tensor(a: int, b: int, k, r):
    """Symbolic log-pmf vector of logistic growth."""
    log_w = -pt.softplus(pt.log1p(-k) - pt.log(k) - r * _elapsed(a, b))
    return log_w - pt.logsumexp(log_w)


def double_exponential_growth_log_pmf_tensor(a: int, b: int, r1, r2, mu):
    """Symbolic log-pmf vector of double exponential growth."""
    t = _elapsed(a, b)
    c = a - mu
    log_w = pt.switch(
        pt.le(t, c),
        t * pt.log1p(r1),
        c * pt.log1p(r1) + (t - c) * pt.log1p(r2)
    )
    return log_w - pt.logsumexp(log_w)


LOG_PMF_TENSORS = {
    'exponential': exponential_growth_log_pmf_tensor,
    'logistic': logistic_growth_log_pmf_tensor,
    'double_exponential': double_exponential_growth_log_pmf_tensor,
}


def _lookup(log_p, value, a: int, b: int):
    inside = pt.and_(pt.ge(value, b), pt.le(value, a))
    idx = pt.clip(a - value, 0, a - b).astype('int64')
    return pt.switch(inside, log_p[idx], -np.inf)


# ═══════════════════════════════════════════════════════════════
# logp / random callbacks for pm.CustomDist
# ═══════════════════════════════════════════════════════════════

def _exponential_logp(value, r, a, b):
    return _lookup(exponential_growth_log_pmf_tensor(a, b, r), value, a, b)


def _logistic_logp(value, k, r, a, b):
    return _lookup(logistic_growth_log_pmf_tensor(a, b, k, r), value, a, b)


def _double_exponential_logp(value, r1, r2, mu, a, b):
    return _lookup(double_exponential_growth_log_pmf_tensor(a, b, r1, r2, mu), value, a, b)


def _random(*params, model, names, a, b, rng=None, size=None):
    rng = rng if rng is not None else np.random.default_rng()
    kwargs = {name: float(np.asarray(value)) for name, value in zip(names, params)}
    p = growth_pmf(model, a, b, **kwargs)
    return rng.choice(window_years(a, b), size=size, replace=True, p=p / p.sum())


def _require_pymc():
    if not PYMC_AVAILABLE:
        raise ImportError("PyMC required. Install with: pip install pymc arviz")


class _GrowthDistribution:
    """Shared constructor logic for the growth distributions."""
    model = None
    names = ()
    logp_fn = None

    @classmethod
    def _callbacks(cls, a, b):
        a, b = validate_window(a, b)
        logp = partial(cls.logp_fn, a=a, b=b)
        random = partial(_random, model=cls.model, names=cls.names, a=a, b=b)
        return logp, random

    @classmethod
    def _create(cls, name, a, b, params, **kwargs):
        _require_pymc()
        logp, random = cls._callbacks(a, b)
        return pm.CustomDist(name, *params, logp=logp, random=random,
                             dtype='int64', **kwargs)

    @classmethod
    def _create_dist(cls, a, b, params, **kwargs):
        _require_pymc()
        logp, random = cls._callbacks(a, b)
        return pm.CustomDist.dist(*params, class_name=cls.__name__,
                                  logp=logp, random=random,
                                  dtype='int64', **kwargs)


class ExponentialGrowth(_GrowthDistribution):
    """Exponential growth over the integer years [b, a] (BP).

    Args:
        name: Variable name
        a: Start of the window (oldest year, BP)
        b: End of the window (BP)
        r: Growth rate (tensor or float)
    """
    model = 'exponential'
    names = ('r',)
    logp_fn = staticmethod(_exponential_logp)

    def __new__(cls, name, a, b, r, **kwargs):
        return cls._create(name, a, b, (r,), **kwargs)

    @classmethod
    def dist(cls, a, b, r, **kwargs):
        return cls._create_dist(a, b, (r,), **kwargs)


class LogisticGrowth(_GrowthDistribution):
    """Logistic growth over the integer years [b, a] (BP).

    Args:
        name: Variable name
        a, b: Calendar window (BP)
        k: Initial population as a fraction of carrying capacity
        r: Growth rate
    """
    model = 'logistic'
    names = ('k', 'r')
    logp_fn = staticmethod(_logistic_logp)

    def __new__(cls, name, a, b, k, r, **kwargs):
        return cls._create(name, a, b, (k, r), **kwargs)

    @classmethod
    def dist(cls, a, b, k, r, **kwargs):
        return cls._create_dist(a, b, (k, r), **kwargs)


class DoubleExponentialGrowth(_GrowthDistribution):
    """Exponential growth with a change of rate at year mu (BP)."""
    model = 'double_exponential'
    names = ('r1', 'r2', 'mu')
    logp_fn = staticmethod(_double_exponential_logp)

    def __new__(cls, name, a, b, r1, r2, mu, **kwargs):
        return cls._create(name, a, b, (r1, r2, mu), **kwargs)

    @classmethod
    def dist(cls, a, b, r1, r2, mu, **kwargs):
        return cls._create_dist(a, b, (r1, r2, mu), **kwargs)


GROWTH_DISTRIBUTIONS = {
    'exponential': ExponentialGrowth,
    'logistic': LogisticGrowth,
    'double_exponential': DoubleExponentialGrowth,
}
