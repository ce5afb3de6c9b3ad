"""
Carbon Growth — Growth Model Probability Mass Functions
========================================================
Closed-form population-growth models expressed as categorical distributions
over the integer calendar years of a window.

Conventions:
    Calendar years are in BP (before 1950). A window (a, b) has a > b:
    a is the start of the growth period (oldest year) and b its end.

    Elapsed time t = a - x, so t = 0 at the start of the window.
    Year-indexed vectors are ordered a, a-1, ..., b.

Models:
    exponential          w(t) = (1 + r)^t
    logistic             w(t) = 1 / (1 + ((1 - k) / k) * exp(-r t))
    double_exponential   rate r1 until change point mu, then r2

    p(x) = w(a - x) / sum(w)

All computations are carried out in log space.

Author: Carbon Growth contributors
License: MIT
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from scipy.special import logsumexp


# ═══════════════════════════════════════════════════════════════
# Model registry
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GrowthModelSpec:
    """Description of a growth model and its parameters."""
    name: str
    parameters: Tuple[str, ...]
    description: str


GROWTH_MODELS: Dict[str, GrowthModelSpec] = {
    'exponential': GrowthModelSpec(
        name='exponential',
        parameters=('r',),
        description='Constant growth rate r per year'
    ),
    'logistic': GrowthModelSpec(
        name='logistic',
        parameters=('k', 'r'),
        description='Logistic growth from initial fraction k of carrying capacity'
    ),
    'double_exponential': GrowthModelSpec(
        name='double_exponential',
        parameters=('r1', 'r2', 'mu'),
        description='Exponential growth with a change of rate at year mu'
    ),
}


def get_model_spec(model: str) -> GrowthModelSpec:
    """Look up a growth model by name."""
    if model not in GROWTH_MODELS:
        raise ValueError(
            f"Unknown growth model: '{model}'. "
            f"Available: {sorted(GROWTH_MODELS)}"
        )
    return GROWTH_MODELS[model]


# ═══════════════════════════════════════════════════════════════
# Window helpers
# ═══════════════════════════════════════════════════════════════

def validate_window(a, b) -> Tuple[int, int]:
    """Check a calendar window and return it as integers."""
    if int(a) != a or int(b) != b:
        raise ValueError(f"Window bounds must be integer years, got a={a}, b={b}")
    a, b = int(a), int(b)
    if a <= b:
        raise ValueError(f"Window start a must be older (larger BP) than end b, got a={a}, b={b}")
    return a, b


def window_years(a: int, b: int) -> np.ndarray:
    """Calendar years of a window ordered a, a-1, ..., b."""
    a, b = validate_window(a, b)
    return np.arange(a, b - 1, -1)


def _elapsed(a: int, b: int) -> np.ndarray:
    return np.arange(a - b + 1, dtype=np.float64)


def _check_rate(name: str, r: float):
    if not np.isfinite(r) or r <= -1.0:
        raise ValueError(f"Growth rate {name} must be finite and > -1, got {r}")


# ═══════════════════════════════════════════════════════════════
# Log-PMF vectors
# ═══════════════════════════════════════════════════════════════

def exponential_growth_log_pmf(a: int, b: int, r: float) -> np.ndarray:
    """Log-probability of each year of the window under exponential growth.

    Args:
        a: Start of the window (BP)
        b: End of the window (BP), b < a
        r: Growth rate per year (r > -1; r < 0 is decline, r = 0 uniform)

    Returns:
        [n] array ordered a .. b
    """
    a, b = validate_window(a, b)
    _check_rate('r', r)
    log_w = _elapsed(a, b) * np.log1p(r)
    return log_w - logsumexp(log_w)


def logistic_growth_log_pmf(a: int, b: int, k: float, r: float) -> np.ndarray:
    """Log-probability of each year of the window under logistic growth.

    Args:
        a: Start of the window (BP)
        b: End of the window (BP)
        k: Initial population as a fraction of carrying capacity, 0 < k < 1
        r: Growth rate
    """
    a, b = validate_window(a, b)
    if not 0.0 < k < 1.0:
        raise ValueError(f"Initial fraction k must lie in (0, 1), got {k}")
    if not np.isfinite(r):
        raise ValueError(f"Growth rate r must be finite, got {r}")
    # log w = -log(1 + exp(log((1-k)/k) - r t))
    log_w = -np.logaddexp(0.0, np.log1p(-k) - np.log(k) - r * _elapsed(a, b))
    return log_w - logsumexp(log_w)


def double_exponential_growth_log_pmf(a: int, b: int, r1: float, r2: float,
                                      mu: float) -> np.ndarray:
    """Log-probability under exponential growth with one change of rate.

    Args:
        a: Start of the window (BP)
        b: End of the window (BP)
        r1: Growth rate between a and the change point
        r2: Growth rate between the change point and b
        mu: Change point (BP), b <= mu <= a
    """
    a, b = validate_window(a, b)
    _check_rate('r1', r1)
    _check_rate('r2', r2)
    if not b <= mu <= a:
        raise ValueError(f"Change point mu must lie within [{b}, {a}], got {mu}")
    t = _elapsed(a, b)
    c = a - mu
    log_w = np.where(
        t <= c,
        t * np.log1p(r1),
        c * np.log1p(r1) + (t - c) * np.log1p(r2)
    )
    return log_w - logsumexp(log_w)


_LOG_PMF = {
    'exponential': exponential_growth_log_pmf,
    'logistic': logistic_growth_log_pmf,
    'double_exponential': double_exponential_growth_log_pmf,
}


def growth_log_pmf(model: str, a: int, b: int, **params) -> np.ndarray:
    """Dispatch to the log-PMF vector of a named growth model."""
    spec = get_model_spec(model)
    missing = [p for p in spec.parameters if p not in params]
    if missing:
        raise ValueError(f"Missing parameters for '{model}' model: {missing}")
    kwargs = {p: float(params[p]) for p in spec.parameters}
    return _LOG_PMF[model](a, b, **kwargs)


def growth_pmf(model: str, a: int, b: int, **params) -> np.ndarray:
    """Probability of each year of the window (ordered a .. b)."""
    return np.exp(growth_log_pmf(model, a, b, **params))


# ═══════════════════════════════════════════════════════════════
# Elementwise densities of calendar dates
# ═══════════════════════════════════════════════════════════════

def _lookup(log_p: np.ndarray, x, a: int, b: int) -> np.ndarray:
    x = np.asarray(x)
    inside = (x >= b) & (x <= a) & (np.floor(x) == x)
    idx = np.clip(a - np.where(inside, x, a), 0, a - b).astype(int)
    return np.where(inside, log_p[idx], -np.inf)


def exponential_growth_logpmf(x, a: int, b: int, r: float) -> np.ndarray:
    """Log-probability of calendar years x (-inf outside the window)."""
    return _lookup(exponential_growth_log_pmf(a, b, r), x, int(a), int(b))


def logistic_growth_logpmf(x, a: int, b: int, k: float, r: float) -> np.ndarray:
    """Log-probability of calendar years x (-inf outside the window)."""
    return _lookup(logistic_growth_log_pmf(a, b, k, r), x, int(a), int(b))


def double_exponential_growth_logpmf(x, a: int, b: int, r1: float, r2: float,
                                     mu: float) -> np.ndarray:
    """Log-probability of calendar years x (-inf outside the window)."""
    return _lookup(double_exponential_growth_log_pmf(a, b, r1, r2, mu), x, int(a), int(b))


def growth_logpmf(x, model: str, a: int, b: int, **params) -> np.ndarray:
    """Elementwise log-probability of calendar years under a named model."""
    return _lookup(growth_log_pmf(model, a, b, **params), x, int(a), int(b))


# ═══════════════════════════════════════════════════════════════
# Random generation
# ═══════════════════════════════════════════════════════════════

def sample_growth(model: str, n: int, a: int, b: int,
                  rng: Optional[np.random.Generator] = None,
                  **params) -> np.ndarray:
    """Draw n calendar years (BP) from a growth model.

    Args:
        model: 'exponential', 'logistic' or 'double_exponential'
        n: Number of dates
        a, b: Calendar window (BP)
        rng: numpy Generator (fresh default_rng if None)
        **params: Model parameters (see GROWTH_MODELS)

    Returns:
        [n] integer array of calendar years
    """
    if n < 0:
        raise ValueError(f"Number of samples must be non-negative, got {n}")
    rng = rng if rng is not None else np.random.default_rng()
    p = growth_pmf(model, a, b, **params)
    return rng.choice(window_years(a, b), size=n, replace=True, p=p / p.sum())


def growth_curve(model: str, a: int, b: int, **params) -> Tuple[np.ndarray, np.ndarray]:
    """Return (years, pmf) for plotting a growth model over its window."""
    return window_years(a, b), growth_pmf(model, a, b, **params)
