"""
Carbon Growth - Bayesian Growth Models for Radiocarbon Date Frequencies

Fits exponential, logistic and double-exponential population-growth models
to radiocarbon dates with PyMC, and provides model comparison (WAIC),
posterior predictive SPD checks and agreement indices.
"""

__version__ = "0.1.0"

# Growth models
from .growth import (
    GROWTH_MODELS,
    growth_log_pmf,
    growth_pmf,
    growth_logpmf,
    sample_growth,
)

# Calibration
from .calibration import (
    CalibrationCurve,
    CalibratedDates,
    calibrate,
    uncalibrate,
    spd,
)
from .calibration_cache import CalibrationCache, CachedCalibrator

# Post-hoc analysis
from .comparison import compare_models, compute_waic
from .predictive import posterior_predictive_spd, SPDCheckResult
from .agreement import agreement_index, AgreementResult

# Data
from .data import RadiocarbonDataLoader, simulate_dates, synthetic_curve

try:
    from .distributions import ExponentialGrowth, LogisticGrowth, DoubleExponentialGrowth
    from .bayesian import GrowthModelEstimator, BayesianConfig, PriorSpec
    from .workflow import run_growth_analysis
except ImportError:
    # PyMC is optional
    ExponentialGrowth = LogisticGrowth = DoubleExponentialGrowth = None
    GrowthModelEstimator = BayesianConfig = PriorSpec = None
    run_growth_analysis = None

__all__ = [
    "GROWTH_MODELS",
    "growth_log_pmf",
    "growth_pmf",
    "growth_logpmf",
    "sample_growth",
    "CalibrationCurve",
    "CalibratedDates",
    "calibrate",
    "uncalibrate",
    "spd",
    "CalibrationCache",
    "CachedCalibrator",
    "compare_models",
    "compute_waic",
    "posterior_predictive_spd",
    "SPDCheckResult",
    "agreement_index",
    "AgreementResult",
    "RadiocarbonDataLoader",
    "simulate_dates",
    "synthetic_curve",
    "ExponentialGrowth",
    "LogisticGrowth",
    "DoubleExponentialGrowth",
    "GrowthModelEstimator",
    "BayesianConfig",
    "PriorSpec",
    "run_growth_analysis",
]
