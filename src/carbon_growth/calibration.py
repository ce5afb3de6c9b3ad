"""
Carbon Growth — Radiocarbon Calibration
========================================
Calibration-curve handling, single-date calibration, back-calibration and
summed probability distributions (SPDs).

Curve data (IntCal20, SHCal20, Marine20, ...) is not shipped with the package;
curves are read from the standard ``.14c`` files or from plain CSV tables.

Example ``.14c`` format:
    ##...header comments...
    # CAL BP, 14C age,Error,Delta 14C,Sigma
    55000,50100,1024,-4.5,18.4
    54980,50081,1018,-4.1,18.5
    ...

Mathematical Framework:
    For a radiocarbon age y with lab error s, the calibrated density of
    calendar year t is

        p(t | y) ∝ N(y; mu(t), sqrt(s² + sigma(t)²))

    where mu(t), sigma(t) are the curve's 14C age and error, linearly
    interpolated to annual resolution.

Author: Carbon Growth contributors
License: MIT
"""

import numpy as np
import pandas as pd
from pathlib import Path
from dataclasses import dataclass
from typing import Optional, Tuple, Union
from scipy.stats import norm

from .growth import validate_window, window_years


# ═══════════════════════════════════════════════════════════════
# Calibration curve
# ═══════════════════════════════════════════════════════════════

@dataclass
class CalibrationCurve:
    """Radiocarbon calibration curve sorted by calendar age (BP)."""
    cal_bp: np.ndarray
    c14_age: np.ndarray
    c14_error: np.ndarray
    name: str = 'custom'

    def __post_init__(self):
        cal_bp = np.asarray(self.cal_bp, dtype=np.float64)
        c14_age = np.asarray(self.c14_age, dtype=np.float64)
        c14_error = np.asarray(self.c14_error, dtype=np.float64)

        if not (cal_bp.ndim == c14_age.ndim == c14_error.ndim == 1):
            raise ValueError("Calibration curve columns must be 1D arrays")
        if not (len(cal_bp) == len(c14_age) == len(c14_error)):
            raise ValueError(
                f"Calibration curve column length mismatch: "
                f"{len(cal_bp)}, {len(c14_age)}, {len(c14_error)}"
            )
        if len(cal_bp) < 2:
            raise ValueError("Calibration curve needs at least two rows")
        if np.any(c14_error < 0):
            raise ValueError("Calibration curve errors must be non-negative")

        order = np.argsort(cal_bp)
        self.cal_bp = cal_bp[order]
        self.c14_age = c14_age[order]
        self.c14_error = c14_error[order]

        if np.any(np.diff(self.cal_bp) == 0):
            raise ValueError("Calibration curve has duplicated calendar ages")

    @classmethod
    def from_arrays(cls, cal_bp, c14_age, c14_error, name: str = 'custom') -> 'CalibrationCurve':
        return cls(cal_bp=cal_bp, c14_age=c14_age, c14_error=c14_error, name=name)

    @classmethod
    def load(cls, path: Union[str, Path], name: Optional[str] = None,
             delimiter: str = ',') -> 'CalibrationCurve':
        """Load a calibration curve from a ``.14c`` file or CSV table.

        The first three numeric columns are read as calendar age (BP),
        14C age and 14C error. Lines starting with ``#`` are comments.
        A header row is skipped automatically.

        Args:
            path: Curve file
            name: Curve name (defaults to the file stem, e.g. 'intcal20')
            delimiter: Column delimiter
        """
        filepath = Path(path)
        if not filepath.exists():
            raise FileNotFoundError(f"Calibration curve file not found: {filepath}")

        df = pd.read_csv(filepath, sep=delimiter, comment='#', header=None,
                         skipinitialspace=True)
        df = df.apply(pd.to_numeric, errors='coerce')
        # Drop header rows and blank lines
        df = df.dropna(how='any', subset=df.columns[:3])

        if df.shape[1] < 3 or len(df) < 2:
            raise ValueError(
                f"Calibration curve {filepath} must have at least 3 numeric columns "
                f"(CAL BP, 14C age, error), got shape {df.shape}"
            )

        return cls(
            cal_bp=df.iloc[:, 0].values,
            c14_age=df.iloc[:, 1].values,
            c14_error=df.iloc[:, 2].values,
            name=name or filepath.stem.lower(),
        )

    @property
    def range(self) -> Tuple[int, int]:
        """(youngest, oldest) calendar years covered, in BP."""
        return int(np.ceil(self.cal_bp[0])), int(np.floor(self.cal_bp[-1]))

    def calendar_grid(self) -> np.ndarray:
        """Annual calendar grid covered by the curve, ordered oldest first."""
        young, old = self.range
        return np.arange(old, young - 1, -1)

    def covers(self, a: int, b: int) -> bool:
        young, old = self.range
        return young <= b and a <= old

    def interpolate(self, years) -> Tuple[np.ndarray, np.ndarray]:
        """Curve 14C age and error at calendar years (linear interpolation).

        Returns:
            mu: [n] 14C ages
            sigma: [n] curve errors
        """
        years = np.asarray(years, dtype=np.float64)
        young, old = self.cal_bp[0], self.cal_bp[-1]
        if np.any((years < young) | (years > old)):
            raise ValueError(
                f"Calendar years outside calibration curve '{self.name}' "
                f"range [{young:.0f}, {old:.0f}] BP"
            )
        mu = np.interp(years, self.cal_bp, self.c14_age)
        sigma = np.interp(years, self.cal_bp, self.c14_error)
        return mu, sigma


# ═══════════════════════════════════════════════════════════════
# Input validation
# ═══════════════════════════════════════════════════════════════

def validate_dates(ages, errors) -> Tuple[np.ndarray, np.ndarray]:
    """Check radiocarbon ages and errors and return them as float arrays."""
    ages = np.atleast_1d(np.asarray(ages, dtype=np.float64))
    errors = np.atleast_1d(np.asarray(errors, dtype=np.float64))

    if ages.ndim != 1 or errors.ndim != 1:
        raise ValueError("Radiocarbon ages and errors must be 1D")
    if len(ages) != len(errors):
        raise ValueError(f"Ages and errors length mismatch: {len(ages)} vs {len(errors)}")
    if len(ages) == 0:
        raise ValueError("No radiocarbon dates supplied")
    if not np.all(np.isfinite(ages)) or not np.all(np.isfinite(errors)):
        raise ValueError("Radiocarbon ages and errors must be finite")
    if np.any(errors <= 0):
        raise ValueError("Radiocarbon errors must be positive")

    return ages, errors


# ═══════════════════════════════════════════════════════════════
# Back-calibration
# ═══════════════════════════════════════════════════════════════

def uncalibrate(cal_bp, curve: CalibrationCurve,
                rng: Optional[np.random.Generator] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Back-calibrate calendar years to radiocarbon ages.

    Args:
        cal_bp: Calendar years (BP)
        curve: Calibration curve
        rng: If given, draw each 14C age from N(mu, sigma_curve)
             instead of returning the curve mean

    Returns:
        c14_age: [n] radiocarbon ages
        curve_error: [n] curve errors at those years
    """
    mu, sigma = curve.interpolate(cal_bp)
    if rng is None:
        return mu, sigma
    return rng.normal(mu, sigma), sigma


# ═══════════════════════════════════════════════════════════════
# Calibration
# ═══════════════════════════════════════════════════════════════

@dataclass
class CalibratedDates:
    """Calibrated densities of a set of dates on an annual grid.

    Attributes:
        cal_bp: [T] calendar years, oldest first
        probs: [N, T] density of each date over cal_bp
    """
    cal_bp: np.ndarray
    probs: np.ndarray

    def __len__(self):
        return self.probs.shape[0]

    def restrict(self, a: int, b: int) -> 'CalibratedDates':
        """Columns for the years a .. b only."""
        a, b = validate_window(a, b)
        mask = (self.cal_bp <= a) & (self.cal_bp >= b)
        if mask.sum() != a - b + 1:
            raise ValueError(f"Window [{b}, {a}] BP not covered by calibrated grid")
        return CalibratedDates(cal_bp=self.cal_bp[mask], probs=self.probs[:, mask])

    def median_dates(self) -> np.ndarray:
        """Median calendar year of each calibrated date."""
        cdf = np.cumsum(self.probs[:, ::-1], axis=1)
        cdf /= cdf[:, -1:]
        idx = np.argmax(cdf >= 0.5, axis=1)
        return self.cal_bp[::-1][idx]


def date_log_density(ages, errors, mu, sigma) -> np.ndarray:
    scale = np.sqrt(errors[:, None] ** 2 + sigma[None, :] ** 2)
    return norm.logpdf(ages[:, None], loc=mu[None, :], scale=scale)


def calibrate(ages, errors, curve: CalibrationCurve,
              eps: float = 1e-5, normalise: bool = True) -> CalibratedDates:
    """Calibrate radiocarbon dates over the curve's annual grid.

    Args:
        ages: [N] radiocarbon ages (14C yr BP)
        errors: [N] lab errors (1 sigma)
        curve: Calibration curve
        eps: Densities below eps (after normalisation) are set to zero
        normalise: Normalise each date to sum to 1

    Returns:
        CalibratedDates on the curve's annual grid
    """
    ages, errors = validate_dates(ages, errors)
    grid = curve.calendar_grid()
    mu, sigma = curve.interpolate(grid)

    dens = np.exp(date_log_density(ages, errors, mu, sigma))
    totals = dens.sum(axis=1, keepdims=True)
    if np.any(totals <= 0):
        raise ValueError(f"Radiocarbon ages fall outside calibration curve '{curve.name}'")

    dens = dens / totals
    dens[dens < eps] = 0.0
    if normalise:
        dens = dens / dens.sum(axis=1, keepdims=True)
    else:
        dens = dens * totals

    return CalibratedDates(cal_bp=grid, probs=dens)


def likelihood_matrix(ages, errors, curve: CalibrationCurve, a: int, b: int) -> np.ndarray:
    """Log-likelihood of each date at each calendar year of a window.

    Args:
        ages: [N] radiocarbon ages
        errors: [N] lab errors
        curve: Calibration curve covering [b, a]
        a, b: Calendar window (BP)

    Returns:
        [N, a - b + 1] matrix, columns ordered a .. b
    """
    ages, errors = validate_dates(ages, errors)
    a, b = validate_window(a, b)
    if not curve.covers(a, b):
        raise ValueError(
            f"Window [{b}, {a}] BP outside calibration curve '{curve.name}' range {curve.range}"
        )
    mu, sigma = curve.interpolate(window_years(a, b))
    return date_log_density(ages, errors, mu, sigma)


# ═══════════════════════════════════════════════════════════════
# Summed probability distribution
# ═══════════════════════════════════════════════════════════════

def running_mean(values: np.ndarray, window: int) -> np.ndarray:
    """Centred running mean along the last axis."""
    if window < 1:
        raise ValueError(f"Running mean window must be >= 1, got {window}")
    values = np.asarray(values, dtype=np.float64)
    frame = pd.DataFrame(np.atleast_2d(values).T)
    smoothed = frame.rolling(window=window, center=True, min_periods=1).mean().values.T
    return smoothed.reshape(values.shape)


def spd(calibrated: CalibratedDates, a: int, b: int,
        normalised: bool = False,
        running_mean_window: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Summed probability distribution over the window [b, a].

    Args:
        calibrated: Calibrated dates
        a, b: Calendar window (BP)
        normalised: Scale the SPD to sum to 1 over the window
        running_mean_window: Optional centred running mean (years)

    Returns:
        years: [n] calendar years a .. b
        density: [n] summed densities
    """
    window = calibrated.restrict(a, b)
    density = window.probs.sum(axis=0)
    if running_mean_window:
        density = running_mean(density, running_mean_window)
    if normalised:
        total = density.sum()
        if total > 0:
            density = density / total
    return window.cal_bp, density
