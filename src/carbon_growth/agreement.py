"""
Carbon Growth — Agreement Indices
==================================
Agreement between each date's single calibration and its posterior
calendar date under a fitted model.

    A_i     = 100 * sum_t L_i(t) post_i(t) / sum_t L_i(t)²
    A_model = 100 * prod_i (A_i / 100) ^ (1 / sqrt(n))

L_i is the normalised calibrated density of date i and post_i the empirical
distribution of its posterior calendar dates. Dates with A_i < 60 and models
with A_model < 60 / sqrt(n) are conventionally flagged as poor agreement.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass

from .calibration import CalibrationCurve, validate_dates, calibrate

INDIVIDUAL_THRESHOLD = 60.0


@dataclass
class AgreementResult:
    """Agreement indices of a set of dates."""
    agreement: np.ndarray      # [N] individual agreement indices (%)
    model_agreement: float     # overall agreement (%)

    @property
    def n_dates(self) -> int:
        return len(self.agreement)

    @property
    def threshold(self) -> float:
        return INDIVIDUAL_THRESHOLD

    @property
    def model_threshold(self) -> float:
        return INDIVIDUAL_THRESHOLD / np.sqrt(self.n_dates)

    @property
    def passed(self) -> bool:
        return self.model_agreement >= self.model_threshold

    def failing_dates(self) -> np.ndarray:
        """Indices of dates below the individual threshold."""
        return np.flatnonzero(self.agreement < self.threshold)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'agreement': self.agreement,
            'passed': self.agreement >= self.threshold,
        })


def overall_agreement(agreement) -> float:
    """Combine individual agreement indices into the model agreement."""
    agreement = np.asarray(agreement, dtype=np.float64)
    if len(agreement) == 0:
        raise ValueError("No agreement indices supplied")
    if np.any(agreement <= 0):
        return 0.0
    return float(100.0 * np.exp(np.sum(np.log(agreement / 100.0)) / np.sqrt(len(agreement))))


def agreement_index(ages, errors, curve: CalibrationCurve, theta,
                    eps: float = 1e-5, verbose: bool = False) -> AgreementResult:
    """Agreement indices from posterior calendar dates.

    Args:
        ages: [N] radiocarbon ages
        errors: [N] lab errors
        curve: Calibration curve
        theta: [n_samples, N] posterior calendar years (BP) of each date
        eps: Calibration density cutoff
        verbose: Print a one-line summary

    Returns:
        AgreementResult
    """
    ages, errors = validate_dates(ages, errors)
    theta = np.asarray(theta)
    if theta.ndim != 2 or theta.shape[1] != len(ages):
        raise ValueError(
            f"theta must have shape (n_samples, {len(ages)}), got {theta.shape}"
        )
    if theta.shape[0] == 0:
        raise ValueError("theta has no posterior samples")

    grid = curve.calendar_grid()
    idx = np.rint(grid[0] - theta).astype(int)
    if np.any((idx < 0) | (idx >= len(grid))):
        raise ValueError(f"Posterior dates outside calibration curve '{curve.name}' range")

    agreement = np.empty(len(ages))
    for i in range(len(ages)):
        likelihood = calibrate(ages[i:i + 1], errors[i:i + 1], curve, eps=eps).probs[0]
        posterior = np.bincount(idx[:, i], minlength=len(grid)) / theta.shape[0]
        agreement[i] = 100.0 * np.sum(likelihood * posterior) / np.sum(likelihood ** 2)

    result = AgreementResult(agreement=agreement, model_agreement=overall_agreement(agreement))
    if verbose:
        print(f"[Agreement] Model agreement {result.model_agreement:.1f}% "
              f"(threshold {result.model_threshold:.1f}%), "
              f"{len(result.failing_dates())}/{result.n_dates} dates below {INDIVIDUAL_THRESHOLD:.0f}%")
    return result
