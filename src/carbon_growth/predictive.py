"""
Carbon Growth — Posterior Predictive SPD Checks
================================================
Checks a fitted growth model by comparing the observed summed probability
distribution (SPD) with SPDs of datasets simulated from the posterior.

Simulation (one per posterior draw):
    1. Draw N calendar years from the growth model
    2. Back-calibrate with calibration-curve uncertainty, round to years
    3. Resample lab errors from the observed errors
    4. Calibrate and sum to an SPD over the window

Deviation test:
    Per-year envelopes come from the simulated SPDs. All SPDs are
    standardised by the simulated mean and standard deviation; the statistic
    sums exceedances of the standardised envelope,

        stat = sum (z - z_hi | z > z_hi) + sum (z_lo - z | z < z_lo)

    and the global p-value is (#{stat_sim >= stat_obs} + 1) / (nsim + 1).
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Dict, Optional, Union
from tqdm import tqdm

try:
    import matplotlib.pyplot as plt
    PLOTTING_AVAILABLE = True
except ImportError:
    PLOTTING_AVAILABLE = False

from .growth import get_model_spec, sample_growth, validate_window, window_years
from .calibration import CalibrationCurve, validate_dates, uncalibrate, running_mean
from .calibration_cache import CalibrationCache, CachedCalibrator


@dataclass
class SPDCheckResult:
    """Outcome of a posterior predictive SPD check."""
    years: np.ndarray        # [T] calendar years, a .. b
    observed: np.ndarray     # [T] observed SPD
    simulated: np.ndarray    # [nsim, T] simulated SPDs
    lower: np.ndarray        # [T] lower envelope
    upper: np.ndarray        # [T] upper envelope
    p_value: float
    model: str
    interval: float = 0.95

    @property
    def nsim(self) -> int:
        return self.simulated.shape[0]

    @property
    def mean(self) -> np.ndarray:
        return self.simulated.mean(axis=0)

    @property
    def positive_deviation(self) -> np.ndarray:
        return self.observed > self.upper

    @property
    def negative_deviation(self) -> np.ndarray:
        return self.observed < self.lower

    def deviation_periods(self) -> pd.DataFrame:
        """Contiguous runs of years where the observed SPD leaves the envelope.

        Returns:
            DataFrame with columns type ('positive'/'negative'), start, end (BP)
        """
        rows = []
        for kind, mask in (('positive', self.positive_deviation),
                           ('negative', self.negative_deviation)):
            padded = np.concatenate([[False], mask, [False]])
            edges = np.flatnonzero(np.diff(padded.astype(int)))
            for start, stop in zip(edges[::2], edges[1::2]):
                rows.append({'type': kind,
                             'start': int(self.years[start]),
                             'end': int(self.years[stop - 1])})
        periods = pd.DataFrame(rows, columns=['type', 'start', 'end'])
        return periods.sort_values('start', ascending=False, ignore_index=True)

    def summary(self) -> Dict:
        return {
            'model': self.model,
            'nsim': self.nsim,
            'p_value': self.p_value,
            'positive_years': int(self.positive_deviation.sum()),
            'negative_years': int(self.negative_deviation.sum()),
        }

    def plot(self, ax=None, save_path: Optional[str] = None, show: bool = True):
        """Observed SPD against the simulation envelope."""
        if not PLOTTING_AVAILABLE:
            print("[Warning] Matplotlib not available for plotting")
            return None

        if ax is None:
            fig, ax = plt.subplots(figsize=(10, 5))
        else:
            fig = ax.figure

        ax.fill_between(self.years, self.lower, self.upper, color='lightgrey',
                        label=f'{self.interval:.0%} simulation envelope')
        ax.plot(self.years, self.observed, color='black', lw=1.2, label='Observed SPD')
        ax.fill_between(self.years, self.upper, self.observed,
                        where=self.positive_deviation, color='red', alpha=0.5,
                        label='Positive deviation')
        ax.fill_between(self.years, self.observed, self.lower,
                        where=self.negative_deviation, color='royalblue', alpha=0.5,
                        label='Negative deviation')
        ax.set_xlim(self.years[0], self.years[-1])
        ax.set_xlabel('Cal BP')
        ax.set_ylabel('Summed probability')
        ax.set_title(f"Posterior predictive check ({self.model}), p = {self.p_value:.3f}")
        ax.legend()

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
        if show:
            plt.show()
        return fig


def _as_parameter_frame(parameters: Union[pd.DataFrame, Dict], model: str) -> pd.DataFrame:
    frame = pd.DataFrame(parameters)
    missing = [p for p in get_model_spec(model).parameters if p not in frame.columns]
    if missing:
        raise ValueError(f"Posterior draws missing parameters {missing} for '{model}' model")
    if len(frame) == 0:
        raise ValueError("No posterior draws supplied")
    return frame[list(get_model_spec(model).parameters)]


def _standardise(values: np.ndarray, mean: np.ndarray, sd: np.ndarray) -> np.ndarray:
    return np.divide(values - mean, sd, out=np.zeros_like(values, dtype=np.float64),
                     where=sd > 0)


def _exceedance(z: np.ndarray, z_lo: np.ndarray, z_hi: np.ndarray) -> np.ndarray:
    above = np.where(z > z_hi, z - z_hi, 0.0)
    below = np.where(z < z_lo, z_lo - z, 0.0)
    return (above + below).sum(axis=-1)


def envelope_test(observed: np.ndarray, simulated: np.ndarray,
                  interval: float = 0.95):
    """Envelope and global p-value of an observed curve against simulations.

    Returns:
        lower, upper, p_value
    """
    q_lo, q_hi = (1 - interval) / 2, (1 + interval) / 2
    lower, upper = np.quantile(simulated, [q_lo, q_hi], axis=0)

    mean = simulated.mean(axis=0)
    sd = simulated.std(axis=0, ddof=1) if len(simulated) > 1 else np.zeros_like(mean)
    z_sim = _standardise(simulated, mean, sd)
    z_obs = _standardise(observed, mean, sd)
    z_lo, z_hi = np.quantile(z_sim, [q_lo, q_hi], axis=0)

    stat_obs = _exceedance(z_obs, z_lo, z_hi)
    stat_sim = _exceedance(z_sim, z_lo, z_hi)
    p_value = (np.sum(stat_sim >= stat_obs) + 1) / (len(simulated) + 1)
    return lower, upper, float(p_value)


def posterior_predictive_spd(ages, errors, curve: CalibrationCurve,
                             a: int, b: int,
                             model: str,
                             parameters: Union[pd.DataFrame, Dict],
                             nsim: int = 100,
                             interval: float = 0.95,
                             spd_normalised: bool = True,
                             running_mean_window: Optional[int] = None,
                             eps: float = 1e-5,
                             rng: Optional[np.random.Generator] = None,
                             cache: Optional[CalibrationCache] = None,
                             progressbar: bool = True) -> SPDCheckResult:
    """Posterior predictive check of a growth model via simulated SPDs.

    Args:
        ages: [N] observed radiocarbon ages
        errors: [N] observed lab errors
        curve: Calibration curve
        a, b: Calendar window (BP)
        model: Growth model name
        parameters: Posterior draws (DataFrame or dict of arrays)
        nsim: Number of simulated datasets
        interval: Envelope width
        spd_normalised: Normalise each SPD to sum to 1 over the window
        running_mean_window: Optional centred running mean (years)
        eps: Calibration density cutoff
        rng: numpy Generator
        cache: CalibrationCache shared between calls
        progressbar: Show a tqdm progress bar

    Returns:
        SPDCheckResult
    """
    ages, errors = validate_dates(ages, errors)
    a, b = validate_window(a, b)
    if nsim < 1:
        raise ValueError(f"nsim must be >= 1, got {nsim}")
    if not 0 < interval < 1:
        raise ValueError(f"interval must lie in (0, 1), got {interval}")
    draws = _as_parameter_frame(parameters, model)
    rng = rng if rng is not None else np.random.default_rng()

    calibrator = CachedCalibrator(curve, a, b, cache=cache, eps=eps)
    n_dates = len(ages)

    def finish(density):
        if running_mean_window:
            density = running_mean(density, running_mean_window)
        if spd_normalised and density.sum() > 0:
            density = density / density.sum()
        return density

    observed = finish(calibrator.spd(ages, errors))

    idx = rng.choice(len(draws), size=nsim, replace=nsim > len(draws))
    simulated = np.empty((nsim, a - b + 1))
    for s in tqdm(range(nsim), desc=f"SPD simulations ({model})", disable=not progressbar):
        params = draws.iloc[idx[s]].to_dict()
        cal_dates = sample_growth(model, n_dates, a, b, rng=rng, **params)
        sim_ages, _ = uncalibrate(cal_dates, curve, rng=rng)
        sim_errors = rng.choice(errors, size=n_dates, replace=True)
        simulated[s] = finish(calibrator.spd(np.round(sim_ages), sim_errors))

    lower, upper, p_value = envelope_test(observed, simulated, interval)

    return SPDCheckResult(
        years=window_years(a, b),
        observed=observed,
        simulated=simulated,
        lower=lower,
        upper=upper,
        p_value=p_value,
        model=model,
        interval=interval,
    )
