"""
Carbon Growth — Bayesian Inference Framework
=============================================
Fits population-growth models to radiocarbon dates via MCMC.

Key Features:
- Growth models as categorical distributions over calendar years
- Radiocarbon likelihood with calibration-curve uncertainty
- Convergence diagnostics (R-hat, effective sample size)
- WAIC for model comparison
- Posterior calendar dates for agreement indices and predictive checks

Mathematical Framework:
    Each sample i has an unknown calendar date theta_i drawn from the growth
    model, and a radiocarbon age y_i measured with error s_i:

        theta_i ~ GrowthModel(a, b, params)
        y_i     ~ N(mu(theta_i), sqrt(s_i² + sigma(theta_i)²))

    The discrete dates are summed out of the likelihood:

        log p(y_i | params) = logsumexp_t [ log p(t | params) + log L_i(t) ]

    leaving only continuous growth parameters, which NUTS samples directly.
    Conditional posteriors of theta_i are recovered after sampling.

Usage:
    from carbon_growth import CalibrationCurve, GrowthModelEstimator

    curve = CalibrationCurve.load('intcal20.14c')
    estimator = GrowthModelEstimator('exponential', a=6500, b=4500, curve=curve)

    trace = estimator.fit(ages, errors)
    summary = estimator.summarize_posterior(trace)
    estimator.plot_posterior(trace)

Author: Carbon Growth contributors
License: MIT
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional
from dataclasses import dataclass
from functools import partial
import warnings

try:
    import pymc as pm
    import pytensor.tensor as pt
    import arviz as az
    PYMC_AVAILABLE = True
except ImportError:
    PYMC_AVAILABLE = False
    pm = None
    pt = None
    az = None
    warnings.warn("[WARNING] PyMC not installed. Install with: pip install pymc arviz")

try:
    import matplotlib.pyplot as plt
    import seaborn as sns
    PLOTTING_AVAILABLE = True
    sns.set_style('whitegrid')
except ImportError:
    PLOTTING_AVAILABLE = False

from .growth import get_model_spec, growth_log_pmf, validate_window, window_years
from .calibration import CalibrationCurve, validate_dates, likelihood_matrix
from .calibration_cache import CachedCalibrator
from .distributions import LOG_PMF_TENSORS
from .comparison import compute_waic
from .predictive import posterior_predictive_spd, SPDCheckResult
from .agreement import agreement_index, AgreementResult


# ═══════════════════════════════════════════════════════════════
# Configuration
# ═══════════════════════════════════════════════════════════════

@dataclass
class PriorSpec:
    """Specification for a single parameter prior distribution."""
    name: str
    distribution: str  # 'normal', 'halfnormal', 'uniform', 'exponential', 'beta', 'gamma'
    params: Dict  # Distribution parameters (e.g., {'lam': 250.0})
    bounds: Optional[tuple] = None  # Hard bounds (truncation)


VALID_PRIOR_DISTRIBUTIONS = ('normal', 'halfnormal', 'uniform', 'exponential', 'beta', 'gamma')


@dataclass
class BayesianConfig:
    """Configuration for Bayesian MCMC inference."""
    n_chains: int = 4              # Number of MCMC chains
    n_draws: int = 2000            # Samples per chain (post-burn-in)
    n_tune: int = 1000             # Burn-in / tuning steps
    target_accept: float = 0.9     # Target acceptance rate (NUTS)
    sampler: str = 'NUTS'          # Sampler: 'NUTS', 'Metropolis', 'Slice'

    # Computational
    cores: int = 1                 # Parallel cores
    progressbar: bool = True       # Show progress bar
    random_seed: Optional[int] = 42

    # Diagnostics
    check_convergence: bool = True  # Check R-hat and ESS
    rhat_threshold: float = 1.01    # R-hat convergence threshold
    min_ess_ratio: float = 0.1      # Minimum ESS / total draws

    verbose: bool = True


def get_default_priors(model: str, a: int, b: int) -> List[PriorSpec]:
    """Get default prior specifications for a growth model.

    Weakly informative priors on the scale of prehistoric growth rates
    (a few per mille per year).
    """
    get_model_spec(model)
    a, b = validate_window(a, b)

    if model == 'exponential':
        return [
            PriorSpec(name='r', distribution='exponential', params={'lam': 250.0}),
        ]
    if model == 'logistic':
        return [
            PriorSpec(name='k', distribution='exponential', params={'lam': 20.0},
                      bounds=(0.0001, 0.9999)),
            PriorSpec(name='r', distribution='exponential', params={'lam': 50.0}),
        ]
    return [
        PriorSpec(name='r1', distribution='normal', params={'mu': 0.0, 'sigma': 0.005},
                  bounds=(-0.1, 0.1)),
        PriorSpec(name='r2', distribution='normal', params={'mu': 0.0, 'sigma': 0.005},
                  bounds=(-0.1, 0.1)),
        PriorSpec(name='mu', distribution='uniform', params={'lower': float(b), 'upper': float(a)}),
    ]


# ═══════════════════════════════════════════════════════════════
# Radiocarbon likelihood
# ═══════════════════════════════════════════════════════════════

def _marginal_logp(value, *params, model, a, b, loglik):
    """Per-date log-likelihood with the calendar date summed out."""
    log_p = LOG_PMF_TENSORS[model](a, b, *params)
    ll = pt.as_tensor_variable(loglik)[value]
    return pt.logsumexp(ll + log_p[None, :], axis=1)


# ═══════════════════════════════════════════════════════════════
# Growth Model Estimator — Main Class
# ═══════════════════════════════════════════════════════════════

class GrowthModelEstimator:
    """Bayesian growth-model fitting to radiocarbon dates via MCMC.

    Uses PyMC for probabilistic programming and NUTS sampling.

    Recommended Workflow:
    1. Fit each candidate growth model
    2. Check convergence (R-hat, ESS)
    3. Compare models with WAIC
    4. Check the preferred model with a posterior predictive SPD
    5. Inspect agreement indices of individual dates
    """

    def __init__(self,
                 model: str,
                 a: int,
                 b: int,
                 curve: CalibrationCurve,
                 config: Optional[BayesianConfig] = None,
                 priors: Optional[List[PriorSpec]] = None):
        """
        Args:
            model: Growth model ('exponential', 'logistic', 'double_exponential')
            a: Start of the growth window (BP)
            b: End of the growth window (BP)
            curve: Calibration curve covering the window
            config: Bayesian MCMC configuration
            priors: List of prior specifications (uses defaults if None)
        """
        if not PYMC_AVAILABLE:
            raise ImportError("PyMC required. Install with: pip install pymc arviz")

        self.spec = get_model_spec(model)
        self.model_name = model
        self.a, self.b = validate_window(a, b)
        if not curve.covers(self.a, self.b):
            raise ValueError(
                f"Window [{self.b}, {self.a}] BP outside calibration curve "
                f"'{curve.name}' range {curve.range}"
            )
        self.curve = curve
        self.config = config or BayesianConfig()
        self.priors = priors or get_default_priors(model, self.a, self.b)
        self._validate_priors()

        # Model, data and trace (populated by build_model / fit)
        self.model = None
        self.trace = None
        self.ages = None
        self.errors = None
        self._loglik = None
        self.convergence = None

        self._log(f"Initialized '{model}' model on window {self.a}-{self.b} BP "
                  f"with {len(self.priors)} parameter priors")
        self._log(f"Sampler: {self.config.sampler}, Chains: {self.config.n_chains}")

    @property
    def parameter_names(self) -> List[str]:
        return list(self.spec.parameters)

    def _log(self, message: str):
        if self.config.verbose:
            print(f"[Bayesian] {message}")

    def _validate_priors(self):
        names = [p.name for p in self.priors]
        missing = [p for p in self.spec.parameters if p not in names]
        if missing:
            raise ValueError(f"No prior given for parameters {missing} of '{self.model_name}' model")
        for prior in self.priors:
            if prior.distribution not in VALID_PRIOR_DISTRIBUTIONS:
                raise ValueError(f"Unknown distribution: {prior.distribution}")
            if prior.bounds is not None and not prior.bounds[0] < prior.bounds[1]:
                raise ValueError(f"Prior bounds for '{prior.name}' must satisfy lower < upper, "
                                 f"got {prior.bounds}")

    def _build_prior(self, prior_spec: PriorSpec):
        """Create a PyMC random variable from a prior specification."""
        name = prior_spec.name
        params = prior_spec.params

        if prior_spec.distribution == 'normal':
            if prior_spec.bounds:
                lower, upper = prior_spec.bounds
                return pm.TruncatedNormal(name, mu=params['mu'], sigma=params['sigma'],
                                          lower=lower, upper=upper)
            return pm.Normal(name, mu=params['mu'], sigma=params['sigma'])

        if prior_spec.distribution == 'halfnormal':
            dist_cls, kwargs = pm.HalfNormal, {'sigma': params['sigma']}
        elif prior_spec.distribution == 'uniform':
            dist_cls, kwargs = pm.Uniform, {'lower': params['lower'], 'upper': params['upper']}
        elif prior_spec.distribution == 'exponential':
            dist_cls, kwargs = pm.Exponential, {'lam': params['lam']}
        elif prior_spec.distribution == 'beta':
            dist_cls, kwargs = pm.Beta, {'alpha': params['alpha'], 'beta': params['beta']}
        elif prior_spec.distribution == 'gamma':
            dist_cls, kwargs = pm.Gamma, {'alpha': params['alpha'], 'beta': params['beta']}
        else:
            raise ValueError(f"Unknown distribution: {prior_spec.distribution}")

        if prior_spec.bounds:
            # Truncation renormalises the density inside the bounds
            lower, upper = prior_spec.bounds
            return pm.Truncated(name, dist_cls.dist(**kwargs), lower=lower, upper=upper)
        return dist_cls(name, **kwargs)

    def build_model(self, ages, errors) -> 'pm.Model':
        """Build the PyMC model with priors and radiocarbon likelihood.

        Args:
            ages: [N] radiocarbon ages (14C yr BP)
            errors: [N] lab errors (1 sigma)

        Returns:
            PyMC model ready for sampling
        """
        self.ages, self.errors = validate_dates(ages, errors)
        self._loglik = likelihood_matrix(self.ages, self.errors, self.curve, self.a, self.b)
        n_dates = len(self.ages)

        logp = partial(_marginal_logp, model=self.model_name, a=self.a, b=self.b,
                       loglik=self._loglik)

        with pm.Model(coords={'date': np.arange(n_dates)}) as model:
            params_dict = {}
            for name in self.spec.parameters:
                prior_spec = next(p for p in self.priors if p.name == name)
                params_dict[name] = self._build_prior(prior_spec)

            pm.CustomDist(
                'c14',
                *[params_dict[name] for name in self.spec.parameters],
                logp=logp,
                observed=np.arange(n_dates),
                dims='date',
                dtype='int64',
            )

        self.model = model
        return model

    def _make_step(self):
        if self.config.sampler == 'NUTS':
            return pm.NUTS(target_accept=self.config.target_accept)
        if self.config.sampler == 'Metropolis':
            return pm.Metropolis()
        if self.config.sampler == 'Slice':
            return pm.Slice()
        raise ValueError(f"Unknown sampler: {self.config.sampler}")

    def fit(self, ages, errors) -> 'az.InferenceData':
        """Perform Bayesian parameter estimation via MCMC.

        Args:
            ages: [N] radiocarbon ages
            errors: [N] lab errors

        Returns:
            arviz.InferenceData with posterior and pointwise log-likelihood
        """
        self.build_model(ages, errors)
        self._log(f"Fitting {len(self.ages)} dates, parameters: {self.parameter_names}")

        with self.model:
            self._log("Starting MCMC sampling...")
            self._log(f"  Chains: {self.config.n_chains}, draws per chain: {self.config.n_draws}, "
                      f"tuning steps: {self.config.n_tune}")

            self.trace = pm.sample(
                draws=self.config.n_draws,
                tune=self.config.n_tune,
                chains=self.config.n_chains,
                step=self._make_step(),
                cores=self.config.cores,
                progressbar=self.config.progressbar,
                random_seed=self.config.random_seed,
                idata_kwargs={'log_likelihood': True},
                compute_convergence_checks=False,
            )

        self.convergence = None
        if self.config.check_convergence:
            self.convergence = self.check_convergence(self.trace)

        self._log("Sampling complete!")
        return self.trace

    def _require_trace(self, trace):
        trace = trace if trace is not None else self.trace
        if trace is None:
            raise ValueError("No trace available. Run fit() first.")
        return trace

    def check_convergence(self, trace: Optional['az.InferenceData'] = None) -> Dict:
        """Check MCMC convergence using R-hat and effective sample size.

        Returns:
            Dict with per-parameter 'rhat' and 'ess', and overall 'converged'
        """
        trace = self._require_trace(trace)
        names = self.parameter_names
        n_total = trace.posterior.sizes['chain'] * trace.posterior.sizes['draw']

        rhat = az.rhat(trace, var_names=names)
        ess = az.ess(trace, var_names=names)

        report = {'rhat': {}, 'ess': {}, 'converged': True}
        self._log("Convergence Diagnostics:")
        for var in names:
            rhat_val = float(rhat[var].values)
            ess_val = float(ess[var].values)
            rhat_ok = np.isfinite(rhat_val) and rhat_val < self.config.rhat_threshold
            ess_ok = ess_val / n_total > self.config.min_ess_ratio

            report['rhat'][var] = rhat_val
            report['ess'][var] = ess_val
            report['converged'] = report['converged'] and rhat_ok and ess_ok

            self._log(f"  {var}: R-hat {rhat_val:.4f} {'✓' if rhat_ok else '✗'}, "
                      f"ESS {ess_val:.0f} ({ess_val / n_total:.1%} of {n_total}) "
                      f"{'✓' if ess_ok else '⚠ Low'}")

        if not report['converged']:
            warnings.warn(
                f"MCMC for '{self.model_name}' model has not converged "
                f"(R-hat threshold {self.config.rhat_threshold}); consider more draws"
            )
        return report

    def summarize_posterior(self,
                            trace: Optional['az.InferenceData'] = None,
                            credible_interval: float = 0.95) -> Dict:
        """Generate summary statistics from posterior.

        Args:
            trace: InferenceData (uses self.trace if None)
            credible_interval: Credible interval width (0.95 = 95% HDI)

        Returns:
            Dict with mean, median, std, HDI, R-hat and ESS for each parameter
        """
        trace = self._require_trace(trace)
        names = self.parameter_names

        az_summary = az.summary(trace, var_names=names, hdi_prob=credible_interval)
        lower_col = f"hdi_{100 * (1 - credible_interval) / 2:g}%"
        upper_col = f"hdi_{100 * (1 + credible_interval) / 2:g}%"

        summary = {}
        for var_name in names:
            row = az_summary.loc[var_name]
            summary[var_name] = {
                'mean': float(row['mean']),
                'median': float(trace.posterior[var_name].median()),
                'std': float(row['sd']),
                'ci_lower': float(row[lower_col]),
                'ci_upper': float(row[upper_col]),
                'rhat': float(row['r_hat']) if 'r_hat' in row.index else None,
                'ess': float(row['ess_bulk']) if 'ess_bulk' in row.index else None,
            }

        return summary

    def posterior_parameters(self, trace: Optional['az.InferenceData'] = None) -> pd.DataFrame:
        """Posterior draws of the growth parameters, chains concatenated."""
        trace = self._require_trace(trace)
        return pd.DataFrame({
            name: np.asarray(trace.posterior[name].values).reshape(-1)
            for name in self.parameter_names
        })

    def waic(self, trace: Optional['az.InferenceData'] = None) -> Dict[str, float]:
        """WAIC (deviance scale) of the fitted model."""
        return compute_waic(self._require_trace(trace))

    def sample_calendar_dates(self,
                              trace: Optional['az.InferenceData'] = None,
                              n_samples: Optional[int] = None,
                              rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Draw posterior calendar dates of every sample.

        For each posterior parameter draw, each date's calendar year is drawn
        from p(t | params) * L_i(t), its conditional posterior.

        Args:
            trace: InferenceData (uses self.trace if None)
            n_samples: Number of parameter draws to use (all if None)
            rng: numpy Generator

        Returns:
            [n_samples, N] array of calendar years (BP)
        """
        trace = self._require_trace(trace)
        if self._loglik is None:
            raise ValueError("No radiocarbon data available. Run fit() first.")
        rng = rng if rng is not None else np.random.default_rng(self.config.random_seed)

        draws = self.posterior_parameters(trace)
        if n_samples is not None:
            idx = rng.choice(len(draws), size=n_samples, replace=n_samples > len(draws))
            draws = draws.iloc[idx]

        years = window_years(self.a, self.b)
        theta = np.empty((len(draws), len(self.ages)), dtype=int)
        for s, (_, row) in enumerate(draws.iterrows()):
            logits = self._loglik + growth_log_pmf(self.model_name, self.a, self.b, **row.to_dict())
            # Gumbel-max draw from each row's categorical distribution
            gumbel = rng.gumbel(size=logits.shape)
            theta[s] = years[np.argmax(logits + gumbel, axis=1)]
        return theta

    def posterior_predictive_check(self,
                                   trace: Optional['az.InferenceData'] = None,
                                   nsim: int = 100,
                                   **kwargs) -> SPDCheckResult:
        """Posterior predictive SPD check of the fitted model.

        Keyword arguments are passed to predictive.posterior_predictive_spd.
        """
        trace = self._require_trace(trace)
        if self.ages is None:
            raise ValueError("No radiocarbon data available. Run fit() first.")
        kwargs.setdefault('progressbar', self.config.progressbar)
        return posterior_predictive_spd(
            self.ages, self.errors, self.curve, self.a, self.b,
            model=self.model_name,
            parameters=self.posterior_parameters(trace),
            nsim=nsim,
            **kwargs
        )

    def agreement(self,
                  trace: Optional['az.InferenceData'] = None,
                  n_samples: Optional[int] = 1000,
                  rng: Optional[np.random.Generator] = None) -> AgreementResult:
        """Agreement indices of the dates under the fitted model."""
        theta = self.sample_calendar_dates(trace, n_samples=n_samples, rng=rng)
        return agreement_index(self.ages, self.errors, self.curve, theta)

    def plot_posterior(self,
                       trace: Optional['az.InferenceData'] = None,
                       save_path: Optional[str] = None,
                       show: bool = True):
        """Generate posterior visualization plots.

        Creates:
        1. Trace plots (chains over time)
        2. Posterior density plots
        3. Pair plot (correlations), for models with several parameters
        """
        if not PLOTTING_AVAILABLE:
            print("[Warning] Matplotlib/Seaborn not available for plotting")
            return

        trace = self._require_trace(trace)
        names = self.parameter_names

        # 1. Trace plot
        az.plot_trace(trace, var_names=names, compact=True, figsize=(12, 3 * len(names)))
        plt.tight_layout()
        if save_path:
            plt.savefig(f"{save_path}_trace.png", dpi=150, bbox_inches='tight')
        if show:
            plt.show()

        # 2. Posterior density
        az.plot_posterior(trace, var_names=names, hdi_prob=0.95)
        plt.tight_layout()
        if save_path:
            plt.savefig(f"{save_path}_posterior.png", dpi=150, bbox_inches='tight')
        if show:
            plt.show()

        # 3. Pair plot (correlations)
        if len(names) > 1:
            az.plot_pair(trace, var_names=names, divergences=True, figsize=(8, 8))
            if save_path:
                plt.savefig(f"{save_path}_pairs.png", dpi=150, bbox_inches='tight')
            if show:
                plt.show()

    def plot_model(self,
                   trace: Optional['az.InferenceData'] = None,
                   n_curves: int = 500,
                   interval: float = 0.95,
                   save_path: Optional[str] = None,
                   show: bool = True,
                   ax=None):
        """Posterior growth curves over the normalised SPD of the dates."""
        if not PLOTTING_AVAILABLE:
            print("[Warning] Matplotlib/Seaborn not available for plotting")
            return None

        trace = self._require_trace(trace)
        draws = self.posterior_parameters(trace)
        rng = np.random.default_rng(self.config.random_seed)
        idx = rng.choice(len(draws), size=min(n_curves, len(draws)), replace=False)

        curves = np.array([
            np.exp(growth_log_pmf(self.model_name, self.a, self.b, **draws.iloc[i].to_dict()))
            for i in idx
        ])
        lo, med, hi = np.quantile(curves, [(1 - interval) / 2, 0.5, (1 + interval) / 2], axis=0)
        years = window_years(self.a, self.b)
        observed = CachedCalibrator(self.curve, self.a, self.b).spd(self.ages, self.errors)
        observed = observed / observed.sum()

        if ax is None:
            fig, ax = plt.subplots(figsize=(10, 5))
        else:
            fig = ax.figure

        ax.fill_between(years, observed, color='lightgrey', label='SPD (normalised)')
        ax.fill_between(years, lo, hi, color='steelblue', alpha=0.4,
                        label=f'{interval:.0%} posterior interval')
        ax.plot(years, med, color='navy', label='Posterior median')
        ax.set_xlim(self.a, self.b)
        ax.set_xlabel('Cal BP')
        ax.set_ylabel('Probability')
        ax.set_title(f"{self.model_name.replace('_', ' ').title()} growth model")
        ax.legend()

        if save_path:
            fig.savefig(f"{save_path}_model.png", dpi=150, bbox_inches='tight')
        if show:
            plt.show()
        return fig

    def save_trace(self, filepath: str):
        """Save MCMC trace to file."""
        if self.trace is None:
            raise ValueError("No trace to save")

        az.to_netcdf(self.trace, filepath)
        self._log(f"Trace saved to {filepath}")

    @staticmethod
    def load_trace(filepath: str) -> 'az.InferenceData':
        """Load saved MCMC trace."""
        trace = az.from_netcdf(filepath)
        print(f"[Bayesian] Trace loaded from {filepath}")
        return trace


# ═══════════════════════════════════════════════════════════════
# Demo / Testing
# ═══════════════════════════════════════════════════════════════

def demo_bayesian():
    """Demonstrate growth-model fitting on simulated radiocarbon dates."""
    print("╔══════════════════════════════════════════════════════════╗")
    print("║  Carbon Growth — Bayesian Growth Model Demo              ║")
    print("╚══════════════════════════════════════════════════════════╝")
    print()

    if not PYMC_AVAILABLE:
        print("[ERROR] PyMC not installed. Please run:")
        print("  pip install pymc arviz")
        return

    from .data import simulate_dates, synthetic_curve

    print("[1/4] Building calibration curve and simulating dates...")
    curve = synthetic_curve()
    rng = np.random.default_rng(42)
    true_r = 0.003
    dates = simulate_dates(200, a=6500, b=4500, model='exponential', curve=curve,
                           rng=rng, r=true_r)
    print(f"  Simulated {len(dates)} dates, true r = {true_r}")

    print("\n[2/4] Setting up Bayesian estimator...")
    estimator = GrowthModelEstimator(
        'exponential', a=6500, b=4500, curve=curve,
        config=BayesianConfig(n_chains=2, n_draws=500, n_tune=500)
    )

    print("[3/4] Running MCMC sampling...")
    trace = estimator.fit(dates['cra'].values, dates['error'].values)

    print("\n[4/4] Posterior Summary:")
    summary = estimator.summarize_posterior(trace)
    r = summary['r']
    in_ci = r['ci_lower'] <= true_r <= r['ci_upper']
    print(f"  r: mean {r['mean']:.5f}, 95% HDI [{r['ci_lower']:.5f}, {r['ci_upper']:.5f}] "
          f"{'✓' if in_ci else '✗'}")

    if PLOTTING_AVAILABLE:
        print("\n[Plotting] Generating posterior visualizations...")
        estimator.plot_posterior(trace, save_path='demo_bayesian')
        estimator.plot_model(trace, save_path='demo_bayesian')

    print("\n✓ Bayesian demo complete!")


if __name__ == '__main__':
    demo_bayesian()
