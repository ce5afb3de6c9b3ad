"""
Complete growth-model workflow: Radiocarbon dates -> MCMC -> Model comparison -> Checks

Fits each candidate growth model, checks convergence, ranks the models by
WAIC, and runs a posterior predictive SPD check and agreement indices for
each model.
"""
import sys
import numpy as np
from pathlib import Path
from typing import Dict, Optional, Sequence

from .bayesian import GrowthModelEstimator, BayesianConfig, PriorSpec
from .calibration import CalibrationCurve, validate_dates
from .calibration_cache import CalibrationCache
from .comparison import compare_models
from .data import RadiocarbonDataLoader, simulate_dates, synthetic_curve


def run_growth_analysis(ages, errors, curve: CalibrationCurve,
                        a: int, b: int,
                        models: Sequence[str] = ('exponential', 'logistic'),
                        config: Optional[BayesianConfig] = None,
                        priors: Optional[Dict[str, Sequence[PriorSpec]]] = None,
                        nsim: int = 100,
                        n_agreement_samples: int = 1000,
                        random_seed: int = 42) -> Dict:
    """Complete growth-model analysis pipeline.

    Args:
        ages: [N] radiocarbon ages
        errors: [N] lab errors
        curve: Calibration curve
        a, b: Calendar window (BP)
        models: Growth models to fit
        config: MCMC configuration shared by all models
        priors: Optional prior specifications per model name
        nsim: Simulations per posterior predictive check
        n_agreement_samples: Posterior draws used for agreement indices
        random_seed: Seed for the checks

    Returns:
        dict with 'estimators', 'traces', 'convergence', 'comparison',
        'ppcheck' and 'agreement' (per-model dicts, except 'comparison')
    """
    ages, errors = validate_dates(ages, errors)
    if not models:
        raise ValueError("At least one growth model is required")
    config = config or BayesianConfig()
    priors = priors or {}
    rng = np.random.default_rng(random_seed)
    cache = CalibrationCache()

    print("\n" + "=" * 70)
    print(f"GROWTH MODEL ANALYSIS: {len(ages)} dates, window {a}-{b} BP")
    print("=" * 70)

    results = {'estimators': {}, 'traces': {}, 'convergence': {},
               'ppcheck': {}, 'agreement': {}}

    # Step 1-2: Fit and diagnose each model
    print(f"\n[1/4] Fitting {len(models)} growth models...")
    for name in models:
        print(f"\n  → {name}")
        estimator = GrowthModelEstimator(name, a, b, curve, config=config,
                                         priors=list(priors[name]) if name in priors else None)
        trace = estimator.fit(ages, errors)
        results['estimators'][name] = estimator
        results['traces'][name] = trace

    print("\n[2/4] Convergence diagnostics...")
    for name, estimator in results['estimators'].items():
        # fit() has already reported when config.check_convergence is set
        report = estimator.convergence
        if report is None:
            report = estimator.check_convergence(results['traces'][name])
        results['convergence'][name] = report
        print(f"  {name:20s}: {'✓ converged' if report['converged'] else '⚠ not converged'}")

    # Step 3: Model comparison
    print("\n[3/4] Comparing models by WAIC...")
    comparison = compare_models(results['traces'])
    results['comparison'] = comparison
    print(comparison.round(3).to_string())

    # Step 4: Posterior predictive checks and agreement
    print("\n[4/4] Posterior predictive SPD checks and agreement indices...")
    for name, estimator in results['estimators'].items():
        ppcheck = estimator.posterior_predictive_check(
            results['traces'][name], nsim=nsim, rng=rng, cache=cache
        )
        agreement = estimator.agreement(results['traces'][name],
                                        n_samples=n_agreement_samples, rng=rng)
        results['ppcheck'][name] = ppcheck
        results['agreement'][name] = agreement
        print(f"  {name:20s}: SPD p-value {ppcheck.p_value:.3f}, "
              f"agreement {agreement.model_agreement:.1f}% "
              f"({'✓' if agreement.passed else '✗'} threshold {agreement.model_threshold:.1f}%)")

    # Report
    best = comparison.index[0]
    print("\n" + "=" * 70)
    print("GROWTH MODEL REPORT")
    print("=" * 70)
    print(f"Preferred model: {best} (WAIC weight {comparison.loc[best, 'weight']:.3f})")
    summary = results['estimators'][best].summarize_posterior(results['traces'][best])
    for param, vals in summary.items():
        print(f"  {param:10s}: {vals['mean']:.5f} [{vals['ci_lower']:.5f}, {vals['ci_upper']:.5f}]")
    stats = cache.stats()
    print(f"\nCalibration cache: {stats['hits']} hits, {stats['misses']} misses "
          f"({stats['hit_rate']:.1%} hit rate)")
    print("=" * 70)

    return results


def run_from_files(dates_file: str, curve_file: str, a: int, b: int,
                   **kwargs) -> Dict:
    """Load dates and a calibration curve from files and run the analysis."""
    loader = RadiocarbonDataLoader(str(Path(dates_file).parent))
    dates = loader.load_dates_csv(Path(dates_file).name)
    curve = CalibrationCurve.load(curve_file)
    return run_growth_analysis(dates['cra'].values, dates['error'].values,
                               curve, a, b, **kwargs)


def demo_workflow(n_dates: int = 150, nsim: int = 50) -> Dict:
    """Run the full workflow on dates simulated from exponential growth."""
    curve = synthetic_curve()
    rng = np.random.default_rng(7)
    dates = simulate_dates(n_dates, a=6500, b=4500, model='exponential',
                           curve=curve, rng=rng, r=0.002)
    config = BayesianConfig(n_chains=2, n_draws=500, n_tune=500)
    return run_growth_analysis(dates['cra'].values, dates['error'].values,
                               curve, a=6500, b=4500, config=config, nsim=nsim)


if __name__ == '__main__':
    if len(sys.argv) == 5:
        run_from_files(sys.argv[1], sys.argv[2], int(sys.argv[3]), int(sys.argv[4]))
    else:
        demo_workflow()
