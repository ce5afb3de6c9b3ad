"""
Carbon Growth — Growth Models for Radiocarbon Date Frequencies
================================================================
Walks through the full analysis of a set of radiocarbon dates.

Workflow:
1. Simulate dates from a known growth model (or load your own table)
2. Inspect the custom growth distributions and the SPD of the dates
3. Fit exponential and logistic growth models with MCMC
4. Diagnose convergence and compare the models by WAIC
5. Posterior predictive SPD check and agreement indices

Usage:
    python examples/growth_model_vignette.py
    python examples/growth_model_vignette.py dates.csv curve.14c 7000 3000
"""

import sys
import numpy as np

from carbon_growth import (
    CalibrationCurve,
    RadiocarbonDataLoader,
    calibrate,
    growth_pmf,
    simulate_dates,
    spd,
    synthetic_curve,
)
from carbon_growth.comparison import compare_models
from carbon_growth.bayesian import GrowthModelEstimator, BayesianConfig


A, B = 6500, 4500


def step0_data(argv) -> tuple:
    """Dates, calibration curve and window from the command line or simulation."""
    if len(argv) == 5:
        dates_file, curve_file, a, b = argv[1], argv[2], int(argv[3]), int(argv[4])
        curve = CalibrationCurve.load(curve_file)
        dates = RadiocarbonDataLoader('.').load_dates_csv(dates_file)
        return dates['cra'].values, dates['error'].values, curve, a, b

    print("[Data] Simulating 300 dates from exponential growth, r = 0.002")
    curve = synthetic_curve()
    dates = simulate_dates(300, A, B, 'exponential', curve,
                           rng=np.random.default_rng(123), r=0.002)
    return dates['cra'].values, dates['error'].values, curve, A, B


def step1_distributions(ages, errors, curve, a, b):
    """Growth distributions and the observed SPD."""
    print("\n" + "=" * 70)
    print("STEP 1: Growth distributions and SPD")
    print("=" * 70)

    years = np.arange(a, b - 1, -1)
    exp_pmf = growth_pmf('exponential', a, b, r=0.002)
    log_pmf = growth_pmf('logistic', a, b, k=0.05, r=0.01)
    print(f"{'Year BP':>10} {'Exponential':>14} {'Logistic':>14}")
    for i in np.linspace(0, len(years) - 1, 6).astype(int):
        print(f"{years[i]:>10d} {exp_pmf[i]:>14.6f} {log_pmf[i]:>14.6f}")

    calibrated = calibrate(ages, errors, curve)
    spd_years, density = spd(calibrated, a, b, normalised=True, running_mean_window=50)
    peak = spd_years[np.argmax(density)]
    print(f"\n[SPD] {len(ages)} dates, peak density at {peak} BP")
    return spd_years, density


def step2_fit(ages, errors, curve, a, b) -> dict:
    """Fit both growth models."""
    print("\n" + "=" * 70)
    print("STEP 2: MCMC fits (a few minutes)")
    print("=" * 70)

    config = BayesianConfig(
        n_chains=2,       # Use 4 for production
        n_draws=1000,     # Use 2000 for production
        n_tune=1000,
    )
    fits = {}
    for model in ('exponential', 'logistic'):
        estimator = GrowthModelEstimator(model, a, b, curve, config=config)
        trace = estimator.fit(ages, errors)
        diagnostics = estimator.convergence
        summary = estimator.summarize_posterior(trace)

        print(f"\n[{model}] Posterior summary:")
        print(f"{'Parameter':<10} {'Mean':>10} {'95% HPDI':>24} {'R-hat':>7}")
        print("-" * 55)
        for name, vals in summary.items():
            print(f"{name:<10} {vals['mean']:>10.5f} [{vals['ci_lower']:>9.5f}, "
                  f"{vals['ci_upper']:>9.5f}] {diagnostics['rhat'][name]:>7.3f}")
        fits[model] = (estimator, trace)
    return fits


def step3_compare(fits: dict):
    """WAIC model comparison."""
    print("\n" + "=" * 70)
    print("STEP 3: Model comparison")
    print("=" * 70)
    comparison = compare_models({name: trace for name, (_, trace) in fits.items()})
    print(comparison.round(3).to_string())
    return comparison


def step4_checks(fits: dict, comparison):
    """Posterior predictive check and agreement of the preferred model."""
    print("\n" + "=" * 70)
    print("STEP 4: Posterior predictive check and agreement")
    print("=" * 70)

    best = comparison.index[0]
    estimator, trace = fits[best]
    rng = np.random.default_rng(1)

    ppcheck = estimator.posterior_predictive_check(trace, nsim=200, rng=rng,
                                                   running_mean_window=50)
    print(f"\n[{best}] Global p-value: {ppcheck.p_value:.3f}")
    periods = ppcheck.deviation_periods()
    if len(periods):
        print(periods.to_string(index=False))
    else:
        print("  Observed SPD stays within the simulation envelope")

    agreement = estimator.agreement(trace, n_samples=1000, rng=rng)
    print(f"\n[{best}] Overall agreement {agreement.model_agreement:.1f}% "
          f"(threshold {agreement.model_threshold:.1f}%)")
    print(f"  Dates below {agreement.threshold:.0f}%: {len(agreement.failing_dates())}")

    estimator.plot_model(trace, save_path=best, show=False)
    ppcheck.plot(save_path=f'{best}_ppcheck.png', show=False)


def main():
    print("╔══════════════════════════════════════════════════════════════╗")
    print("║  Carbon Growth — Growth Models for Radiocarbon Dates         ║")
    print("╚══════════════════════════════════════════════════════════════╝")

    ages, errors, curve, a, b = step0_data(sys.argv)
    step1_distributions(ages, errors, curve, a, b)
    fits = step2_fit(ages, errors, curve, a, b)
    comparison = step3_compare(fits)
    step4_checks(fits, comparison)

    print("\n✓ Vignette complete!")


if __name__ == '__main__':
    main()
