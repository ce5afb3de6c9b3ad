"""
Manual Verification Script for Carbon Growth
Run this to check that every component imports and runs before analysing real dates.

Usage: python scripts/verify_installation.py
"""

print("=" * 70)
print("Carbon Growth - Installation Check")
print("=" * 70)
print()

# Test 1: Growth models
print("[1/6] Testing Growth Models...")
try:
    import numpy as np
    from carbon_growth import growth_pmf, sample_growth

    pmf = growth_pmf('logistic', 6500, 4500, k=0.05, r=0.01)
    draws = sample_growth('exponential', 1000, 6500, 4500,
                          rng=np.random.default_rng(0), r=0.002)

    print(f"   ✓ Growth models working!")
    print(f"   - Logistic PMF sums to {pmf.sum():.6f}")
    print(f"   - Mean exponential draw: {draws.mean():.0f} BP")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Test 2: Calibration
print("[2/6] Testing Calibration...")
try:
    from carbon_growth import synthetic_curve, calibrate

    curve = synthetic_curve()
    calibrated = calibrate([5000, 5200], [30, 40], curve)

    print(f"   ✓ Calibration working!")
    print(f"   - Curve '{curve.name}' covers {curve.range[0]}-{curve.range[1]} BP")
    print(f"   - Median dates: {calibrated.median_dates()}")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Test 3: Simulated data
print("[3/6] Testing Data Simulation...")
try:
    from carbon_growth import simulate_dates

    dates = simulate_dates(50, 6500, 4500, 'exponential', curve,
                           rng=np.random.default_rng(1), r=0.002)

    print(f"   ✓ Data simulation working!")
    print(f"   - CRA range: {dates['cra'].min()}-{dates['cra'].max()}")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Test 4: PyMC distributions
print("[4/6] Testing PyMC Growth Distributions...")
try:
    import pymc as pm
    from carbon_growth import ExponentialGrowth

    dist = ExponentialGrowth.dist(a=6500, b=4500, r=0.002)
    logp = pm.logp(dist, 5999).eval()

    print(f"   ✓ PyMC distributions working!")
    print(f"   - PyMC version: {pm.__version__}")
    print(f"   - log p(5999 BP | r = 0.002) = {float(logp):.4f}")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Test 5: Bayesian estimator
print("[5/6] Testing Bayesian Estimator...")
try:
    from carbon_growth import GrowthModelEstimator

    estimator = GrowthModelEstimator('logistic', 6500, 4500, curve)
    model = estimator.build_model(dates['cra'].values, dates['error'].values)

    print(f"   ✓ Bayesian estimator working!")
    print(f"   - Parameters: {estimator.parameter_names}")
    print(f"   - Free variables: {[v.name for v in model.free_RVs]}")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Test 6: Post-hoc analysis
print("[6/6] Testing Model Comparison and Agreement...")
try:
    from carbon_growth import compare_models
    from carbon_growth.agreement import overall_agreement

    table = compare_models({'exponential': 1510.2, 'logistic': 1514.8})
    print(f"   ✓ Post-hoc analysis working!")
    print(f"   - WAIC weights: {table['weight'].round(3).to_dict()}")
    print(f"   - Overall agreement of [90, 80, 70]: {overall_agreement([90, 80, 70]):.1f}%")
    print()
except Exception as e:
    print(f"   ✗ FAILED: {str(e)}\n")

# Summary
print("=" * 70)
print("Verification Complete!")
print("=" * 70)
print()
print("Next Steps:")
print("1. Run full test suite: pytest tests/ -v")
print("2. Walk through the vignette: python examples/growth_model_vignette.py")
print("=" * 70)
