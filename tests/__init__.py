"""
Carbon Growth — Test Suite
==========================

Test modules:
- test_growth.py: Growth model PMFs and sampling
- test_distributions.py: PyMC custom distributions
- test_calibration.py: Calibration curves, calibration and SPDs
- test_calibration_cache.py: Calibration cache
- test_bayesian.py: Growth model estimator and MCMC
- test_comparison.py: WAIC model comparison
- test_predictive.py: Posterior predictive SPD checks
- test_agreement.py: Agreement indices
- test_data.py: Dataset loading and simulation
"""
