"""
Tests for agreement indices
"""

import pytest
import numpy as np

from carbon_growth.calibration import calibrate
from carbon_growth.agreement import (
    agreement_index,
    overall_agreement,
    AgreementResult,
    INDIVIDUAL_THRESHOLD,
)


class TestOverallAgreement:
    """Test combination of individual indices."""

    def test_all_perfect(self):
        assert overall_agreement([100.0] * 9) == pytest.approx(100.0)

    def test_root_n_exponent(self):
        # 4 dates at 81%: 100 * 0.81 ** (4 / sqrt(4))
        assert overall_agreement([81.0] * 4) == pytest.approx(65.61)

    def test_zero_index(self):
        assert overall_agreement([100.0, 0.0, 90.0]) == 0.0

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            overall_agreement([])


class TestAgreementResult:
    """Test thresholds and reporting."""

    def test_thresholds(self):
        result = AgreementResult(agreement=np.array([90.0, 40.0, 70.0, 120.0]),
                                 model_agreement=35.0)
        assert result.threshold == INDIVIDUAL_THRESHOLD
        assert result.model_threshold == pytest.approx(30.0)
        assert result.passed
        np.testing.assert_array_equal(result.failing_dates(), [1])

    def test_to_frame(self):
        result = AgreementResult(agreement=np.array([90.0, 40.0]), model_agreement=20.0)
        frame = result.to_frame()
        assert list(frame['passed']) == [True, False]
        assert not result.passed


class TestAgreementIndex:
    """Test agreement of posterior dates with single calibrations."""

    @pytest.fixture
    def dates(self):
        return np.array([4800.0, 5200.0, 5600.0]), np.array([30.0, 40.0, 25.0])

    def test_posterior_equal_to_calibration(self, curve, dates, rng):
        ages, errors = dates
        calibrated = calibrate(ages, errors, curve)
        theta = np.column_stack([
            rng.choice(calibrated.cal_bp, size=20000, p=calibrated.probs[i])
            for i in range(len(ages))
        ])
        result = agreement_index(ages, errors, curve, theta)
        np.testing.assert_allclose(result.agreement, 100.0, rtol=0.1)
        assert result.passed

    def test_displaced_posterior_fails(self, curve, dates):
        ages, errors = dates
        calibrated = calibrate(ages, errors, curve)
        medians = calibrated.median_dates()
        theta = np.tile(medians, (50, 1))
        theta[:, 0] = medians[0] + 1000
        result = agreement_index(ages, errors, curve, theta)
        assert result.agreement[0] == pytest.approx(0.0)
        assert 0 in result.failing_dates()
        assert result.model_agreement == 0.0

    def test_wrong_shape_rejected(self, curve, dates):
        ages, errors = dates
        with pytest.raises(ValueError, match="shape"):
            agreement_index(ages, errors, curve, np.full((10, 2), 5000))

    def test_out_of_range_rejected(self, curve, dates):
        ages, errors = dates
        with pytest.raises(ValueError, match="outside"):
            agreement_index(ages, errors, curve, np.full((10, 3), 50000))
