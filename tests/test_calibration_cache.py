"""
Tests for the calibration cache and cached calibrator
"""

import pytest
import numpy as np

from carbon_growth.calibration import CalibrationCurve, calibrate
from carbon_growth.calibration_cache import CalibrationCache, CachedCalibrator


class TestCalibrationCache:
    """Test CalibrationCache hit/miss tracking and LRU eviction."""

    @pytest.fixture
    def tmp_cache(self, tmp_path):
        """Temporary disk cache in a temp directory."""
        return CalibrationCache(cache_dir=str(tmp_path / 'test_cache'), max_size_mb=1)

    def test_initial_stats_zero(self, tmp_cache):
        stats = tmp_cache.stats()
        assert stats['hits'] == 0
        assert stats['misses'] == 0
        assert stats['hit_rate'] == 0.0
        assert stats['num_entries'] == 0

    def test_miss_then_hit(self, tmp_cache):
        assert tmp_cache.get(5000, 30, 'intcal20', (6000, 5000)) is None
        tmp_cache.put(5000, 30, 'intcal20', (6000, 5000), np.ones(1001))
        result = tmp_cache.get(5000, 30, 'intcal20', (6000, 5000))
        np.testing.assert_array_equal(result, np.ones(1001))
        stats = tmp_cache.stats()
        assert stats['hits'] == 1
        assert stats['misses'] == 1
        assert stats['hit_rate'] == pytest.approx(0.5)

    def test_key_depends_on_curve_and_window(self, tmp_cache):
        tmp_cache.put(5000, 30, 'intcal20', (6000, 5000), np.ones(3))
        assert tmp_cache.get(5000, 30, 'shcal20', (6000, 5000)) is None
        assert tmp_cache.get(5000, 30, 'intcal20', (6000, 4000)) is None
        assert tmp_cache.get(5000, 40, 'intcal20', (6000, 5000)) is None

    def test_persists_to_disk(self, tmp_path):
        cache_dir = str(tmp_path / 'persist')
        first = CalibrationCache(cache_dir=cache_dir)
        first.put(5000, 30, 'intcal20', (6000, 5000), np.arange(5.0))

        second = CalibrationCache(cache_dir=cache_dir)
        np.testing.assert_array_equal(second.get(5000, 30, 'intcal20', (6000, 5000)),
                                      np.arange(5.0))
        assert second.hits == 1

    def test_corrupted_file_is_a_miss(self, tmp_cache):
        tmp_cache.put(5000, 30, 'intcal20', (6000, 5000), np.ones(3))
        for f in tmp_cache.cache_dir.glob('*.pkl'):
            f.write_bytes(b'not a pickle')
        tmp_cache._memory.clear()
        assert tmp_cache.get(5000, 30, 'intcal20', (6000, 5000)) is None
        assert len(list(tmp_cache.cache_dir.glob('*.pkl'))) == 0

    def test_disk_eviction(self, tmp_path):
        cache = CalibrationCache(cache_dir=str(tmp_path / 'small'), max_size_mb=0)
        for age in range(10):
            cache.put(5000 + age, 30, 'intcal20', (6000, 5000), np.ones(100))
        assert len(list(cache.cache_dir.glob('*.pkl'))) < 10

    def test_memory_limit(self):
        cache = CalibrationCache(max_entries=3)
        for age in range(5):
            cache.put(5000 + age, 30, 'intcal20', (6000, 5000), np.ones(2))
        assert cache.stats()['num_entries'] == 3
        # Oldest entries were evicted
        assert cache.get(5000, 30, 'intcal20', (6000, 5000)) is None
        assert cache.get(5004, 30, 'intcal20', (6000, 5000)) is not None

    def test_clear(self, tmp_cache):
        tmp_cache.put(5000, 30, 'intcal20', (6000, 5000), np.ones(3))
        tmp_cache.get(5000, 30, 'intcal20', (6000, 5000))
        tmp_cache.clear()
        stats = tmp_cache.stats()
        assert stats['num_entries'] == 0
        assert stats['hits'] == 0


class TestCachedCalibrator:
    """Test CachedCalibrator against direct calibration."""

    def test_matches_calibrate(self, curve):
        calibrator = CachedCalibrator(curve, 6500, 4500)
        density = calibrator(5200, 30)
        expected = calibrate([5200], [30], curve).restrict(6500, 4500).probs[0]
        np.testing.assert_allclose(density, expected)

    def test_repeated_dates_hit_cache(self, curve):
        calibrator = CachedCalibrator(curve, 6500, 4500)
        calibrator.spd([5200, 5200, 5300, 5200], [30, 30, 30, 30])
        stats = calibrator.get_cache_stats()
        assert stats['misses'] == 2
        assert stats['hits'] == 2

    def test_spd_matches_sum(self, curve):
        calibrator = CachedCalibrator(curve, 6500, 4500)
        ages, errors = [5100, 5400, 5600], [25, 35, 45]
        expected = calibrate(ages, errors, curve).restrict(6500, 4500).probs.sum(axis=0)
        np.testing.assert_allclose(calibrator.spd(ages, errors), expected)

    def test_age_outside_curve_gives_zero_density(self, curve):
        calibrator = CachedCalibrator(curve, 6500, 4500)
        assert calibrator(90000, 30).sum() == 0.0

    def test_window_outside_curve_rejected(self, curve):
        with pytest.raises(ValueError):
            CachedCalibrator(curve, 20000, 16000)

    def test_same_named_curves_do_not_share_entries(self, curve):
        shared = CalibrationCache()
        first = CalibrationCurve.from_arrays(curve.cal_bp, curve.c14_age, curve.c14_error)
        second = CalibrationCurve.from_arrays(curve.cal_bp, curve.c14_age + 300.0,
                                              curve.c14_error)
        assert first.name == second.name

        CachedCalibrator(first, 6500, 4500, cache=shared)(5200, 30)
        density = CachedCalibrator(second, 6500, 4500, cache=shared)(5200, 30)

        expected = calibrate([5200], [30], second).restrict(6500, 4500).probs[0]
        np.testing.assert_allclose(density, expected)
        assert shared.stats()['misses'] == 2

    def test_identical_curves_share_entries(self, curve):
        shared = CalibrationCache()
        copy = CalibrationCurve.from_arrays(curve.cal_bp.copy(), curve.c14_age.copy(),
                                            curve.c14_error.copy(), name=curve.name)
        CachedCalibrator(curve, 6500, 4500, cache=shared)(5200, 30)
        CachedCalibrator(copy, 6500, 4500, cache=shared)(5200, 30)
        assert shared.stats()['hits'] == 1
