"""
Carbon Growth — Calibration Cache
==================================
Caching of single-date calibrations used by posterior predictive SPD checks.

Problem: a posterior predictive check calibrates nsim x N simulated dates,
each over the full calibration curve (~55,000 years for IntCal20).
Solution: simulated ages are rounded to whole years and lab errors are
resampled from the observed errors, so (age, error) pairs repeat heavily.
Each pair is calibrated once and its window density is reused.

Features:
- Keys built from (age, error, curve name and content, window, eps)
- In-memory LRU with optional disk persistence
- LRU eviction when the disk cache exceeds its size limit
- Hit/miss statistics tracking

Usage:
    from .calibration_cache import CalibrationCache, CachedCalibrator

    cache = CalibrationCache(cache_dir='.cache/calibration', max_size_mb=100)
    calibrator = CachedCalibrator(curve, a=6500, b=4500, cache=cache)

    dens = calibrator(5230, 30)   # miss: calibrates
    dens = calibrator(5230, 30)   # hit

    print(cache.stats())

Author: Carbon Growth contributors
License: MIT
"""

import hashlib
import pickle
import os
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Optional, Tuple
import numpy as np

from .calibration import CalibrationCurve, date_log_density
from .growth import validate_window


class CalibrationCache:
    """LRU cache for calibrated date densities."""

    def __init__(self, cache_dir: Optional[str] = None,
                 max_size_mb: int = 100,
                 max_entries: int = 50000):
        """
        Initialize calibration cache.

        Args:
            cache_dir: Directory to persist densities (memory only if None)
            max_size_mb: Maximum disk cache size in megabytes
            max_entries: Maximum number of in-memory entries
        """
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.max_size_mb = max_size_mb
        self.max_entries = max_entries
        self._memory: 'OrderedDict[str, np.ndarray]' = OrderedDict()
        self.hits = 0
        self.misses = 0

    def _get_cache_key(self, age: float, error: float, curve_key: str,
                       window: Tuple[int, int], eps: float) -> str:
        """
        Generate unique cache key from a date and calibration settings.

        Returns:
            MD5 hash string
        """
        key_str = f"{round(float(age), 3)}_{round(float(error), 3)}_{curve_key}_{window[0]}_{window[1]}_{eps:g}"
        return hashlib.md5(key_str.encode()).hexdigest()

    def get(self, age: float, error: float, curve_key: str,
            window: Tuple[int, int], eps: float = 1e-5) -> Optional[np.ndarray]:
        """
        Retrieve a cached density if available.

        Returns:
            Cached density or None if not found
        """
        key = self._get_cache_key(age, error, curve_key, window, eps)

        if key in self._memory:
            self._memory.move_to_end(key)
            self.hits += 1
            return self._memory[key]

        if self.cache_dir is not None:
            cache_file = self.cache_dir / f"{key}.pkl"
            if cache_file.exists():
                try:
                    with open(cache_file, 'rb') as f:
                        density = pickle.load(f)
                    # Update access time (for LRU)
                    os.utime(cache_file, None)
                except (OSError, pickle.UnpicklingError, EOFError):
                    # Corrupted cache file, remove it
                    cache_file.unlink(missing_ok=True)
                    self.misses += 1
                    return None
                self.hits += 1
                self._remember(key, density)
                return density

        self.misses += 1
        return None

    def put(self, age: float, error: float, curve_key: str,
            window: Tuple[int, int], density: np.ndarray, eps: float = 1e-5):
        """Store a calibrated density in the cache."""
        key = self._get_cache_key(age, error, curve_key, window, eps)
        self._remember(key, density)

        if self.cache_dir is None:
            return

        cache_file = self.cache_dir / f"{key}.pkl"
        try:
            with open(cache_file, 'wb') as f:
                pickle.dump(density, f)
        except OSError:
            # Disk write failed, memory copy is still valid
            return

        self._cleanup_if_needed()

    def _remember(self, key: str, density: np.ndarray):
        self._memory[key] = density
        self._memory.move_to_end(key)
        while len(self._memory) > self.max_entries:
            self._memory.popitem(last=False)

    def _cleanup_if_needed(self):
        """Remove oldest cache files if size exceeds limit (LRU eviction)."""
        files = list(self.cache_dir.glob('*.pkl'))
        total_size = sum(f.stat().st_size for f in files)

        if total_size > self.max_size_mb * 1024 * 1024:
            # Sort by access time (LRU = least recently used)
            files.sort(key=lambda f: f.stat().st_atime)

            # Remove oldest 20% of files
            n_remove = max(1, len(files) // 5)
            for f in files[:n_remove]:
                f.unlink(missing_ok=True)

    def clear(self):
        """Clear entire cache and reset statistics."""
        self._memory.clear()
        if self.cache_dir is not None:
            for f in self.cache_dir.glob('*.pkl'):
                f.unlink(missing_ok=True)
        self.hits = 0
        self.misses = 0

    def stats(self) -> Dict[str, float]:
        """
        Return cache statistics.

        Returns:
            Dictionary with hits, misses, hit_rate, size_mb, num_entries
        """
        total_requests = self.hits + self.misses
        if self.cache_dir is not None:
            files = list(self.cache_dir.glob('*.pkl'))
            size_bytes = sum(f.stat().st_size for f in files)
            num_entries = max(len(files), len(self._memory))
        else:
            size_bytes = sum(d.nbytes for d in self._memory.values())
            num_entries = len(self._memory)

        return {
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hits / total_requests if total_requests > 0 else 0.0,
            'size_mb': size_bytes / (1024 * 1024),
            'num_entries': num_entries,
        }


class CachedCalibrator:
    """
    Calibrates single dates and returns their normalised density over a window.

    Each date is calibrated over the full curve grid and normalised there,
    so window densities of dates near the edges sum to less than one.
    """

    def __init__(self, curve: CalibrationCurve, a: int, b: int,
                 cache: Optional[CalibrationCache] = None,
                 eps: float = 1e-5):
        """
        Args:
            curve: Calibration curve
            a, b: Calendar window (BP)
            cache: CalibrationCache (memory-only cache if None)
            eps: Density cutoff, as in calibration.calibrate
        """
        self.a, self.b = validate_window(a, b)
        if not curve.covers(self.a, self.b):
            raise ValueError(
                f"Window [{self.b}, {self.a}] BP outside calibration curve "
                f"'{curve.name}' range {curve.range}"
            )
        self.curve = curve
        self.cache = cache or CalibrationCache()
        self.eps = eps

        # Same-named curves with different tables must not share entries
        fingerprint = hashlib.md5()
        for values in (curve.cal_bp, curve.c14_age, curve.c14_error):
            fingerprint.update(np.ascontiguousarray(values, dtype=np.float64).tobytes())
        self.curve_key = f"{curve.name}_{fingerprint.hexdigest()}"

        self._grid = curve.calendar_grid()
        self._mu, self._sigma = curve.interpolate(self._grid)
        self._mask = (self._grid <= self.a) & (self._grid >= self.b)

    @property
    def window(self) -> Tuple[int, int]:
        return self.a, self.b

    def _calibrate(self, age: float, error: float) -> np.ndarray:
        dens = np.exp(date_log_density(np.array([age]), np.array([error]),
                                   self._mu, self._sigma))[0]
        total = dens.sum()
        if total <= 0:
            return np.zeros(int(self._mask.sum()))
        dens = dens / total
        dens[dens < self.eps] = 0.0
        dens = dens / dens.sum()
        return dens[self._mask]

    def __call__(self, age: float, error: float) -> np.ndarray:
        """
        Window density of a single date, ordered a .. b.
        """
        cached = self.cache.get(age, error, self.curve_key, self.window, self.eps)
        if cached is not None:
            return cached

        density = self._calibrate(age, error)
        self.cache.put(age, error, self.curve_key, self.window, density, self.eps)
        return density

    def spd(self, ages, errors) -> np.ndarray:
        """Sum of window densities of a set of dates."""
        total = np.zeros(self.a - self.b + 1)
        for age, error in zip(ages, errors):
            total += self(age, error)
        return total

    def get_cache_stats(self) -> Dict:
        """Get cache statistics."""
        return self.cache.stats()

    def clear_cache(self):
        """Clear calibration cache."""
        self.cache.clear()
