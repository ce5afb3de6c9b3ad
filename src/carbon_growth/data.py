"""
Radiocarbon dataset utilities for Carbon Growth.

Supports:
- CSV/TSV tables of radiocarbon dates
- Simulated datasets drawn from a growth model
- A smooth synthetic calibration curve for demos and tests

Example CSV format:
    LabID,CRA,Error,SiteName
    OxA-1234,5230,30,Site A
    Beta-5678,5115,40,Site B
    ...
"""
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Optional, Sequence
import warnings

from .growth import sample_growth, validate_window
from .calibration import CalibrationCurve, uncalibrate, validate_dates


class RadiocarbonDataLoader:
    """Load and validate radiocarbon date tables."""

    def __init__(self, data_dir: str = 'data'):
        """
        Args:
            data_dir: Directory containing date tables
        """
        self.data_dir = Path(data_dir)
        if not self.data_dir.exists():
            warnings.warn(f"Data directory does not exist: {self.data_dir}")

    def load_dates_csv(self, filename: str,
                       age_col: str = 'CRA',
                       error_col: str = 'Error',
                       id_col: Optional[str] = None,
                       delimiter: str = ',',
                       drop_invalid: bool = False,
                       verbose: bool = True) -> pd.DataFrame:
        """Load radiocarbon dates from a CSV or TSV table.

        Args:
            filename: Filename relative to data_dir, or absolute path.
            age_col: Column with conventional radiocarbon ages (14C yr BP).
            error_col: Column with 1-sigma lab errors.
            id_col: Optional column with lab codes, used as index.
            delimiter: Column delimiter (',', '\\t', ...).
            drop_invalid: Drop rows with missing or non-positive values
                instead of raising.
            verbose: Print a short summary.

        Returns:
            DataFrame with columns 'cra' and 'error' plus any other columns
        """
        filepath = self.data_dir / filename if not Path(filename).is_absolute() else Path(filename)

        if not filepath.exists():
            raise FileNotFoundError(f"Radiocarbon date file not found: {filepath}")

        _engine = 'python' if len(delimiter) > 1 else 'c'
        df = pd.read_csv(filepath, sep=delimiter, engine=_engine)

        for col in (age_col, error_col):
            if col not in df.columns:
                raise ValueError(f"Column '{col}' not found in {filename}")
        if id_col is not None:
            if id_col not in df.columns:
                raise ValueError(f"Column '{id_col}' not found in {filename}")
            df = df.set_index(id_col)

        df = df.rename(columns={age_col: 'cra', error_col: 'error'})
        df['cra'] = pd.to_numeric(df['cra'], errors='coerce')
        df['error'] = pd.to_numeric(df['error'], errors='coerce')

        invalid = df['cra'].isna() | df['error'].isna() | (df['error'] <= 0)
        if invalid.any():
            if not drop_invalid:
                raise ValueError(
                    f"{int(invalid.sum())} rows in {filename} have missing ages or non-positive errors"
                )
            warnings.warn(f"Dropping {int(invalid.sum())} invalid rows from {filename}")
            df = df[~invalid]

        validate_dates(df['cra'].values, df['error'].values)

        if verbose:
            print(f"[OK] Loaded {len(df)} radiocarbon dates from {filepath.name}")
            print(f"  CRA range: {df['cra'].min():.0f} - {df['cra'].max():.0f} 14C yr BP")
            print(f"  Error range: {df['error'].min():.0f} - {df['error'].max():.0f}")

        return df


def simulate_dates(n: int, a: int, b: int, model: str,
                   curve: CalibrationCurve,
                   rng: Optional[np.random.Generator] = None,
                   error_choices: Sequence[float] = (20.0, 30.0, 40.0, 50.0),
                   **params) -> pd.DataFrame:
    """Simulate radiocarbon dates from a growth model.

    Calendar dates are drawn from the growth model, back-calibrated with
    curve uncertainty plus lab error, and rounded to whole years.

    Args:
        n: Number of dates
        a, b: Calendar window (BP)
        model: Growth model name
        curve: Calibration curve
        rng: numpy Generator
        error_choices: Lab errors assigned at random to the dates
        **params: Growth model parameters

    Returns:
        DataFrame with columns cal_bp, cra, error
    """
    a, b = validate_window(a, b)
    if n < 1:
        raise ValueError(f"Number of dates must be >= 1, got {n}")
    error_choices = np.asarray(error_choices, dtype=np.float64)
    if len(error_choices) == 0 or np.any(error_choices <= 0):
        raise ValueError("error_choices must contain positive values")
    rng = rng if rng is not None else np.random.default_rng()

    cal_bp = sample_growth(model, n, a, b, rng=rng, **params)
    c14_age, _ = uncalibrate(cal_bp, curve, rng=rng)
    errors = rng.choice(error_choices, size=n, replace=True)
    cra = np.round(rng.normal(c14_age, errors))

    return pd.DataFrame({'cal_bp': cal_bp, 'cra': cra.astype(int), 'error': errors})


def create_sample_dataset(output_dir: str = 'data',
                          filename: str = 'sample_dates.csv',
                          n: int = 300, a: int = 6500, b: int = 4500,
                          model: str = 'exponential',
                          curve: Optional[CalibrationCurve] = None,
                          rng: Optional[np.random.Generator] = None,
                          **params) -> Path:
    """Write a simulated radiocarbon dataset to CSV for testing.

    Returns:
        Path of the written file (columns LabID, CRA, Error)
    """
    curve = curve or synthetic_curve()
    if not params and model == 'exponential':
        params = {'r': 0.002}
    dates = simulate_dates(n, a, b, model, curve, rng=rng, **params)

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    filepath = output_path / filename

    table = pd.DataFrame({
        'LabID': [f'SIM-{i + 1:04d}' for i in range(len(dates))],
        'CRA': dates['cra'].values,
        'Error': dates['error'].values,
    })
    table.to_csv(filepath, index=False)
    print(f"[OK] Created sample dataset: {filepath} ({len(table)} dates, {model} growth)")
    return filepath


def synthetic_curve(start: int = 0, end: int = 15000, step: int = 5,
                    name: str = 'synthetic') -> CalibrationCurve:
    """Smooth idealised calibration curve with IntCal-like wiggles.

    Not a substitute for a real curve; meant for demos and tests.
    """
    if end <= start or step <= 0:
        raise ValueError(f"Invalid synthetic curve range: start={start}, end={end}, step={step}")
    cal_bp = np.arange(start, end + step, step, dtype=np.float64)
    c14_age = (0.92 * cal_bp
               + 60.0 * np.sin(2 * np.pi * cal_bp / 900.0)
               + 25.0 * np.sin(2 * np.pi * cal_bp / 210.0))
    c14_error = 8.0 + 0.0015 * cal_bp
    return CalibrationCurve(cal_bp=cal_bp, c14_age=c14_age, c14_error=c14_error, name=name)
