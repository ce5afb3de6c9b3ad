"""
Carbon Growth — Model Comparison
=================================
Compare fitted growth models by WAIC (widely applicable information
criterion) on the deviance scale, where lower is better.

    delta_m  = WAIC_m - min(WAIC)
    weight_m = exp(-delta_m / 2) / sum_j exp(-delta_j / 2)

Usage:
    table = compare_models({'exponential': trace_exp, 'logistic': trace_log})
    print(table)
"""

import numpy as np
import pandas as pd
from typing import Dict, Union
import warnings

try:
    import arviz as az
    ARVIZ_AVAILABLE = True
except ImportError:
    ARVIZ_AVAILABLE = False
    az = None


def compute_waic(trace) -> Dict[str, float]:
    """WAIC of a trace with a log_likelihood group.

    Returns:
        Dict with 'waic', 'p_waic' and 'se' (deviance scale)
    """
    if not ARVIZ_AVAILABLE:
        raise ImportError("ArviZ required. Install with: pip install arviz")
    if not hasattr(trace, 'log_likelihood'):
        raise ValueError("Trace has no log_likelihood group; sample with log-likelihood enabled")

    with warnings.catch_warnings():
        # Variance warnings are reported by the caller's diagnostics
        warnings.simplefilter('ignore', UserWarning)
        result = az.waic(trace, scale='deviance')

    return {
        'waic': float(result['elpd_waic']),
        'p_waic': float(result['p_waic']),
        'se': float(result['se']),
    }


def waic_weights(waic_values) -> np.ndarray:
    """Akaike-type weights from WAIC values."""
    waic_values = np.asarray(waic_values, dtype=np.float64)
    delta = waic_values - waic_values.min()
    w = np.exp(-0.5 * delta)
    return w / w.sum()


def compare_models(models: Dict[str, Union[float, dict, object]]) -> pd.DataFrame:
    """Compare growth models by WAIC.

    Args:
        models: Mapping of model name to an InferenceData with log-likelihood,
                a WAIC value, or a dict as returned by compute_waic

    Returns:
        DataFrame indexed by model name, sorted by WAIC, with columns
        waic, p_waic, se, delta_waic, weight
    """
    if not models:
        raise ValueError("At least one model is required for comparison")

    rows = {}
    for name, value in models.items():
        if isinstance(value, dict):
            if 'waic' not in value:
                raise ValueError(f"WAIC missing for model '{name}'")
            rows[name] = {'waic': float(value['waic']),
                          'p_waic': value.get('p_waic', np.nan),
                          'se': value.get('se', np.nan)}
        elif isinstance(value, (int, float, np.floating)):
            rows[name] = {'waic': float(value), 'p_waic': np.nan, 'se': np.nan}
        else:
            rows[name] = compute_waic(value)

    table = pd.DataFrame.from_dict(rows, orient='index')
    if not np.all(np.isfinite(table['waic'])):
        raise ValueError("WAIC values must be finite")

    table = table.sort_values('waic')
    table['delta_waic'] = table['waic'] - table['waic'].min()
    table['weight'] = waic_weights(table['waic'].values)
    table.index.name = 'model'
    return table[['waic', 'p_waic', 'se', 'delta_waic', 'weight']]
