from typing import *
import numpy as np
import pandas as pd
from scipy.stats import norm

from forde.kinds import Family, FiniteBounds

#* The prior places 95% of its mass within the leaf's bounding box.
Z975 = norm.ppf(0.975)

CNT_COLUMNS = {
    Family.TRUNCNORM: ['f_idx', 'variable', 'min', 'max', 'mu', 'sigma', 'NA_share'],
    Family.UNIF: ['f_idx', 'variable', 'min', 'max', 'NA_share'],
}


def empty_continuous(family: Family) -> pd.DataFrame:
    columns = CNT_COLUMNS[family]
    dtypes = {'f_idx': np.int64, 'variable': object}
    return pd.DataFrame({col: pd.Series(dtype=dtypes.get(col, float)) for col in columns})

def leaf_statistics(
    values: np.ndarray,
    names: List[str],
    leaves: np.ndarray,
) -> pd.DataFrame:
    """One pass over the (leaf, variable) groups of one tree.

    ``count`` includes missing values; ``n_obs`` only the observed ones.
    """
    nrows, nvars = values.shape
    long = pd.DataFrame({
        'leaf': np.repeat(leaves, nvars),
        'variable': np.tile(np.asarray(names, dtype=object), nrows),
        'value': values.ravel(),
    })
    stats = long.groupby(['leaf', 'variable'], sort=False)['value'].agg(
        count='size', n_obs='count', mu='mean', sigma='std', min_emp='min', max_emp='max')
    return stats.reset_index()

def local_bounds(stats: pd.DataFrame, epsilon: float, min_range: float) -> pd.DataFrame:
    """Replace infinite leaf bounds with the leaf's widened empirical extrema."""
    length = stats['max_emp'] - stats['min_emp']
    positive = length[length > 0]
    floor = max(epsilon, min_range)
    #* Constant leaves get a pseudo-range so the interval stays non-degenerate
    pseudo_range = min(positive.min(), floor) if len(positive) else floor
    zero = length == 0
    min_emp = stats['min_emp'].where(~zero, stats['min_emp'] - pseudo_range / 2)
    max_emp = stats['max_emp'].where(~zero, stats['max_emp'] + pseudo_range / 2)
    length = length.where(~zero, pseudo_range)

    observed = stats['n_obs'] > 0
    stats['min'] = stats['min'].where(
        np.isfinite(stats['min']) | ~observed, min_emp - length * epsilon / 2)
    stats['max'] = stats['max'].where(
        np.isfinite(stats['max']) | ~observed, max_emp + length * epsilon / 2)
    return stats

def zero_variance_sigma(
    stats: pd.DataFrame,
    global_min: pd.Series,
    global_max: pd.Series,
    epsilon: float,
    min_range: float,
) -> pd.Series:
    """Posterior mode of sigma for leaves without spread.

    The prior scale ``sigma0`` is the half-width of the (finite) bounding box
    over the 97.5% normal quantile, with 2 degrees of freedom: one
    observation reproduces the prior and more identical observations shrink
    sigma towards, but never to, zero.
    """
    new_min = stats['min'].where(np.isfinite(stats['min']), stats['variable'].map(global_min))
    new_max = stats['max'].where(np.isfinite(stats['max']), stats['variable'].map(global_max))
    mid = (new_min + new_max) / 2
    half_width = new_max - mid
    half_width = half_width.where(half_width > 0, max(epsilon, min_range) / 2)
    sigma0 = half_width / Z975
    return np.sqrt(2 / stats['count'] * sigma0 ** 2)

def estimate_continuous(
    values: np.ndarray,
    names: List[str],
    leaves: np.ndarray,
    keep: np.ndarray,
    bnds: pd.DataFrame,
    family: Family,
    finite_bounds: FiniteBounds,
    epsilon: float,
    global_min: pd.Series,
    global_max: pd.Series,
    min_range: float = 1e-12,
) -> pd.DataFrame:
    """Continuous leaf parameters of one tree, one row per (f_idx, variable).

    ``bnds`` holds this tree's ``leaf, variable, min, max, f_idx`` rows.
    """
    if not names or not keep.any():
        return empty_continuous(family)
    stats = leaf_statistics(values[keep], names, leaves[keep])
    stats = stats.merge(bnds[['leaf', 'variable', 'min', 'max', 'f_idx']],
                        on=['leaf', 'variable'], how='inner', sort=False)
    stats['NA_share'] = 1 - stats['n_obs'] / stats['count']

    if finite_bounds == FiniteBounds.LOCAL:
        stats = local_bounds(stats, epsilon, min_range)

    #* Fully missing groups fall back to the variable's global extrema
    all_na = stats['n_obs'] == 0
    stats['min'] = stats['min'].where(
        ~(all_na & np.isinf(stats['min'])), stats['variable'].map(global_min))
    stats['max'] = stats['max'].where(
        ~(all_na & np.isinf(stats['max'])), stats['variable'].map(global_max))

    if family == Family.TRUNCNORM:
        stats['mu'] = stats['mu'].where(~all_na, (stats['min'] + stats['max']) / 2)
        stats['sigma'] = stats['sigma'].fillna(0.0)
        zero_sd = stats['sigma'] == 0
        if zero_sd.any():
            repaired = zero_variance_sigma(stats, global_min, global_max, epsilon, min_range)
            stats['sigma'] = stats['sigma'].where(~zero_sd, repaired)

    return stats[CNT_COLUMNS[family]]
