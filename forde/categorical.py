from typing import *
import numpy as np
import pandas as pd

CAT_COLUMNS = ['f_idx', 'variable', 'val', 'prob', 'NA_share']


def empty_categorical() -> pd.DataFrame:
    return pd.DataFrame({
        'f_idx': pd.Series(dtype=np.int64),
        'variable': pd.Series(dtype=object),
        'val': pd.Series(dtype=object),
        'prob': pd.Series(dtype=float),
        'NA_share': pd.Series(dtype=float),
    })

def admissible_range(
    lower: np.ndarray,
    upper: np.ndarray,
    nlevels: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """First and last admissible 1-based ordinal of each ordinal interval ``(lower, upper]``.

    Infinite sides extend to the first or last level.
    """
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)
    first = np.ones(len(lower), dtype=np.int64)
    finite = np.isfinite(lower)
    first[finite] = np.maximum(1, np.floor(lower[finite]).astype(np.int64) + 1)
    last = np.asarray(nlevels, dtype=np.int64).copy()
    finite = np.isfinite(upper)
    last[finite] = np.minimum(last[finite], np.floor(upper[finite]).astype(np.int64))
    return first, last

def enumerate_levels(groups: pd.DataFrame, nlevels: Dict[str, int]) -> pd.DataFrame:
    """Every admissible ``(leaf, variable, code)`` of the given leaf-variable groups."""
    k = groups['variable'].map(nlevels).to_numpy(dtype=np.int64)
    first, last = admissible_range(groups['min'].to_numpy(), groups['max'].to_numpy(), k)
    counts = np.clip(last - first + 1, 0, None)
    rows = np.repeat(np.arange(len(groups)), counts)
    #* Position of each enumerated level within its group
    offsets = np.arange(counts.sum()) - np.repeat(np.cumsum(counts) - counts, counts)
    return pd.DataFrame({
        'leaf': groups['leaf'].to_numpy()[rows],
        'variable': groups['variable'].to_numpy()[rows],
        'code': first[rows] + offsets,
    })

def decode_levels(table: pd.DataFrame, levels: Dict[str, List[Any]]) -> pd.Series:
    """Level label of every 1-based ``code`` of ``table``."""
    vals = pd.Series(index=table.index, dtype=object)
    for name, group in table.groupby('variable', sort=False):
        labels = np.empty(len(levels[name]), dtype=object)
        labels[:] = levels[name]
        vals.loc[group.index] = labels[group['code'].to_numpy() - 1]
    return vals

def estimate_categorical(
    codes: np.ndarray,
    names: List[str],
    leaves: np.ndarray,
    keep: np.ndarray,
    bnds: pd.DataFrame,
    levels: Dict[str, List[Any]],
    alpha: float = 0.0,
) -> pd.DataFrame:
    """Categorical leaf parameters of one tree, one row per (f_idx, variable, val).

    ``codes`` holds 1-based level ordinals (NaN when missing) and ``bnds``
    this tree's ``leaf, variable, min, max, f_idx`` rows, in ordinal space.
    With ``alpha > 0`` every admissible level gets the pseudocount, so
    unobserved levels keep a positive probability. Groups without any
    observed value become uniform over their admissible levels.
    """
    if not names or not keep.any():
        return empty_categorical()
    codes, leaves = codes[keep], leaves[keep]
    nrows, nvars = codes.shape
    long = pd.DataFrame({
        'leaf': np.repeat(leaves, nvars),
        'variable': np.tile(np.asarray(names, dtype=object), nrows),
        'code': codes.ravel(),
    })
    groups = long.groupby(['leaf', 'variable'], sort=False)['code'].agg(
        count='size', n_obs='count').reset_index()
    groups['NA_share'] = 1 - groups['n_obs'] / groups['count']
    groups = groups.merge(bnds[['leaf', 'variable', 'min', 'max', 'f_idx']],
                          on=['leaf', 'variable'], how='inner', sort=False)

    observed = long.dropna(subset=['code']).astype({'code': np.int64})
    observed = observed.groupby(['leaf', 'variable', 'code'], sort=False).size() \
        .rename('val_count').reset_index()

    nlevels = {name: len(levels[name]) for name in names}
    all_na = groups['n_obs'] == 0
    if alpha > 0:
        #* Admissible levels plus any observed one, so the masses sum to one
        support = pd.concat([enumerate_levels(groups, nlevels),
                             observed[['leaf', 'variable', 'code']]], ignore_index=True)
        support = support.drop_duplicates(ignore_index=True)
    else:
        support = pd.concat([enumerate_levels(groups[all_na], nlevels),
                             observed[['leaf', 'variable', 'code']]], ignore_index=True)
    dt = support.merge(observed, on=['leaf', 'variable', 'code'], how='left', sort=False)
    dt['val_count'] = dt['val_count'].fillna(0)
    dt = dt.merge(groups[['leaf', 'variable', 'n_obs', 'NA_share', 'f_idx']],
                  on=['leaf', 'variable'], how='inner', sort=False)
    dt['k'] = dt.groupby(['leaf', 'variable'], sort=False)['code'].transform('size')

    if alpha > 0:
        dt['prob'] = (dt['val_count'] + alpha) / (dt['n_obs'] + alpha * dt['k'])
    else:
        dt['prob'] = np.where(dt['n_obs'] > 0,
                              dt['val_count'] / dt['n_obs'].clip(lower=1),
                              1 / dt['k'])
    dt = dt.sort_values(['f_idx', 'variable', 'code'], kind='mergesort').reset_index(drop=True)
    dt['val'] = decode_levels(dt, levels)
    return dt[CAT_COLUMNS]
