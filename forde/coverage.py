from typing import *
import numpy as np
import pandas as pd

from forde.forest import Forest, TreeStructure
from forde.kinds import SamplingPolicy
from forde.tree import leaf_bounds
from forde.utils import log, ConfigurationError


def check_sample_size(forest: Forest, policy: SamplingPolicy, nrows: int) -> None:
    """Out-of-bag/in-bag estimation only makes sense on the forest's own training rows."""
    if policy == SamplingPolicy.ALL:
        return
    if not forest.has_inbag_counts:
        raise ConfigurationError(
            f"{policy.label} estimation requires in-bag counts for every tree of the forest.")
    #* Honest forests are grown on one half of the training rows
    if nrows not in (forest.num_samples, forest.num_samples / 2):
        raise ConfigurationError(
            f"{policy.label} estimation requires the forest's training data "
            f"(x has {nrows} rows, forest was trained on {forest.num_samples}).")

def eligible_rows(forest: Forest, policy: SamplingPolicy, nrows: int) -> np.ndarray:
    """Boolean mask ``(nrows, num_trees)`` of the rows each tree may learn from."""
    if policy == SamplingPolicy.ALL:
        return np.ones((nrows, forest.num_trees), dtype=bool)
    counts = np.column_stack([np.asarray(tree.inbag_counts)[:nrows] for tree in forest.trees])
    assert counts.shape[0] == nrows, \
        f"In-bag counts cover {counts.shape[0]} rows, expected {nrows}."
    if policy == SamplingPolicy.OOB:
        return counts == 0
    return counts > 0

def leaf_coverage(treeidx: int, leaves: np.ndarray, keep: np.ndarray) -> pd.DataFrame:
    """Share of the eligible rows of one tree that land in each of its leaves.

    Leaves no eligible row reaches are absent from the result.
    """
    kept = leaves[keep]
    if kept.size == 0:
        log.warning(f"Tree {treeidx} has no eligible rows; its leaves are dropped.")
        return pd.DataFrame({'tree': pd.Series(dtype=int), 'leaf': pd.Series(dtype=np.int64),
                             'cvg': pd.Series(dtype=float)})
    leaf_ids, counts = np.unique(kept, return_counts=True)
    return pd.DataFrame({'tree': treeidx, 'leaf': leaf_ids, 'cvg': counts / kept.size})

def tree_leaves(
    treeidx: int,
    tree: TreeStructure,
    leaves: np.ndarray,
    keep: np.ndarray,
    variables: List[str],
    lower: np.ndarray,
    upper: np.ndarray,
) -> pd.DataFrame:
    """Bounds of the covered leaves of one tree, with their coverage."""
    bnds = leaf_bounds(treeidx, tree, variables, lower, upper)
    cvg = leaf_coverage(treeidx, leaves, keep)
    return bnds.merge(cvg, on=['tree', 'leaf'], how='inner', sort=False)

def index_leaves(bnds: pd.DataFrame) -> pd.DataFrame:
    """Give every (tree, leaf) pair a dense global id ``f_idx`` starting at 1."""
    bnds = bnds.sort_values(['tree', 'leaf'], kind='mergesort').reset_index(drop=True)
    bnds['f_idx'] = bnds.groupby(['tree', 'leaf'], sort=True).ngroup() + 1
    return bnds
