from typing import *
import numpy as np
import pandas as pd

from forde.forest import TreeStructure
from forde.kinds import FiniteBounds


def initial_bounds(
    variables: List[str],
    continuous: List[str],
    finite_bounds: FiniteBounds,
    epsilon: float,
    global_min: Optional[pd.Series] = None,
    global_max: Optional[pd.Series] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Root box of every tree.

    Unbounded on every variable, except under the global policy where
    continuous variables start at their empirical extrema widened by
    ``epsilon / 2`` of the range on each side.
    """
    lower = np.full(len(variables), -np.inf)
    upper = np.full(len(variables), np.inf)
    if finite_bounds == FiniteBounds.GLOBAL:
        for j, name in enumerate(variables):
            if name not in continuous:
                continue
            gap = global_max[name] - global_min[name]
            lower[j] = global_min[name] - epsilon / 2 * gap
            upper[j] = global_max[name] + epsilon / 2 * gap
    return lower, upper

def node_bounds(
    tree: TreeStructure,
    lower: np.ndarray,
    upper: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Lower and upper bounds of every node, shape ``(num_nodes, d)``.

    A split sends ``value <= threshold`` left, so the left child's box is
    ``(lb, threshold]`` and the right child's ``(threshold, ub]`` on the
    split variable. Children that share one id (pruned split) inherit the
    parent box unchanged.
    """
    lb = np.tile(np.asarray(lower, dtype=float), (tree.num_nodes, 1))
    ub = np.tile(np.asarray(upper, dtype=float), (tree.num_nodes, 1))
    for i in range(tree.num_nodes):
        left, right = tree.left_children[i], tree.right_children[i]
        if left <= 0:
            continue
        assert left > i and right > i, \
            f"Children of node {i} ({left}, {right}) must come after their parent."
        lb[left] = lb[right] = lb[i]
        ub[left] = ub[right] = ub[i]
        if left != right:
            varid = tree.split_varids[i]
            ub[left, varid] = lb[right, varid] = tree.split_values[i]
    return lb, ub

def leaf_bounds(
    treeidx: int,
    tree: TreeStructure,
    variables: List[str],
    lower: np.ndarray,
    upper: np.ndarray,
) -> pd.DataFrame:
    """Long table ``tree, leaf, variable, min, max`` for every leaf of one tree."""
    lb, ub = node_bounds(tree, lower, upper)
    leaves = tree.leaves
    d = len(variables)
    return pd.DataFrame({
        'tree': treeidx,
        'leaf': np.repeat(leaves, d),
        'variable': np.tile(np.asarray(variables, dtype=object), len(leaves)),
        'min': lb[leaves].ravel(),
        'max': ub[leaves].ravel(),
    })
