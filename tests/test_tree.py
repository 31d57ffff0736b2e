import numpy as np
import pandas as pd
import pytest

from forde.kinds import FiniteBounds
from forde.tree import initial_bounds, leaf_bounds, node_bounds
from tests.common import adversarial_forest, make_tree, mixed_data, mixed_tree


def test_leaf_bounds_follow_splits():
    lower, upper = initial_bounds(['x', 'c'], ['x'], FiniteBounds.NO, 0.0)
    bnds = leaf_bounds(0, mixed_tree(), ['x', 'c'], lower, upper)
    assert sorted(bnds['leaf'].unique()) == [2, 3, 4]
    box = {(row.leaf, row.variable): (row.min, row.max) for row in bnds.itertuples()}
    assert box[(2, 'x')] == (0.5, np.inf)
    assert box[(2, 'c')] == (-np.inf, np.inf)
    assert box[(3, 'x')] == (-np.inf, 0.5)
    assert box[(3, 'c')] == (-np.inf, 1.5)
    assert box[(4, 'x')] == (-np.inf, 0.5)
    assert box[(4, 'c')] == (1.5, np.inf)

def test_global_bounds_only_on_continuous():
    gmin = pd.Series({'x': 0.0})
    gmax = pd.Series({'x': 10.0})
    lower, upper = initial_bounds(['x', 'c'], ['x'], FiniteBounds.GLOBAL, 0.5, gmin, gmax)
    assert lower.tolist() == [-2.5, -np.inf]
    assert upper.tolist() == [12.5, np.inf]

def test_single_leaf_tree_keeps_root_box():
    tree = make_tree([-1], [0.0], [0], [0])
    bnds = leaf_bounds(3, tree, ['x'], np.array([-1.0]), np.array([1.0]))
    assert bnds[['tree', 'leaf', 'variable', 'min', 'max']].values.tolist() == [[3, 0, 'x', -1.0, 1.0]]

def test_pruned_split_inherits_parent_box():
    #* Node 1 is both children of node 0; node 1 then splits on x at 2.0
    tree = make_tree([0, 0, -1, -1], [1.0, 2.0, 0.0, 0.0], [1, 2, 0, 0], [1, 3, 0, 0])
    lb, ub = node_bounds(tree, np.array([-np.inf]), np.array([np.inf]))
    assert (lb[1, 0], ub[1, 0]) == (-np.inf, np.inf)
    assert (lb[2, 0], ub[2, 0]) == (-np.inf, 2.0)
    assert (lb[3, 0], ub[3, 0]) == (2.0, np.inf)
    assert tree.leaves.tolist() == [2, 3]

def test_children_disjoint_and_nested():
    forest, _ = adversarial_forest(mixed_data(150), n_estimators=3)
    d = len(forest.variables)
    for tree in forest.trees:
        lb, ub = node_bounds(tree, np.full(d, -np.inf), np.full(d, np.inf))
        for i in range(tree.num_nodes):
            left, right = tree.left_children[i], tree.right_children[i]
            if left == 0:
                continue
            var = tree.split_varids[i]
            assert ub[left, var] == lb[right, var] == tree.split_values[i]
            for child in (left, right):
                assert np.all(lb[child] >= lb[i]) and np.all(ub[child] <= ub[i])
                assert np.all(lb[child] < ub[child])

def test_leaf_boxes_contain_their_rows():
    x = mixed_data(150)
    forest, _ = adversarial_forest(x, n_estimators=3)
    codes = forest.encode(x)
    pred = forest.terminal_nodes(x)
    d = len(forest.variables)
    for b, tree in enumerate(forest.trees):
        lb, ub = node_bounds(tree, np.full(d, -np.inf), np.full(d, np.inf))
        leaves = pred[:, b]
        assert np.all(codes > lb[leaves]) and np.all(codes <= ub[leaves])

def test_children_must_follow_parent():
    #* Node 2 points back to node 1
    tree = make_tree([0, -1, 0], [0.0, 0.0, 1.0], [1, 0, 1], [2, 0, 1])
    with pytest.raises(AssertionError):
        node_bounds(tree, np.array([-np.inf]), np.array([np.inf]))
