import numpy as np
import pandas as pd
import pytest

from forde.coverage import check_sample_size, eligible_rows, index_leaves, leaf_coverage, tree_leaves
from forde.kinds import SamplingPolicy
from forde.tree import initial_bounds
from forde.kinds import FiniteBounds
from forde.utils import ConfigurationError
from tests.common import adversarial_forest, mixed_data, mixed_forest, mixed_tree


@pytest.fixture
def inbag_forest():
    #* Two trees over 6 training rows
    return mixed_forest(inbags=[[1, 0, 2, 0, 1, 0], [0, 0, 1, 1, 1, 3]], num_samples=6)


def test_leaf_coverage_sums_to_one():
    leaves = np.array([2, 2, 3, 4, 4, 4])
    cvg = leaf_coverage(0, leaves, np.ones(6, dtype=bool))
    assert cvg['leaf'].tolist() == [2, 3, 4]
    assert np.allclose(cvg['cvg'], [2 / 6, 1 / 6, 3 / 6])
    assert np.isclose(cvg['cvg'].sum(), 1.0)

def test_uncovered_leaves_are_dropped():
    leaves = np.array([2, 2, 3, 4])
    keep = np.array([True, True, False, True])
    cvg = leaf_coverage(1, leaves, keep)
    assert cvg['leaf'].tolist() == [2, 4]
    assert np.allclose(cvg['cvg'], [2 / 3, 1 / 3])

def test_tree_without_eligible_rows():
    cvg = leaf_coverage(0, np.array([2, 3]), np.zeros(2, dtype=bool))
    assert cvg.empty

def test_eligible_rows_per_policy(inbag_forest):
    oob = eligible_rows(inbag_forest, SamplingPolicy.OOB, 6)
    inbag = eligible_rows(inbag_forest, SamplingPolicy.INBAG, 6)
    everything = eligible_rows(inbag_forest, SamplingPolicy.ALL, 6)
    assert oob[:, 0].tolist() == [False, True, False, True, False, True]
    assert inbag[:, 1].tolist() == [False, False, True, True, True, True]
    assert np.all(oob ^ inbag)
    assert everything.all() and everything.shape == (6, 2)

def test_eligible_rows_on_honest_half(inbag_forest):
    oob = eligible_rows(inbag_forest, SamplingPolicy.OOB, 3)
    assert oob.shape == (3, 2)
    assert oob[:, 1].tolist() == [True, True, False]

def test_sample_size_check(inbag_forest):
    check_sample_size(inbag_forest, SamplingPolicy.OOB, 6)
    check_sample_size(inbag_forest, SamplingPolicy.OOB, 3)
    check_sample_size(inbag_forest, SamplingPolicy.ALL, 4)
    with pytest.raises(ConfigurationError):
        check_sample_size(inbag_forest, SamplingPolicy.OOB, 4)
    with pytest.raises(ConfigurationError, match="Out-of-bag"):
        check_sample_size(inbag_forest, SamplingPolicy.OOB, 5)
    with pytest.raises(ConfigurationError, match="In-bag"):
        check_sample_size(inbag_forest, SamplingPolicy.INBAG, 5)

def test_policy_needs_inbag_counts():
    with pytest.raises(ConfigurationError):
        check_sample_size(mixed_forest(num_samples=6), SamplingPolicy.OOB, 6)

def test_tree_leaves_join_bounds_and_coverage():
    lower, upper = initial_bounds(['x', 'c'], ['x'], FiniteBounds.NO, 0.0)
    leaves = np.array([2, 3, 3, 2])
    bnds = tree_leaves(0, mixed_tree(), leaves, np.ones(4, dtype=bool), ['x', 'c'], lower, upper)
    #* Leaf 4 is never reached
    assert sorted(bnds['leaf'].unique()) == [2, 3]
    assert bnds.shape[0] == 4
    assert np.allclose(bnds.groupby('leaf')['cvg'].first(), [0.5, 0.5])

def test_index_leaves_is_dense_and_ordered():
    bnds = pd.DataFrame({
        'tree': [1, 1, 0, 0, 1, 0],
        'leaf': [5, 5, 3, 3, 2, 4],
        'variable': ['x', 'c', 'x', 'c', 'x', 'x'],
    })
    indexed = index_leaves(bnds)
    pairs = indexed[['tree', 'leaf', 'f_idx']].drop_duplicates().values.tolist()
    assert pairs == [[0, 3, 1], [0, 4, 2], [1, 2, 3], [1, 5, 4]]

@pytest.mark.parametrize('policy', list(SamplingPolicy))
def test_coverage_sums_to_one_per_tree(policy):
    x = mixed_data(120)
    forest, _ = adversarial_forest(x, n_estimators=4)
    pred = forest.terminal_nodes(x)
    keep = eligible_rows(forest, policy, len(x))
    for b in range(forest.num_trees):
        cvg = leaf_coverage(b, pred[:, b], keep[:, b])
        assert np.isclose(cvg['cvg'].sum(), 1.0)
        assert np.all(cvg['cvg'] > 0)
