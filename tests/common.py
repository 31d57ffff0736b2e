from typing import *
import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from forde.forest import Forest, TreeStructure, covariate_levels, encode_frame

LEVELS = ['a', 'b', 'c']


def make_tree(varids, values, left, right, inbag=None) -> TreeStructure:
    return TreeStructure(
        split_varids=np.asarray(varids, dtype=np.int64),
        split_values=np.asarray(values, dtype=float),
        left_children=np.asarray(left, dtype=np.int64),
        right_children=np.asarray(right, dtype=np.int64),
        inbag_counts=None if inbag is None else np.asarray(inbag, dtype=np.int64),
    )

def single_leaf_forest(variables: List[str], levels: Dict[str, List[Any]] = None,
                       num_samples: int = 0, inbag=None) -> Forest:
    """One tree whose root is its only leaf."""
    tree = make_tree([-1], [0.0], [0], [0], inbag)
    return Forest([tree], num_samples, variables, levels)

def mixed_tree(inbag=None) -> TreeStructure:
    """x <= 0.5 ? (c <= 1.5 ? leaf 3 : leaf 4) : leaf 2, over variables ['x', 'c']."""
    return make_tree(
        varids=[0, 1, -1, -1, -1],
        values=[0.5, 1.5, 0.0, 0.0, 0.0],
        left=[1, 3, 0, 0, 0],
        right=[2, 4, 0, 0, 0],
        inbag=inbag,
    )

def mixed_forest(inbags: Optional[List[Any]] = None, num_samples: int = 0) -> Forest:
    inbags = inbags or [None]
    return Forest([mixed_tree(inbag) for inbag in inbags], num_samples, ['x', 'c'], {'c': LEVELS})

def mixed_data(n: int = 200, seed: int = 0) -> pd.DataFrame:
    """Two continuous and two categorical columns with some structure between them."""
    rng = np.random.default_rng(seed)
    group = rng.integers(0, 3, size=n)
    return pd.DataFrame({
        'a': np.round(rng.normal(loc=group * 2.0, scale=1.0), 2),
        'b': np.round(rng.uniform(0, 10, size=n), 1),
        'c': pd.Categorical(np.asarray(LEVELS)[group], categories=LEVELS),
        'd': rng.choice(['u', 'v'], size=n),
    })

def adversarial_forest(x: pd.DataFrame, n_estimators: int = 5, seed: int = 0) -> Tuple[Forest, RandomForestClassifier]:
    """Forest separating x (first half of the training rows) from a column-shuffled copy."""
    rng = np.random.default_rng(seed)
    synth = pd.DataFrame({col: x[col].to_numpy()[rng.permutation(len(x))] for col in x.columns})
    for col in x.columns:
        synth[col] = synth[col].astype(x[col].dtype)
    train = pd.concat([x, synth], ignore_index=True)
    y = np.r_[np.zeros(len(x)), np.ones(len(x))]
    levels = covariate_levels(train)
    model = RandomForestClassifier(n_estimators=n_estimators, min_samples_leaf=5, random_state=seed)
    model.fit(encode_frame(train, levels), y)
    return Forest.from_sklearn(model, train), model
