from dataclasses import dataclass
from typing import *
import numpy as np
import pandas as pd

from forde.kinds import ColumnKind, column_kind
from forde.utils import log, ConfigurationError, DataError


@dataclass(frozen=True)
class TreeStructure:
    """One tree as an arena of nodes addressed by dense index (node 0 is the root).

    A child id of 0 means "no child": a node whose left child is 0 is a leaf.
    Child ids are always greater than the id of their parent, so the node
    index order is a topological order.
    """
    split_varids: np.ndarray
    split_values: np.ndarray
    left_children: np.ndarray
    right_children: np.ndarray
    #* Per training row, how often the row was drawn for this tree (None if unknown)
    inbag_counts: Optional[np.ndarray] = None

    def __post_init__(self):
        num_nodes = len(self.left_children)
        assert len(self.right_children) == num_nodes \
            and len(self.split_varids) == num_nodes \
            and len(self.split_values) == num_nodes, \
            f"Node arrays must have equal length, got {len(self.split_varids)=}, " \
            f"{len(self.split_values)=}, {len(self.left_children)=}, {len(self.right_children)=}"

    @property
    def num_nodes(self) -> int:
        return len(self.left_children)

    @property
    def leaves(self) -> np.ndarray:
        return np.flatnonzero(np.asarray(self.left_children) == 0)

    def terminal_nodes(self, codes: np.ndarray) -> np.ndarray:
        """Route every row of an encoded matrix to its terminal node.

        Rows go left when ``value <= threshold``; missing values go right.
        """
        left = np.asarray(self.left_children)
        right = np.asarray(self.right_children)
        varids = np.asarray(self.split_varids)
        values = np.asarray(self.split_values, dtype=float)

        node = np.zeros(codes.shape[0], dtype=np.int64)
        active = left[node] != 0
        while active.any():
            rows = np.flatnonzero(active)
            current = node[rows]
            go_left = codes[rows, varids[current]] <= values[current]
            node[rows] = np.where(go_left, left[current], right[current])
            active = left[node] != 0
        return node


def data_levels(series: pd.Series) -> List[Any]:
    """Ordered levels of a categorical column as they appear in the data."""
    if isinstance(series.dtype, pd.CategoricalDtype):
        return series.cat.categories.tolist()
    return sorted(series.dropna().unique().tolist(), key=str)

def covariate_levels(x: pd.DataFrame) -> Dict[str, List[Any]]:
    """Levels of every categorical column of ``x``, in ordinal order."""
    return {
        name: data_levels(x[name]) for name in x.columns
        if column_kind(x[name]) == ColumnKind.CATEGORICAL
    }

def encode_frame(x: pd.DataFrame, levels: Dict[str, List[Any]]) -> np.ndarray:
    """Numeric matrix of ``x`` with categorical columns as 1-based level ordinals.

    The same encoding must be used to fit a forest and to route rows through it.
    """
    codes = np.empty(x.shape, dtype=float)
    for j, name in enumerate(x.columns):
        series = x[name]
        if name in levels:
            lookup = {level: i + 1 for i, level in enumerate(levels[name])}
            ordinals = series.astype(object).map(lookup)
            unknown = series.notna() & ordinals.isna()
            if unknown.any():
                raise DataError(
                    f"Column {name} has values outside the forest's levels: "
                    f"{sorted(series[unknown].astype(str).unique())[:5]}")
            codes[:, j] = ordinals.to_numpy(dtype=float, na_value=np.nan)
        else:
            codes[:, j] = pd.to_numeric(series).to_numpy(dtype=float, na_value=np.nan)
    return codes


class Forest(object):
    """A trained forest as seen by the estimator.

    ``variables`` names the columns addressed by the split variable ids and
    ``covariate_levels`` lists the admissible levels of every categorical
    variable in ordinal order. ``leaf_fn`` maps an encoded matrix to an
    ``(n, num_trees)`` array of terminal node ids; without it the trees are
    traversed directly.
    """
    def __init__(
        self,
        trees: Sequence[TreeStructure],
        num_samples: int,
        variables: Sequence[str],
        covariate_levels: Optional[Dict[str, List[Any]]] = None,
        leaf_fn: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    ) -> None:
        assert len(trees) > 0, "A forest needs at least one tree."
        self.trees: List[TreeStructure] = list(trees)
        self.num_samples = int(num_samples)
        self.variables: List[str] = list(variables)
        self.covariate_levels: Dict[str, List[Any]] = dict(covariate_levels or {})
        self.leaf_fn = leaf_fn

    @property
    def num_trees(self) -> int:
        return len(self.trees)

    @property
    def has_inbag_counts(self) -> bool:
        return all(tree.inbag_counts is not None for tree in self.trees)

    def encode(self, x: pd.DataFrame) -> np.ndarray:
        return encode_frame(x[self.variables], self.covariate_levels)

    def terminal_nodes(self, x: pd.DataFrame) -> np.ndarray:
        """Terminal node id of every row (rows) in every tree (columns)."""
        codes = self.encode(x)
        if self.leaf_fn is not None:
            pred = np.asarray(self.leaf_fn(codes), dtype=np.int64)
        else:
            pred = np.column_stack([tree.terminal_nodes(codes) for tree in self.trees])
        assert pred.shape == (x.shape[0], self.num_trees), \
            f"Expected terminal nodes of shape {(x.shape[0], self.num_trees)}, got {pred.shape}"
        return pred

    @classmethod
    def from_sklearn(cls, model, x: pd.DataFrame) -> 'Forest':
        """Wrap a fitted scikit-learn random forest.

        ``model`` must have been fitted on ``encode_frame(x, covariate_levels(x))``
        so that split variable ids follow the column order of ``x`` and
        categorical thresholds live in ordinal space.
        """
        if not hasattr(model, 'estimators_'):
            raise ConfigurationError(f"{type(model).__name__} is not fitted.")
        if model.n_features_in_ != x.shape[1]:
            raise ConfigurationError(
                f"Forest was fitted on {model.n_features_in_} features, x has {x.shape[1]} columns.")
        n = x.shape[0]
        levels = covariate_levels(x)

        if getattr(model, 'bootstrap', False):
            #* Indices drawn for each tree, duplicates included
            samples = model.estimators_samples_
        else:
            samples = [np.arange(n) for _ in model.estimators_]

        trees = []
        for estimator, drawn in zip(model.estimators_, samples):
            tree = estimator.tree_
            drawn = np.asarray(drawn)
            assert drawn.size == 0 or drawn.max() < n, \
                f"Bootstrap indices exceed {n=}; is x the training data of the forest?"
            trees.append(TreeStructure(
                split_varids=tree.feature.astype(np.int64),
                split_values=tree.threshold.astype(float),
                #* sklearn marks missing children with -1
                left_children=np.where(tree.children_left < 0, 0, tree.children_left).astype(np.int64),
                right_children=np.where(tree.children_right < 0, 0, tree.children_right).astype(np.int64),
                inbag_counts=np.bincount(drawn, minlength=n),
            ))
        log.info(f"Wrapped {type(model).__name__} with {len(trees)} trees "
                 f"({len(levels)} categorical of {x.shape[1]} variables).")
        return cls(trees, n, list(x.columns), levels, leaf_fn=model.apply)
