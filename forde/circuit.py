from dataclasses import dataclass
from typing import *
import pandas as pd
from rich import print as pprint
from rich.table import Table

from forde.constructor import VariableMeta


@dataclass(frozen=True)
class ProbabilisticCircuit:
    """Leaf coverage and per-leaf distribution parameters of a forest.

    Attributes:
        cnt (pd.DataFrame): Continuous parameters, one row per (f_idx, variable).
        cat (pd.DataFrame): Categorical parameters, one row per (f_idx, variable, val).
        forest (pd.DataFrame): ``f_idx, tree, leaf, cvg``.
        meta (pd.DataFrame): ``variable, class, family, decimals``.
        levels (pd.DataFrame): ``variable, val`` levels of the categorical columns in the data.
        input_class (str): Type name of the estimation data.
    """
    cnt: pd.DataFrame
    cat: pd.DataFrame
    forest: pd.DataFrame
    meta: pd.DataFrame
    levels: pd.DataFrame
    input_class: str

    @property
    def num_leaves(self) -> int:
        return self.forest.shape[0]

    def summary(self) -> None:
        table = Table(title=f"Probabilistic circuit ({self.num_leaves} leaves, "
                            f"{self.forest['tree'].nunique()} trees)")
        for col in self.meta.columns:
            table.add_column(col)
        for row in self.meta.itertuples(index=False):
            table.add_row(*[str(v) for v in row])
        pprint(table)


def meta_frame(metas: List[VariableMeta]) -> pd.DataFrame:
    return pd.DataFrame({
        'variable': [m.name for m in metas],
        'class': [m.dtype for m in metas],
        'family': [m.family.value for m in metas],
        'decimals': pd.array([m.decimals for m in metas], dtype='Int64'),
    })

def assemble(
    cnt: pd.DataFrame,
    cat: pd.DataFrame,
    bnds: pd.DataFrame,
    metas: List[VariableMeta],
    levels: pd.DataFrame,
    input_class: str,
) -> ProbabilisticCircuit:
    forest = bnds[['f_idx', 'tree', 'leaf', 'cvg']].drop_duplicates(ignore_index=True)
    return ProbabilisticCircuit(
        cnt=cnt.sort_values(['f_idx', 'variable'], kind='mergesort').reset_index(drop=True),
        cat=cat.sort_values(['f_idx', 'variable'], kind='mergesort').reset_index(drop=True),
        forest=forest.sort_values('f_idx').reset_index(drop=True),
        meta=meta_frame(metas),
        levels=levels,
        input_class=input_class,
    )
