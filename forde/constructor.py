from dataclasses import dataclass
from typing import *
import pandas as pd

from forde.forest import data_levels
from forde.kinds import ColumnKind, Family, column_kind
from forde.utils import log, DataError, count_decimals, has_infinite


@dataclass(frozen=True)
class VariableMeta:
    name: str
    kind: ColumnKind
    #* Original dtype name, used to restore synthetic data
    dtype: str
    family: Family
    #* Max number of decimal digits observed (continuous only)
    decimals: Optional[int] = None


class Constructor(object):
    """Prepares the estimation dataset once: column kinds, levels and precision."""
    def __init__(self, x: Any) -> None:
        self.input_class: str = type(x).__name__
        df = x.copy() if isinstance(x, pd.DataFrame) else pd.DataFrame(x)
        assert df.columns.is_unique, f"Every column must have a unique name, got {list(df.columns)}"
        self.df: pd.DataFrame = df.reset_index(drop=True)
        self.variables: List[str] = list(self.df.columns)

        self.kinds: Dict[str, ColumnKind] = {
            name: column_kind(self.df[name]) for name in self.variables}
        self.continuous: List[str] = [
            name for name in self.variables if self.kinds[name] == ColumnKind.CONTINUOUS]
        self.categoricals: List[str] = [
            name for name in self.variables if self.kinds[name] == ColumnKind.CATEGORICAL]

        for name in self.continuous:
            if has_infinite(self.df[name]):
                raise DataError(f"x contains infinite values (column {name}).")
            if self.df[name].isna().all():
                raise DataError(f"Continuous column {name} has no observed values.")
            self.df[name] = self.df[name].astype(float)

        #* Levels as they appear in the data (the forest may know more)
        self.levels: Dict[str, List[Any]] = {
            name: data_levels(self.df[name]) for name in self.categoricals}
        self.decimals: Dict[str, int] = {
            name: count_decimals(x[name] if isinstance(x, pd.DataFrame) else self.df[name])
            for name in self.continuous}
        self.dtypes: Dict[str, str] = {
            name: str(x[name].dtype) if isinstance(x, pd.DataFrame) else str(self.df[name].dtype)
            for name in self.variables}
        log.info(f"{self.df.shape[0]} rows, {len(self.continuous)} continuous and "
                 f"{len(self.categoricals)} categorical variables.")

    @property
    def nrows(self) -> int:
        return self.df.shape[0]

    def global_extrema(self) -> Tuple[pd.Series, pd.Series]:
        """Empirical min/max of every continuous variable over the whole dataset."""
        cnt = self.df[self.continuous]
        return cnt.min(skipna=True), cnt.max(skipna=True)

    def variable_meta(self, family: Family) -> List[VariableMeta]:
        metas = []
        for name in self.variables:
            if self.kinds[name] == ColumnKind.CATEGORICAL:
                metas.append(VariableMeta(name, ColumnKind.CATEGORICAL, self.dtypes[name], Family.MULTINOM))
            else:
                metas.append(VariableMeta(name, ColumnKind.CONTINUOUS, self.dtypes[name], family,
                                          self.decimals[name]))
        return metas

    def levels_frame(self) -> pd.DataFrame:
        rows = [(name, level) for name in self.categoricals for level in self.levels[name]]
        return pd.DataFrame(rows, columns=['variable', 'val'])
