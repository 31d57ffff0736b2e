from enum import Enum
from typing import *
import numpy as np
import pandas as pd

from forde.utils import ConfigurationError


class ColumnKind(Enum):
    CONTINUOUS = "continuous"
    CATEGORICAL = "categorical"

class SamplingPolicy(Enum):
    ALL = "all"
    OOB = "oob"
    INBAG = "inbag"

    @property
    def label(self) -> str:
        return {"all": "All-rows", "oob": "Out-of-bag", "inbag": "In-bag"}[self.value]

    @classmethod
    def parse(cls, value: Union[bool, str, 'SamplingPolicy']) -> 'SamplingPolicy':
        """Accept the policy itself, its name, or the boolean shorthand (True -> oob)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, (bool, np.bool_)):
            return cls.OOB if value else cls.ALL
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"oob must be a boolean or one of {[p.value for p in cls]}, got {value!r}.")

class Family(Enum):
    TRUNCNORM = "truncnorm"
    UNIF = "unif"
    #* Categorical variables only
    MULTINOM = "multinom"

    @classmethod
    def parse_continuous(cls, value: Union[str, 'Family']) -> 'Family':
        family = value if isinstance(value, cls) else None
        if family is None:
            try:
                family = cls(str(value).lower())
            except ValueError:
                family = None
        if family not in (cls.TRUNCNORM, cls.UNIF):
            raise ConfigurationError(
                f"family not recognized: {value!r}. Supported: {[cls.TRUNCNORM.value, cls.UNIF.value]}.")
        return family

class FiniteBounds(Enum):
    NO = "no"
    LOCAL = "local"
    GLOBAL = "global"

    @classmethod
    def parse(cls, value: Union[str, 'FiniteBounds']) -> 'FiniteBounds':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"finite_bounds must be one of {[b.value for b in cls]}, got {value!r}.")


def column_kind(series: pd.Series) -> ColumnKind:
    """Numeric columns are continuous; everything else (incl. booleans) is categorical."""
    if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
        return ColumnKind.CONTINUOUS
    return ColumnKind.CATEGORICAL
