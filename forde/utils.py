import logging
import sys
from typing import *
import numpy as np
import pandas as pd


class FlushStreamHandler(logging.StreamHandler):
    def emit(self, record):
        super().emit(record)
        self.flush()

log = logging.getLogger("forde")
log.setLevel(logging.INFO)
log.propagate = False  # Don't send to root

handler = FlushStreamHandler(stream=sys.stdout)
formatter = logging.Formatter(
    "[%(name)s @ %(asctime)s] %(levelname)-7s | %(message)s", 
    datefmt="%H:%M:%S"
)
handler.setFormatter(formatter)
log.addHandler(handler)


class ConfigurationError(ValueError):
    """Raised when the estimation settings are inconsistent with the forest or the data."""
    pass

class DataError(ValueError):
    """Raised when the estimation data cannot be represented by the circuit."""
    pass


def count_decimals(series: pd.Series) -> int:
    """Maximum number of decimal digits among the observed values of a numeric column."""
    if pd.api.types.is_integer_dtype(series) or pd.api.types.is_bool_dtype(series):
        return 0
    values = pd.unique(series.dropna())
    ndigits = 0
    for value in values:
        #* Positional, 15 significant digits: 1e-05 -> '0.00001', 0.1 + 0.2 -> '0.3'
        text = np.format_float_positional(float(value), precision=15, fractional=False, trim='-')
        if '.' in text:
            ndigits = max(ndigits, len(text.split('.')[-1]))
    return ndigits

def has_infinite(series: pd.Series) -> bool:
    values = pd.to_numeric(series, errors='coerce').to_numpy(dtype=float)
    return bool(np.isinf(values).any())
