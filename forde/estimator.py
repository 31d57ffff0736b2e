import warnings
from time import perf_counter
from typing import *
import pandas as pd
from joblib import Parallel, delayed
from ml_collections import config_dict
from tqdm import tqdm

from forde.categorical import estimate_categorical, empty_categorical
from forde.circuit import ProbabilisticCircuit, assemble
from forde.config import get_config
from forde.constructor import Constructor
from forde.continuous import estimate_continuous, empty_continuous
from forde.coverage import check_sample_size, eligible_rows, index_leaves, tree_leaves
from forde.forest import Forest
from forde.kinds import Family, FiniteBounds, SamplingPolicy
from forde.tree import initial_bounds
from forde.utils import log, ConfigurationError


def per_tree(
    fn: Callable[..., pd.DataFrame],
    args: Iterable[tuple],
    parallel: bool,
    cfg: config_dict.ConfigDict,
    desc: str,
) -> List[pd.DataFrame]:
    """Map ``fn`` over per-tree argument tuples, in parallel or sequentially."""
    if parallel:
        return Parallel(n_jobs=cfg.N_JOBS, backend=cfg.BACKEND)(
            delayed(fn)(*arg) for arg in args)
    return [fn(*arg) for arg in tqdm(args, desc=desc, disable=not cfg.PROGRESS)]

def forde(
    forest: Forest,
    x: Any,
    oob: Optional[Union[bool, str]] = None,
    family: Optional[str] = None,
    finite_bounds: Optional[str] = None,
    alpha: Optional[float] = None,
    epsilon: Optional[float] = None,
    parallel: Optional[bool] = None,
    config: Optional[config_dict.ConfigDict] = None,
) -> ProbabilisticCircuit:
    """Forests for density estimation.

    Uses a trained forest to estimate leaf coverage and per-leaf
    distribution parameters: truncated normal or uniform for continuous
    variables, multinomial for categorical ones. Arguments left as ``None``
    take their value from ``config`` (see ``forde.config.get_config``).

    Args:
        forest (Forest): The trained forest, e.g. ``Forest.from_sklearn(rf, x)``.
        x: Data for estimating parameters. Must be the forest's training
            data unless ``oob`` is ``'all'``.
        oob: ``False``/``'all'`` uses every row, ``True``/``'oob'`` only the
            out-of-bag rows of each tree, ``'inbag'`` only the in-bag rows.
        family: ``'truncnorm'`` or ``'unif'`` for continuous variables.
        finite_bounds: ``'no'``, ``'local'`` (leaf extrema) or ``'global'``
            (data extrema) replacement of infinite bounds.
        alpha: Laplace pseudocount for categorical variables.
        epsilon: Slack on empirical bounds; the gap between lower and upper
            bound grows by a factor of ``1 + epsilon``.
        parallel: Map over trees with joblib workers.
        config: Overrides the default configuration.

    Returns:
        ProbabilisticCircuit: continuous and categorical parameters, leaf
        index with coverage, variable metadata, data levels and input class.
    """
    cfg = config if config is not None else get_config()
    policy = SamplingPolicy.parse(cfg.OOB if oob is None else oob)
    family = Family.parse_continuous(cfg.FAMILY if family is None else family)
    finite_bounds = FiniteBounds.parse(cfg.FINITE_BOUNDS if finite_bounds is None else finite_bounds)
    alpha = float(cfg.ALPHA if alpha is None else alpha)
    epsilon = float(cfg.EPSILON if epsilon is None else epsilon)
    parallel = bool(cfg.PARALLEL if parallel is None else parallel)

    if family == Family.UNIF and finite_bounds == FiniteBounds.NO:
        #* Uniform densities need finite support
        finite_bounds = FiniteBounds.LOCAL
        msg = ('Density estimation with uniform distribution requires finite bounds. '
               'Resetting finite_bounds to "local".')
        log.warning(msg)
        warnings.warn(msg, UserWarning)
    if alpha < 0:
        raise ConfigurationError(f"alpha must be nonnegative, got {alpha}.")
    if epsilon < 0:
        raise ConfigurationError(f"epsilon must be nonnegative, got {epsilon}.")

    constructor = Constructor(x)
    n = constructor.nrows
    check_sample_size(forest, policy, n)
    if set(constructor.variables) != set(forest.variables) \
            or len(constructor.variables) != len(forest.variables):
        raise ConfigurationError(
            f"Columns of x {constructor.variables} don't match the forest's variables {forest.variables}.")
    missing_levels = [name for name in constructor.categoricals if name not in forest.covariate_levels]
    if missing_levels:
        raise ConfigurationError(f"Forest has no levels for categorical variables {missing_levels}.")

    start = perf_counter()
    df = constructor.df[forest.variables]
    variables = forest.variables
    continuous = [name for name in variables if name in constructor.continuous]
    categoricals = [name for name in variables if name in constructor.categoricals]
    codes = forest.encode(df)
    pred = forest.terminal_nodes(df)
    keep = eligible_rows(forest, policy, n)
    log.info(f"Estimating {forest.num_trees} trees on {n} rows ({policy.value=}, {family.value=}, "
             f"{finite_bounds.value=}, {alpha=}, {epsilon=}).")

    #* Leaf bounds and coverage
    global_min, global_max = constructor.global_extrema()
    lower, upper = initial_bounds(variables, continuous, finite_bounds, epsilon, global_min, global_max)
    bnds = per_tree(
        tree_leaves,
        [(b, tree, pred[:, b], keep[:, b], variables, lower, upper)
         for b, tree in enumerate(forest.trees)],
        parallel, cfg, "Leaf bounds")
    bnds = index_leaves(pd.concat(bnds, ignore_index=True))
    tree_bnds = {b: group for b, group in bnds.groupby('tree', sort=False)}
    empty_bnds = bnds.iloc[:0]
    log.info(f"Indexed {bnds['f_idx'].nunique()} leaves.")

    #* Continuous parameters
    if continuous:
        cnt_idx = [variables.index(name) for name in continuous]
        cnt_values = codes[:, cnt_idx]
        psi_cnt = per_tree(
            estimate_continuous,
            [(cnt_values, continuous, pred[:, b], keep[:, b], tree_bnds.get(b, empty_bnds),
              family, finite_bounds, epsilon, global_min, global_max, cfg.MIN_RANGE)
             for b in range(forest.num_trees)],
            parallel, cfg, "Continuous parameters")
        psi_cnt = pd.concat(psi_cnt, ignore_index=True)
    else:
        psi_cnt = empty_continuous(family)

    #* Categorical parameters
    if categoricals:
        cat_idx = [variables.index(name) for name in categoricals]
        cat_codes = codes[:, cat_idx]
        levels_rf = {name: forest.covariate_levels[name] for name in categoricals}
        psi_cat = per_tree(
            estimate_categorical,
            [(cat_codes, categoricals, pred[:, b], keep[:, b], tree_bnds.get(b, empty_bnds),
              levels_rf, alpha)
             for b in range(forest.num_trees)],
            parallel, cfg, "Categorical parameters")
        psi_cat = pd.concat(psi_cat, ignore_index=True)
    else:
        psi_cat = empty_categorical()
    log.info(f"Estimated {psi_cnt.shape[0]} continuous and {psi_cat.shape[0]} categorical "
             f"parameter rows in {perf_counter() - start:.2f}s.")

    return assemble(
        psi_cnt, psi_cat, bnds,
        constructor.variable_meta(family),
        constructor.levels_frame(),
        constructor.input_class,
    )
