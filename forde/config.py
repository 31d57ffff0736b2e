from ml_collections import config_dict


def get_config():
    default_config = config_dict.ConfigDict()
    
    #* Rows used for estimation: 'all', 'oob' (out-of-bag) or 'inbag'
    default_config.OOB = 'all'
    #* Family for continuous variables: 'truncnorm' or 'unif'
    default_config.FAMILY = 'truncnorm'
    #* Finite bounds on continuous variables: 'no', 'local' or 'global'
    default_config.FINITE_BOUNDS = 'no'
    #* Laplace pseudocount for categorical variables (0 disables smoothing)
    default_config.ALPHA = 0.0
    #* Slack on empirical bounds, the gap is expanded by a factor of 1 + EPSILON
    default_config.EPSILON = 0.0
    
    '''Execution'''
    default_config.PARALLEL = True
    #* Number of joblib workers (-1 uses all cores)
    default_config.N_JOBS = -1
    default_config.BACKEND = 'loky'
    #* Show tqdm progress bars for sequential per-tree loops
    default_config.PROGRESS = False
    
    #* Smallest pseudo-range substituted for zero-width leaf intervals
    default_config.MIN_RANGE = 1e-12

    return default_config
