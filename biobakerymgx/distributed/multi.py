"""Run tasks in parallel on a single machine using multiple cores.
"""
import functools

import joblib

from biobakerymgx.log import logger, setup_local_logging
from biobakerymgx.pipeline import config_utils

def runner(parallel, config):
    """Run functions, provided by string name, on multiple cores on the current machine.
    """
    def run_parallel(fn_name, items):
        items = [x for x in items if x is not None]
        if len(items) == 0:
            return []
        fn, fn_name = (fn_name, fn_name.__name__) if callable(fn_name) else (get_fn(fn_name, parallel), fn_name)
        logger.info("multiprocessing: %s" % fn_name)
        return run_multicore(fn, items, config, parallel=parallel)
    return run_parallel

def get_fn(fn_name, parallel):
    taskmod = "multitasks"
    imodule = parallel.get("module", "biobakerymgx.distributed")
    return getattr(__import__("{base}.{taskmod}".format(base=imodule, taskmod=taskmod),
                              fromlist=[taskmod]),
                   fn_name)

def multiprocessing_aware_logging(f):
    """Ensure worker processes send log messages through the multiprocessing queue.
    """
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        config = None
        for arg in args:
            if config_utils.is_std_config_arg(arg):
                config = arg
                break
            elif config_utils.is_nested_config_arg(arg):
                config = arg["config"]
                break
            elif isinstance(arg, (list, tuple)) and arg and config_utils.is_nested_config_arg(arg[0]):
                config = arg[0]["config"]
                break
        assert config, "Could not find config dictionary in function arguments."
        if config.get("parallel", {}).get("num_jobs", 1) > 1:
            handler = setup_local_logging(config, config["parallel"])
        else:
            handler = None
        try:
            out = f(*args, **kwargs)
        finally:
            if handler and hasattr(handler, "pop_thread"):
                handler.pop_thread()
        return out
    return wrapper

def calculate(parallel, items):
    """Split available cores between jobs, giving each item at least one core.
    """
    parallel = dict(parallel)
    cores = max(int(parallel.get("cores", 1)), 1)
    num_jobs = max(min(cores, len(items)), 1)
    parallel["num_jobs"] = num_jobs
    parallel["cores_per_job"] = max(cores // num_jobs, 1)
    return parallel

def run_multicore(fn, items, config, parallel=None):
    """Run the function using multiple cores on the given items to process.

    Each item is a list of arguments; results are lists of outputs which get
    concatenated in item order.
    """
    if len(items) == 0:
        return []
    if parallel is None:
        parallel = {"type": "local", "cores": config["algorithm"].get("num_cores", 1)}
    parallel = calculate(parallel, items)
    items = [config_utils.add_cores_to_config(x, parallel["cores_per_job"]) for x in items]
    items = [_add_parallel(x, parallel) for x in items]
    out = []
    if parallel["num_jobs"] == 1:
        results = (fn(*x) for x in items)
    else:
        results = joblib.Parallel(parallel["num_jobs"], batch_size=1,
                                  backend="multiprocessing")(joblib.delayed(fn)(*x) for x in items)
    for data in results:
        if data:
            out.extend(data)
    return out

def _add_parallel(args, parallel):
    """Record the parallel setup in the configuration so workers can set up logging.
    """
    def _update(config):
        config["parallel"] = {k: v for k, v in parallel.items()
                              if k in set(["type", "cores", "num_jobs", "cores_per_job"])}
        return config
    return config_utils._update_config(args, _update, allow_missing=True)
