"""Generalized running of parallel tasks.
"""
import contextlib
import os

from biobakerymgx import utils
from biobakerymgx.distributed import multi

@contextlib.contextmanager
def start(parallel, items, config, dirs=None, name=None):
    """Start local multicore processing for a pipeline stage.

    Returns a function used to process items in parallel with a given function.

    A checkpoint file, written when a named stage finishes, records completed
    stages in the work directory.
    """
    if name and dirs:
        checkpoint_dir = utils.safe_makedir(os.path.join(dirs["work"], "checkpoints_parallel"))
        checkpoint_file = os.path.join(checkpoint_dir, "%s.done" % name)
    else:
        checkpoint_file = None
    parallel = multi.calculate(parallel, [x for x in items if x is not None] if items else [])
    yield multi.runner(parallel, config)
    if checkpoint_file:
        with open(checkpoint_file, "w") as out_handle:
            out_handle.write("done\n")
