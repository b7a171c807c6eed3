"""Parsing of command line arguments into parallel inputs.
"""

def to_parallel(args, module="biobakerymgx.distributed"):
    """Convert input arguments into a parallel dictionary for passing to processing.
    """
    ptype, cores = _get_cores_and_type(args.numcores, getattr(args, "paralleltype", None))
    parallel = {"type": ptype, "cores": cores, "module": module}
    return parallel

def _get_cores_and_type(numcores, paralleltype):
    """Return core and parallelization approach from command line providing sane defaults.
    """
    if paralleltype is None:
        paralleltype = "local"
    if not numcores or int(numcores) < 1:
        numcores = 1
    return paralleltype, int(numcores)
