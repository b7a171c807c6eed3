"""Small helpers shared across pipeline steps.
"""
import contextlib
import functools
import itertools
import os
import shutil
import time

FASTQ_COMPRESSION = (".gz", ".bz2")


def map_wrap(f):
    """Wrap a task so it can be handed to parallel map functions by name.
    """
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        return f(*args, **kwargs)
    return wrapper

def to_single_data(item):
    """Unwrap a `[data]` work item into the sample dictionary.
    """
    if isinstance(item, (list, tuple)) and len(item) == 1:
        item = item[0]
    assert isinstance(item, dict), item
    return item

def unpack_worlds(items):
    """Flatten a list of `[data]` work items into sample dictionaries.
    """
    return [to_single_data(x) for x in items]

def safe_makedir(dname, retries=5):
    """Create a directory if missing, tolerating other workers creating it concurrently.
    """
    if not dname:
        return dname
    for attempt in range(retries + 1):
        try:
            os.makedirs(dname, exist_ok=True)
            break
        except OSError:
            if attempt == retries:
                raise
            time.sleep(2)
    return dname

@contextlib.contextmanager
def chdir(new_dir):
    """Work inside new_dir, returning to the current directory afterwards.
    """
    prev_dir = os.getcwd()
    os.chdir(safe_makedir(new_dir))
    try:
        yield new_dir
    finally:
        os.chdir(prev_dir)

def file_exists(fname):
    """True for an existing file with content; empty outputs count as missing.
    """
    try:
        return bool(fname) and os.path.getsize(fname) > 0
    except OSError:
        return False

def get_size(path):
    """Size in bytes of a file, or of everything below a directory.
    """
    if not os.path.isdir(path):
        return os.path.getsize(path)
    total = 0
    for root, _, files in os.walk(path):
        total += sum(os.path.getsize(os.path.join(root, f)) for f in files)
    return total

def add_full_path(dirname, basedir=None):
    if not os.path.isabs(dirname):
        dirname = os.path.join(basedir or os.getcwd(), dirname)
    return os.path.normpath(dirname)

def splitext_plus(fname):
    """Split off an extension, keeping compression suffixes: reads.fastq.gz -> .fastq.gz
    """
    base, ext = os.path.splitext(fname)
    if ext in FASTQ_COMPRESSION:
        base, inner = os.path.splitext(base)
        ext = inner + ext
    return base, ext

def remove_safe(path):
    """Remove a file or directory tree, ignoring anything already gone.
    """
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path, ignore_errors=True)
    elif os.path.lexists(path):
        try:
            os.remove(path)
        except OSError:
            pass

def is_gzipped(fname):
    return fname.endswith((".gz", ".gzip"))

def partition(pred, iterable, tolist=False):
    """Split entries into those failing and those passing pred.
    """
    fails, passes = itertools.tee(iterable)
    fails = itertools.filterfalse(pred, fails)
    passes = filter(pred, passes)
    if tolist:
        return list(fails), list(passes)
    return fails, passes

def flatten(items):
    """Yield the leaves of arbitrarily nested lists and tuples.
    """
    for item in items:
        if isinstance(item, (list, tuple)):
            yield from flatten(item)
        else:
            yield item

def which(program, env=None):
    """Full path to an executable on the PATH, or None when not found.
    """
    if os.path.dirname(program):
        return program if _is_exe(program) else None
    path = (env if env is not None else os.environ).get("PATH", "")
    for d in path.split(os.pathsep):
        candidate = os.path.join(d, program)
        if _is_exe(candidate):
            return candidate
    return None

def _is_exe(fpath):
    return os.path.isfile(fpath) and os.access(fpath, os.X_OK)
