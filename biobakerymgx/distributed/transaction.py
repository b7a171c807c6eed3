"""Write outputs through temporary locations so interrupted steps can be rerun.

Files are produced inside a scratch directory and only moved next to the
final outputs once the wrapped step finishes, so a partially written fastq,
profile or report never looks complete on restart.
"""
import contextlib
import os
import shutil
import tempfile

import toolz as tz

from biobakerymgx import utils
from biobakerymgx.log import logger

TX_DIRNAME = "bbmgxtx"
INCOMPLETE_EXT = ".bbmgxtmp"


def scratch_base(data, base_dir):
    """Directory holding transaction scratch space for a sample or configuration.

    Prefers `resources: {tmp: {dir: }}` from the configuration, otherwise a
    `bbmgxtx` directory inside base_dir.
    """
    for keys in (["config", "resources", "tmp", "dir"], ["resources", "tmp", "dir"]):
        tmp_dir = tz.get_in(keys, data) if isinstance(data, dict) else None
        if tmp_dir:
            return utils.add_full_path(tmp_dir)
    return utils.add_full_path(os.path.join(base_dir, TX_DIRNAME))


@contextlib.contextmanager
def tx_tmpdir(data=None, base_dir=None, remove=True):
    """Provide a fresh scratch directory, cleaned up on exit unless remove is False.
    """
    base = utils.safe_makedir(scratch_base(data, base_dir or os.getcwd()))
    tmp_dir = tempfile.mkdtemp(dir=base)
    try:
        yield tmp_dir
    finally:
        if remove:
            utils.remove_safe(tmp_dir)


@contextlib.contextmanager
def file_transaction(*data_and_files):
    """Yield temporary names for output files, moving them into place on success.

    The first argument may be the per-sample data dictionary or the
    configuration, used to find the scratch directory. Yields a single path for
    one output, otherwise a tuple in the order given. Outputs the wrapped step
    did not create are left untouched.
    """
    data, out_files = _split_args(data_and_files)
    with tx_tmpdir(data) as tmp_dir:
        tx_files = [os.path.join(tmp_dir, os.path.basename(f)) for f in out_files]
        yield tx_files[0] if len(tx_files) == 1 else tuple(tx_files)
        for tx_file, out_file in zip(tx_files, out_files):
            if os.path.exists(tx_file):
                _finalize(tx_file, out_file)


def _split_args(data_and_files):
    if data_and_files and isinstance(data_and_files[0], dict):
        data, files = data_and_files[0], data_and_files[1:]
    else:
        data, files = None, data_and_files
    out_files = [f for f in utils.flatten(files) if f]
    if not out_files:
        raise ValueError("file_transaction needs at least one output file")
    return data, out_files


def _finalize(tx_file, out_file):
    """Move a finished output into place, checking nothing was lost on the way.

    A `.bbmgxtmp` marker sits beside the destination during the move; finding
    one later means the move was interrupted.
    """
    utils.safe_makedir(os.path.dirname(out_file))
    if os.path.isdir(out_file) and os.path.isdir(tx_file):
        utils.remove_safe(out_file)
    marker = out_file + INCOMPLETE_EXT
    open(marker, "w").close()
    expected = utils.get_size(tx_file)
    shutil.move(tx_file, out_file)
    found = utils.get_size(out_file)
    if expected != found:
        raise OSError("Incomplete move of %s to %s: expected %s bytes, found %s" %
                      (tx_file, out_file, expected, found))
    utils.remove_safe(marker)
    logger.debug("Finished writing %s" % out_file)
