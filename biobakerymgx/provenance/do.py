"""Run external tools, logging command lines and their output.
"""
import collections
import os
import subprocess

from biobakerymgx import utils
from biobakerymgx.log import logger, logger_cl, logger_stdout
from biobakerymgx.pipeline import datadict as dd

# lines of tool output kept for error messages
TAIL_LINES = 100
PIPE_MARKERS = (" | ", "<(", ">(")


class ToolInvocationFailure(subprocess.CalledProcessError):
    """An external tool exited with a non-zero status.

    `output` holds the command line followed by the last lines the tool wrote.
    """
    def __init__(self, returncode, cmd, output=None, descr=None):
        super(ToolInvocationFailure, self).__init__(returncode, cmd, output)
        self.descr = descr

    def __str__(self):
        msg = "%s failed with exit status %s" % (self.descr or "Command", self.returncode)
        if self.output:
            msg += "\n%s" % self.output
        return msg


def run(cmd, descr=None, data=None, checks=None, log_error=True,
        log_stdout=False, env=None):
    """Run a command given as an argument list or a shell string.

    Tool output is logged at debug level, or to the stdout channel with
    log_stdout. checks are callables validating outputs once the tool exits.
    """
    descr = _descr_str(descr, data) if descr else None
    if descr:
        logger.debug(descr)
    logger_cl.debug(cmd if isinstance(cmd, str) else " ".join(str(x) for x in cmd))
    try:
        _do_run(cmd, log_stdout, env, descr)
        for check in checks or []:
            if not check():
                raise IOError("External command failed: %s" % (descr or cmd))
    except (ToolInvocationFailure, OSError):
        if log_error:
            logger.exception()
        raise

def _descr_str(descr, data):
    """Name the sample being processed in a step description.
    """
    name = dd.get_sample_name(data) if data else None
    return "%s : %s" % (descr, name) if name else descr

def find_bash():
    for bash in [utils.which("bash"), "/bin/bash", "/usr/bin/bash", "/usr/local/bin/bash"]:
        if bash and os.path.exists(bash):
            return bash
    raise IOError("Could not find bash, needed to run piped commands")

def _popen_args(cmd):
    """Shell strings run through the shell; pipes use bash with pipefail so
    failures in the middle of a pipe are not hidden.
    """
    if not isinstance(cmd, str):
        return [str(x) for x in cmd], {"shell": False}
    if any(m in cmd for m in PIPE_MARKERS):
        return "set -o pipefail; " + cmd, {"shell": True, "executable": find_bash()}
    return cmd, {"shell": True}

def _do_run(cmd, log_stdout=False, env=None, descr=None):
    cmd, kwargs = _popen_args(cmd)
    log_line = logger_stdout.debug if log_stdout else logger.debug
    tail = collections.deque(maxlen=TAIL_LINES)
    proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                            close_fds=True, env=env, **kwargs)
    with proc.stdout:
        for raw in iter(proc.stdout.readline, b""):
            line = raw.decode("utf-8", errors="replace")
            if line.strip():
                tail.append(line)
                log_line(line.rstrip())
    exitcode = proc.wait()
    if exitcode != 0:
        shown = cmd if isinstance(cmd, str) else " ".join(cmd)
        raise ToolInvocationFailure(exitcode, cmd, "%s\n%s" % (shown, "".join(tail)), descr)

# checks for validating run completed successfully

def file_nonempty(target_file):
    def check():
        ok = utils.file_exists(target_file)
        if not ok:
            logger.info("Did not find non-empty output file %s" % target_file)
        return ok
    return check

def file_exists(target_file):
    def check():
        ok = os.path.exists(target_file)
        if not ok:
            logger.info("Did not find output file %s" % target_file)
        return ok
    return check
