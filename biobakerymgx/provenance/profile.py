"""Timing of pipeline stages during runs.
"""
import contextlib
import time

from biobakerymgx.log import logger

@contextlib.contextmanager
def report(label, dirs=None):
    """Log timing information for a named pipeline stage."""
    logger.info("Timing: %s" % label)
    start = time.time()
    yield None
    logger.debug("Timing: %s finished in %.1fs" % (label, time.time() - start))
