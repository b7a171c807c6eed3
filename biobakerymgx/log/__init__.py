"""Logging for pipeline runs, with separate channels for tool command lines and output.

Messages go to `<log_dir>/biobakerymgx.log` (INFO), `biobakerymgx-debug.log`
and `biobakerymgx-commands.log`, plus stderr. Multicore runs pass records from
worker processes through a shared queue to the handlers of the main process.
"""
import multiprocessing
import os
import sys

import logbook
import logbook.queues

from biobakerymgx import utils

LOG_NAME = "biobakerymgx"
DEFAULT_LOG_DIR = "log"
CL_CHANNEL = LOG_NAME + "-commands"
STDOUT_CHANNEL = LOG_NAME + "-stdout"

logger = logbook.Logger(LOG_NAME)
logger_cl = logbook.Logger(CL_CHANNEL)
logger_stdout = logbook.Logger(STDOUT_CHANNEL)
mpq = multiprocessing.Queue(-1)

def get_log_dir(config):
    return config.get("log_dir", DEFAULT_LOG_DIR)

def _channel_filter(*channels, **kwargs):
    exclude = kwargs.get("exclude", False)
    def check(record, handler):
        return (record.channel in channels) != exclude
    return check

class LogSetup(logbook.NestedSetup):
    """Handler stack which also closes its file handlers.
    """
    def close(self):
        for obj in self.objects:
            if hasattr(obj, "close"):
                obj.close()

class QueueSubscriber(logbook.queues.MultiProcessingSubscriber):
    """Keep collecting worker messages when a receive is interrupted by a signal.
    """
    def recv(self, timeout=None):
        try:
            return super(QueueSubscriber, self).recv(timeout)
        except InterruptedError:
            return None

def _handlers(config):
    logbook.set_datetime_format("utc")
    fmt = "{record.message}"
    if config.get("include_time", True):
        fmt = "[{record.time:%Y-%m-%dT%H:%MZ}] " + fmt
    not_tool = _channel_filter(CL_CHANNEL, STDOUT_CHANNEL, exclude=True)
    handlers = [logbook.NullHandler()]
    log_dir = get_log_dir(config)
    if log_dir:
        utils.safe_makedir(log_dir)
        for suffix, level, bubble, check in [("", "INFO", False, not_tool),
                                             ("-debug", "DEBUG", True, not_tool),
                                             ("-commands", "DEBUG", False, _channel_filter(CL_CHANNEL))]:
            handlers.append(logbook.FileHandler(os.path.join(log_dir, "%s%s.log" % (LOG_NAME, suffix)),
                                                format_string=fmt, level=level, bubble=bubble,
                                                filter=check))
    handlers.append(logbook.StreamHandler(sys.stdout, format_string="{record.message}",
                                          level="DEBUG", filter=_channel_filter(STDOUT_CHANNEL)))
    handlers.append(logbook.StreamHandler(sys.stderr, format_string=fmt, bubble=True,
                                          level=config.get("log_level", "INFO"), filter=not_tool))
    return LogSetup(handlers)

def create_base_logger(config=None, parallel=None):
    """Start collecting messages from worker processes for multicore runs.
    """
    parallel = parallel or {}
    if parallel.get("cores", 1) > 1:
        QueueSubscriber(mpq).dispatch_in_background(_handlers(config or {}))
    return parallel

def setup_local_logging(config=None, parallel=None):
    """Push handlers for the current thread: the queue in workers, files otherwise.
    """
    if (parallel or {}).get("cores", 1) > 1:
        handler = logbook.queues.MultiProcessingHandler(mpq)
    else:
        handler = _handlers(config or {})
    handler.push_thread()
    return handler
