"""Summarize finished runs and notify users by email or chat webhook.
"""
import datetime
import socket

import logbook
import requests
import toolz as tz

from biobakerymgx import utils
from biobakerymgx.log import LOG_NAME, logger
from biobakerymgx.pipeline import datadict as dd
from biobakerymgx.provenance import programs

notify_logger = logbook.Logger(LOG_NAME + "-notify")

class HtmlMailHandler(logbook.MailHandler):
    """Send the formatted record as an HTML email.
    """
    def message_from_record(self, record, suppressed):
        msg = super(HtmlMailHandler, self).message_from_record(record, suppressed)
        msg.set_type("text/html")
        return msg

def summarize(samples, config, start, error=None):
    """Build a summary of a pipeline run, successful or not.

    start is the datetime the run began.
    """
    end = datetime.datetime.now()
    names = []
    for data in dd.sample_data_iterator(samples or []):
        name = dd.get_sample_name(data)
        if name and name not in names:
            names.append(name)
    return {"pipeline": programs.PIPELINE_NAME,
            "version": programs.pipeline_version(),
            "success": error is None,
            "status": "success" if error is None else "failed",
            "start": start.isoformat(),
            "complete": end.isoformat(),
            "duration": str(end - start).split(".")[0],
            "samples": names,
            "outdir": utils.add_full_path(config.get("outdir", ".")),
            "command_line": config.get("command_line", ""),
            "hostname": socket.gethostname(),
            "error": str(error) if error is not None else None}

def _subject(summary):
    if summary["success"]:
        return "[%s] Successful: %s samples" % (summary["pipeline"], len(summary["samples"]))
    return "[%s] FAILED" % summary["pipeline"]

def _plaintext(summary):
    lines = ["Run %s" % summary["status"],
             "Pipeline: %s %s" % (summary["pipeline"], summary["version"]),
             "Started: %s" % summary["start"],
             "Completed: %s" % summary["complete"],
             "Duration: %s" % summary["duration"],
             "Samples: %s" % ", ".join(str(x) for x in summary["samples"]),
             "Output directory: %s" % summary["outdir"]]
    if summary["command_line"]:
        lines.append("Command line: %s" % summary["command_line"])
    if summary["error"]:
        lines += ["", "Error:", summary["error"]]
    return "\n".join(lines)

def _html(summary):
    rows = "".join("<tr><th>%s</th><td>%s</td></tr>" % (k, v) for k, v in
                   [("Status", summary["status"]), ("Version", summary["version"]),
                    ("Started", summary["start"]), ("Completed", summary["complete"]),
                    ("Duration", summary["duration"]),
                    ("Samples", ", ".join(str(x) for x in summary["samples"])),
                    ("Output directory", summary["outdir"]),
                    ("Command line", summary["command_line"])])
    error = "<pre>%s</pre>" % summary["error"] if summary["error"] else ""
    return "<html><body><h3>%s</h3><table>%s</table>%s</body></html>" % (_subject(summary), rows, error)

def _email_recipient(summary, config):
    email = tz.get_in(["notify", "email"], config)
    if not email and not summary["success"]:
        email = tz.get_in(["notify", "email_on_fail"], config)
    return email

def _server_addr(server):
    """SMTP server as a (host, port) pair, defaulting to the local mail server.
    """
    if not server:
        return None
    if isinstance(server, (list, tuple)):
        return (server[0], int(server[1]))
    host, _, port = str(server).partition(":")
    return (host, int(port or 25))

def send_email(summary, config):
    email = _email_recipient(summary, config)
    if not email:
        return False
    plaintext = tz.get_in(["notify", "plaintext_email"], config, False)
    body = _plaintext(summary) if plaintext else _html(summary)
    handler_cls = logbook.MailHandler if plaintext else HtmlMailHandler
    server = tz.get_in(["notify", "smtp_server"], config)
    handler = handler_cls(tz.get_in(["notify", "from"], config, email), [email],
                          format_string=u"Subject: {record.extra[subject]}\n\n{record.message}",
                          server_addr=_server_addr(server),
                          level="INFO", bubble=False)
    with handler.applicationbound():
        notify_logger.info(body, extra={"subject": _subject(summary)})
    logger.info("Sent summary email to %s" % email)
    return True

def send_hook(summary, config):
    hook_url = tz.get_in(["notify", "hook_url"], config)
    if not hook_url:
        return False
    payload = {"text": "%s\n%s" % (_subject(summary), _plaintext(summary)),
               "summary": summary}
    r = requests.post(hook_url, json=payload, headers={"Content-Type": "application/json"},
                      timeout=30)
    r.raise_for_status()
    logger.info("Posted run summary to notification hook")
    return True

def notify(summary, config):
    """Send completion email and chat notifications. Failures are only logged.
    """
    try:
        send_email(summary, config)
    except (OSError, ValueError) as e:
        logger.warning("Could not send summary email: %s" % e)
    try:
        send_hook(summary, config)
    except requests.exceptions.RequestException as e:
        logger.warning("Could not post run summary to notification hook: %s" % e)
