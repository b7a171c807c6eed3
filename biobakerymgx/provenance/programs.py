"""Identify program versions used for analysis, reporting in structured table.

Catalogs the full list of programs used in analysis, enabling reproduction of
results and tracking of provenance in output files. Every tool wrapper returns
version records `{"process": ..., "program": ..., "version": ...}` which are
collated here into a single deduplicated file.
"""
import collections
import contextlib
import os
import subprocess

import yaml

from biobakerymgx import utils
from biobakerymgx.distributed.transaction import file_transaction
from biobakerymgx.log import logger
from biobakerymgx.pipeline import config_utils, version

_cl_progs = {"cat": {"args": "--version", "stdout_flag": "(GNU coreutils)"},
             "fastqc": {"args": "--version", "stdout_flag": "FastQC"},
             "kneaddata": {"args": "--version", "stdout_flag": "kneaddata"},
             "metaphlan": {"args": "--version", "stdout_flag": "MetaPhlAn version"},
             "humann": {"args": "--version", "stdout_flag": "humann"},
             "multiqc": {"args": "--version", "stdout_flag": "version"}}

PIPELINE_NAME = "biobakerymgx"

def _parse_from_stdoutflag(stdout, x):
    for line in stdout:
        if line.find(x) >= 0:
            parts = [p for p in line[line.find(x) + len(x):].split() if p.strip()]
            if parts:
                return parts[0].strip()
    return ""

def _get_cl_version(name, config):
    """Retrieve version of a single commandline program.
    """
    p = _cl_progs.get(name, {})
    try:
        prog = config_utils.get_program(name, config)
    except config_utils.CmdNotFound:
        return ""
    args = p.get("args", "--version")
    cmd = "{prog} {args}".format(prog=prog, args=args)
    subp = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                            shell=True, universal_newlines=True)
    with contextlib.closing(subp.stdout) as stdout:
        if p.get("stdout_flag"):
            v = _parse_from_stdoutflag(stdout, p["stdout_flag"])
        else:
            lines = [l.strip() for l in stdout.read().split("\n") if l.strip()]
            v = lines[-1] if lines else ""
    subp.wait()
    if v.startswith("v"):
        v = v[1:]
    if v.endswith((".", ",")):
        v = v[:-1]
    return v

def get_version(name, config):
    """Retrieve the current version of the given program, preferring a configured value.
    """
    configured = config_utils.get_resources(name, config).get("version")
    if configured:
        return str(configured)
    return _get_cl_version(name, config)

def version_record(process, name, config):
    """Build a version record for a program run by a named pipeline process.
    """
    return {"process": process, "program": name, "version": get_version(name, config)}

def pipeline_version():
    return ("%s-%s" % (version.__version__, version.__git_revision__)
            if version.__git_revision__ else version.__version__)

def collate(records):
    """Deduplicate version records, grouping programs by the process that ran them.

    Returns an ordered mapping of process to {program: version}, sorted by
    process then program name.
    """
    seen = set()
    by_process = collections.defaultdict(dict)
    for r in utils.flatten(records):
        if not r:
            continue
        key = (r["process"], r["program"], str(r.get("version", "")))
        if key in seen:
            continue
        seen.add(key)
        cur = by_process[r["process"]].get(r["program"])
        if cur is not None and cur != key[2]:
            logger.warning("Multiple versions of %s found for %s: %s, %s" %
                           (r["program"], r["process"], cur, key[2]))
        by_process[r["process"]][r["program"]] = key[2]
    out = collections.OrderedDict()
    for process in sorted(by_process):
        out[process] = collections.OrderedDict(sorted(by_process[process].items()))
    out["Workflow"] = collections.OrderedDict([(PIPELINE_NAME, pipeline_version())])
    return out

def _plain(collated):
    return {k: dict(v) for k, v in collated.items()}

def _mqc_content(collated):
    """MultiQC custom content describing the collated software versions.
    """
    rows = ["<dl class=\"dl-horizontal\">"]
    for process, progs in collated.items():
        rows.append("  <dt>%s</dt>" % process)
        for prog, v in progs.items():
            rows.append("  <dd><samp>%s: %s</samp></dd>" % (prog, v))
    rows.append("</dl>")
    return {"id": "software_versions",
            "section_name": "%s Software Versions" % PIPELINE_NAME,
            "section_href": "https://github.com/biobakery",
            "plot_type": "html",
            "description": "are collected at run time from the software output.",
            "data": "\n".join(rows)}

def write_versions(records, out_dir, config=None):
    """Write YAML files with versions used in the analysis pipeline.

    Returns the collated versions file and the MultiQC custom content file.
    """
    base_dir = utils.safe_makedir(os.path.join(out_dir, "pipeline_info"))
    out_file = os.path.join(base_dir, "software_versions.yml")
    mqc_file = os.path.join(base_dir, "software_versions_mqc.yml")
    collated = collate(records)
    with file_transaction(config or {}, out_file, mqc_file) as (tx_out_file, tx_mqc_file):
        with open(tx_out_file, "w") as out_handle:
            yaml.safe_dump(_plain(collated), out_handle, default_flow_style=False)
        with open(tx_mqc_file, "w") as out_handle:
            yaml.safe_dump(_mqc_content(collated), out_handle, default_flow_style=False)
    logger.info("Collated software versions: %s" % out_file)
    return out_file, mqc_file
