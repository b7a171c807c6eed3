"""High level summaries of samples and programs with MultiQC.

https://github.com/ewels/MultiQC
"""
import collections
import glob
import os
import shutil
import string

import pandas as pd
import toolz as tz
import yaml

from biobakerymgx import utils
from biobakerymgx.distributed.transaction import file_transaction, tx_tmpdir
from biobakerymgx.log import logger
from biobakerymgx.provenance import do, programs
from biobakerymgx.pipeline import datadict as dd
from biobakerymgx.pipeline import config_utils

ASSET_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "assets")
DEFAULT_CONFIG = os.path.join(ASSET_DIR, "multiqc_config.yml")
DEFAULT_METHODS = os.path.join(ASSET_DIR, "methods_description_template.yml")

def summary(samples, config, versions_file=None):
    """Summarize all quality metrics and tool outputs together in a single report.
    """
    samples = utils.unpack_worlds(samples)
    if "multiqc" in config["algorithm"].get("tools_off", []):
        logger.info("Skipping MultiQC report, turned off in configuration")
        return [[data] for data in samples]
    out_dir = utils.safe_makedir(os.path.join(utils.add_full_path(config["outdir"]), "multiqc"))
    out_file = os.path.join(out_dir, "multiqc_report.html")
    out_data = os.path.join(out_dir, "multiqc_data")
    file_list = os.path.join(out_dir, "list_files.txt")
    report_dir = utils.safe_makedir(os.path.join(out_dir, "report", "fastqc"))
    with utils.chdir(report_dir):
        _merge_fastqc(samples, config)
    if not utils.file_exists(out_file):
        in_files = _get_input_files(samples)
        if versions_file:
            in_files.append(versions_file)
        in_files.append(render_methods_description(samples, config, out_dir))
        if _one_exists(in_files):
            multiqc = config_utils.get_program("multiqc", config)
            with tx_tmpdir(config, out_dir) as tx_out:
                input_list_file = _create_list_file([f for f in in_files if os.path.exists(f)],
                                                    file_list)
                cmd = [multiqc, "-f", "-l", input_list_file, "-o", tx_out]
                for config_file in _config_files(config, out_dir):
                    cmd += ["-c", config_file]
                other_opts = config_utils.get_options("multiqc", config)
                if other_opts:
                    cmd += other_opts.split()
                do.run(cmd, "Run MultiQC")
                if utils.file_exists(os.path.join(tx_out, "multiqc_report.html")):
                    shutil.move(os.path.join(tx_out, "multiqc_report.html"), out_file)
                    if os.path.exists(os.path.join(tx_out, "multiqc_data")):
                        utils.remove_safe(out_data)
                        shutil.move(os.path.join(tx_out, "multiqc_data"), out_data)
        else:
            logger.warning("No QC outputs found for MultiQC, skipping report")
    if utils.file_exists(out_file) and samples:
        data_files = [f for f in glob.glob(os.path.join(out_data, "*")) if utils.file_exists(f)]
        samples[0].setdefault("summary", {})["multiqc"] = {"base": out_file, "secondary": data_files}
        samples[0] = dd.add_versions(samples[0], [programs.version_record("MULTIQC", "multiqc", config)])
        logger.info("MultiQC report: %s" % out_file)
    return [[data] for data in samples]

def _one_exists(input_files):
    """
    at least one file must exist for multiqc to run properly
    """
    for f in input_files:
        if os.path.exists(f):
            return True
    return False

def _get_input_files(samples):
    """Retrieve report files from each sample, skipping missing QC placeholders.
    """
    in_files = []
    for data in samples:
        sum_qc = tz.get_in(["summary", "qc"], data, {}) or {}
        for program, pfiles in sum_qc.items():
            if not pfiles:
                logger.debug("No %s output for %s" % (program, dd.get_sample_name(data)))
                continue
            if isinstance(pfiles, dict):
                pfiles = [pfiles["base"]] + pfiles.get("secondary", [])
            elif isinstance(pfiles, str):
                pfiles = [pfiles]
            for f in pfiles:
                if f and f not in in_files:
                    in_files.append(f)
    return in_files

def _create_list_file(paths, out_file):
    with open(out_file, "w") as f:
        for path in paths:
            f.write(path + '\n')
    return out_file

def _config_files(config, out_dir):
    """Base MultiQC configuration plus run specific title and logo settings.
    """
    mqc = config.get("multiqc") or {}
    out = [mqc.get("config") or DEFAULT_CONFIG]
    extra = {}
    if mqc.get("title"):
        extra["title"] = mqc["title"]
    if mqc.get("logo"):
        extra["custom_logo"] = utils.add_full_path(mqc["logo"])
        extra["custom_logo_title"] = programs.PIPELINE_NAME
    if extra:
        extra_file = os.path.join(out_dir, "multiqc_run_config.yml")
        with file_transaction(config, extra_file) as tx_out_file:
            with open(tx_out_file, "w") as out_handle:
                yaml.safe_dump(extra, out_handle, default_flow_style=False)
        out.append(extra_file)
    return out

def render_methods_description(samples, config, out_dir):
    """Fill pipeline details into the methods description, as MultiQC custom content.
    """
    template_file = tz.get_in(["multiqc", "methods_description"], config) or DEFAULT_METHODS
    out_file = os.path.join(out_dir, "methods_description_mqc.yml")
    with open(template_file) as in_handle:
        content = yaml.safe_load(in_handle)
    tools = sorted(set((r["program"], r.get("version", "")) for data in samples
                       for r in dd.get_versions(data)))
    values = {"version": programs.pipeline_version(),
              "n_samples": len(samples),
              "command_line": config.get("command_line", ""),
              "tool_list": "".join("<li>%s %s</li>" % (p, v) for p, v in tools)}
    content["data"] = string.Template(content.get("data", "")).safe_substitute(values)
    with file_transaction(config, out_file) as tx_out_file:
        with open(tx_out_file, "w") as out_handle:
            yaml.safe_dump(content, out_handle, default_flow_style=False)
    return out_file

def _merge_fastqc(samples, config):
    """
    merge all fastqc samples into one table by stage and module
    """
    fastqc_list = collections.defaultdict(list)
    base_dir = os.path.join(utils.add_full_path(config["outdir"]), "fastqc")
    seen = set()
    for data in samples:
        name = dd.get_sample_name(data)
        if name in seen:
            continue
        seen.add(name)
        for stage in ["raw", "preprocessed"]:
            fns = glob.glob(os.path.join(base_dir, stage, name, "*_fastqc", "*.tsv"))
            for fn in sorted(fns):
                metric = "%s_%s" % (stage, os.path.basename(fn))
                fastqc_list[metric].append([name, fn])
    out = []
    for metric in fastqc_list:
        dt_by_sample = []
        for name, fn in fastqc_list[metric]:
            dt = pd.read_csv(fn, sep="\t")
            dt['sample'] = name
            dt_by_sample.append(dt)
        dt = pd.concat(dt_by_sample, ignore_index=True)
        dt.to_csv(metric, sep="\t", index=False, mode='w')
        out.append(os.path.abspath(metric))
    return out
