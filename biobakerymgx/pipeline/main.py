"""Main entry point for metagenomic profiling of sequencing samples.

Handles running the full pipeline based on a sample manifest and parameters.
"""
import datetime
import os

from biobakerymgx import log, utils
from biobakerymgx.distributed import prun
from biobakerymgx.log import logger, DEFAULT_LOG_DIR
from biobakerymgx.pipeline import completion, config_utils, grouping, samplesheet
from biobakerymgx.pipeline import datadict as dd
from biobakerymgx.provenance import profile, programs
from biobakerymgx.qc import multiqc

def run_main(workdir, config_file=None, input_file=None, parallel=None, outdir=None,
             skip_invalid=None, command_line=None):
    """Run the metagenomics pipeline, notifying on completion or failure.
    """
    workdir = utils.safe_makedir(os.path.abspath(workdir))
    os.chdir(workdir)
    config = config_utils.load_config(config_file, {"input": input_file, "outdir": outdir,
                                                    "skip_invalid_samples": skip_invalid,
                                                    "command_line": command_line})
    config["outdir"] = utils.add_full_path(config["outdir"], workdir)
    if config.get("log_dir", None) is None:
        config["log_dir"] = os.path.join(workdir, DEFAULT_LOG_DIR)
    if parallel is None:
        parallel = {"type": "local", "cores": config["algorithm"].get("num_cores", 1)}
    parallel = log.create_base_logger(config, parallel)
    log.setup_local_logging(config, parallel)
    if config.get("params_file"):
        logger.info("Parameter YAML configuration: %s" % config["params_file"])
    start = datetime.datetime.now()
    samples = []
    try:
        samples = _run_toplevel(config, config.get("input"), workdir, parallel)
    except Exception as e:
        logger.error("Pipeline failed: %s" % e)
        completion.notify(completion.summarize(samples, config, start, error=e), config)
        raise
    completion.notify(completion.summarize(samples, config, start), config)
    return samples

def _run_toplevel(config, input_file, work_dir, parallel):
    """
    Run toplevel analysis, processing the samples in an input manifest.
    input_file -- CSV manifest with one line per sequencing run
    """
    if not input_file:
        raise ValueError("No input sample manifest provided. Specify it on the command line "
                         "or as `input` in the parameter file.")
    dirs = {"work": work_dir, "out": utils.safe_makedir(config["outdir"])}
    with profile.report("organize samples", dirs):
        samples = organize_samples(input_file, config, dirs)
    for xs in metagenome_pipeline(config, parallel, dirs, samples):
        pass
    return xs

def organize_samples(input_file, config, dirs):
    """Read and group sequencing runs into per-sample inputs with merge decisions.
    """
    records = samplesheet.read_manifest(input_file, check_files=True)
    groups = grouping.group(records, skip_invalid=config.get("skip_invalid_samples", False))
    groups = grouping.check_unique_samples(groups)
    if not groups:
        raise ValueError("No valid samples to process in %s" % input_file)
    logger.info("Processing %s samples from %s sequencing runs" % (len(groups), len(records)))
    return [([grouping.to_data(read_group, config, dirs)], decision)
            for read_group, decision in groups]

def metagenome_pipeline(config, parallel, dirs, samples):
    """Merge replicates, check quality, profile and summarize samples.

    samples are ([data], merge decision) pairs. Yields the samples after the
    final stage.
    """
    with prun.start(parallel, [x for x, _ in samples], config, dirs, "merge") as run_parallel:
        with profile.report("merge replicates", dirs):
            samples = grouping.route(samples, lambda xs: run_parallel("merge_reads", xs))
    with prun.start(parallel, samples, config, dirs, "qc_raw") as run_parallel:
        with profile.report("quality control of raw reads", dirs):
            samples = run_parallel("fastqc_raw", samples)
    with prun.start(parallel, samples, config, dirs, "biobakery") as run_parallel:
        with profile.report("bioBakery profiling", dirs):
            samples = run_parallel("run_biobakery", samples)
    with prun.start(parallel, samples, config, dirs, "qc_preprocessed") as run_parallel:
        with profile.report("quality control of preprocessed reads", dirs):
            samples = run_parallel("fastqc_preprocessed", samples)
    with profile.report("software versions", dirs):
        _, versions_mqc = programs.write_versions(
            [dd.get_versions(data) for data in dd.sample_data_iterator(samples)],
            dirs["out"], config)
    with profile.report("MultiQC summary", dirs):
        samples = multiqc.summary(samples, config, versions_mqc)
    logger.info("Timing: finished")
    yield samples
