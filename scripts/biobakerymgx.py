#!/usr/bin/env python -Es
"""Run taxonomic and functional profiling of shotgun metagenomes.

Replicate sequencing runs of each sample are merged, quality checked with
FastQC, preprocessed with KneadData and profiled with MetaPhlAn and HUMAnN.
Results are summarized in a MultiQC report.

<input.csv> is a sample manifest with one line per sequencing run:

    sample,replicate,fastq_1,fastq_2

The optional parameter file is a YAML file with databases, program resources,
report and notification settings.

Usage:
  biobakerymgx.py <input.csv> [--config params.yaml] [--outdir DIR]
     --workdir directory to process in, defaults to the current directory
     -n total number of processes to use
     --skip-invalid drop invalid samples instead of stopping the run
"""
import os
import argparse
import subprocess
import sys

from biobakerymgx import utils
from biobakerymgx.distributed import clargs
from biobakerymgx.log import logger
from biobakerymgx.pipeline.main import run_main
from biobakerymgx.pipeline import config_utils, version

def main(**kwargs):
    run_main(**kwargs)

def parse_cl_args(in_args):
    """Parse input commandline arguments into keyword arguments for a run.
    """
    description = "Taxonomic and functional profiling of shotgun metagenomes."
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("input_file", nargs="?",
                        help="CSV manifest describing sequencing runs of each sample")
    parser.add_argument("-c", "--config", dest="config_file",
                        help="YAML parameter file with databases, resources and notification settings")
    parser.add_argument("-o", "--outdir",
                        help="Directory for final outputs. Defaults to `results` in the work directory")
    parser.add_argument("--workdir", default=os.getcwd(),
                        help=("Directory to process in. Defaults to "
                              "current working directory"))
    parser.add_argument("-n", "--numcores", type=int, default=1,
                        help="Total cores to use for processing")
    parser.add_argument("--skip-invalid", dest="skip_invalid", action="store_true", default=None,
                        help="Skip samples with invalid records instead of stopping the run")
    parser.add_argument("-v", "--version", help="Print current version",
                        action="store_true")
    args = parser.parse_args(in_args)
    if args.version:
        print(version.__version__)
        sys.exit(0)
    if not args.input_file and not args.config_file:
        parser.error("Require a CSV sample manifest describing inputs, or a parameter file "
                     "with an `input` manifest.")
    args.workdir = utils.safe_makedir(os.path.abspath(args.workdir))
    kwargs = {"parallel": clargs.to_parallel(args),
              "workdir": args.workdir,
              "config_file": os.path.abspath(args.config_file) if args.config_file else None,
              "input_file": os.path.abspath(args.input_file) if args.input_file else None,
              "outdir": os.path.abspath(args.outdir) if args.outdir else None,
              "skip_invalid": args.skip_invalid,
              "command_line": " ".join(["biobakerymgx.py"] + list(in_args))}
    return kwargs

if __name__ == "__main__":
    kwargs = parse_cl_args(sys.argv[1:])
    try:
        main(**kwargs)
    except (ValueError, OSError, KeyError, subprocess.CalledProcessError,
            config_utils.CmdNotFound) as e:
        logger.error(str(e))
        sys.stderr.write("biobakerymgx failed: %s\n" % e)
        sys.exit(1)
