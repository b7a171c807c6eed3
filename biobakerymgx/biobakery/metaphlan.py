"""Taxonomic profiling with MetaPhlAn.

https://github.com/biobakery/MetaPhlAn
"""
import os
import shlex

from biobakerymgx import utils
from biobakerymgx.distributed.transaction import file_transaction
from biobakerymgx.log import logger
from biobakerymgx.provenance import do, programs
from biobakerymgx.pipeline import datadict as dd
from biobakerymgx.pipeline import config_utils

PROCESS = "METAPHLAN"

def run(data):
    """Build a taxonomic profile from the combined preprocessed reads.
    """
    data = utils.to_single_data(data)
    name = dd.get_sample_name(data)
    in_file = dd.get_preprocessed_combined(data)
    if not in_file:
        raise ValueError("No preprocessed reads available for MetaPhlAn profiling of %s" % name)
    out_dir = utils.safe_makedir(os.path.join(dd.get_out_dir(data), "metaphlan", name))
    out_file = os.path.join(out_dir, "%s_profile.txt" % name)
    bt2_file = os.path.join(out_dir, "%s.bowtie2.bz2" % name)
    if not utils.file_exists(out_file):
        logger.info("Running MetaPhlAn taxonomic profiling: %s" % name)
        metaphlan = config_utils.get_program("metaphlan", data["config"])
        with file_transaction(data, out_file, bt2_file) as (tx_out_file, tx_bt2_file):
            cmd = [metaphlan, in_file, "--input_type", "fastq",
                   "--nproc", str(dd.get_num_cores(data)),
                   "--bowtie2out", tx_bt2_file, "-o", tx_out_file]
            db = dd.get_metaphlan_db(data)
            if db:
                cmd += ["--bowtie2db", db]
            index = dd.get_metaphlan_index(data)
            if index:
                cmd += ["--index", index]
            other_opts = config_utils.get_options("metaphlan", data["config"])
            if other_opts:
                cmd += shlex.split(other_opts)
            do.run(cmd, "MetaPhlAn taxonomic profile", data,
                   checks=[do.file_nonempty(tx_out_file)])
    data = dd.set_metaphlan_profile(data, out_file)
    if os.path.exists(bt2_file):
        data = dd.set_metaphlan_bowtie2(data, bt2_file)
    data = dd.update_summary_qc(data, "metaphlan", base=out_file)
    data.setdefault("summary", {}).setdefault("metrics", {})["metaphlan"] = \
        profile_metrics(parse_profile(out_file))
    data = dd.add_versions(data, [programs.version_record(PROCESS, "metaphlan", data["config"])])
    return [[data]]

def parse_profile(in_file):
    """Read relative abundances from a MetaPhlAn profile, keyed by clade name.
    """
    out = {}
    with open(in_file) as in_handle:
        for line in in_handle:
            if line.startswith("#") or not line.strip():
                continue
            parts = line.rstrip("\r\n").split("\t")
            if len(parts) >= 3:
                try:
                    out[parts[0]] = float(parts[2])
                except ValueError:
                    continue
    return out

def profile_metrics(abundances):
    """Summary counts for a profile: clades reported, species detected and unclassified share.
    """
    species = [c for c in abundances if c.split("|")[-1].startswith("s__")]
    return {"clades": len(abundances),
            "species": len(species),
            "unclassified": abundances.get("UNCLASSIFIED", 0.0)}
