"""Functional profiling with HUMAnN.

https://github.com/biobakery/humann
"""
import os
import shlex

from biobakerymgx import utils
from biobakerymgx.distributed.transaction import file_transaction
from biobakerymgx.log import logger
from biobakerymgx.provenance import do, programs
from biobakerymgx.pipeline import datadict as dd
from biobakerymgx.pipeline import config_utils

PROCESS = "HUMANN"
OUTPUTS = ["genefamilies", "pathabundance", "pathcoverage"]

def run(data):
    """Profile gene families and pathways, reusing the MetaPhlAn taxonomic profile.
    """
    data = utils.to_single_data(data)
    if dd.is_tool_off(data, "humann"):
        return [[data]]
    name = dd.get_sample_name(data)
    in_file = dd.get_preprocessed_combined(data)
    profile = dd.get_metaphlan_profile(data)
    if not in_file or not profile:
        raise ValueError("HUMAnN requires preprocessed reads and a MetaPhlAn profile for %s" % name)
    out_dir = os.path.join(dd.get_out_dir(data), "humann", name)
    out_files = {k: os.path.join(out_dir, "%s_%s.tsv" % (name, k)) for k in OUTPUTS}
    if not all(utils.file_exists(f) for f in out_files.values()):
        logger.info("Running HUMAnN functional profiling: %s" % name)
        humann = config_utils.get_program("humann", data["config"])
        with file_transaction(data, out_dir) as tx_out_dir:
            utils.safe_makedir(tx_out_dir)
            cmd = [humann, "--input", in_file, "--output", tx_out_dir,
                   "--output-basename", name, "--taxonomic-profile", profile,
                   "--threads", str(dd.get_num_cores(data)), "--remove-temp-output"]
            nucleotide_db = dd.get_humann_nucleotide_db(data)
            if nucleotide_db:
                cmd += ["--nucleotide-database", nucleotide_db]
            protein_db = dd.get_humann_protein_db(data)
            if protein_db:
                cmd += ["--protein-database", protein_db]
            other_opts = config_utils.get_options("humann", data["config"])
            if other_opts:
                cmd += shlex.split(other_opts)
            do.run(cmd, "HUMAnN functional profile", data)
            missing = [k for k, f in out_files.items()
                       if not os.path.exists(os.path.join(tx_out_dir, os.path.basename(f)))]
            if missing:
                raise ValueError("HUMAnN did not produce %s outputs for %s" % (", ".join(missing), name))
    data = dd.set_humann(data, out_files)
    data = dd.update_summary_qc(data, "humann", base=out_files["pathabundance"],
                                secondary=[out_files["genefamilies"], out_files["pathcoverage"]])
    data = dd.add_versions(data, [programs.version_record(PROCESS, "humann", data["config"])])
    return [[data]]
