"""Quality control and host read removal with KneadData.

https://github.com/biobakery/kneaddata
"""
import os
import shlex

from biobakerymgx import utils
from biobakerymgx.distributed.transaction import file_transaction
from biobakerymgx.log import logger
from biobakerymgx.provenance import do, programs
from biobakerymgx.pipeline import datadict as dd
from biobakerymgx.pipeline import config_utils

PROCESS = "KNEADDATA"

def run(data):
    """Remove low quality and host reads, producing preprocessed fastq files.

    Sets the per-direction preprocessed reads and a single combined fastq
    used as input for the profilers.
    """
    data = utils.to_single_data(data)
    name = dd.get_sample_name(data)
    db = dd.get_kneaddata_db(data)
    if not db:
        raise ValueError("KneadData requires a reference database, set `databases: kneaddata` "
                         "in the parameter file.")
    if not os.path.exists(db):
        raise ValueError("Did not find KneadData reference database for %s: %s" % (name, db))
    out_dir = os.path.join(dd.get_out_dir(data), "kneaddata", name)
    single_end = dd.get_single_end(data)
    out_files = _expected_outputs(out_dir, name, single_end)
    combined = os.path.join(out_dir, "%s.kneaddata.fastq" % name)
    log_file = os.path.join(out_dir, "%s.log" % name)
    if not utils.file_exists(combined):
        logger.info("Running KneadData preprocessing: %s" % name)
        in_files = _prepare_inputs(data, single_end)
        with file_transaction(data, out_dir) as tx_out_dir:
            utils.safe_makedir(tx_out_dir)
            cmd = _kneaddata_cmd(data, in_files, db, tx_out_dir, name)
            do.run(cmd, "KneadData quality control and host removal", data)
            tx_files = [os.path.join(tx_out_dir, os.path.basename(f)) for f in out_files]
            missing = [f for f in tx_files if not os.path.exists(f)]
            if missing:
                raise ValueError("KneadData did not produce expected output files for %s: %s" %
                                 (name, ", ".join(missing)))
            _concatenate(tx_files, os.path.join(tx_out_dir, os.path.basename(combined)), data)
    data = dd.set_preprocessed_files(data, out_files)
    data = dd.set_preprocessed_combined(data, combined)
    if os.path.exists(log_file):
        data = dd.set_kneaddata_log(data, log_file)
        data = dd.update_summary_qc(data, "kneaddata", base=log_file)
    data = dd.add_versions(data, [programs.version_record(PROCESS, "kneaddata", data["config"])])
    return [[data]]

def _expected_outputs(out_dir, name, single_end):
    if single_end:
        return [os.path.join(out_dir, "%s.fastq" % name)]
    return [os.path.join(out_dir, "%s_paired_%s.fastq" % (name, i)) for i in (1, 2)]

def _prepare_inputs(data, single_end):
    """Input reads for KneadData: one file for single end data, a forward and reverse pair otherwise.

    Single end replicates left unmerged are concatenated into one input.
    """
    name = dd.get_sample_name(data)
    in_files = dd.get_files(data)
    if not in_files:
        raise ValueError("No input reads for KneadData preprocessing of %s" % name)
    if not single_end:
        if len(in_files) != 2:
            raise ValueError("Paired end sample %s needs a forward and reverse read file, found: %s" %
                             (name, in_files))
        return in_files
    if len(in_files) == 1:
        return in_files
    gzipped = set(utils.is_gzipped(f) for f in in_files)
    if len(gzipped) > 1:
        raise ValueError("Sample %s mixes gzipped and uncompressed read files: %s" % (name, in_files))
    work_dir = utils.safe_makedir(os.path.join(dd.get_work_dir(data), "kneaddata_input", name))
    out_file = os.path.join(work_dir, "%s%s" % (name, ".fastq.gz" if gzipped.pop() else ".fastq"))
    if not utils.file_exists(out_file):
        with file_transaction(data, out_file) as tx_out_file:
            _concatenate(in_files, tx_out_file, data)
    return [out_file]

def _kneaddata_cmd(data, in_files, db, out_dir, name):
    kneaddata = config_utils.get_program("kneaddata", data["config"])
    cmd = [kneaddata, "--input1", in_files[0]]
    if len(in_files) == 2:
        cmd += ["--input2", in_files[1]]
    cmd += ["--reference-db", db, "--output", out_dir, "--output-prefix", name,
            "--threads", str(dd.get_num_cores(data)), "--log", os.path.join(out_dir, "%s.log" % name)]
    other_opts = config_utils.get_options("kneaddata", data["config"])
    if other_opts:
        cmd += shlex.split(other_opts)
    return cmd

def _concatenate(in_files, out_file, data):
    """Concatenate read files in order into out_file.
    """
    cat = config_utils.get_program("cat", data["config"])
    cmd = "%s %s > %s" % (cat, " ".join(shlex.quote(f) for f in in_files), shlex.quote(out_file))
    do.run(cmd, "Combine %s read files into %s" % (len(in_files), os.path.basename(out_file)), data)
    return out_file
