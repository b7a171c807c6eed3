"""Handle multiple sequencing runs of a single sample.

Concatenates the fastq files from replicate runs of a sample into a single
file per read direction. Unique sample names identify the items to combine.
"""
import os
import shlex

from biobakerymgx import utils
from biobakerymgx.distributed.transaction import file_transaction
from biobakerymgx.log import logger
from biobakerymgx.pipeline import config_utils
from biobakerymgx.pipeline import datadict as dd
from biobakerymgx.pipeline.grouping import InvalidRecordError
from biobakerymgx.provenance import do, programs

PROCESS = "CAT_FASTQ"

def merge_reads(data):
    """Merge replicate read files of a sample into one file per read direction.

    Paired end inputs alternate forward and reverse files, as they were
    listed for each replicate.
    """
    data = utils.to_single_data(data)
    name = dd.get_sample_name(data)
    in_files = dd.get_files(data)
    out_dir = utils.safe_makedir(os.path.join(dd.get_work_dir(data), "merged_fastq", name))
    ext = _merged_ext(in_files, name)
    if dd.get_single_end(data):
        to_merge = [(in_files, os.path.join(out_dir, "%s.merged%s" % (name, ext)))]
    else:
        if len(in_files) % 2 != 0:
            raise InvalidRecordError("Sample %s is paired end but has an odd number of read files: %s" %
                                     (name, in_files), name)
        to_merge = [(in_files[0::2], os.path.join(out_dir, "%s_1.merged%s" % (name, ext))),
                    (in_files[1::2], os.path.join(out_dir, "%s_2.merged%s" % (name, ext)))]
    out_files = [combine_fastq_files(cur_files, out_file, data)
                 for cur_files, out_file in to_merge]
    data = dd.set_files(data, out_files)
    data = dd.set_merged(data, True)
    data = dd.add_versions(data, [programs.version_record(PROCESS, "cat", data["config"])])
    return [[data]]

def _merged_ext(in_files, name):
    """Output extension for merged files, requiring consistent compression.
    """
    gzipped = set(utils.is_gzipped(f) for f in in_files)
    if len(gzipped) > 1:
        raise InvalidRecordError("Sample %s mixes gzipped and uncompressed read files, "
                                 "which cannot be concatenated: %s" % (name, in_files), name)
    return ".fastq.gz" if gzipped.pop() else ".fastq"

def combine_fastq_files(in_files, out_file, data):
    """Concatenate fastq files in order, reusing a previously merged output.
    """
    if utils.file_exists(out_file):
        return out_file
    for f in in_files:
        if not os.path.exists(f):
            raise InvalidRecordError("Did not find input read file to merge for %s: %s" %
                                     (dd.get_sample_name(data), f), dd.get_sample_name(data))
    cat = config_utils.get_program("cat", data["config"])
    with file_transaction(data, out_file) as tx_out_file:
        files_str = " ".join(shlex.quote(f) for f in in_files)
        cmd = "{cat} {files_str} > {tx_out_file}".format(cat=cat, files_str=files_str,
                                                           tx_out_file=shlex.quote(tx_out_file))
        do.run(cmd, "Merge %s fastq files into %s" % (len(in_files), os.path.basename(out_file)),
               data, checks=[do.file_nonempty(tx_out_file)])
    logger.debug("Merged %s into %s" % (", ".join(in_files), out_file))
    return out_file
