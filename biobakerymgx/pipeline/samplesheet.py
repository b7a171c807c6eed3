"""Read the input sample manifest into sample records.

The manifest is a CSV file with one line per sequencing run:

    sample,replicate,fastq_1,fastq_2
    S1,1,S1_L001_R1.fastq.gz,S1_L001_R2.fastq.gz
    S1,2,S1_L002_R1.fastq.gz,S1_L002_R2.fastq.gz

Additional columns are carried along as sample metadata.
"""
import collections
import csv
import os

from biobakerymgx import utils
from biobakerymgx.log import logger
from biobakerymgx.pipeline.grouping import (SampleRecord, InvalidRecordError,
                                            InvalidMetadataError)

REQUIRED_COLUMNS = ["sample", "fastq_1"]
READ_COLUMNS = ["fastq_1", "fastq_2"]


class ManifestMissingOrEmpty(ValueError):
    pass


def read_manifest(in_file, check_files=False):
    """Parse the manifest into a list of SampleRecords, one per line.
    """
    if not in_file or not os.path.isfile(in_file):
        raise ManifestMissingOrEmpty("Did not find input sample manifest: %s" % in_file)
    if os.path.getsize(in_file) == 0:
        raise ManifestMissingOrEmpty("Input sample manifest is empty: %s" % in_file)
    base_dir = os.path.dirname(os.path.abspath(in_file))
    with open(in_file, newline="") as in_handle:
        records = _parse_manifest(in_handle, in_file, base_dir)
    if not records:
        raise ManifestMissingOrEmpty("Input sample manifest has no samples: %s" % in_file)
    _check_for_duplicates(records, in_file)
    if check_files:
        for record in records:
            _check_files_exist(record)
    logger.info("Read %s sequencing runs from %s" % (len(records), in_file))
    return records

def _parse_manifest(in_handle, in_file, base_dir):
    reader = csv.reader(line for line in in_handle
                        if line.strip() and not line.startswith("#"))
    header = next(reader, None)
    if header is None:
        raise ManifestMissingOrEmpty("Input sample manifest is empty: %s" % in_file)
    header = [x.strip() for x in header]
    missing = [c for c in REQUIRED_COLUMNS if c not in header]
    if missing:
        raise InvalidMetadataError("Input sample manifest %s is missing required columns: %s\n"
                                   "Found columns: %s" % (in_file, ", ".join(missing), ", ".join(header)))
    records = []
    for i, row in enumerate(reader):
        if len(row) > len(header):
            raise InvalidRecordError("Line %s of %s has more values than header columns: %s" %
                                     (i + 2, in_file, row))
        vals = dict(zip(header, [x.strip() for x in row]))
        records.append(_to_record(vals, header, base_dir))
    return records

def _to_record(vals, header, base_dir):
    """Convert a manifest line into a record, with reads relative to the manifest.
    """
    metadata = collections.OrderedDict()
    metadata["sample"] = vals.get("sample", "")
    metadata["replicate"] = vals.get("replicate") or "1"
    metadata["single_end"] = not vals.get("fastq_2")
    for k in header:
        if k not in metadata and k not in READ_COLUMNS:
            metadata[k] = vals.get(k, "")
    # a reverse read without a forward read is left for grouping to reject
    if vals.get("fastq_1"):
        reads = tuple(utils.add_full_path(vals[c], base_dir) for c in READ_COLUMNS if vals.get(c))
    else:
        reads = ()
    return SampleRecord(metadata, reads)

def _check_for_duplicates(records, in_file):
    """Identify and raise errors on sequencing runs listed more than once.
    """
    seen = collections.Counter((r.metadata["sample"], r.metadata["replicate"]) for r in records)
    dups = ["%s replicate %s" % x for x, count in seen.items() if count > 1]
    if dups:
        raise InvalidRecordError("Duplicate sample and replicate found in input manifest %s: %s" %
                                 (in_file, ", ".join(dups)), dups[0])

def _check_files_exist(record):
    for f in record.reads:
        if not os.path.exists(f):
            raise InvalidRecordError("Did not find input read file for sample %s: %s" %
                                     (record.metadata["sample"], f), record.metadata["sample"])
