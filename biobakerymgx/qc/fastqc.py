"""Run and parse output from FastQC.

http://www.bioinformatics.babraham.ac.uk/projects/fastqc/
"""
import os

import pandas as pd

from biobakerymgx import utils
from biobakerymgx.distributed.transaction import file_transaction
from biobakerymgx.log import logger
from biobakerymgx.provenance import do, programs
from biobakerymgx.pipeline import datadict as dd
from biobakerymgx.pipeline import config_utils

STAGES = {"raw": dd.get_files,
          "preprocessed": dd.get_preprocessed_files}

def run(data, stage="raw"):
    """Run FastQC on the raw or preprocessed reads of a sample.

    A failed run is reported but does not stop processing: the sample gets an
    empty report placeholder and the summary continues without it.
    """
    data = utils.to_single_data(data)
    if dd.is_tool_off(data, "fastqc"):
        return [[data]]
    key = "fastqc_%s" % stage
    in_files = STAGES[stage](data)
    fastqc_out = os.path.join(dd.get_out_dir(data), "fastqc", stage, dd.get_sample_name(data))
    try:
        out_files, data_dirs = _run_fastqc(in_files, data, fastqc_out, stage)
    except (do.ToolInvocationFailure, config_utils.CmdNotFound, ValueError, OSError) as e:
        logger.warning("FastQC failed on %s reads for %s, continuing without a report: %s" %
                       (stage, dd.get_sample_name(data), e))
        data = dd.update_summary_qc(data, key)
    else:
        stats = {}
        for data_dir in data_dirs:
            parser = FastQCParser(data_dir, dd.get_sample_name(data))
            stats[os.path.basename(data_dir)] = parser.get_fastqc_summary()
            parser.save_sections_into_file()
        data = dd.update_summary_qc(data, key, base=out_files[0], secondary=out_files[1:])
        data.setdefault("summary", {}).setdefault("metrics", {})[key] = stats
        data = dd.add_versions(data, [programs.version_record("FASTQC_%s" % stage.upper(), "fastqc",
                                                              data["config"])])
    return [[data]]

def _report_prefixes(in_files, data, stage):
    """Report names for each input, keeping samples and stages distinct in summaries.
    """
    name = "%s_%s" % (dd.get_sample_name(data), stage)
    if len(in_files) == 1:
        return [name]
    return ["%s_%s" % (name, i + 1) for i in range(len(in_files))]

def _run_fastqc(in_files, data, fastqc_out, stage):
    if not in_files:
        raise ValueError("No %s read files available" % stage)
    prefixes = _report_prefixes(in_files, data, stage)
    html_files = [os.path.join(fastqc_out, "%s_fastqc.html" % p) for p in prefixes]
    zip_files = [os.path.join(fastqc_out, "%s_fastqc.zip" % p) for p in prefixes]
    data_dirs = [os.path.join(fastqc_out, "%s_fastqc" % p) for p in prefixes]
    if not all(utils.file_exists(f) for f in html_files):
        fastqc = config_utils.get_program("fastqc", data["config"])
        with file_transaction(data, fastqc_out) as tx_fastqc_out:
            utils.safe_makedir(tx_fastqc_out)
            links = []
            for in_file, prefix in zip(in_files, prefixes):
                link = os.path.join(tx_fastqc_out, prefix + _fastq_ext(in_file))
                os.symlink(os.path.abspath(in_file), link)
                links.append(link)
            cl = [fastqc, "-t", str(dd.get_num_cores(data)), "--extract", "-o", tx_fastqc_out]
            other_opts = config_utils.get_options("fastqc", data["config"])
            if other_opts:
                cl += other_opts.split()
            do.run(cl + links, "FastQC on %s reads" % stage, data)
            for link in links:
                os.remove(link)
            missing = [f for f in html_files
                       if not os.path.exists(os.path.join(tx_fastqc_out, os.path.basename(f)))]
            if missing:
                raise ValueError("FastQC failed to produce output HTML files: %s" % missing)
    logger.info("Produced FastQC reports %s" % ", ".join(html_files))
    return html_files + [f for f in zip_files if os.path.exists(f)], data_dirs

def _fastq_ext(in_file):
    _, ext = utils.splitext_plus(os.path.basename(in_file))
    return ext if ext else ".fastq"

class FastQCParser:
    def __init__(self, base_dir, sample=None):
        self._dir = base_dir
        self.sample = sample

    def get_fastqc_summary(self):
        ignore = set(["Total Sequences", "Filtered Sequences",
                      "Filename", "File type", "Encoding"])
        stats = {}
        for stat_line in self._fastqc_data_section("Basic Statistics")[1:]:
            k, v = stat_line.split("\t")[:2]
            if k not in ignore:
                stats[k] = v
        return stats

    def _fastqc_data_section(self, section_name):
        out = []
        in_section = False
        data_file = os.path.join(self._dir, "fastqc_data.txt")
        if os.path.exists(data_file):
            with open(data_file) as in_handle:
                for line in in_handle:
                    if line.startswith(">>%s" % section_name):
                        in_section = True
                    elif in_section:
                        if line.startswith(">>END"):
                            break
                        out.append(line.rstrip("\r\n"))
        return out

    def _modules(self):
        data_file = os.path.join(self._dir, "fastqc_data.txt")
        out = []
        if os.path.exists(data_file):
            with open(data_file) as in_handle:
                for line in in_handle:
                    if line.startswith(">>") and not line.startswith(">>END"):
                        out.append(line[2:].split("\t")[0].strip())
        return out

    def save_sections_into_file(self):
        """Write each per-position FastQC module to a tab separated file.
        """
        for m in self._modules()[1:]:
            dt = self._get_module(m)
            if dt is not None:
                out_file = os.path.join(self._dir, m.replace(" ", "_") + ".tsv")
                dt.to_csv(out_file, sep="\t", index=False)

    def _get_module(self, module):
        dt = []
        header = None
        for line in self._fastqc_data_section(module):
            data = line.split("\t")
            if data[0].startswith("#"):  # some modules have two headers
                header = [data[0][1:]] + data[1:]
                continue
            if header is None:
                continue
            if data[0].find("-") > 0:  # expand positions 1-3 to 1, 2, 3
                try:
                    f, s = map(int, data[0].split("-"))
                except ValueError:
                    dt.append(data)
                    continue
                for pos in range(f, s + 1):
                    dt.append([str(pos)] + data[1:])
            else:
                dt.append(data)
        if header is None or not dt:
            return None
        dt = pd.DataFrame([row[:len(header)] for row in dt])
        dt.columns = [h.replace(" ", "_") for h in header][:dt.shape[1]]
        dt['sample'] = self.sample
        return dt
