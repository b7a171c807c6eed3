import collections
import copy

import pytest

from biobakerymgx.pipeline import config_utils


FASTQ_RECORD = "@read{i}\nACGTACGTAC\n+\nIIIIIIIIII\n"


def write_fastq(path, num_reads=2, start=0):
    with open(str(path), "w") as out_handle:
        for i in range(start, start + num_reads):
            out_handle.write(FASTQ_RECORD.format(i=i))
    return str(path)


@pytest.fixture
def config(tmp_path):
    config = copy.deepcopy(config_utils.DEFAULTS)
    config["outdir"] = str(tmp_path / "results")
    config["resources"] = {"tmp": {"dir": str(tmp_path / "tmp")}}
    return config


@pytest.fixture
def make_data(tmp_path, config):
    """Build a per-sample data dictionary as produced by sample grouping."""
    def _make(name="S1", files=None, single_end=False, **metadata):
        md = collections.OrderedDict([("sample", name), ("single_end", single_end)])
        md.update(metadata)
        return {"description": name,
                "metadata": md,
                "files": list(files or []),
                "config": config,
                "dirs": {"work": str(tmp_path / "work"), "out": config["outdir"]}}
    return _make


@pytest.fixture
def fastq_dir(tmp_path):
    out_dir = tmp_path / "fastq"
    out_dir.mkdir()
    return out_dir


@pytest.fixture
def no_versions(mocker):
    """Avoid running external programs to retrieve versions."""
    return mocker.patch("biobakerymgx.provenance.programs.get_version", return_value="1.0")


@pytest.fixture
def fastq_writer():
    return write_fastq
