import os

import pytest

from biobakerymgx.pipeline import samplesheet
from biobakerymgx.pipeline.grouping import InvalidRecordError, InvalidMetadataError
from biobakerymgx.pipeline.samplesheet import ManifestMissingOrEmpty


def _write(tmp_path, content, name="samplesheet.csv"):
    in_file = tmp_path / name
    in_file.write_text(content)
    return str(in_file)


def test_missing_manifest_raises(tmp_path):
    with pytest.raises(ManifestMissingOrEmpty):
        samplesheet.read_manifest(str(tmp_path / "missing.csv"))


def test_empty_manifest_raises(tmp_path):
    with pytest.raises(ManifestMissingOrEmpty):
        samplesheet.read_manifest(_write(tmp_path, ""))


def test_header_only_manifest_raises(tmp_path):
    with pytest.raises(ManifestMissingOrEmpty):
        samplesheet.read_manifest(_write(tmp_path, "sample,replicate,fastq_1,fastq_2\n"))


def test_reads_paired_and_single_end_runs(tmp_path):
    in_file = _write(tmp_path, "sample,replicate,fastq_1,fastq_2\n"
                               "S1,1,s1_R1.fastq.gz,s1_R2.fastq.gz\n"
                               "S2,1,s2.fastq.gz,\n")
    records = samplesheet.read_manifest(in_file)
    assert len(records) == 2
    assert records[0].metadata["sample"] == "S1"
    assert records[0].metadata["single_end"] is False
    assert records[0].reads == (str(tmp_path / "s1_R1.fastq.gz"), str(tmp_path / "s1_R2.fastq.gz"))
    assert records[1].metadata["single_end"] is True
    assert records[1].reads == (str(tmp_path / "s2.fastq.gz"),)


def test_replicate_defaults_and_extra_columns_kept(tmp_path):
    in_file = _write(tmp_path, "sample,fastq_1,host\n"
                               "# comment line\n"
                               "\n"
                               "S1,/data/s1.fastq.gz,human\n")
    [record] = samplesheet.read_manifest(in_file)
    assert list(record.metadata.items()) == [("sample", "S1"), ("replicate", "1"),
                                             ("single_end", True), ("host", "human")]
    assert record.reads == ("/data/s1.fastq.gz",)


def test_missing_required_column_raises(tmp_path):
    in_file = _write(tmp_path, "name,fastq_1\nS1,a.fastq.gz\n")
    with pytest.raises(InvalidMetadataError):
        samplesheet.read_manifest(in_file)


def test_blank_forward_read_gives_empty_reads(tmp_path):
    in_file = _write(tmp_path, "sample,replicate,fastq_1,fastq_2\nS1,1,,\n")
    [record] = samplesheet.read_manifest(in_file)
    assert record.reads == ()


def test_duplicate_runs_raise(tmp_path):
    in_file = _write(tmp_path, "sample,replicate,fastq_1\nS1,1,a.fq.gz\nS1,1,b.fq.gz\n")
    with pytest.raises(InvalidRecordError) as excinfo:
        samplesheet.read_manifest(in_file)
    assert "S1" in str(excinfo.value)


def test_too_many_values_raise(tmp_path):
    in_file = _write(tmp_path, "sample,fastq_1\nS1,a.fq.gz,extra\n")
    with pytest.raises(InvalidRecordError):
        samplesheet.read_manifest(in_file)


def test_check_files_reports_missing_reads(tmp_path):
    in_file = _write(tmp_path, "sample,fastq_1\nS1,missing.fq.gz\n")
    with pytest.raises(InvalidRecordError) as excinfo:
        samplesheet.read_manifest(in_file, check_files=True)
    assert excinfo.value.sample == "S1"


def test_check_files_accepts_existing_reads(tmp_path, fastq_writer):
    fastq_writer(tmp_path / "s1.fastq")
    in_file = _write(tmp_path, "sample,fastq_1\nS1,s1.fastq\n")
    [record] = samplesheet.read_manifest(in_file, check_files=True)
    assert os.path.exists(record.reads[0])
