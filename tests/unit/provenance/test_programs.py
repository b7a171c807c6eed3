import io

import yaml

from biobakerymgx.provenance import programs


def test_parse_version_from_flagged_line():
    stdout = io.StringIO("Some banner\nFastQC v0.12.1\n")
    assert programs._parse_from_stdoutflag(stdout, "FastQC") == "v0.12.1"


def test_get_version_prefers_configured_version(mocker):
    cl = mocker.patch("biobakerymgx.provenance.programs._get_cl_version")
    config = {"resources": {"humann": {"version": "3.9"}}}
    assert programs.get_version("humann", config) == "3.9"
    assert not cl.called


def test_get_version_missing_program_is_empty(mocker):
    config = {"resources": {"kneaddata": {"cmd": "not-a-real-program-bbmgx"}}}
    assert programs.get_version("kneaddata", config) == ""


def test_collate_dedupes_and_sorts():
    records = [[{"process": "FASTQC_RAW", "program": "fastqc", "version": "0.12.1"}],
               [{"process": "CAT_FASTQ", "program": "cat", "version": "8.32"},
                {"process": "FASTQC_RAW", "program": "fastqc", "version": "0.12.1"}],
               []]
    collated = programs.collate(records)
    assert list(collated.keys()) == ["CAT_FASTQ", "FASTQC_RAW", "Workflow"]
    assert collated["FASTQC_RAW"] == {"fastqc": "0.12.1"}
    assert collated["Workflow"] == {"biobakerymgx": programs.pipeline_version()}


def test_collate_keeps_last_conflicting_version():
    records = [{"process": "METAPHLAN", "program": "metaphlan", "version": "4.0"},
               {"process": "METAPHLAN", "program": "metaphlan", "version": "4.1"}]
    assert programs.collate(records)["METAPHLAN"] == {"metaphlan": "4.1"}


def test_write_versions(tmp_path):
    records = [{"process": "HUMANN", "program": "humann", "version": "3.9"}]
    config = {"resources": {"tmp": {"dir": str(tmp_path / "tmp")}}}
    out_file, mqc_file = programs.write_versions(records, str(tmp_path), config)
    assert out_file == str(tmp_path / "pipeline_info" / "software_versions.yml")
    with open(out_file) as in_handle:
        collated = yaml.safe_load(in_handle)
    assert collated["HUMANN"] == {"humann": "3.9"}
    assert "biobakerymgx" in collated["Workflow"]
    with open(mqc_file) as in_handle:
        mqc = yaml.safe_load(in_handle)
    assert mqc["plot_type"] == "html"
    assert "humann: 3.9" in mqc["data"]
