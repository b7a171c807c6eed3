import pytest

from biobakerymgx.provenance import do


def test_run_list_command(tmp_path):
    out_file = tmp_path / "out.txt"
    do.run(["touch", str(out_file)], "Create file", checks=[do.file_exists(str(out_file))])
    assert out_file.exists()


def test_run_failure_raises_with_output():
    with pytest.raises(do.ToolInvocationFailure) as excinfo:
        do.run("echo problem-detail && exit 3", "Failing tool", log_error=False)
    assert excinfo.value.returncode == 3
    assert "problem-detail" in str(excinfo.value)
    assert "Failing tool" in str(excinfo.value)


def test_piped_commands_fail_on_first_error():
    with pytest.raises(do.ToolInvocationFailure):
        do.run("false | cat", "Pipe", log_error=False)


def test_failed_check_raises(tmp_path):
    with pytest.raises(IOError):
        do.run(["true"], "No output", checks=[do.file_nonempty(str(tmp_path / "missing"))],
               log_error=False)


def test_descr_includes_sample_name():
    assert do._descr_str("FastQC", {"description": "S1"}) == "FastQC : S1"
