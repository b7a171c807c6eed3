import os

import pytest

from biobakerymgx import utils


def test_to_single_data():
    data = {"description": "S1"}
    assert utils.to_single_data([data]) is data
    assert utils.to_single_data(data) is data


def test_unpack_worlds():
    a, b = {"description": "a"}, {"description": "b"}
    assert utils.unpack_worlds([[a], b]) == [a, b]


@pytest.mark.parametrize(("fname", "expected"), [
    ("reads.fastq.gz", ("reads", ".fastq.gz")),
    ("reads.fastq", ("reads", ".fastq")),
    ("reads", ("reads", "")),
])
def test_splitext_plus(fname, expected):
    assert utils.splitext_plus(fname) == expected


def test_add_full_path_relative_to_base():
    assert utils.add_full_path("a/../b.fq", "/data") == "/data/b.fq"
    assert utils.add_full_path("/abs/b.fq", "/data") == "/abs/b.fq"


def test_partition():
    evens, odds = utils.partition(lambda x: x % 2, range(6), tolist=True)
    assert evens == [0, 2, 4]
    assert odds == [1, 3, 5]


def test_flatten():
    assert list(utils.flatten([[[1, 2, 3], [4, 5]], 6])) == [1, 2, 3, 4, 5, 6]


def test_file_exists_requires_content(tmp_path):
    empty = tmp_path / "empty"
    empty.write_text("")
    full = tmp_path / "full"
    full.write_text("x")
    assert not utils.file_exists(str(empty))
    assert utils.file_exists(str(full))
    assert not utils.file_exists(None)


@pytest.mark.parametrize(("fname", "expected"), [
    ("reads.fastq.gz", True),
    ("reads.fastq", False),
])
def test_is_gzipped(fname, expected):
    assert utils.is_gzipped(fname) is expected


def test_chdir_restores_directory(tmp_path):
    cur = os.getcwd()
    with utils.chdir(str(tmp_path / "new")):
        assert os.getcwd() == str(tmp_path / "new")
    assert os.getcwd() == cur
