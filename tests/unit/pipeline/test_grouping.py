import collections

import pytest

from biobakerymgx.pipeline import grouping
from biobakerymgx.pipeline.grouping import (SampleRecord, ReadGroup, GroupKey,
                                            InvalidRecordError, InvalidMetadataError,
                                            NEEDS_MERGE, PASS_THROUGH)


def _rec(sample, replicate, reads, **extra):
    metadata = collections.OrderedDict([("sample", sample), ("replicate", replicate)])
    metadata.update(extra)
    return SampleRecord(metadata, tuple(reads))


def test_single_paired_run_passes_through():
    result = grouping.group([_rec("S1", "1", ["f1", "f2"])])
    assert result == [(ReadGroup({"sample": "S1"}, ("f1", "f2")), PASS_THROUGH)]


def test_replicates_are_flattened_in_order_and_merged():
    records = [_rec("S1", "1", ["a1", "a2"]), _rec("S1", "2", ["b1", "b2"])]
    result = grouping.group(records)
    assert result == [(ReadGroup({"sample": "S1"}, ("a1", "a2", "b1", "b2")), NEEDS_MERGE)]


def test_distinct_samples_stay_separate():
    records = [_rec("S1", "1", ["s1_1", "s1_2"]), _rec("S2", "1", ["s2_1", "s2_2"])]
    result = grouping.group(records)
    assert [rg.metadata["sample"] for rg, _ in result] == ["S1", "S2"]
    assert result[0][0].reads == ("s1_1", "s1_2")
    assert result[1][0].reads == ("s2_1", "s2_2")
    assert all(decision == PASS_THROUGH for _, decision in result)


def test_empty_reads_raises_naming_sample():
    with pytest.raises(InvalidRecordError) as excinfo:
        grouping.group([_rec("S7", "1", [])])
    assert excinfo.value.sample == "S7"
    assert "S7" in str(excinfo.value)


@pytest.mark.parametrize("reads, expected", [
    (["a"], PASS_THROUGH),
    (["a", "b"], PASS_THROUGH),
    (["a", "b", "c"], NEEDS_MERGE),
    (["a", "b", "c", "d"], NEEDS_MERGE),
])
def test_merge_decision_boundary(reads, expected):
    assert grouping.merge_decision(reads) == expected


def test_two_single_end_replicates_pass_through():
    records = [_rec("S1", "1", ["r1.fq.gz"]), _rec("S1", "2", ["r2.fq.gz"])]
    [(read_group, decision)] = grouping.group(records)
    assert read_group.reads == ("r1.fq.gz", "r2.fq.gz")
    assert decision == PASS_THROUGH


def test_three_single_end_replicates_need_merge():
    records = [_rec("S1", str(i), ["r%s.fq.gz" % i]) for i in range(3)]
    [(read_group, decision)] = grouping.group(records)
    assert len(read_group.reads) == 3
    assert decision == NEEDS_MERGE


def test_group_is_idempotent():
    records = [_rec("S2", "1", ["x1", "x2"]), _rec("S1", "1", ["a1", "a2"]),
               _rec("S2", "2", ["y1", "y2"])]
    assert grouping.group(records) == grouping.group(records)


def test_group_accepts_a_generator():
    records = [_rec("S1", "1", ["a1", "a2"]), _rec("S1", "2", ["b1", "b2"])]
    result = grouping.group(r for r in records)
    assert result[0][0].reads == ("a1", "a2", "b1", "b2")


def test_every_read_appears_in_exactly_one_group():
    records = [_rec("S%s" % (i % 3), str(i), ["f%s_1" % i, "f%s_2" % i]) for i in range(9)]
    result = grouping.group(records)
    all_reads = [f for rg, _ in result for f in rg.reads]
    expected = [f for r in records for f in r.reads]
    assert sorted(all_reads) == sorted(expected)
    assert len(all_reads) == len(set(all_reads))
    for rg, _ in result:
        owned = [f for r in records if r.metadata["sample"] == rg.metadata["sample"]
                 for f in r.reads]
        assert list(rg.reads) == owned


def test_groups_emitted_in_order_of_first_appearance():
    records = [_rec("B", "1", ["b1"]), _rec("A", "1", ["a1"]), _rec("B", "2", ["b2"])]
    assert [rg.metadata["sample"] for rg, _ in grouping.group(records)] == ["B", "A"]


def test_differing_metadata_forms_separate_groups():
    records = [_rec("S1", "1", ["a1", "a2"], host="human"),
               _rec("S1", "2", ["b1", "b2"], host="mouse")]
    result = grouping.group(records)
    assert len(result) == 2
    assert all(decision == PASS_THROUGH for _, decision in result)


def test_metadata_order_does_not_affect_grouping():
    first = SampleRecord(collections.OrderedDict([("sample", "S1"), ("host", "human"),
                                                  ("replicate", "1")]), ("a1", "a2"))
    second = SampleRecord(collections.OrderedDict([("host", "human"), ("replicate", "2"),
                                                   ("sample", "S1")]), ("b1", "b2"))
    [(read_group, decision)] = grouping.group([first, second])
    assert read_group.reads == ("a1", "a2", "b1", "b2")
    assert list(read_group.metadata.keys()) == ["sample", "host"]
    assert decision == NEEDS_MERGE


def test_missing_replicate_field_groups_by_remaining_metadata():
    record = SampleRecord({"sample": "S1"}, ("a1", "a2"))
    [(read_group, decision)] = grouping.group([record])
    assert read_group.metadata == {"sample": "S1"}
    assert decision == PASS_THROUGH


@pytest.mark.parametrize("metadata", [
    {"replicate": "1"},
    {"sample": "", "replicate": "1"},
    {"sample": None, "replicate": "1"},
    {"sample": "S1", "replicate": "1", "tags": ["a", "b"]},
])
def test_invalid_metadata_raises(metadata):
    with pytest.raises(InvalidMetadataError):
        grouping.group([SampleRecord(metadata, ("a1",))])


def test_non_mapping_metadata_raises():
    with pytest.raises(InvalidMetadataError):
        grouping.group([SampleRecord(["S1", "1"], ("a1",))])


@pytest.mark.parametrize("reads", [
    None,
    "a1.fastq.gz",
    ("a1", "a2", "a3"),
    ("a1", ""),
    ("a1", 5),
])
def test_malformed_reads_raise(reads):
    with pytest.raises(InvalidRecordError) as excinfo:
        grouping.group([SampleRecord({"sample": "S3", "replicate": "1"}, reads)])
    assert excinfo.value.sample == "S3"


def test_fail_fast_returns_nothing():
    records = [_rec("S1", "1", ["a1", "a2"]), _rec("S2", "1", [])]
    with pytest.raises(InvalidRecordError):
        grouping.group(records)


def test_skip_invalid_rejects_whole_bucket_only():
    records = [_rec("S1", "1", ["a1", "a2"]),
               _rec("S2", "1", ["b1", "b2"]),
               _rec("S2", "2", []),
               _rec("S3", "1", ["c1", "c2"])]
    result = grouping.group(records, skip_invalid=True)
    assert [rg.metadata["sample"] for rg, _ in result] == ["S1", "S3"]
    assert [f for rg, _ in result for f in rg.reads] == ["a1", "a2", "c1", "c2"]


def test_skip_invalid_drops_records_without_identity():
    records = [SampleRecord({"replicate": "1"}, ("x1",)), _rec("S1", "1", ["a1"])]
    result = grouping.group(records, skip_invalid=True)
    assert [rg.metadata["sample"] for rg, _ in result] == ["S1"]


class TestGroupKey(object):

    def test_ignores_replicate(self):
        assert GroupKey({"sample": "S1", "replicate": "1"}) == \
            GroupKey({"sample": "S1", "replicate": "2"})

    def test_equality_and_hash_ignore_field_order(self):
        a = GroupKey(collections.OrderedDict([("sample", "S1"), ("host", "human")]))
        b = GroupKey(collections.OrderedDict([("host", "human"), ("sample", "S1")]))
        assert a == b
        assert hash(a) == hash(b)

    def test_as_dict_keeps_original_order(self):
        key = GroupKey(collections.OrderedDict([("sample", "S1"), ("replicate", "1"),
                                                ("host", "human")]))
        assert list(key.as_dict().items()) == [("sample", "S1"), ("host", "human")]
        assert key.sample == "S1"

    def test_ordering_is_deterministic(self):
        keys = [GroupKey({"sample": s}) for s in ["S3", "S1", "S2"]]
        assert [k.sample for k in sorted(keys)] == ["S1", "S2", "S3"]

    def test_ordering_handles_mixed_value_types(self):
        keys = [GroupKey({"sample": "S1", "lane": 2}), GroupKey({"sample": "S1", "lane": "2"})]
        assert len(sorted(keys)) == 2
        assert keys[0] != keys[1]


def test_check_unique_samples_flags_conflicting_metadata():
    records = [_rec("S1", "1", ["a1", "a2"], host="human"),
               _rec("S1", "2", ["b1", "b2"], host="mouse")]
    with pytest.raises(InvalidMetadataError):
        grouping.check_unique_samples(grouping.group(records))


def test_check_unique_samples_passes_distinct_samples():
    groups = grouping.group([_rec("S1", "1", ["a1"]), _rec("S2", "1", ["b1"])])
    assert grouping.check_unique_samples(groups) == groups


class TestRoute(object):

    def test_only_merge_partition_goes_through_merge(self):
        seen = []

        def merge_fn(items):
            seen.extend(items)
            return ["merged-%s" % x for x in items]

        items = [("a", NEEDS_MERGE), ("b", PASS_THROUGH), ("c", NEEDS_MERGE), ("d", PASS_THROUGH)]
        result = grouping.route(items, merge_fn)
        assert seen == ["a", "c"]
        assert result == ["merged-a", "merged-c", "b", "d"]

    def test_merge_not_called_without_merge_items(self):
        def merge_fn(items):
            raise AssertionError("unexpected merge")

        assert grouping.route([("b", PASS_THROUGH)], merge_fn) == ["b"]

    def test_one_output_per_sample(self):
        groups = grouping.group([_rec("S1", "1", ["a1", "a2"]), _rec("S1", "2", ["b1", "b2"]),
                                 _rec("S2", "1", ["c1", "c2"])])
        result = grouping.route(groups, lambda xs: [ReadGroup(rg.metadata, ("m1", "m2"))
                                                    for rg in xs])
        assert sorted(rg.metadata["sample"] for rg in result) == ["S1", "S2"]


def test_to_data_builds_sample_dictionary():
    read_group = ReadGroup(collections.OrderedDict([("sample", "S1"), ("single_end", False)]),
                           ("a1", "a2"))
    data = grouping.to_data(read_group, {"algorithm": {}}, {"work": "/w", "out": "/o"})
    assert data["description"] == "S1"
    assert data["files"] == ["a1", "a2"]
    assert data["metadata"]["single_end"] is False
    assert data["dirs"] == {"work": "/w", "out": "/o"}
