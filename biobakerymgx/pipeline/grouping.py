"""Group sequencing replicates into logical samples, deciding which need merging.

Each input record describes one sequencing run of a sample. Records sharing all
metadata apart from the `replicate` identifier belong to the same logical
sample. Their reads are concatenated in arrival order, and groups holding more
than a single pair of files are sent through the merge step before analysis.
"""
import collections
import collections.abc
import functools
import os

from biobakerymgx import utils
from biobakerymgx.log import logger

NEEDS_MERGE = "needs_merge"
PASS_THROUGH = "pass_through"

REPLICATE_KEY = "replicate"
REQUIRED_METADATA = ("sample",)


class InvalidRecordError(ValueError):
    """A sample record has missing or malformed read files."""
    def __init__(self, msg, sample=None):
        super(InvalidRecordError, self).__init__(msg)
        self.sample = sample


class InvalidMetadataError(ValueError):
    """A sample record lacks the metadata needed to identify it."""
    def __init__(self, msg, sample=None):
        super(InvalidMetadataError, self).__init__(msg)
        self.sample = sample


SampleRecord = collections.namedtuple("SampleRecord", ["metadata", "reads"])
ReadGroup = collections.namedtuple("ReadGroup", ["metadata", "reads"])


@functools.total_ordering
class GroupKey(object):
    """Sample metadata with the replicate identifier removed.

    Equality and hashing ignore the order of metadata fields. Ordering compares
    fields sorted by name, so keys sort the same way on every run.
    """
    __slots__ = ("_items", "_sorted")

    def __init__(self, metadata):
        self._items = tuple((k, v) for k, v in metadata.items() if k != REPLICATE_KEY)
        self._sorted = tuple(sorted(self._items, key=lambda kv: kv[0]))

    def as_dict(self):
        return collections.OrderedDict(self._items)

    @property
    def sample(self):
        return dict(self._items).get("sample")

    def _cmp_key(self):
        return tuple((k, type(v).__name__, str(v)) for k, v in self._sorted)

    def __eq__(self, other):
        if not isinstance(other, GroupKey):
            return NotImplemented
        return self._sorted == other._sorted

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __lt__(self, other):
        if not isinstance(other, GroupKey):
            return NotImplemented
        return self._cmp_key() < other._cmp_key()

    def __hash__(self):
        return hash(self._sorted)

    def __repr__(self):
        return "GroupKey(%s)" % ", ".join("%s=%r" % kv for kv in self._items)


def _sample_name(record):
    metadata = getattr(record, "metadata", None)
    if isinstance(metadata, collections.abc.Mapping):
        return metadata.get("sample")
    return None

def _describe(record):
    name = _sample_name(record)
    if name is None:
        return "<unnamed>"
    metadata = record.metadata
    if metadata.get(REPLICATE_KEY) is not None:
        return "%s (replicate %s)" % (name, metadata[REPLICATE_KEY])
    return str(name)

def group_key(record):
    """Compute the key identifying the logical sample a record belongs to.
    """
    metadata = getattr(record, "metadata", None)
    if not isinstance(metadata, collections.abc.Mapping):
        raise InvalidMetadataError("Sample metadata should be a mapping of field to value, found: %r"
                                   % (metadata,))
    missing = [k for k in REQUIRED_METADATA
               if metadata.get(k) is None or not str(metadata[k]).strip()]
    if missing:
        raise InvalidMetadataError("Sample %s is missing required metadata: %s" %
                                   (_describe(record), ", ".join(missing)),
                                   _sample_name(record))
    key = GroupKey(metadata)
    try:
        hash(key)
    except TypeError:
        raise InvalidMetadataError("Sample %s has metadata values that cannot be compared: %s" %
                                   (_describe(record), dict(metadata)), _sample_name(record))
    return key

def read_files(record):
    """Retrieve the ordered read file references for a record, checking they are usable.
    """
    reads = getattr(record, "reads", None)
    name = _sample_name(record)
    if reads is None or isinstance(reads, (str, bytes)) or \
            not isinstance(reads, collections.abc.Sequence):
        raise InvalidRecordError("Sample %s: reads should be a list of one or two files, found: %r" %
                                 (_describe(record), reads), name)
    files = []
    for f in reads:
        if f is None:
            continue
        if not isinstance(f, (str, os.PathLike)) or not str(f).strip():
            raise InvalidRecordError("Sample %s: unexpected read file reference %r" %
                                     (_describe(record), f), name)
        files.append(os.fspath(f))
    if len(files) == 0:
        raise InvalidRecordError("Sample %s has no read files" % _describe(record), name)
    if len(files) > 2:
        raise InvalidRecordError("Sample %s: expected a forward and optional reverse read file, found %s: %s" %
                                 (_describe(record), len(files), files), name)
    return files

def merge_decision(reads):
    """Groups with more than a single pair of files need merging.
    """
    return NEEDS_MERGE if len(reads) > 2 else PASS_THROUGH

def group(records, skip_invalid=False):
    """Group sample records by metadata without the replicate, flattening reads.

    Returns a list of (ReadGroup, decision) tuples in order of first appearance
    of each sample. An invalid record rejects its whole group: by default the
    error is raised and nothing is returned; with skip_invalid the rejected
    groups are logged and dropped while other groups are still returned.
    """
    buckets = collections.OrderedDict()
    rejected = collections.OrderedDict()
    for record in records:
        try:
            key = group_key(record)
        except InvalidMetadataError as e:
            if not skip_invalid:
                raise
            logger.warning("Skipping sample record: %s" % e)
            continue
        bucket = buckets.setdefault(key, [])
        try:
            bucket.extend(read_files(record))
        except InvalidRecordError as e:
            if not skip_invalid:
                raise
            rejected.setdefault(key, []).append(e)
    out = []
    for key, reads in buckets.items():
        if key in rejected:
            logger.warning("Skipping sample %s: %s" %
                           (key.sample, "; ".join(str(e) for e in rejected[key])))
            continue
        reads = tuple(reads)
        out.append((ReadGroup(key.as_dict(), reads), merge_decision(reads)))
    return out

def check_unique_samples(groups):
    """Ensure each sample name identifies a single group.

    Replicates of a sample with differing metadata end up in separate groups
    and would overwrite each other's outputs.
    """
    seen = collections.defaultdict(list)
    for read_group, _ in groups:
        seen[read_group.metadata["sample"]].append(read_group.metadata)
    problems = ["%s: %s" % (name, " vs ".join(str(dict(m)) for m in mds))
                for name, mds in seen.items() if len(mds) > 1]
    if problems:
        raise InvalidMetadataError("Replicates of the same sample have inconsistent metadata.\n%s" %
                                   "\n".join(problems))
    return groups

def route(items, merge_fn):
    """Run items needing a merge through merge_fn, recombining with pass through items.

    items are (item, decision) pairs. merge_fn receives the list of items
    needing a merge and returns their merged replacements. Order is kept
    within each partition, with merged items first.
    """
    passthrough, needs_merge = utils.partition(lambda x: x[1] == NEEDS_MERGE, items, tolist=True)
    if needs_merge:
        logger.info("Merging replicates for %s samples" % len(needs_merge))
        merged = list(merge_fn([x for x, _ in needs_merge]))
    else:
        merged = []
    return merged + [x for x, _ in passthrough]

def to_data(read_group, config, dirs):
    """Convert a read group into the per-sample data dictionary used by processing steps.
    """
    metadata = collections.OrderedDict(read_group.metadata)
    return {"description": str(metadata["sample"]),
            "metadata": metadata,
            "files": list(read_group.reads),
            "config": config,
            "dirs": dirs}
