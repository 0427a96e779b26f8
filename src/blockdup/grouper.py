"""Grouping of fingerprinted files into duplicate groups."""

import logging
from collections import defaultdict
from enum import StrEnum
from pathlib import Path
from typing import Iterable, NamedTuple

import mmh3

from .fingerprint import Fingerprint, fingerprint_key, fingerprint_from_key, fingerprints_equal

logger = logging.getLogger(__name__)


class FileRecord(NamedTuple):
    """A qualifying file and its fingerprint.

    Attributes:
        path: Absolute path of the file, unique within a scan
        fingerprint: Ordered block hashes; len(fingerprint) == ceil(size / block_size)
        size: File size in bytes when it was selected
    """
    path: Path
    fingerprint: Fingerprint
    size: int


class DuplicateGroup(NamedTuple):
    """Files whose fingerprints are identical.

    Attributes:
        key: Literal fingerprint bytes shared by every member
        paths: Member paths in sorted order, always at least two
        verified: Whether members were confirmed byte-for-byte identical
    """
    key: bytes
    paths: tuple[Path, ...]
    verified: bool = False

    @property
    def fingerprint(self) -> Fingerprint:
        return fingerprint_from_key(self.key)

    @property
    def block_count(self) -> int:
        return len(self.fingerprint)


class GroupingStrategy(StrEnum):
    PAIRWISE = 'pairwise'
    DIGEST = 'digest'


def _emit(groups: dict[bytes, set[Path]]) -> list[DuplicateGroup]:
    result = [DuplicateGroup(key, tuple(sorted(paths))) for key, paths in groups.items() if len(paths) >= 2]
    result.sort(key=lambda g: g.paths)
    return result


class Grouper:
    """Turns the record table of one scan into duplicate groups.

    Implementations must be pure: the same records always produce the same groups,
    members are sorted by path, and groups are ordered by their member paths.
    """

    def group(self, records: Iterable[FileRecord]) -> list[DuplicateGroup]:
        raise NotImplementedError


class PairwiseGrouper(Grouper):
    """Compares every distinct pair of records.

    This is O(n^2) fingerprint comparisons for n qualifying files and dominates the
    cost of a scan with many files. Matches accumulate under the literal fingerprint
    bytes, so A == B and B == C put A, B and C into one group.
    """

    def group(self, records: Iterable[FileRecord]) -> list[DuplicateGroup]:
        ordered = sorted(records, key=lambda r: r.path)
        logger.info(f"Comparing {len(ordered)} fingerprints pairwise")

        groups: dict[bytes, set[Path]] = defaultdict(set)
        for i, first in enumerate(ordered):
            for second in ordered[i + 1:]:
                if fingerprints_equal(first.fingerprint, second.fingerprint):
                    key = fingerprint_key(first.fingerprint)
                    groups[key].add(first.path)
                    groups[key].add(second.path)

        return _emit(groups)


class DigestGrouper(Grouper):
    """Buckets records by a 128-bit MurmurHash3 of their fingerprint bytes.

    Runs in linear time. Inside a bucket records are still separated by their
    literal fingerprint bytes, so a digest collision can never merge two groups.
    """

    def group(self, records: Iterable[FileRecord]) -> list[DuplicateGroup]:
        buckets: dict[int, dict[bytes, set[Path]]] = defaultdict(lambda: defaultdict(set))
        count = 0
        for record in records:
            key = fingerprint_key(record.fingerprint)
            buckets[mmh3.hash128(key, signed=False)][key].add(record.path)
            count += 1
        logger.info(f"Bucketed {count} fingerprints into {len(buckets)} digests")

        groups: dict[bytes, set[Path]] = {}
        for bucket in buckets.values():
            groups.update(bucket)
        return _emit(groups)


def get_grouper(strategy: GroupingStrategy | str) -> Grouper:
    strategy = GroupingStrategy(strategy)
    if strategy is GroupingStrategy.PAIRWISE:
        return PairwiseGrouper()
    return DigestGrouper()
