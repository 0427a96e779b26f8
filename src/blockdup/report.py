"""Presentation and export of scan results."""

import os
from pathlib import Path
from typing import Any, Iterable, Iterator

import msgpack

from .errors import ReportError
from .grouper import DuplicateGroup

REPORT_FORMAT_VERSION = 1


def format_groups(groups: Iterable[DuplicateGroup]) -> Iterator[str]:
    """Yield display lines: a "Duplicates:" header per group followed by its member paths."""
    for group in groups:
        yield "Duplicates:"
        for path in group.paths:
            yield str(path)


class ScanReport:
    """Exportable summary of a finished scan.

    Attributes:
        block_size: Block size the fingerprints were computed with
        roots: Scan roots as configured
        groups: Duplicate groups found by the scan
    """

    def __init__(self, block_size: int, roots: Iterable[Path], groups: Iterable[DuplicateGroup]):
        self.block_size = block_size
        self.roots: list[Path] = [Path(r) for r in roots]
        self.groups: list[DuplicateGroup] = list(groups)

    def __eq__(self, other):
        if not isinstance(other, ScanReport):
            return NotImplemented
        return (self.block_size, self.roots, self.groups) == (other.block_size, other.roots, other.groups)

    def to_msgpack(self) -> bytes:
        """Serialize to msgpack format.

        Returns:
            Msgpack-encoded bytes containing [version, block_size, root_paths, group_data_list]
            where group_data_list is a list of [key, member_paths, verified]
        """
        group_data = [[group.key, [str(p) for p in group.paths], group.verified] for group in self.groups]
        result = msgpack.dumps([REPORT_FORMAT_VERSION, self.block_size, [str(r) for r in self.roots], group_data])
        assert isinstance(result, bytes)
        return result

    @classmethod
    def from_msgpack(cls, data: bytes) -> "ScanReport":
        """Deserialize from msgpack format.

        Raises:
            ReportError: The data is not a report of a supported version
        """
        try:
            decoded = msgpack.loads(data)
        except ValueError as e:
            raise ReportError(f"Cannot decode report: {e}") from e

        if not isinstance(decoded, list) or len(decoded) != 4:
            raise ReportError("Malformed report")
        version: Any = decoded[0]
        if version != REPORT_FORMAT_VERSION:
            raise ReportError(f"Unsupported report version: {version!r}")

        block_size: int = decoded[1]
        roots: list[str] = decoded[2]
        group_data: list[list[Any]] = decoded[3]
        try:
            groups = [DuplicateGroup(bytes(key), tuple(Path(p) for p in paths), bool(verified))
                      for key, paths, verified in group_data]
        except (TypeError, ValueError) as e:
            raise ReportError(f"Malformed report group: {e}") from e

        return cls(block_size, [Path(r) for r in roots], groups)


def write_report(path: str | os.PathLike, report: ScanReport):
    with open(path, 'wb') as f:
        f.write(report.to_msgpack())


def read_report(path: str | os.PathLike) -> ScanReport:
    """Load a report written by write_report().

    Raises:
        ReportError: The file cannot be read or decoded
    """
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise ReportError(f"Cannot read report {path}: {e}") from e
    return ScanReport.from_msgpack(data)
