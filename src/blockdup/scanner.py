import asyncio
import logging
from asyncio import TaskGroup
from pathlib import Path
from typing import NamedTuple

from .candidate import CandidateFilter
from .errors import FingerprintError, InvalidRoot
from .fingerprint import FingerprintFailure
from .grouper import DuplicateGroup, FileRecord, get_grouper
from .settings import ErrorPolicy, ScanConfig
from .utils.processor import Processor
from .utils.throttler import Throttler
from .utils.walker import walk_roots

logger = logging.getLogger(__name__)


class ScanResult(NamedTuple):
    """Outcome of one scan.

    Attributes:
        records: Every fingerprinted file keyed by path, in path order
        groups: Duplicate groups found among the records
        invalid_roots: Roots that were skipped because they could not be scanned
        failures: Files skipped because they could not be read (skip policy only)
    """
    records: dict[Path, FileRecord]
    groups: list[DuplicateGroup]
    invalid_roots: list[InvalidRoot]
    failures: list[FingerprintFailure]


class Scanner:
    """Runs one scan: walk the roots, filter, fingerprint, group, optionally verify.

    The scanner owns the record table for the duration of the scan. Fingerprints may
    be computed on a process pool, but records are only ever written from the event
    loop, so the table needs no locking.

    Under ErrorPolicy.ABORT the first unreadable file stops the scheduling of new
    work; once in-flight work settles a FingerprintError is raised for the failed
    path that sorts first. Under ErrorPolicy.SKIP the file is logged, recorded in
    ScanResult.failures and left out of grouping.
    """

    def __init__(self, processor: Processor, config: ScanConfig):
        self._processor = processor
        self._config = config
        self._reset()

    def _reset(self):
        self._records: dict[Path, FileRecord] = {}
        self._scheduled: set[Path] = set()
        self._invalid_roots: list[InvalidRoot] = []
        self._failures: list[FingerprintFailure] = []
        self._abort_requested = False

    def scan(self) -> ScanResult:
        """Run the scan to completion.

        Raises:
            PatternError: The name pattern is invalid; raised before any file is touched
            FingerprintError: A file could not be read and the policy is ABORT
        """
        candidate_filter = CandidateFilter(self._config)
        self._reset()
        logger.info(f"Scanning {len(self._config.roots)} roots with block size {self._config.block_size}")
        return asyncio.run(self._run(candidate_filter))

    async def _run(self, candidate_filter: CandidateFilter) -> ScanResult:
        async with TaskGroup() as tg:
            throttler = Throttler(tg, self._processor.concurrency * 2)

            for file_path, context in walk_roots(
                    self._config.roots, self._config.recursive, self._invalid_roots.append):
                if self._abort_requested:
                    break
                if file_path in self._scheduled or not candidate_filter.qualifies(file_path, context):
                    continue

                self._scheduled.add(file_path)
                await throttler.schedule(self._fingerprint(file_path, context.size))

        self._raise_if_aborted()

        records = {path: self._records[path] for path in sorted(self._records)}
        groups = get_grouper(self._config.grouping).group(records.values())

        if self._config.verify:
            groups = await self._verify(groups)
            self._raise_if_aborted()

        logger.info(f"Scan finished: {len(records)} files fingerprinted, {len(groups)} duplicate groups, "
                    f"{len(self._invalid_roots)} roots skipped, {len(self._failures)} files skipped")
        return ScanResult(records, groups, self._invalid_roots, self._failures)

    async def _fingerprint(self, file_path: Path, size: int):
        result = await self._processor.fingerprint(file_path, self._config.block_size)
        if isinstance(result, FingerprintFailure):
            self._fail(result)
            return

        self._records[file_path] = FileRecord(file_path, result.fingerprint, size)

    async def _verify(self, groups: list[DuplicateGroup]) -> list[DuplicateGroup]:
        """Split each group into subsets whose members are byte-for-byte identical."""
        verified = []
        for group in groups:
            subsets: list[list[Path]] = []
            for path in group.paths:
                await self._place(subsets, path)
                if self._abort_requested:
                    return verified

            for subset in subsets:
                if len(subset) >= 2:
                    verified.append(DuplicateGroup(group.key, tuple(subset), True))
                else:
                    logger.info(f"Fingerprint match is not byte-identical: {subset[0]}")

        verified.sort(key=lambda g: g.paths)
        return verified

    async def _place(self, subsets: list[list[Path]], path: Path):
        """Add ``path`` to the subset whose first member has identical content, or start a new one.

        A read error is charged to the file it names. An unreadable first member is
        dropped from its subset and the next member is compared instead.
        """
        i = 0
        while i < len(subsets):
            subset = subsets[i]
            try:
                identical = await self._processor.compare_content(subset[0], path)
            except OSError as e:
                if e.filename is not None and Path(e.filename) == subset[0]:
                    self._fail(FingerprintFailure(subset.pop(0), e))
                    if not subset:
                        del subsets[i]
                    if self._abort_requested:
                        return
                    continue
                self._fail(FingerprintFailure(path, e))
                return

            if identical:
                subset.append(path)
                return
            i += 1

        subsets.append([path])

    def _fail(self, failure: FingerprintFailure):
        self._failures.append(failure)
        if self._config.on_error is ErrorPolicy.ABORT:
            logger.error(f"Cannot read file: {failure.path} ({failure.error})")
            self._abort_requested = True
        else:
            logger.warning(f"Skipping unreadable file: {failure.path} ({failure.error})")

    def _raise_if_aborted(self):
        if self._abort_requested:
            failure = min(self._failures, key=lambda f: f.path)
            raise FingerprintError(failure.path, failure.error) from failure.error


def find_duplicates(config: ScanConfig, processor: Processor | None = None) -> ScanResult:
    """Scan with ``config`` and return the result.

    A Processor with ``config.jobs`` workers is created and closed when none is given.
    """
    if processor is not None:
        return Scanner(processor, config).scan()

    with Processor(config.jobs) as processor:
        return Scanner(processor, config).scan()
