import asyncio
import filecmp
import logging
import multiprocessing
from multiprocessing.pool import Pool
import pathlib
from typing import Awaitable

from ..fingerprint import FingerprintFailure, FingerprintResult, fingerprint_file

logger = logging.getLogger(__name__)


def compare_file_content(a: pathlib.Path, b: pathlib.Path):
    return filecmp.cmp(a, b, shallow=False)


class Processor:
    """File processing backend for fingerprinting and byte comparison.

    With a concurrency of 1 the work runs inline on the calling thread, which keeps
    a scan strictly sequential. Larger values run it on a process pool; results are
    always delivered back on the event loop that awaits them.
    """

    def __init__(self, concurrency: int | None = None):
        if concurrency is None:
            concurrency = multiprocessing.cpu_count()
        if concurrency < 1:
            raise ValueError(f"Concurrency must be positive: {concurrency}")

        self._concurrency = concurrency
        self._pool: Pool | None = Pool(self._concurrency) if concurrency > 1 else None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        if self._pool is not None:
            self._pool.close()
            self._pool.join()
            self._pool = None

    @property
    def concurrency(self):
        return self._concurrency

    def fingerprint(self, path: pathlib.Path, block_size: int) -> Awaitable[FingerprintResult]:
        """Fingerprint a file. I/O failures are returned as FingerprintFailure, not raised."""
        logger.info(f"Starting fingerprint computation for: {path}")

        async def log_and_compute():
            result = await self._evaluate(fingerprint_file, path, block_size)
            if isinstance(result, FingerprintFailure):
                logger.info(f"Failed fingerprint computation for: {path} ({result.error})")
            else:
                logger.info(f"Completed fingerprint computation for: {path} ({len(result.fingerprint)} blocks)")
            return result

        return log_and_compute()

    def compare_content(self, a: pathlib.Path, b: pathlib.Path) -> Awaitable[bool]:
        """Compare content of two files.

        :return: True if two files are equal, False otherwise."""
        logger.info(f"Starting content comparison: {a} vs {b}")

        async def log_and_compare():
            result = await self._evaluate(compare_file_content, a, b)
            logger.info(f"Completed content comparison: {a} vs {b} (equal={result})")
            return result

        return log_and_compare()

    def _evaluate(self, func, *args):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        if self._pool is None:
            try:
                future.set_result(func(*args))
            except Exception as e:
                future.set_exception(e)
            return future

        self._pool.apply_async(func, args=args,
                               callback=lambda v: loop.call_soon_threadsafe(future.set_result, v),
                               error_callback=lambda e: loop.call_soon_threadsafe(future.set_exception, e))

        return future
