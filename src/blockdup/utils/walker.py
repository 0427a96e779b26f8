import logging
import os
import stat
from pathlib import Path
from typing import Callable, Generator, Iterable, Iterator

from ..errors import InvalidRoot

logger = logging.getLogger(__name__)


class FileContext:
    """Context object for a file or directory during traversal.

    ``stat`` describes the entry itself (symlinks are not followed) and decides
    whether the walker descends into it. ``target_stat`` follows symlinks and is
    what candidate filtering looks at, so a symlink to a regular file is judged by
    the file it points to. Both are loaded lazily from ``path`` and cached.
    """
    def __init__(self, path: Path, st: os.stat_result | None = None):
        self._path: Path = path
        self._stat: os.stat_result | None = st
        self._target_stat: os.stat_result | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def stat(self) -> os.stat_result:
        if self._stat is None:
            self._stat = self._path.stat(follow_symlinks=False)
        return self._stat

    @property
    def target_stat(self) -> os.stat_result:
        """Stat of the entry with symlinks followed. Raises OSError for broken links."""
        if self._target_stat is None:
            if not stat.S_ISLNK(self.stat.st_mode):
                self._target_stat = self.stat
            else:
                self._target_stat = self._path.stat()
        return self._target_stat

    def is_dir(self):
        try:
            return stat.S_ISDIR(self.stat.st_mode)
        except FileNotFoundError:
            # Removed since the directory was listed
            return False

    def is_file(self):
        """True for regular files and for symlinks whose target is a regular file."""
        try:
            return stat.S_ISREG(self.target_stat.st_mode)
        except OSError:
            return False

    @property
    def size(self) -> int:
        return self.target_stat.st_size


def _list_directory(path: Path) -> list[Path]:
    return sorted(path.iterdir(), key=lambda p: p.name)


def walk(
        path: Path,
        recursive: bool = True,
        entries: list[Path] | None = None) -> Generator[tuple[Path, FileContext], None, None]:
    """Traverse a directory in name order, descending into subdirectories when recursive.

    Directory symlinks are yielded but never descended into. A subdirectory that
    cannot be listed is logged and skipped.
    """
    if entries is None:
        entries = _list_directory(path)

    child: Path
    for child in entries:
        context = FileContext(child)
        yield child, context

        if recursive and context.is_dir():
            try:
                children = _list_directory(child)
            except OSError as e:
                logger.warning(f"Skipping unreadable directory {child}: {e}")
                continue
            yield from walk(child, recursive, children)


ReportInvalid = Callable[[InvalidRoot], None]


def check_root(root: Path) -> InvalidRoot | None:
    """Return an InvalidRoot describing why ``root`` cannot be scanned, or None."""
    if not root.exists():
        return InvalidRoot(root, "Directory doesn't exist")
    if not root.is_dir():
        return InvalidRoot(root, "Not a directory")
    return None


def walk_roots(
        roots: Iterable[Path],
        recursive: bool = False,
        report_invalid: ReportInvalid | None = None) -> Iterator[tuple[Path, FileContext]]:
    """Walk every scan root in turn, yielding (absolute_path, file_context).

    Roots are made absolute (without resolving symlinks) so that yielded paths are
    comparable across roots. Invalid roots are logged, passed to ``report_invalid``
    and skipped; they never stop the walk.

    Example:
        for file_path, context in walk_roots([Path('/data'), Path('/backup')], recursive=True):
            if context.is_file():
                process_file(file_path, context)
    """
    for root in roots:
        root = Path(os.path.abspath(root))
        invalid = check_root(root)
        if invalid is None:
            try:
                entries = _list_directory(root)
            except OSError as e:
                invalid = InvalidRoot(root, f"Cannot list directory ({e.strerror or e})")

        if invalid is not None:
            logger.warning(str(invalid))
            if report_invalid is not None:
                report_invalid(invalid)
            continue

        logger.debug(f"Walking {root} ({'recursive' if recursive else 'shallow'})")
        yield from walk(root, recursive, entries)
