"""Rules deciding which walked entries are fingerprinted."""

import logging
import os
import re
from pathlib import Path

from .errors import PatternError
from .settings import ScanConfig
from .utils.walker import FileContext

logger = logging.getLogger(__name__)


def glob_to_regex(pattern: str) -> str:
    """Translate a name glob into an anchored regular expression.

    ``*`` matches any run of characters including none, ``?`` matches exactly one
    character, and every other character matches itself literally.
    """
    parts = []
    for ch in pattern:
        if ch == '*':
            parts.append('.*')
        elif ch == '?':
            parts.append('.')
        else:
            parts.append(re.escape(ch))
    return '(?s:' + ''.join(parts) + r')\Z'


def compile_name_pattern(pattern: str) -> re.Pattern:
    """Compile a name glob into a case-insensitive matcher for whole file names.

    Raises:
        PatternError: The pattern is empty, contains a path separator, or does not compile
    """
    if not pattern:
        raise PatternError(pattern, "pattern is empty")

    separators = {os.sep, '/'} | ({os.altsep} if os.altsep else set())
    if any(sep in pattern for sep in separators):
        raise PatternError(pattern, "pattern matches file names and cannot contain a path separator")

    try:
        return re.compile(glob_to_regex(pattern), re.IGNORECASE)
    except re.error as e:
        raise PatternError(pattern, str(e)) from e


class CandidateFilter:
    """Predicate over walked entries built once per scan from a ScanConfig.

    An entry qualifies when all of the following hold:
    1. it is a regular file (symlinks are judged by their target),
    2. its immediate parent directory is not one of the exclusions,
    3. its size is at least the minimum size,
    4. its name matches the name pattern.

    Exclusion is an exact comparison of the parent directory: excluding /a/b
    skips /a/b/x but not /a/b/c/x.
    """

    def __init__(self, config: ScanConfig):
        self._matcher = compile_name_pattern(config.pattern)
        self._exclusions = config.exclusions
        self._min_size = config.min_size

    def qualifies(self, path: Path, context: FileContext) -> bool:
        if not context.is_file():
            return False

        if Path(os.path.abspath(path.parent)) in self._exclusions:
            logger.debug(f"Excluded by parent directory: {path}")
            return False

        if context.size < self._min_size:
            logger.debug(f"Smaller than {self._min_size} bytes: {path}")
            return False

        if self._matcher.match(path.name) is None:
            logger.debug(f"Name does not match pattern: {path}")
            return False

        return True


def qualifies(path: Path, context: FileContext, config: ScanConfig) -> bool:
    """One-off form of CandidateFilter(config).qualifies(path, context)."""
    return CandidateFilter(config).qualifies(path, context)
