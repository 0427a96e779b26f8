"""Exception types raised by blockdup."""

from pathlib import Path


class BlockdupError(Exception):
    """Base class for all blockdup errors."""


class InvalidRoot(BlockdupError):
    """A scan root that does not exist, is not a directory, or cannot be listed.

    Invalid roots never abort a scan. The walker logs them and hands them to the
    caller, which collects them into the scan result.
    """

    def __init__(self, path: Path, reason: str):
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason = reason


class FingerprintError(BlockdupError):
    """A qualifying file could not be opened or read while fingerprinting."""

    def __init__(self, path: Path, error: OSError):
        super().__init__(f"Cannot read file: {path} ({error.strerror or error})")
        self.path = path
        self.error = error


class PatternError(BlockdupError):
    """The configured name pattern cannot be turned into a matcher."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid name pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class SettingsError(BlockdupError):
    """The settings file is malformed or holds a value of the wrong kind."""


class ReportError(BlockdupError):
    """A stored scan report cannot be decoded."""
