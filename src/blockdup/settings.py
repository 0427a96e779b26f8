import os
import tomllib
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from .errors import SettingsError
from .fingerprint import DEFAULT_BLOCK_SIZE
from .grouper import GroupingStrategy

# Environment variable naming a settings file when --config is not given
SETTINGS_ENVIRONMENT_VARIABLE = 'BLOCKDUP_CONFIG'


class ErrorPolicy(StrEnum):
    """What a scan does when a qualifying file cannot be read."""
    ABORT = 'abort'
    SKIP = 'skip'


class ScanSettings:
    """Settings manager for scan configuration.

    Provides a read-only key-value interface to the settings stored in a TOML file.
    This class is agnostic to the schema - it loads the file and exposes the raw
    data structure. ScanConfig.from_settings() interprets and validates the values.

    Example:
        settings = ScanSettings(Path('~/.config/blockdup.toml').expanduser())
        block_size = settings.get('scan.block_size', 4096)
        log_path = settings.get('logging.path')
    """

    def __init__(self, settings_file: Path | None = None):
        """Load settings from ``settings_file``.

        With no file, all get() calls return their defaults.

        Raises:
            SettingsError: The file cannot be read or is not valid TOML
        """
        self._settings_file = settings_file
        self._settings: dict[str, Any] = {}

        if settings_file is not None:
            try:
                with open(settings_file, 'rb') as f:
                    self._settings = tomllib.load(f)
            except OSError as e:
                raise SettingsError(f"Cannot read settings file {settings_file}: {e}") from e
            except tomllib.TOMLDecodeError as e:
                raise SettingsError(f"Invalid settings file {settings_file}: {e}") from e

    @classmethod
    def locate(cls, settings_file: str | os.PathLike | None = None) -> 'ScanSettings':
        """Load the settings named on the command line, else by BLOCKDUP_CONFIG, else none."""
        if settings_file is None:
            settings_file = os.environ.get(SETTINGS_ENVIRONMENT_VARIABLE) or None
        return cls(Path(settings_file) if settings_file is not None else None)

    @property
    def settings_file(self) -> Path | None:
        return self._settings_file

    def get(self, key: str, default=None):
        """Get a setting value by dot-separated key with optional default.

        'scan.block_size' accesses settings['scan']['block_size']. Returns the
        default if the key path does not exist or an intermediate value is not a table.

        Examples:
            >>> settings.get('scan.exclude', [])
            ['/data/cache', '/data/tmp']
            >>> settings.get('nonexistent.key', 'fallback')
            'fallback'
        """
        keys = key.split('.')
        value = self._settings

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_typed(self, key: str, kind: type, default=None):
        """Like get(), but raises SettingsError when a present value is not of ``kind``."""
        value = self.get(key)
        if value is None:
            return default
        # bool is an int subclass; keep them apart
        if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
            raise SettingsError(
                f"Setting {key} in {self.settings_file} must be of type {kind.__name__}, got {value!r}")
        return value


def _normalize(path: str | os.PathLike) -> Path:
    return Path(os.path.abspath(path))


@dataclass(frozen=True)
class ScanConfig:
    """Immutable parameters of one scan.

    Attributes:
        roots: Directories to scan
        exclusions: Directories whose direct children are skipped (exact parent match,
                    not a subtree match), stored as normalized absolute paths
        min_size: Smallest file size in bytes that qualifies
        pattern: Case-insensitive glob matched against whole file names
        block_size: Bytes per fingerprint block
        recursive: Walk full subtrees instead of direct children only
        on_error: Abort the scan or skip the file when a file cannot be read
        grouping: Duplicate grouping strategy
        verify: Confirm fingerprint matches byte-for-byte before reporting them
        jobs: Number of worker processes for hashing; 1 hashes inline
    """
    roots: tuple[Path, ...] = ()
    exclusions: frozenset[Path] = field(default_factory=frozenset)
    min_size: int = 1
    pattern: str = '*'
    block_size: int = DEFAULT_BLOCK_SIZE
    recursive: bool = False
    on_error: ErrorPolicy = ErrorPolicy.ABORT
    grouping: GroupingStrategy = GroupingStrategy.PAIRWISE
    verify: bool = False
    jobs: int = 1

    def __post_init__(self):
        if self.block_size < 1:
            raise ValueError(f"Block size must be positive: {self.block_size}")
        if self.min_size < 0:
            raise ValueError(f"Minimum size must not be negative: {self.min_size}")
        if self.jobs < 1:
            raise ValueError(f"Job count must be positive: {self.jobs}")

        object.__setattr__(self, 'roots', tuple(Path(r) for r in self.roots))
        object.__setattr__(self, 'exclusions', frozenset(_normalize(e) for e in self.exclusions))
        object.__setattr__(self, 'on_error', ErrorPolicy(self.on_error))
        object.__setattr__(self, 'grouping', GroupingStrategy(self.grouping))

    @classmethod
    def from_settings(cls, settings: ScanSettings, roots=(), **overrides) -> 'ScanConfig':
        """Build a config from settings, letting non-None ``overrides`` win.

        Raises:
            SettingsError: A setting has the wrong type or an unknown value
        """
        exclusions = settings.get_typed('scan.exclude', list, [])
        for exclusion in exclusions:
            if not isinstance(exclusion, str):
                raise SettingsError(f"Setting scan.exclude in {settings.settings_file} must list directory paths, "
                                    f"got {exclusion!r}")

        values = {
            'exclusions': exclusions,
            'min_size': settings.get_typed('scan.min_size', int, 1),
            'pattern': settings.get_typed('scan.pattern', str, '*'),
            'block_size': settings.get_typed('scan.block_size', int, DEFAULT_BLOCK_SIZE),
            'recursive': settings.get_typed('scan.recursive', bool, False),
            'on_error': settings.get_typed('scan.on_error', str, ErrorPolicy.ABORT),
            'grouping': settings.get_typed('scan.grouping', str, GroupingStrategy.PAIRWISE),
            'verify': settings.get_typed('scan.verify', bool, False),
            'jobs': settings.get_typed('scan.jobs', int, 1),
        }
        for key, value in overrides.items():
            if key not in values:
                raise TypeError(f"Unknown scan option: {key}")
            if value is not None:
                values[key] = value

        try:
            return cls(roots=tuple(roots), **values)
        except ValueError as e:
            raise SettingsError(str(e)) from e
