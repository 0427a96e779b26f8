import argparse
import logging
import sys
import textwrap
from functools import wraps
from pathlib import Path

from . import BlockdupError, ScanSettings, ScanConfig, ScanReport, find_duplicates, format_groups, read_report, \
    write_report
from .settings import ErrorPolicy
from .grouper import GroupingStrategy

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def reports_errors(func):
    """Decorator turning blockdup errors into an error message and exit status 1.

    The decorated function receives (settings, args) and returns an exit status.
    """
    @wraps(func)
    def wrapper(settings, args):
        try:
            return func(settings, args)
        except BlockdupError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    return wrapper


def configure_logging(args, settings: ScanSettings) -> bool:
    """Configure logging from the command line, falling back to the settings file.

    A log file comes from --log-file or logging.path; the level from --log-level or
    logging.level, defaulting to INFO. Without a log file, --verbose logs to stderr.
    Otherwise log records are discarded; the commands print their own warnings.

    Returns:
        True if logging was configured, False otherwise
    """
    log_file = args.log_file or settings.get('logging.path')
    log_level = args.log_level or settings.get('logging.level') or 'INFO'
    if isinstance(log_level, str):
        log_level = log_level.upper()
    if log_level not in logging.getLevelNamesMapping():
        raise BlockdupError(f"Unknown log level: {log_level}")

    if log_file:
        logging.basicConfig(filename=str(log_file), level=getattr(logging, log_level), format=LOG_FORMAT)
        return True
    if args.verbose:
        logging.basicConfig(stream=sys.stderr, level=getattr(logging, log_level), format=LOG_FORMAT)
        return True

    package_logger = logging.getLogger('blockdup')
    if not any(isinstance(h, logging.NullHandler) for h in package_logger.handlers):
        package_logger.addHandler(logging.NullHandler())
    return False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='blockdup',
        description='Find duplicate files by comparing block-level CRC-32 fingerprints.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent('''
            Examples:
              blockdup scan /home/user/photos /mnt/backup/photos -r
              blockdup scan /data --pattern '*.iso' --min-size 1048576 --output data.report
              blockdup show data.report
            ''').strip()
    )
    parser.add_argument(
        '--config',
        metavar='PATH',
        help='Path to a TOML settings file. If not provided, uses the BLOCKDUP_CONFIG environment variable or no '
             'settings file.')
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log progress to stderr')
    parser.add_argument(
        '--log-file',
        metavar='PATH',
        help='Path to log file for operation logging. If not provided, uses logging.path from the settings file or no '
             'logging.')
    parser.add_argument(
        '--log-level',
        metavar='LEVEL',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to INFO.')
    subparsers = parser.add_subparsers(
        dest='command',
        required=True,
        title='Commands',
        description='Available commands',
        help='Use "blockdup COMMAND --help" for command-specific help'
    )

    parser_scan = subparsers.add_parser(
        'scan',
        help='Scan directories and print groups of duplicate files',
        description='Fingerprints every qualifying file under the given roots and prints each group of files with '
                    'identical fingerprints. Roots that do not exist are reported and skipped.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent('''
            Options not given on the command line are taken from the [scan] table of
            the settings file, then from the built-in defaults.

            Fingerprints detect duplicates but do not prove byte identity: files that
            differ only by trailing zero bytes in their last block match. Use --verify
            to confirm matches byte for byte.
            ''').strip())
    parser_scan.add_argument(
        'roots',
        nargs='+',
        metavar='ROOT',
        help='Directories to scan')
    parser_scan.add_argument(
        '-r', '--recursive',
        action='store_true',
        default=None,
        help='Scan the full subtree of each root (default: direct children only)')
    parser_scan.add_argument(
        '--exclude',
        action='append',
        metavar='DIR',
        help='Skip files whose parent directory is exactly DIR (repeatable; subdirectories of DIR are still scanned)')
    parser_scan.add_argument(
        '--min-size',
        type=int,
        metavar='BYTES',
        help='Minimum file size in bytes (default: 1)')
    parser_scan.add_argument(
        '--pattern',
        metavar='GLOB',
        help='Case-insensitive file name pattern; * matches any characters, ? matches one (default: *)')
    parser_scan.add_argument(
        '--block-size',
        type=int,
        metavar='BYTES',
        help='Fingerprint block size in bytes (default: 4096)')
    parser_scan.add_argument(
        '--on-error',
        choices=[p.value for p in ErrorPolicy],
        help='What to do when a file cannot be read: abort the scan (default) or skip the file')
    parser_scan.add_argument(
        '--grouping',
        choices=[s.value for s in GroupingStrategy],
        help='Grouping strategy: pairwise comparison (default) or digest bucketing')
    parser_scan.add_argument(
        '--verify',
        action='store_true',
        default=None,
        help='Confirm fingerprint matches by comparing file contents byte for byte')
    parser_scan.add_argument(
        '--jobs',
        type=int,
        metavar='N',
        help='Number of worker processes for hashing (default: 1, hash sequentially)')
    parser_scan.add_argument(
        '--output',
        metavar='PATH',
        help='Also write the result as a report file that "blockdup show" can display')
    parser_scan.set_defaults(method=_scan)

    parser_show = subparsers.add_parser(
        'show',
        help='Print the duplicate groups stored in a report file',
        description='Prints the duplicate groups of a report written by "blockdup scan --output".')
    parser_show.add_argument(
        'report',
        metavar='REPORT',
        help='Path to the report file')
    parser_show.set_defaults(method=_show)

    return parser


def blockdup_main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ScanSettings.locate(args.config)
        configure_logging(args, settings)
    except BlockdupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return args.method(settings, args)


@reports_errors
def _scan(settings: ScanSettings, args) -> int:
    config = ScanConfig.from_settings(
        settings,
        roots=[Path(r) for r in args.roots],
        exclusions=args.exclude,
        min_size=args.min_size,
        pattern=args.pattern,
        block_size=args.block_size,
        recursive=args.recursive,
        on_error=args.on_error,
        grouping=args.grouping,
        verify=args.verify,
        jobs=args.jobs,
    )

    result = find_duplicates(config)

    for invalid in result.invalid_roots:
        print(f"Warning: {invalid}", file=sys.stderr)
    for failure in result.failures:
        print(f"Warning: Skipped unreadable file: {failure.path} ({failure.error})", file=sys.stderr)

    for line in format_groups(result.groups):
        print(line)

    if args.output:
        try:
            write_report(args.output, ScanReport(config.block_size, config.roots, result.groups))
        except OSError as e:
            raise BlockdupError(f"Cannot write report {args.output}: {e}") from e

    return 0


@reports_errors
def _show(settings: ScanSettings, args) -> int:
    report = read_report(args.report)
    for line in format_groups(report.groups):
        print(line)
    return 0


def main():
    sys.exit(blockdup_main())


if __name__ == '__main__':
    main()
