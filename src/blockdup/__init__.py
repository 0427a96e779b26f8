from .errors import BlockdupError, InvalidRoot, FingerprintError, PatternError, SettingsError, ReportError
from .fingerprint import Fingerprinted, FingerprintFailure, compute_fingerprint, fingerprint_file
from .grouper import FileRecord, DuplicateGroup, Grouper, PairwiseGrouper, DigestGrouper, GroupingStrategy
from .settings import ScanSettings, ScanConfig, ErrorPolicy
from .candidate import CandidateFilter, compile_name_pattern, qualifies
from .scanner import Scanner, ScanResult, find_duplicates
from .report import ScanReport, format_groups, read_report, write_report
from .utils.processor import Processor
