import tempfile
import unittest
from pathlib import Path

import msgpack

from blockdup import DuplicateGroup, ReportError, ScanReport, format_groups, read_report, write_report
from blockdup.fingerprint import fingerprint_key


class FormatGroupsTest(unittest.TestCase):
    def test_lines(self):
        groups = [
            DuplicateGroup(fingerprint_key((1,)), (Path('/a/x'), Path('/b/x'))),
            DuplicateGroup(fingerprint_key((2, 3)), (Path('/a/y'), Path('/b/y'), Path('/c/y'))),
        ]

        self.assertEqual(
            ['Duplicates:', '/a/x', '/b/x', 'Duplicates:', '/a/y', '/b/y', '/c/y'],
            list(format_groups(groups)))

    def test_no_groups(self):
        self.assertEqual([], list(format_groups([])))


class ScanReportTest(unittest.TestCase):
    def _report(self):
        return ScanReport(4096, [Path('/data'), Path('/backup')], [
            DuplicateGroup(fingerprint_key((0xDEADBEEF, 7)), (Path('/backup/a'), Path('/data/a')), True),
            DuplicateGroup(b'', (Path('/data/e1'), Path('/data/e2'))),
        ])

    def test_file_round_trip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'scan.report'
            report = self._report()

            write_report(path, report)
            loaded = read_report(path)

            self.assertEqual(report, loaded)
            self.assertEqual((0xDEADBEEF, 7), loaded.groups[0].fingerprint)
            self.assertTrue(loaded.groups[0].verified)
            self.assertFalse(loaded.groups[1].verified)

    def test_not_msgpack(self):
        with self.assertRaises(ReportError):
            ScanReport.from_msgpack(b'\xc1')

    def test_wrong_shape(self):
        with self.assertRaises(ReportError):
            ScanReport.from_msgpack(msgpack.dumps({'groups': []}))

    def test_unsupported_version(self):
        with self.assertRaises(ReportError) as cm:
            ScanReport.from_msgpack(msgpack.dumps([99, 4096, [], []]))
        self.assertIn('99', str(cm.exception))

    def test_malformed_group(self):
        with self.assertRaises(ReportError):
            ScanReport.from_msgpack(msgpack.dumps([1, 4096, [], [[b'', ['/a']]]]))

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ReportError):
                read_report(Path(tmpdir) / 'missing.report')


if __name__ == '__main__':
    unittest.main()
