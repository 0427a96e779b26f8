import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from blockdup import ErrorPolicy, GroupingStrategy, ScanConfig, ScanSettings, SettingsError


def write_settings(directory: str, text: str) -> Path:
    path = Path(directory) / 'blockdup.toml'
    path.write_text(text)
    return path


class ScanSettingsTest(unittest.TestCase):
    def test_no_file_returns_defaults(self):
        settings = ScanSettings()
        self.assertIsNone(settings.settings_file)
        self.assertEqual(4096, settings.get('scan.block_size', 4096))
        self.assertIsNone(settings.get('logging.path'))

    def test_dot_notation(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_settings(tmpdir, '[scan]\nblock_size = 512\npattern = "*.jpg"\n\n[logging]\nlevel = "DEBUG"\n')
            settings = ScanSettings(path)

            self.assertEqual(512, settings.get('scan.block_size'))
            self.assertEqual('*.jpg', settings.get('scan.pattern'))
            self.assertEqual('DEBUG', settings.get('logging.level'))
            self.assertEqual('fallback', settings.get('scan.block_size.nested', 'fallback'))
            self.assertEqual('fallback', settings.get('nonexistent.key', 'fallback'))

    def test_invalid_toml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_settings(tmpdir, '[scan\nblock_size = ')

            with self.assertRaises(SettingsError) as cm:
                ScanSettings(path)
            self.assertIn(str(path), str(cm.exception))

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(SettingsError):
                ScanSettings(Path(tmpdir) / 'missing.toml')

    def test_locate_from_environment(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_settings(tmpdir, '[scan]\nmin_size = 10\n')

            with mock.patch.dict(os.environ, {'BLOCKDUP_CONFIG': str(path)}):
                self.assertEqual(10, ScanSettings.locate().get('scan.min_size'))

            with mock.patch.dict(os.environ, {}, clear=True):
                self.assertIsNone(ScanSettings.locate().settings_file)

    def test_locate_prefers_explicit_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            explicit = write_settings(tmpdir, '[scan]\nmin_size = 3\n')

            with mock.patch.dict(os.environ, {'BLOCKDUP_CONFIG': str(Path(tmpdir) / 'missing.toml')}):
                self.assertEqual(3, ScanSettings.locate(explicit).get('scan.min_size'))

    def test_get_typed(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = ScanSettings(write_settings(tmpdir, '[scan]\nblock_size = true\njobs = "4"\n'))

            with self.assertRaises(SettingsError):
                settings.get_typed('scan.block_size', int)
            with self.assertRaises(SettingsError):
                settings.get_typed('scan.jobs', int)
            self.assertEqual(7, settings.get_typed('scan.min_size', int, 7))


class ScanConfigTest(unittest.TestCase):
    def test_defaults(self):
        config = ScanConfig()
        self.assertEqual((), config.roots)
        self.assertEqual(frozenset(), config.exclusions)
        self.assertEqual(1, config.min_size)
        self.assertEqual('*', config.pattern)
        self.assertEqual(4096, config.block_size)
        self.assertFalse(config.recursive)
        self.assertIs(ErrorPolicy.ABORT, config.on_error)
        self.assertIs(GroupingStrategy.PAIRWISE, config.grouping)
        self.assertFalse(config.verify)
        self.assertEqual(1, config.jobs)

    def test_immutable(self):
        config = ScanConfig()
        with self.assertRaises(AttributeError):
            config.block_size = 10

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            ScanConfig(block_size=0)
        with self.assertRaises(ValueError):
            ScanConfig(min_size=-1)
        with self.assertRaises(ValueError):
            ScanConfig(jobs=0)
        with self.assertRaises(ValueError):
            ScanConfig(on_error='retry')

    def test_from_settings(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = ScanSettings(write_settings(tmpdir, '\n'.join([
                '[scan]',
                'block_size = 1024',
                'min_size = 100',
                'pattern = "*.iso"',
                'recursive = true',
                'exclude = ["/data/cache"]',
                'on_error = "skip"',
                'grouping = "digest"',
                'verify = true',
                'jobs = 2',
            ])))

            config = ScanConfig.from_settings(settings, roots=['/data'])

            self.assertEqual((Path('/data'),), config.roots)
            self.assertEqual(frozenset({Path('/data/cache')}), config.exclusions)
            self.assertEqual(1024, config.block_size)
            self.assertEqual(100, config.min_size)
            self.assertEqual('*.iso', config.pattern)
            self.assertTrue(config.recursive)
            self.assertIs(ErrorPolicy.SKIP, config.on_error)
            self.assertIs(GroupingStrategy.DIGEST, config.grouping)
            self.assertTrue(config.verify)
            self.assertEqual(2, config.jobs)

    def test_overrides_win_unless_none(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = ScanSettings(write_settings(tmpdir, '[scan]\nblock_size = 1024\npattern = "*.iso"\n'))

            config = ScanConfig.from_settings(settings, block_size=64, pattern=None, recursive=None)

            self.assertEqual(64, config.block_size)
            self.assertEqual('*.iso', config.pattern)
            self.assertFalse(config.recursive)

    def test_unknown_override(self):
        with self.assertRaises(TypeError):
            ScanConfig.from_settings(ScanSettings(), colour='red')

    def test_bad_setting_values(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(SettingsError):
                ScanConfig.from_settings(ScanSettings(write_settings(tmpdir, '[scan]\ngrouping = "fastest"\n')))
            with self.assertRaises(SettingsError):
                ScanConfig.from_settings(ScanSettings(write_settings(tmpdir, '[scan]\nblock_size = -1\n')))
            with self.assertRaises(SettingsError):
                ScanConfig.from_settings(ScanSettings(write_settings(tmpdir, '[scan]\nexclude = "/tmp"\n')))

    def test_exclusions_must_be_paths(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_settings(tmpdir, '[scan]\nexclude = ["/data/cache", 1]\n')

            with self.assertRaises(SettingsError) as cm:
                ScanConfig.from_settings(ScanSettings(path))

            self.assertIn('scan.exclude', str(cm.exception))
            self.assertIn(str(path), str(cm.exception))


if __name__ == '__main__':
    unittest.main()
